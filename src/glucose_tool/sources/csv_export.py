"""Lectura de exportaciones CSV de glucosa e insulina (bomba / CGM)."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any

import pandas as pd
from dateutil import parser as date_parser
from dateutil import tz

from glucose_tool.model import (
    BasalRateChange,
    BolusDose,
    GlucoseReading,
    GlucoseSource,
    GlucoseUnit,
    InsulinHistory,
)
from glucose_tool.normalize import mgdl_to_mmol
from glucose_tool.sources.base import DataSource, SourcePaths

logger = logging.getLogger(__name__)

_TIMESTAMP_PATTERNS = [r"timestamp", r"fecha", r"\bdate", r"\btime"]
_GLUCOSE_PATTERNS = [r"glucose", r"glucosa", r"\bvalue\b", r"\bvalor\b"]
_TYPE_PATTERNS = [r"\btype\b", r"\btipo\b"]
_DOSE_PATTERNS = [r"\bvalue\b", r"\bdose\b", r"\bdosis\b", r"\brate\b"]


@dataclass(frozen=True)
class CsvExportPaths(SourcePaths):
    """Paths for CSV exports."""

    # root: folder containing glucose_*.csv and insulin_*.csv


class CsvExportSource(DataSource):
    """CSV export reader producing model objects in mmol/L."""

    def __init__(self, paths: SourcePaths, zone: tzinfo | None = None) -> None:
        """Create the source.

        Args:
            paths: Folder with the exports.
            zone: Time zone for naive timestamps; defaults to the local one.
        """
        super().__init__(paths)
        self._zone = zone if zone is not None else tz.tzlocal()

    def newest_csv(self, prefix: str) -> Path:
        """Return newest ``<prefix>_*.csv`` by mtime."""
        files = sorted(
            self._paths.root.glob(f"{prefix}_*.csv"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        if not files:
            raise FileNotFoundError(f"No {prefix}_*.csv in {self._paths.root}")
        return files[0]

    def load_readings(
        self, path: Path, unit: GlucoseUnit | None = None
    ) -> list[GlucoseReading]:
        """Parse a glucose CSV into readings.

        The unit is taken from ``unit`` or, failing that, from a header such
        as ``"Glucose (mg/dL)"``; mmol/L otherwise.

        Args:
            path: CSV file with timestamp and glucose columns.
            unit: Unit of the glucose column, when known.

        Returns:
            Readings in mmol/L, in file order.

        Raises:
            ValueError: If the required columns are missing.
        """
        df = _read_csv(path)
        ts_col = _require_col(df, _TIMESTAMP_PATTERNS, "timestamp", path)
        value_col = _require_col(df, _GLUCOSE_PATTERNS, "glucose", path)
        source_col = _find_col(list(df.columns), [r"\bsource\b", r"\bfuente\b"])
        file_unit = unit or _unit_from_header(value_col) or GlucoseUnit.MMOL_L

        out: list[GlucoseReading] = []
        for row in df.to_dict("records"):
            ts = _parse_timestamp(row.get(ts_col), self._zone)
            value = _parse_number(row.get(value_col))
            if ts is None or value is None or value < 0:
                continue
            if file_unit is GlucoseUnit.MG_DL:
                value = mgdl_to_mmol(value)
            out.append(
                GlucoseReading(
                    timestamp=ts,
                    value=value,
                    source=_parse_source(row.get(source_col) if source_col else None),
                )
            )
        _log_dropped(path, len(df), len(out))
        return out

    def load_insulin(self, path: Path) -> InsulinHistory:
        """Parse an insulin CSV (``timestamp,type,value``).

        ``type`` is ``basal`` (value = rate in U/h from that instant) or
        ``bolus`` (value = units delivered).

        Raises:
            ValueError: If the required columns are missing.
        """
        df = _read_csv(path)
        ts_col = _require_col(df, _TIMESTAMP_PATTERNS, "timestamp", path)
        type_col = _require_col(df, _TYPE_PATTERNS, "type", path)
        dose_col = _require_col(df, _DOSE_PATTERNS, "value", path)

        basal: list[BasalRateChange] = []
        boluses: list[BolusDose] = []
        for row in df.to_dict("records"):
            ts = _parse_timestamp(row.get(ts_col), self._zone)
            dose = _parse_number(row.get(dose_col))
            kind = str(row.get(type_col, "")).strip().lower()
            if ts is None or dose is None or dose < 0:
                continue
            if kind == "basal":
                basal.append(BasalRateChange(timestamp=ts, rate=dose))
            elif kind == "bolus":
                boluses.append(BolusDose(timestamp=ts, units=dose))
        _log_dropped(path, len(df), len(basal) + len(boluses))
        return InsulinHistory(basal=tuple(basal), boluses=tuple(boluses))


def _read_csv(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return df.rename(columns={c: c.strip() for c in df.columns})


def _find_col(columns: list[str], patterns: list[str]) -> str | None:
    for pat in patterns:
        rx = re.compile(pat, re.IGNORECASE)
        for c in columns:
            if rx.search(c):
                return c
    return None


def _require_col(df: pd.DataFrame, patterns: list[str], what: str, path: Path) -> str:
    col = _find_col(list(df.columns), patterns)
    if col is None:
        raise ValueError(f"Missing {what} column in {path}")
    return col


def _unit_from_header(column: str) -> GlucoseUnit | None:
    """Detecta la unidad entre paréntesis del encabezado (p. ej. 'Glucose (mg/dL)')."""
    match = re.search(r"\(([^)]+)\)", column)
    if not match:
        return None
    text = match.group(1).lower()
    if "mg" in text and "dl" in text:
        return GlucoseUnit.MG_DL
    if "mmol" in text:
        return GlucoseUnit.MMOL_L
    return None


def _parse_timestamp(raw: Any, zone: tzinfo) -> datetime | None:
    """Parsea fecha/hora; las ingenuas se localizan en ``zone``."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        dt = date_parser.parse(raw.strip())
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return dt


def _parse_number(raw: Any) -> float | None:
    """Convierte a float finito; acepta coma decimal. None si no es válido."""
    if raw is None:
        return None
    text = str(raw).strip().replace(",", ".")
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_source(raw: Any) -> GlucoseSource:
    text = str(raw).strip().lower() if raw is not None else ""
    return GlucoseSource.BG if text == GlucoseSource.BG.value else GlucoseSource.CGM


def _log_dropped(path: Path, rows: int, kept: int) -> None:
    if kept < rows:
        logger.warning("%s: dropped %d unparseable rows", path.name, rows - kept)
