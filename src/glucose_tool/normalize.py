"""Normalización de lecturas: orden, conversión de unidades y filtros de fecha."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import date, datetime, time, timedelta

from dateutil import tz

from glucose_tool.model import GlucoseReading, GlucoseUnit

MMOL_TO_MGDL = 18.0182


def normalize_readings(readings: Sequence[GlucoseReading]) -> list[GlucoseReading]:
    """Return readings sorted ascending by timestamp.

    The sort is stable, so entries sharing a timestamp keep their original
    relative order. Nothing is dropped and the input is left untouched.

    Args:
        readings: Readings in any order, possibly spanning several days.

    Returns:
        New list sorted by timestamp.
    """
    return sorted(readings, key=lambda r: instant(r.timestamp))


def instant(ts: datetime) -> datetime:
    """Instante absoluto de ``ts`` en UTC; las horas naive se dejan como están.

    Una hora local inexistente (salto de primavera) se adelanta al primer
    instante válido.
    """
    if ts.tzinfo is None:
        return ts
    return tz.resolve_imaginary(ts).astimezone(tz.UTC)


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Real time between two timestamps, across DST changes."""
    return instant(end) - instant(start)


def mmol_to_mgdl(value: float) -> float:
    """Convert mmol/L to mg/dL (no rounding)."""
    return value * MMOL_TO_MGDL


def mgdl_to_mmol(value: float) -> float:
    """Convert mg/dL to mmol/L (no rounding)."""
    return value / MMOL_TO_MGDL


def to_display_unit(value: float, unit: GlucoseUnit) -> float:
    """Convert a canonical mmol/L value to ``unit``."""
    if unit is GlucoseUnit.MG_DL:
        return mmol_to_mgdl(value)
    return value


def format_glucose(value: float, unit: GlucoseUnit) -> str:
    """Format a canonical mmol/L value for display in ``unit``.

    Args:
        value: Glucose value in mmol/L.
        unit: Target display unit.

    Returns:
        Integer string for mg/dL, one decimal for mmol/L.
    """
    converted = to_display_unit(value, unit)
    if unit is GlucoseUnit.MG_DL:
        return str(round(converted))
    return f"{converted:.1f}"


def unique_dates(readings: Sequence[GlucoseReading]) -> list[date]:
    """Fechas (día calendario) presentes en las lecturas, ordenadas."""
    return sorted({r.timestamp.date() for r in readings})


def filter_by_date(
    readings: Sequence[GlucoseReading], day: date
) -> list[GlucoseReading]:
    """Lecturas de un único día calendario."""
    return [r for r in readings if r.timestamp.date() == day]


def filter_by_date_range(
    readings: Sequence[GlucoseReading], start: date, end: date
) -> list[GlucoseReading]:
    """Lecturas entre dos fechas (ambas inclusive)."""
    return [r for r in readings if start <= r.timestamp.date() <= end]


def filter_by_weekdays(
    readings: Sequence[GlucoseReading], weekdays: Collection[int]
) -> list[GlucoseReading]:
    """Keep readings whose weekday (0=Monday..6=Sunday) is in ``weekdays``."""
    return [r for r in readings if r.timestamp.weekday() in weekdays]


def filter_last_n_days(
    readings: Sequence[GlucoseReading],
    days: int,
    reference: datetime | None = None,
) -> list[GlucoseReading]:
    """Keep readings from the last ``days`` days up to the reference day.

    The window starts at 00:00 ``days`` days before the reference and ends
    with the whole reference day.

    Args:
        readings: Glucose readings.
        days: Window length in days.
        reference: Window anchor; defaults to the latest reading.

    Returns:
        Readings inside the window, in input order.
    """
    if not readings:
        return []
    ref = reference if reference is not None else max(r.timestamp for r in readings)
    start = datetime.combine(ref.date() - timedelta(days=days), time.min, ref.tzinfo)
    end = datetime.combine(ref.date() + timedelta(days=1), time.min, ref.tzinfo)
    return [r for r in readings if start <= r.timestamp < end]
