"""Generación de Excel formateado con los análisis de glucosa e insulina."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

_HEADER_MAP: dict[str, str] = {
    "weekday": "Día",
    "datetime": "Fecha / Hora",
    "date": "Fecha",
    "time": "Hora",
    "glucose_mg_dl": "Glucosa (mg/dL)",
    "glucose_mmol_l": "Glucosa (mmol/L)",
    "glucose": "Glucosa",
    "source": "Origen",
    "metric": "Métrica",
    "value": "Valor",
    "group": "Grupo",
    "very_low": "Muy baja",
    "very_low_pct": "Muy baja\n(%)",
    "low": "Baja",
    "low_pct": "Baja\n(%)",
    "in_range": "En rango",
    "in_range_pct": "En rango\n(%)",
    "high": "Alta",
    "high_pct": "Alta\n(%)",
    "very_high": "Muy alta",
    "very_high_pct": "Muy alta\n(%)",
    "total": "Total",
    "time_slot": "Franja",
    "lowest": "Mínimo",
    "p10": "P10",
    "p25": "P25",
    "p50": "Mediana",
    "p75": "P75",
    "p90": "P90",
    "highest": "Máximo",
    "count": "Lecturas",
    "time_decimal": "Hora decimal",
    "roc": "RoC\n(/5 min)",
    "category": "Categoría",
    "start": "Inicio",
    "end": "Fin",
    "nadir": "Nadir",
    "nadir_time": "Hora nadir",
    "duration_minutes": "Duración\n(min)",
    "duration": "Duración",
    "is_severe": "Severa",
    "hour": "Hora",
    "basal_prev": "Basal hora\nprevia (U)",
    "bolus_prev": "Bolo hora\nprevia (U)",
    "active_iob": "IOB (U)",
    "basal_total": "Basal (U)",
    "bolus_total": "Bolo (U)",
    "total_insulin": "Total (U)",
    "glucose_count": "Lecturas",
    "glucose_min": "Mínimo",
    "glucose_max": "Máximo",
    "mmol_avg": "Media",
}

_COLUMN_WIDTHS: dict[str, int] = {
    "Día": 6,
    "Fecha / Hora": 18,
    "Inicio": 18,
    "Fin": 18,
    "Hora nadir": 18,
    "Fecha": 12,
    "Métrica": 28,
    "Grupo": 16,
    "Origen": 8,
}

_NUMBER_FORMATS: dict[str, str] = {
    "Fecha / Hora": "dd/mm/yyyy hh:mm",
    "Inicio": "dd/mm/yyyy hh:mm",
    "Fin": "dd/mm/yyyy hh:mm",
    "Hora nadir": "dd/mm/yyyy hh:mm",
    "Fecha": "dd/mm/yyyy",
    "Glucosa (mg/dL)": "0",
    "Glucosa (mmol/L)": "0.0",
    "Glucosa": "0.0",
    "Mínimo": "0.0",
    "P10": "0.0",
    "P25": "0.0",
    "Mediana": "0.0",
    "P75": "0.0",
    "P90": "0.0",
    "Máximo": "0.0",
    "Media": "0.00",
    "RoC\n(/5 min)": "0.00",
    "Nadir": "0.0",
    "Duración\n(min)": "0",
    "Basal hora\nprevia (U)": "0.00",
    "Bolo hora\nprevia (U)": "0.00",
    "IOB (U)": "0.00",
    "Basal (U)": "0.00",
    "Bolo (U)": "0.00",
    "Total (U)": "0.00",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the report workbook."""

    readings_sheet: str = "Lecturas"
    default_width: int = 11


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _add_weekday_column(export_df: pd.DataFrame) -> pd.DataFrame:
    """Añade columna weekday (Día) a partir de datetime."""
    if "datetime" not in export_df.columns:
        return export_df
    weekday_series = export_df["datetime"].map(
        lambda v: None if pd.isna(v) else v.weekday()
    )
    if weekday_series.empty:
        return export_df
    export_df = export_df.copy()
    export_df["weekday"] = weekday_series.map(_weekday_label)
    cols = ["weekday"] + [c for c in export_df.columns if c != "weekday"]
    return export_df[cols]


def _strip_timezones(export_df: pd.DataFrame) -> pd.DataFrame:
    """Pasa a hora local ingenua las columnas con fecha/hora (Excel no admite tz)."""
    export_df = export_df.copy()
    for col in export_df.columns:
        values = export_df[col]
        if isinstance(values.dtype, pd.DatetimeTZDtype):
            export_df[col] = values.dt.tz_localize(None)
        elif values.dtype == object and values.map(_is_aware).any():
            export_df[col] = values.map(
                lambda v: v.replace(tzinfo=None) if _is_aware(v) else v
            )
    return export_df


def _is_aware(value: object) -> bool:
    return isinstance(value, datetime) and value.tzinfo is not None


def _prepare_readings(df: pd.DataFrame) -> pd.DataFrame:
    """Día + fecha/hora sin las columnas auxiliares date/time."""
    export_df = _add_weekday_column(df)
    return export_df.drop(columns=[c for c in ("date", "time") if c in export_df])


def write_report_xlsx(
    readings: pd.DataFrame,
    sheets: Mapping[str, pd.DataFrame],
    out_path: Path,
    layout: ExcelLayout,
) -> None:
    """Write a formatted Excel report: readings first, then one sheet per analysis.

    Args:
        readings: Readings frame (see ``frames.readings_to_frame``).
        sheets: Analysis frames keyed by sheet name, written in order.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    ordered = {layout.readings_sheet: _prepare_readings(readings), **sheets}
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        for name, frame in ordered.items():
            export_df = _strip_timezones(frame).rename(columns=_HEADER_MAP)
            export_df.to_excel(writer, index=False, sheet_name=name)
            _format_sheet(writer.book[name], layout.default_width)


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    """Aplica alineación, borde y altura fija a las filas de datos."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border
        ws.row_dimensions[row[0].row].height = 15


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _apply_column_widths(
    ws: Any, col_index: dict[str, int], default_width: int
) -> None:
    """Establece anchos de columna para evitar ###."""
    for header, idx in col_index.items():
        letter = ws.cell(row=1, column=idx).column_letter
        ws.column_dimensions[letter].width = _COLUMN_WIDTHS.get(header, default_width)


def _apply_number_formats(ws: Any, col_index: dict[str, int]) -> None:
    """Aplica formatos numéricos por cabecera."""
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt


def _format_sheet(ws: Any, default_width: int = 11) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
        default_width: Width for columns without a specific setting.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    _apply_column_widths(ws, col_index, default_width)
    _apply_number_formats(ws, col_index)
