"""CLI para analizar exportaciones CSV de glucosa/insulina y generar un Excel."""

from __future__ import annotations

import argparse
import logging
from datetime import date, datetime, tzinfo
from pathlib import Path

import pandas as pd
from dateutil import tz

from glucose_tool.agp import agp_profile
from glucose_tool.config import AnalysisConfig
from glucose_tool.excel_writer import ExcelLayout, write_report_xlsx
from glucose_tool.frames import (
    agp_to_frame,
    category_stats_to_frame,
    daily_glucose_summary,
    daily_insulin_to_frame,
    hourly_iob_to_frame,
    hypo_periods_to_frame,
    metrics_summary_frame,
    readings_to_frame,
    roc_points_to_frame,
)
from glucose_tool.hypo import format_duration, hypo_stats
from glucose_tool.iob import daily_insulin_totals, hourly_iob
from glucose_tool.model import GlucoseReading, GlucoseUnit, InsulinHistory
from glucose_tool.normalize import filter_by_date, normalize_readings
from glucose_tool.ranges import (
    HOUR_GROUP_SIZES,
    by_date,
    by_day_of_week,
    by_hour_group,
    by_time_period,
    by_trailing_days,
    by_week,
    grand_total,
    with_workday_weekend,
)
from glucose_tool.roc import RoCInterval, analyze_roc
from glucose_tool.sources.csv_export import CsvExportPaths, CsvExportSource

logger = logging.getLogger(__name__)


def _zone(name: str) -> tzinfo:
    zone = tz.gettz(name)
    if zone is None:
        raise argparse.ArgumentTypeError(f"Zona horaria desconocida: {name}")
    return zone


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Análisis de glucosa (rangos, AGP, RoC, hipos, IOB) a Excel."
    )
    parser.add_argument(
        "--base-dir",
        default=str(Path.home() / "proyectos" / "glucosa"),
        help="Directorio base con datos/ y salidas/ (default: ~/proyectos/glucosa).",
    )
    parser.add_argument("--glucose", help="CSV de glucosa (default: el más nuevo).")
    parser.add_argument("--insulin", help="CSV de insulina (opcional).")
    parser.add_argument("--out", help="Ruta del Excel de salida.")
    parser.add_argument(
        "--input-unit",
        choices=[u.value for u in GlucoseUnit],
        help="Unidad del CSV de glucosa (default: según cabecera, si no mmol/L).",
    )
    parser.add_argument(
        "--unit",
        choices=[u.value for u in GlucoseUnit],
        default=GlucoseUnit.MMOL_L.value,
        help="Unidad del informe.",
    )
    parser.add_argument(
        "--tz",
        type=_zone,
        help="Zona horaria para fechas sin offset (default: la local).",
    )
    parser.add_argument("--very-low", type=float, default=3.0)
    parser.add_argument("--low", type=float, default=3.9)
    parser.add_argument("--high", type=float, default=10.0)
    parser.add_argument("--very-high", type=float, default=13.9)
    parser.add_argument("--mode", type=int, choices=[3, 5], default=5)
    parser.add_argument(
        "--roc-interval",
        type=int,
        choices=[int(i) for i in RoCInterval],
        default=int(RoCInterval.MIN_15),
    )
    parser.add_argument(
        "--insulin-duration",
        type=float,
        default=5.0,
        help="Duración de acción de la insulina en horas.",
    )
    parser.add_argument(
        "--hour-group", type=int, choices=list(HOUR_GROUP_SIZES), default=3
    )
    parser.add_argument(
        "--day",
        type=date.fromisoformat,
        help="Día (YYYY-MM-DD) para RoC, hipos e IOB (default: último con datos).",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
    )
    return parser.parse_args()


def main() -> int:
    """Run the analysis CLI.

    Returns:
        Exit code (0 on success, 1 when the glucose file has no readings).
    """
    ns = parse_args()
    logging.basicConfig(
        level=getattr(logging, ns.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = AnalysisConfig.from_mapping(
        {
            "veryLow": ns.very_low,
            "low": ns.low,
            "high": ns.high,
            "veryHigh": ns.very_high,
            "mode": ns.mode,
            "unit": ns.unit,
            "rocInterval": ns.roc_interval,
            "insulinDuration": ns.insulin_duration,
        }
    )
    base = Path(ns.base_dir).expanduser().resolve()
    zone = ns.tz if ns.tz is not None else tz.tzlocal()
    src = CsvExportSource(CsvExportPaths(root=base / "datos"), zone=zone)

    if ns.glucose:
        glucose_file = Path(ns.glucose)
        if not glucose_file.exists():
            raise FileNotFoundError(str(glucose_file))
    else:
        src.validate()
        glucose_file = src.newest_csv("glucose")
    input_unit = GlucoseUnit(ns.input_unit) if ns.input_unit else None
    readings = normalize_readings(src.load_readings(glucose_file, input_unit))
    if not readings:
        print(f"ERROR: sin lecturas en {glucose_file}")
        return 1

    history = _load_insulin(src, ns.insulin)
    day = ns.day or readings[-1].timestamp.date()
    day_readings = filter_by_date(readings, day)
    logger.info("%d readings, %d on %s", len(readings), len(day_readings), day)

    readings_df = readings_to_frame(readings)
    sheets = _range_sheets(readings, config, ns.hour_group)
    sheets["Glucosa diaria"] = daily_glucose_summary(readings_df)
    sheets["AGP"] = agp_to_frame(agp_profile(readings), config.unit)

    roc = analyze_roc(day_readings, config.roc_interval)
    sheets["RoC"] = roc_points_to_frame(roc.points, config.unit)
    hypos = hypo_stats(day_readings, config.thresholds)
    sheets["Hipoglucemias"] = hypo_periods_to_frame(hypos.hypo_periods, config.unit)
    if history is not None:
        sheets["IOB horario"] = hourly_iob_to_frame(
            hourly_iob(history, day, config.insulin_duration_hours, zone)
        )
        sheets["Insulina diaria"] = daily_insulin_to_frame(
            daily_insulin_totals(history)
        )

    if ns.out:
        out_path = Path(ns.out).expanduser()
    else:
        ts = datetime.now(tz=zone).strftime("%Y-%m-%d_%H-%M-%S")
        out_path = base / "salidas" / f"glucosa_reporte_{ts}.xlsx"
    write_report_xlsx(readings_df, sheets, out_path, ExcelLayout())

    print(f"OK: Glucose file: {glucose_file} ({len(readings)} lecturas)")
    print(
        f"OK: RoC {day}: {roc.stats.good_percentage}% estable, "
        f"máx. período estable {format_duration(roc.longest_stable_minutes)}"
    )
    print(
        f"OK: Hipos {day}: {hypos.severe_count} severas, "
        f"{hypos.non_severe_count} no severas"
    )
    print(f"OK: Output: {out_path}")
    return 0


def _load_insulin(src: CsvExportSource, insulin: str | None) -> InsulinHistory | None:
    """Historial de insulina del CSV indicado o del más nuevo, si existe."""
    if insulin:
        return src.load_insulin(Path(insulin))
    try:
        return src.load_insulin(src.newest_csv("insulin"))
    except FileNotFoundError:
        logger.info("No insulin export found, skipping IOB sheets")
        return None


def _range_sheets(
    readings: list[GlucoseReading], config: AnalysisConfig, hour_group: int
) -> dict[str, pd.DataFrame]:
    """Hojas de rangos: resumen, día de la semana, semana, fecha, hora, período."""
    thresholds, mode = config.thresholds, config.mode
    by_day = with_workday_weekend(by_day_of_week(readings, thresholds, mode), mode)
    by_day["Total"] = grand_total(by_day, mode)
    return {
        "Resumen": metrics_summary_frame(readings, thresholds, config.unit),
        "Rangos por día": category_stats_to_frame(by_day),
        "Rangos por semana": category_stats_to_frame(
            by_week(readings, thresholds, mode)
        ),
        "Rangos por fecha": category_stats_to_frame(
            by_date(readings, thresholds, mode)
        ),
        "Rangos por hora": category_stats_to_frame(
            by_hour_group(readings, thresholds, mode, hour_group)
        ),
        "Rangos por período": category_stats_to_frame(
            by_time_period(readings, thresholds, mode)
        ),
        "Rangos últimos días": category_stats_to_frame(
            by_trailing_days(readings, thresholds, mode)
        ),
    }
