"""Conversión de lecturas y resultados de análisis a DataFrames de pandas."""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence

import pandas as pd

from glucose_tool.hypo import format_duration
from glucose_tool.metrics import (
    average_glucose,
    blood_glucose_risk_index,
    coefficient_of_variation,
    count_high_low_incidents,
    count_unicorns,
    days_with_data,
    estimated_hba1c,
    flux_grade,
    hba1c_to_mmol_mol,
    j_index,
    median_glucose,
    standard_deviation,
)
from glucose_tool.model import (
    AGPTimeSlotStats,
    CategoryStats,
    DailyInsulinSummary,
    GlucoseReading,
    GlucoseThresholds,
    GlucoseUnit,
    HourlyIOBData,
    HypoPeriod,
    RoCDataPoint,
)
from glucose_tool.normalize import mmol_to_mgdl, normalize_readings, to_display_unit
from glucose_tool.ranges import category_counts, percentages

_CATEGORY_COLUMNS: dict[str, str] = {
    "veryLow": "very_low",
    "low": "low",
    "inRange": "in_range",
    "high": "high",
    "veryHigh": "very_high",
}


def readings_to_frame(readings: Sequence[GlucoseReading]) -> pd.DataFrame:
    """Convert glucose readings to DataFrame with date/time and both units."""
    rows = [
        {
            "datetime": r.timestamp,
            "date": r.timestamp.date(),
            "time": r.timestamp.time().replace(second=0, microsecond=0),
            "glucose_mg_dl": round(mmol_to_mgdl(r.value), 1),
            "glucose_mmol_l": r.value,
            "source": r.source.value,
        }
        for r in normalize_readings(readings)
    ]
    return pd.DataFrame(rows)


def daily_glucose_summary(glucose_events: pd.DataFrame) -> pd.DataFrame:
    """Aggregate glucose by day (count/min/max/avg), in mmol/L."""
    if glucose_events.empty:
        return pd.DataFrame(
            columns=["date", "glucose_count", "glucose_min", "glucose_max", "mmol_avg"]
        )
    g = glucose_events.groupby("date", as_index=False).agg(
        glucose_count=("glucose_mmol_l", "count"),
        glucose_min=("glucose_mmol_l", "min"),
        glucose_max=("glucose_mmol_l", "max"),
        mmol_avg=("glucose_mmol_l", "mean"),
    )
    g["mmol_avg"] = g["mmol_avg"].round(2)
    return g.sort_values("date").reset_index(drop=True)


def category_stats_to_frame(groups: Mapping[Hashable, CategoryStats]) -> pd.DataFrame:
    """One row per group with band counts, band percentages and total.

    Columns depend on the mode of the stats: ``low``, ``in_range`` and
    ``high`` always, ``very_low`` and ``very_high`` in 5-band mode, each
    followed by its ``*_pct`` column.
    """
    rows: list[dict[str, object]] = []
    for key, stats in groups.items():
        row: dict[str, object] = {"group": key}
        pcts = percentages(stats)
        for category, count in category_counts(stats).items():
            name = _CATEGORY_COLUMNS[category.value]
            row[name] = count
            row[f"{name}_pct"] = pcts[category]
        row["total"] = stats.total
        rows.append(row)
    return pd.DataFrame(rows)


def agp_to_frame(
    profile: Sequence[AGPTimeSlotStats], unit: GlucoseUnit = GlucoseUnit.MMOL_L
) -> pd.DataFrame:
    """AGP slots as rows; glucose columns converted to ``unit``."""
    value_cols = ("lowest", "p10", "p25", "p50", "p75", "p90", "highest")
    rows = []
    for slot in profile:
        row: dict[str, object] = {"time_slot": slot.time_slot}
        for col in value_cols:
            row[col] = to_display_unit(getattr(slot, col), unit)
        row["count"] = slot.count
        rows.append(row)
    return pd.DataFrame(rows, columns=["time_slot", *value_cols, "count"])


def roc_points_to_frame(
    points: Sequence[RoCDataPoint], unit: GlucoseUnit = GlucoseUnit.MMOL_L
) -> pd.DataFrame:
    """RoC series (per 5 minutes) with glucose, both converted to ``unit``."""
    return pd.DataFrame(
        [
            {
                "datetime": p.timestamp,
                "time_decimal": round(p.time_decimal, 3),
                "glucose": to_display_unit(p.glucose_value, unit),
                "roc": to_display_unit(p.roc, unit),
                "category": p.category.value,
            }
            for p in points
        ],
        columns=["datetime", "time_decimal", "glucose", "roc", "category"],
    )


def hypo_periods_to_frame(
    periods: Sequence[HypoPeriod], unit: GlucoseUnit = GlucoseUnit.MMOL_L
) -> pd.DataFrame:
    """Hypoglycemia episodes, nadir converted to ``unit``."""
    return pd.DataFrame(
        [
            {
                "start": p.start,
                "end": p.end,
                "nadir": to_display_unit(p.nadir, unit),
                "nadir_time": p.nadir_time,
                "duration_minutes": p.duration_minutes,
                "duration": format_duration(p.duration_minutes),
                "is_severe": "sí" if p.is_severe else "no",
            }
            for p in periods
        ],
        columns=[
            "start",
            "end",
            "nadir",
            "nadir_time",
            "duration_minutes",
            "duration",
            "is_severe",
        ],
    )


def hourly_iob_to_frame(rows: Sequence[HourlyIOBData]) -> pd.DataFrame:
    """Hourly insulin table, values rounded to 2 decimals."""
    return pd.DataFrame(
        [
            {
                "hour": f"{r.hour:02d}:00",
                "basal_prev": round(r.basal_in_previous_hour, 2),
                "bolus_prev": round(r.bolus_in_previous_hour, 2),
                "active_iob": round(r.active_iob, 2),
            }
            for r in rows
        ],
        columns=["hour", "basal_prev", "bolus_prev", "active_iob"],
    )


def daily_insulin_to_frame(rows: Sequence[DailyInsulinSummary]) -> pd.DataFrame:
    """Daily basal/bolus totals, rounded to 2 decimals."""
    return pd.DataFrame(
        [
            {
                "date": r.day,
                "basal_total": round(r.basal_total, 2),
                "bolus_total": round(r.bolus_total, 2),
                "total_insulin": round(r.total_insulin, 2),
            }
            for r in rows
        ],
        columns=["date", "basal_total", "bolus_total", "total_insulin"],
    )


def metrics_summary_frame(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    unit: GlucoseUnit = GlucoseUnit.MMOL_L,
) -> pd.DataFrame:
    """Two-column (metric, value) summary of the whole reading set.

    Metrics that cannot be computed for the data are left empty.
    """

    def glucose(value: float | None) -> float | None:
        return None if value is None else round(to_display_unit(value, unit), 1)

    def rounded(value: float | None, digits: int = 1) -> float | None:
        return None if value is None else round(value, digits)

    mean = average_glucose(readings)
    hba1c = estimated_hba1c(mean) if mean is not None else None
    risk = blood_glucose_risk_index(readings)
    flux = flux_grade(readings)
    incidents = count_high_low_incidents(readings, thresholds)
    rows: list[tuple[str, object]] = [
        ("Lecturas", len(readings)),
        ("Días con datos", days_with_data(readings)),
        (f"Media ({unit.value})", glucose(mean)),
        (f"Mediana ({unit.value})", glucose(median_glucose(readings))),
        (f"SD ({unit.value})", glucose(standard_deviation(readings))),
        ("CV (%)", rounded(coefficient_of_variation(readings))),
        ("HbA1c estimada (%)", rounded(hba1c)),
        (
            "HbA1c estimada (mmol/mol)",
            rounded(hba1c_to_mmol_mol(hba1c)) if hba1c is not None else None,
        ),
        ("LBGI", rounded(risk.lbgi, 2) if risk else None),
        ("HBGI", rounded(risk.hbgi, 2) if risk else None),
        ("J-Index", rounded(j_index(readings))),
        ("Flux", flux.grade if flux else None),
        ("Episodios altos", incidents.high_count),
        ("Episodios muy altos", incidents.very_high_count),
        ("Episodios bajos", incidents.low_count),
        ("Episodios muy bajos", incidents.very_low_count),
        ("Unicornios", count_unicorns(readings)),
    ]
    return pd.DataFrame(rows, columns=["metric", "value"])
