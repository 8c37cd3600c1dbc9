"""
Métricas complementarias de glucosa: media, mediana, SD, CV, HbA1c estimada,
índices de riesgo (LBGI/HBGI/BGRI), J-Index, cuartiles, incidentes y flux.
Todos los valores de entrada en mmol/L; None cuando no se puede calcular.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from glucose_tool.model import (
    GlucoseReading,
    GlucoseThresholds,
    RangeCategory,
    RangeCategoryMode,
)
from glucose_tool.normalize import MMOL_TO_MGDL, normalize_readings
from glucose_tool.ranges import classify

MIN_DAYS_FOR_RELIABLE_HBA1C = 60
CV_TARGET_THRESHOLD = 36.0
UNICORN_TOLERANCE_MMOL = 0.05
UNICORN_100_MGDL_IN_MMOL = 100 / MMOL_TO_MGDL
UNICORN_TOLERANCE_100_MGDL = 0.5 / MMOL_TO_MGDL

# (CV% upper bound, grade, description)
_FLUX_GRADES: tuple[tuple[float, str, str], ...] = (
    (20.0, "A+", "Extremely steady glucose values"),
    (26.0, "A", "Very steady glucose values"),
    (33.0, "B", "Reasonably steady glucose values"),
    (40.0, "C", "Moderate glucose variability"),
    (50.0, "D", "High glucose variability"),
)


@dataclass(frozen=True)
class BGRIResult:
    """Kovatchev risk indices."""

    lbgi: float
    hbgi: float
    bgri: float


@dataclass(frozen=True)
class QuartileStats:
    q25: float
    q50: float
    q75: float
    min: float
    max: float


@dataclass(frozen=True)
class HighLowIncidents:
    """Number of transitions into each out-of-range band."""

    high_count: int = 0
    low_count: int = 0
    very_high_count: int = 0
    very_low_count: int = 0


@dataclass(frozen=True)
class FluxResult:
    grade: str
    score: float
    description: str


def _values(readings: Sequence[GlucoseReading]) -> np.ndarray:
    return np.asarray([r.value for r in readings], dtype=float)


def average_glucose(readings: Sequence[GlucoseReading]) -> float | None:
    """Mean glucose in mmol/L."""
    if not readings:
        return None
    return float(np.mean(_values(readings)))


def median_glucose(readings: Sequence[GlucoseReading]) -> float | None:
    """Median glucose in mmol/L."""
    if not readings:
        return None
    return float(np.median(_values(readings)))


def standard_deviation(readings: Sequence[GlucoseReading]) -> float | None:
    """Sample standard deviation (n - 1); needs at least 2 readings."""
    if len(readings) < 2:
        return None
    return float(np.std(_values(readings), ddof=1))


def coefficient_of_variation(readings: Sequence[GlucoseReading]) -> float | None:
    """CV% = SD / mean * 100. Target is <= 36%."""
    sd = standard_deviation(readings)
    mean = average_glucose(readings)
    if sd is None or not mean:
        return None
    return sd / mean * 100


def estimated_hba1c(average_mmol: float) -> float:
    """Estimated HbA1c (%) from average glucose, ADA formula."""
    return (average_mmol + 2.59) / 1.59


def hba1c_to_mmol_mol(hba1c_percent: float) -> float:
    """Convert HbA1c from NGSP (%) to IFCC (mmol/mol)."""
    return (hba1c_percent - 2.15) * 10.929


def days_with_data(readings: Sequence[GlucoseReading]) -> int:
    """Number of distinct calendar days with readings."""
    return len({r.timestamp.date() for r in readings})


def blood_glucose_risk_index(readings: Sequence[GlucoseReading]) -> BGRIResult | None:
    """LBGI, HBGI and their sum from the symmetric log risk function.

    The risk function works in mg/dL; non-positive values are ignored.

    Args:
        readings: Glucose readings in mmol/L.

    Returns:
        Risk indices, or None when no reading is usable.
    """
    mgdl = _values(readings) * MMOL_TO_MGDL
    mgdl = mgdl[mgdl > 0]
    if mgdl.size == 0:
        return None
    risk = (np.log(mgdl) ** 1.084 - 5.381) * 1.509
    weighted = 10 * risk**2
    lbgi = float(np.sum(np.where(risk < 0, weighted, 0.0)) / mgdl.size)
    hbgi = float(np.sum(np.where(risk >= 0, weighted, 0.0)) / mgdl.size)
    return BGRIResult(lbgi=lbgi, hbgi=hbgi, bgri=lbgi + hbgi)


def j_index(readings: Sequence[GlucoseReading]) -> float | None:
    """J-Index = 0.001 * (mean + SD)^2, computed in mg/dL."""
    sd = standard_deviation(readings)
    mean = average_glucose(readings)
    if sd is None or not mean:
        return None
    return 0.001 * ((mean + sd) * MMOL_TO_MGDL) ** 2


def quartiles(readings: Sequence[GlucoseReading]) -> QuartileStats | None:
    """25/50/75 percentiles (linear interpolation) plus min and max."""
    if not readings:
        return None
    values = _values(readings)
    q25, q50, q75 = (float(v) for v in np.percentile(values, [25, 50, 75]))
    return QuartileStats(
        q25=q25, q50=q50, q75=q75, min=float(values.min()), max=float(values.max())
    )


def count_high_low_incidents(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> HighLowIncidents:
    """Count transitions into high, very high, low and very low bands.

    Moving from very high down to high (or very low up to low) is not a new
    incident.
    """
    counts = {category: 0 for category in RangeCategory}
    previous: RangeCategory | None = None
    for reading in normalize_readings(readings):
        current = classify(reading.value, thresholds, RangeCategoryMode.FIVE)
        if previous is not None and current is not previous:
            if current is RangeCategory.HIGH:
                if previous is not RangeCategory.VERY_HIGH:
                    counts[current] += 1
            elif current is RangeCategory.LOW:
                if previous is not RangeCategory.VERY_LOW:
                    counts[current] += 1
            elif current in (RangeCategory.VERY_HIGH, RangeCategory.VERY_LOW):
                counts[current] += 1
        previous = current
    return HighLowIncidents(
        high_count=counts[RangeCategory.HIGH],
        low_count=counts[RangeCategory.LOW],
        very_high_count=counts[RangeCategory.VERY_HIGH],
        very_low_count=counts[RangeCategory.VERY_LOW],
    )


def count_unicorns(readings: Sequence[GlucoseReading]) -> int:
    """Readings at exactly 5.0 mmol/L or 100 mg/dL (within tolerance)."""
    return sum(
        1
        for r in readings
        if abs(r.value - 5.0) < UNICORN_TOLERANCE_MMOL
        or abs(r.value - UNICORN_100_MGDL_IN_MMOL) < UNICORN_TOLERANCE_100_MGDL
    )


def flux_grade(readings: Sequence[GlucoseReading]) -> FluxResult | None:
    """Steadiness grade (A+ to F) from the CV%."""
    cv = coefficient_of_variation(readings)
    if cv is None:
        return None
    for upper, grade, description in _FLUX_GRADES:
        if cv <= upper:
            return FluxResult(grade=grade, score=cv, description=description)
    return FluxResult(grade="F", score=cv, description="Very high glucose variability")


def _hour_window_average(
    readings: Sequence[GlucoseReading], start_hour: int, end_hour: int
) -> float | None:
    """Promedio de lecturas con hora en [start_hour, end_hour)."""
    window = [r for r in readings if start_hour <= r.timestamp.hour < end_hour]
    return average_glucose(window)


def wakeup_average(readings: Sequence[GlucoseReading]) -> float | None:
    """Average glucose between 06:00 and 09:00."""
    return _hour_window_average(readings, 6, 9)


def bedtime_average(readings: Sequence[GlucoseReading]) -> float | None:
    """Average glucose between 21:00 and midnight."""
    return _hour_window_average(readings, 21, 24)
