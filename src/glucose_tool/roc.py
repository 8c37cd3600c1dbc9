"""Velocidad de cambio (RoC) de la glucosa: cálculo, suavizado y clasificación.

Las magnitudes se expresan en mmol/L cada 5 minutos. Umbrales clínicos
habituales: estable < 0.06 mmol/L/min, rápido >= 0.11 mmol/L/min.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import IntEnum

import numpy as np

from glucose_tool.model import (
    GlucoseReading,
    GlucoseUnit,
    RoCCategory,
    RoCDataPoint,
    RoCStats,
)
from glucose_tool.normalize import (
    elapsed,
    instant,
    normalize_readings,
    to_display_unit,
)
from glucose_tool.ranges import percentage

logger = logging.getLogger(__name__)

ROC_MINUTES = 5.0
MIN_CONSECUTIVE_GAP_MINUTES = 1.0
MAX_CONSECUTIVE_GAP_MINUTES = 30.0


class RoCInterval(IntEnum):
    """Look-back interval in minutes; 15 means consecutive readings."""

    MIN_15 = 15
    MIN_30 = 30
    MIN_60 = 60
    MIN_120 = 120


@dataclass(frozen=True)
class RoCThresholds:
    """Magnitude limits per 5 minutes: good below ``good``, bad from ``bad``."""

    good: float
    bad: float


ROC_THRESHOLDS = RoCThresholds(good=0.06 * ROC_MINUTES, bad=0.11 * ROC_MINUTES)


@dataclass(frozen=True)
class RoCAnalysis:
    """Smoothed RoC series for a day plus its derived statistics."""

    points: tuple[RoCDataPoint, ...]
    stats: RoCStats
    longest_stable_minutes: float


def roc_thresholds_for(unit: GlucoseUnit) -> RoCThresholds:
    """Fixed RoC thresholds expressed in ``unit`` per 5 minutes."""
    return RoCThresholds(
        good=to_display_unit(ROC_THRESHOLDS.good, unit),
        bad=to_display_unit(ROC_THRESHOLDS.bad, unit),
    )


def classify_roc(
    magnitude: float, thresholds: RoCThresholds = ROC_THRESHOLDS
) -> RoCCategory:
    """Classify an absolute rate of change (mmol/L per 5 minutes)."""
    magnitude = abs(magnitude)
    if magnitude < thresholds.good:
        return RoCCategory.GOOD
    if magnitude >= thresholds.bad:
        return RoCCategory.BAD
    return RoCCategory.MEDIUM


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def _time_decimal(ts: datetime) -> float:
    return ts.hour + ts.minute / 60


def _point(
    current: GlucoseReading,
    previous: GlucoseReading,
    elapsed_minutes: float,
    thresholds: RoCThresholds,
) -> RoCDataPoint:
    magnitude = abs(current.value - previous.value) / elapsed_minutes * ROC_MINUTES
    return RoCDataPoint(
        timestamp=current.timestamp,
        time_decimal=_time_decimal(current.timestamp),
        roc=magnitude,
        glucose_value=current.value,
        category=classify_roc(magnitude, thresholds),
    )


def _consecutive_roc(
    ordered: Sequence[GlucoseReading], thresholds: RoCThresholds
) -> list[RoCDataPoint]:
    """RoC entre lecturas vecinas; descarta huecos < 1 min o > 30 min."""
    points: list[RoCDataPoint] = []
    for previous, current in zip(ordered, ordered[1:]):
        gap = _minutes(elapsed(previous.timestamp, current.timestamp))
        if not MIN_CONSECUTIVE_GAP_MINUTES <= gap <= MAX_CONSECUTIVE_GAP_MINUTES:
            logger.debug(
                "Skipping RoC pair at %s (gap %.1f min)", current.timestamp, gap
            )
            continue
        points.append(_point(current, previous, gap, thresholds))
    return points


def _interval_roc(
    ordered: Sequence[GlucoseReading], interval: int, thresholds: RoCThresholds
) -> list[RoCDataPoint]:
    """RoC contra la lectura previa más cercana con al menos ``interval`` minutos."""
    times = [instant(r.timestamp) for r in ordered]
    lookback = timedelta(minutes=interval)
    points: list[RoCDataPoint] = []
    for current, at in zip(ordered, times):
        idx = bisect_right(times, at - lookback) - 1
        if idx < 0:
            continue
        gap = _minutes(at - times[idx])
        points.append(_point(current, ordered[idx], gap, thresholds))
    return points


def compute_roc(
    readings: Sequence[GlucoseReading],
    interval: RoCInterval | int = RoCInterval.MIN_15,
    thresholds: RoCThresholds = ROC_THRESHOLDS,
) -> list[RoCDataPoint]:
    """Compute the unsmoothed RoC series.

    With the 15-minute setting each reading is compared with the one right
    before it. Longer intervals compare each reading with the most recent
    reading at least ``interval`` minutes earlier; readings with no such
    predecessor are skipped. The delta is always normalized over the real
    elapsed time.

    Args:
        readings: Glucose readings, any order.
        interval: 15, 30, 60 or 120 minutes.
        thresholds: Classification limits.

    Returns:
        RoC points in timestamp order.

    Raises:
        ValueError: If ``interval`` is not a supported value.
    """
    interval = RoCInterval(interval)
    ordered = normalize_readings(readings)
    if interval is RoCInterval.MIN_15:
        return _consecutive_roc(ordered, thresholds)
    return _interval_roc(ordered, int(interval), thresholds)


def smooth_roc(
    points: Sequence[RoCDataPoint],
    window: int = 3,
    thresholds: RoCThresholds = ROC_THRESHOLDS,
) -> list[RoCDataPoint]:
    """Centered moving average of the RoC magnitudes.

    The window shrinks at both ends of the series. Only ``roc`` (and the
    category derived from it) changes; timestamps and glucose values are
    kept as they are.

    Raises:
        ValueError: If ``window`` is not a positive odd integer.
    """
    if window < 1 or window % 2 == 0:
        raise ValueError(f"Smoothing window must be a positive odd integer: {window}")
    half = window // 2
    magnitudes = [p.roc for p in points]
    smoothed: list[RoCDataPoint] = []
    for i, point in enumerate(points):
        chunk = magnitudes[max(0, i - half) : i + half + 1]
        avg = sum(chunk) / len(chunk)
        smoothed.append(replace(point, roc=avg, category=classify_roc(avg, thresholds)))
    return smoothed


def roc_stats(points: Sequence[RoCDataPoint]) -> RoCStats:
    """Category counts, percentages, extremes and population SD of magnitudes."""
    if not points:
        return RoCStats()
    magnitudes = np.asarray([p.roc for p in points], dtype=float)
    total = len(points)
    good = sum(1 for p in points if p.category is RoCCategory.GOOD)
    medium = sum(1 for p in points if p.category is RoCCategory.MEDIUM)
    bad = total - good - medium
    return RoCStats(
        good_count=good,
        medium_count=medium,
        bad_count=bad,
        total_count=total,
        good_percentage=percentage(good, total),
        medium_percentage=percentage(medium, total),
        bad_percentage=percentage(bad, total),
        min_roc=float(magnitudes.min()),
        max_roc=float(magnitudes.max()),
        sd_roc=float(magnitudes.std()),
    )


def longest_category_period(
    points: Sequence[RoCDataPoint], category: RoCCategory
) -> float:
    """Minutes covered by the longest contiguous run of ``category`` points."""
    longest = 0.0
    run_start: datetime | None = None
    for point in points:
        if point.category is not category:
            run_start = None
            continue
        if run_start is None:
            run_start = point.timestamp
        longest = max(longest, _minutes(elapsed(run_start, point.timestamp)))
    return longest


def analyze_roc(
    readings: Sequence[GlucoseReading],
    interval: RoCInterval | int = RoCInterval.MIN_15,
    thresholds: RoCThresholds = ROC_THRESHOLDS,
    window: int = 3,
) -> RoCAnalysis:
    """Run compute, smooth, stats and longest stable period for one day.

    Args:
        readings: One day of glucose readings.
        interval: RoC look-back interval in minutes.
        thresholds: Classification limits.
        window: Smoothing window (odd).

    Returns:
        The smoothed series and its statistics.
    """
    raw = compute_roc(readings, interval, thresholds)
    smoothed = smooth_roc(raw, window, thresholds)
    return RoCAnalysis(
        points=tuple(smoothed),
        stats=roc_stats(smoothed),
        longest_stable_minutes=longest_category_period(smoothed, RoCCategory.GOOD),
    )
