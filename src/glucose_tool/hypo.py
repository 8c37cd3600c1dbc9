"""Detección de episodios de hipoglucemia y sus estadísticas."""

from __future__ import annotations

from collections.abc import Sequence

from glucose_tool.model import GlucoseReading, GlucoseThresholds, HypoPeriod, HypoStats
from glucose_tool.normalize import elapsed


def _close_period(
    run: Sequence[GlucoseReading],
    end: GlucoseReading,
    thresholds: GlucoseThresholds,
) -> HypoPeriod:
    """Cierra un episodio: nadir (primer mínimo), duración y severidad."""
    nadir_reading = min(run, key=lambda r: r.value)
    start = run[0].timestamp
    return HypoPeriod(
        start=start,
        end=end.timestamp,
        nadir=nadir_reading.value,
        nadir_time=nadir_reading.timestamp,
        duration_minutes=elapsed(start, end.timestamp).total_seconds() / 60,
        is_severe=nadir_reading.value < thresholds.very_low,
    )


def detect_hypo_periods(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> list[HypoPeriod]:
    """Find runs of readings below ``thresholds.low``.

    A run opens at the first reading below ``low`` and closes at the next
    reading at or above ``low``, whose timestamp is the episode end. A run
    still open at the end of the data closes at the last reading.

    Args:
        readings: One day of readings, sorted by timestamp.
        thresholds: ``low`` delimits episodes, ``very_low`` marks severity.

    Returns:
        Episodes in chronological order.
    """
    periods: list[HypoPeriod] = []
    run: list[GlucoseReading] = []
    for reading in readings:
        if reading.value < thresholds.low:
            run.append(reading)
        elif run:
            periods.append(_close_period(run, reading, thresholds))
            run = []
    if run:
        periods.append(_close_period(run, readings[-1], thresholds))
    return periods


def hypo_stats(
    readings: Sequence[GlucoseReading], thresholds: GlucoseThresholds
) -> HypoStats:
    """Summarize hypoglycemia episodes for a day.

    Args:
        readings: One day of readings, sorted by timestamp.
        thresholds: Glucose thresholds in mmol/L.

    Returns:
        Counts by severity, lowest nadir (``None`` without episodes) and
        duration aggregates.
    """
    periods = detect_hypo_periods(readings, thresholds)
    if not periods:
        return HypoStats()
    severe = sum(1 for p in periods if p.is_severe)
    return HypoStats(
        severe_count=severe,
        non_severe_count=len(periods) - severe,
        lowest_value=min(p.nadir for p in periods),
        longest_duration_minutes=max(p.duration_minutes for p in periods),
        total_duration_minutes=sum(p.duration_minutes for p in periods),
        hypo_periods=tuple(periods),
    )


def format_duration(minutes: float) -> str:
    """Human readable duration: ``"< 1m"``, ``"45m"``, ``"2h"``, ``"1h 30m"``."""
    if minutes < 1:
        return "< 1m"
    hours, mins = divmod(round(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
