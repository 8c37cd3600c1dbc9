"""Perfil ambulatorio de glucosa (AGP): percentiles por franja de 5 minutos."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

import numpy as np

from glucose_tool.model import AGPTimeSlotStats, GlucoseReading

SLOT_MINUTES = 5
AGP_PERCENTILES: tuple[int, ...] = (10, 25, 50, 75, 90)

ALL_SLOTS: tuple[str, ...] = tuple(
    f"{minute // 60:02d}:{minute % 60:02d}"
    for minute in range(0, 24 * 60, SLOT_MINUTES)
)


def slot_key(timestamp: datetime) -> str:
    """Time-of-day slot (``"HH:MM"``) containing ``timestamp``, rounded down."""
    minute = (timestamp.minute // SLOT_MINUTES) * SLOT_MINUTES
    return f"{timestamp.hour:02d}:{minute:02d}"


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of an ascending sequence.

    Args:
        sorted_values: Values sorted ascending.
        p: Percentile between 0 and 100.

    Returns:
        Value at index ``(n - 1) * p / 100``, interpolated between the
        neighbouring ranks; 0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    return float(np.percentile(sorted_values, p, method="linear"))


def _slot_stats(time_slot: str, values: list[float]) -> AGPTimeSlotStats:
    if not values:
        return AGPTimeSlotStats(time_slot, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)
    ordered = np.sort(np.asarray(values, dtype=float))
    p10, p25, p50, p75, p90 = (
        float(v) for v in np.percentile(ordered, AGP_PERCENTILES, method="linear")
    )
    return AGPTimeSlotStats(
        time_slot=time_slot,
        lowest=float(ordered[0]),
        p10=p10,
        p25=p25,
        p50=p50,
        p75=p75,
        p90=p90,
        highest=float(ordered[-1]),
        count=len(values),
    )


def agp_profile(readings: Iterable[GlucoseReading]) -> list[AGPTimeSlotStats]:
    """Compute AGP statistics for every 5-minute slot of the day.

    Readings from all days are pooled by time of day. Any day-of-week or
    date-range filter must be applied to ``readings`` beforehand.

    Args:
        readings: Glucose readings (mmol/L).

    Returns:
        288 entries ordered ``"00:00"`` to ``"23:55"``; slots without data
        have ``count == 0`` and every statistic set to 0.
    """
    grouped: dict[str, list[float]] = {slot: [] for slot in ALL_SLOTS}
    for reading in readings:
        grouped[slot_key(reading.timestamp)].append(reading.value)
    return [_slot_stats(slot, grouped[slot]) for slot in ALL_SLOTS]
