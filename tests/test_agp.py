from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from glucose_tool.agp import agp_profile, percentile, slot_key
from glucose_tool.model import GlucoseReading


def _r(ts: datetime, value: float) -> GlucoseReading:
    return GlucoseReading(timestamp=ts, value=value)


def test_agp_profile_has_288_ordered_slots() -> None:
    profile = agp_profile([])
    assert len(profile) == 288
    assert profile[0].time_slot == "00:00"
    assert profile[-1].time_slot == "23:55"
    assert all(s.count == 0 and s.p50 == 0.0 for s in profile)


def test_agp_pools_days_by_time_of_day() -> None:
    readings = [
        _r(datetime(2025, 10, 6, 8, 1), 5.0),
        _r(datetime(2025, 10, 7, 8, 4), 7.0),
    ]
    slot = next(s for s in agp_profile(readings) if s.time_slot == "08:00")
    assert slot.count == 2
    assert slot.p50 == pytest.approx(6.0)
    assert slot.p10 == pytest.approx(5.2)
    assert slot.p90 == pytest.approx(6.8)
    assert (slot.lowest, slot.highest) == (5.0, 7.0)


def test_agp_percentiles_are_ordered() -> None:
    base = datetime(2025, 10, 6, 14, 0)
    values = [4.1, 9.3, 6.0, 12.2, 5.5, 7.7, 3.2, 8.8]
    readings = [_r(base + timedelta(days=i), v) for i, v in enumerate(values)]
    slot = next(s for s in agp_profile(readings) if s.count)
    stats = [slot.lowest, slot.p10, slot.p25, slot.p50, slot.p75, slot.p90]
    stats.append(slot.highest)
    assert stats == sorted(stats)


def test_slot_key_rounds_down() -> None:
    assert slot_key(datetime(2025, 10, 6, 23, 59)) == "23:55"
    assert slot_key(datetime(2025, 10, 6, 0, 4)) == "00:00"


def test_percentile_linear_interpolation() -> None:
    assert percentile([1.0, 2.0, 3.0, 4.0], 25) == pytest.approx(1.75)
    assert percentile([3.0], 90) == 3.0
    assert percentile([], 50) == 0.0


def test_agp_counts_cover_every_reading() -> None:
    base = datetime(2025, 10, 6, 0, 0)
    readings = [_r(base + timedelta(minutes=7 * i), 5.0 + i % 4) for i in range(500)]
    snapshot = list(readings)
    first = agp_profile(readings)
    assert sum(s.count for s in first) == len(readings)
    assert sum(1 for s in first if s.count) > 200
    assert agp_profile(readings) == first
    assert readings == snapshot
