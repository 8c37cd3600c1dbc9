from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from dateutil import tz

from glucose_tool.model import (
    GlucoseReading,
    GlucoseUnit,
    RoCCategory,
    RoCDataPoint,
    RoCStats,
)
from glucose_tool.roc import (
    ROC_THRESHOLDS,
    analyze_roc,
    classify_roc,
    compute_roc,
    longest_category_period,
    roc_stats,
    roc_thresholds_for,
    smooth_roc,
)

T0 = datetime(2025, 10, 6, 8, 0)
MADRID = tz.gettz("Europe/Madrid")


def _series(values: list[float], step_minutes: int = 5) -> list[GlucoseReading]:
    return [
        GlucoseReading(timestamp=T0 + timedelta(minutes=i * step_minutes), value=v)
        for i, v in enumerate(values)
    ]


def _point(minutes: int, roc: float) -> RoCDataPoint:
    return RoCDataPoint(
        timestamp=T0 + timedelta(minutes=minutes),
        time_decimal=8 + minutes / 60,
        roc=roc,
        glucose_value=6.0,
        category=classify_roc(roc),
    )


def test_classify_roc_thresholds() -> None:
    assert classify_roc(0.29) is RoCCategory.GOOD
    assert classify_roc(0.3) is RoCCategory.MEDIUM
    assert classify_roc(0.55) is RoCCategory.BAD
    assert classify_roc(-0.6) is RoCCategory.BAD


def test_constant_series_is_all_good() -> None:
    analysis = analyze_roc(_series([6.0] * 13))
    assert all(p.roc == 0.0 for p in analysis.points)
    assert analysis.stats.good_percentage == 100.0
    assert analysis.stats.total_count == 12
    assert analysis.longest_stable_minutes == 55.0


def test_consecutive_roc_per_five_minutes() -> None:
    points = compute_roc(_series([5.0, 5.5, 6.1]))
    assert [p.roc for p in points] == pytest.approx([0.5, 0.6])
    assert [p.category for p in points] == [RoCCategory.MEDIUM, RoCCategory.BAD]
    assert points[0].glucose_value == 5.5
    assert points[0].time_decimal == pytest.approx(8 + 5 / 60)


def test_consecutive_roc_skips_large_gaps() -> None:
    readings = _series([5.0, 9.0], step_minutes=40)
    assert compute_roc(readings) == []


def test_interval_roc_uses_lookback_reading() -> None:
    readings = _series([5.0 + 0.1 * i for i in range(13)])
    points = compute_roc(readings, interval=30)
    assert len(points) == 7
    assert points[0].timestamp == T0 + timedelta(minutes=30)
    assert all(p.roc == pytest.approx(0.1) for p in points)


def test_compute_roc_rejects_unknown_interval() -> None:
    with pytest.raises(ValueError):
        compute_roc(_series([5.0, 6.0]), interval=45)


def test_smooth_roc_shrinks_window_at_edges() -> None:
    smoothed = smooth_roc([_point(0, 0.0), _point(5, 1.2), _point(10, 0.0)])
    assert [p.roc for p in smoothed] == pytest.approx([0.6, 0.4, 0.6])
    assert [p.category for p in smoothed] == [
        RoCCategory.BAD,
        RoCCategory.MEDIUM,
        RoCCategory.BAD,
    ]
    assert smoothed[1].timestamp == T0 + timedelta(minutes=5)


def test_smooth_roc_rejects_even_window() -> None:
    with pytest.raises(ValueError, match="odd"):
        smooth_roc([], window=2)


def test_roc_stats() -> None:
    stats = roc_stats([_point(0, 0.1), _point(5, 0.1), _point(10, 0.7)])
    assert (stats.good_count, stats.medium_count, stats.bad_count) == (2, 0, 1)
    assert stats.good_percentage == 66.7
    assert stats.bad_percentage == 33.3
    assert (stats.min_roc, stats.max_roc) == (0.1, 0.7)
    assert stats.sd_roc == pytest.approx(0.282843, abs=1e-6)
    assert roc_stats([]) == RoCStats()


def test_longest_category_period() -> None:
    points = [
        _point(0, 0.1),
        _point(5, 0.1),
        _point(10, 0.1),
        _point(15, 0.9),
        _point(20, 0.1),
    ]
    assert longest_category_period(points, RoCCategory.GOOD) == 10.0
    assert longest_category_period(points, RoCCategory.MEDIUM) == 0.0


def test_roc_thresholds_for_mg_dl() -> None:
    mg = roc_thresholds_for(GlucoseUnit.MG_DL)
    assert mg.good == pytest.approx(ROC_THRESHOLDS.good * 18.0182)
    assert roc_thresholds_for(GlucoseUnit.MMOL_L) == ROC_THRESHOLDS


def _madrid(hour: int, minute: int, value: float) -> GlucoseReading:
    ts = datetime(2025, 3, 30, hour, minute, tzinfo=MADRID)
    return GlucoseReading(timestamp=ts, value=value)


def test_consecutive_roc_uses_real_time_across_spring_forward() -> None:
    readings = [_madrid(1, 55, 6.0), _madrid(3, 0, 6.5)]
    (point,) = compute_roc(readings)
    assert point.roc == pytest.approx(0.5)
    assert point.category is RoCCategory.MEDIUM


def test_interval_roc_uses_real_time_across_spring_forward() -> None:
    readings = [_madrid(1, 40, 5.0), _madrid(3, 10, 6.0)]
    (point,) = compute_roc(readings, 30)
    assert point.roc == pytest.approx(1.0 / 30 * 5)


def test_analyze_roc_is_repeatable_and_leaves_input_alone() -> None:
    readings = list(reversed(_series([6.0, 6.4, 7.1, 7.0, 6.2, 5.9, 6.0])))
    snapshot = list(readings)
    first = analyze_roc(readings)
    assert analyze_roc(readings) == first
    assert readings == snapshot
