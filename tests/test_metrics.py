from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from glucose_tool.metrics import (
    average_glucose,
    bedtime_average,
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
    quartiles,
    standard_deviation,
    wakeup_average,
)
from glucose_tool.model import GlucoseReading, GlucoseThresholds

TH = GlucoseThresholds(very_low=3.0, low=3.9, high=10.0, very_high=13.9)
T0 = datetime(2025, 10, 6, 0, 0)


def _series(values: list[float], step_minutes: int = 5) -> list[GlucoseReading]:
    return [
        GlucoseReading(timestamp=T0 + timedelta(minutes=i * step_minutes), value=v)
        for i, v in enumerate(values)
    ]


def test_central_tendency_and_spread() -> None:
    readings = _series([4.0, 6.0, 8.0])
    assert average_glucose(readings) == pytest.approx(6.0)
    assert median_glucose(readings) == pytest.approx(6.0)
    assert standard_deviation(readings) == pytest.approx(2.0)
    assert coefficient_of_variation(readings) == pytest.approx(33.333, abs=1e-3)


def test_metrics_without_enough_data() -> None:
    assert average_glucose([]) is None
    assert standard_deviation(_series([5.0])) is None
    assert coefficient_of_variation(_series([5.0])) is None
    assert quartiles([]) is None
    assert flux_grade([]) is None
    assert blood_glucose_risk_index([]) is None


def test_hba1c_estimates() -> None:
    assert estimated_hba1c(7.0) == pytest.approx(6.0314, abs=1e-4)
    assert hba1c_to_mmol_mol(6.0) == pytest.approx(42.0767, abs=1e-4)


def test_days_with_data_and_quartiles() -> None:
    readings = _series([1.0, 2.0, 3.0, 4.0, 5.0], step_minutes=60 * 12)
    assert days_with_data(readings) == 3
    q = quartiles(readings)
    assert q is not None
    assert (q.q25, q.q50, q.q75, q.min, q.max) == (2.0, 3.0, 4.0, 1.0, 5.0)


def test_risk_indices_follow_the_side_of_the_excursion() -> None:
    low = blood_glucose_risk_index(_series([3.0, 3.2]))
    high = blood_glucose_risk_index(_series([15.0, 16.0]))
    assert low is not None and high is not None
    assert low.lbgi > 0 and low.hbgi == 0
    assert high.hbgi > 0 and high.lbgi == 0
    assert high.bgri == pytest.approx(high.lbgi + high.hbgi)
    assert j_index(_series([6.0, 6.0])) == pytest.approx(0.001 * (6 * 18.0182) ** 2)


def test_high_low_incidents_count_transitions() -> None:
    readings = _series([7.0, 11.0, 14.0, 11.0, 7.0, 3.5, 2.5, 3.5, 7.0])
    incidents = count_high_low_incidents(readings, TH)
    assert incidents.high_count == 1
    assert incidents.very_high_count == 1
    assert incidents.low_count == 1
    assert incidents.very_low_count == 1


def test_unicorns_and_flux() -> None:
    assert count_unicorns(_series([5.0, 100 / 18.0182, 6.0])) == 2
    flux = flux_grade(_series([5.0, 5.0]))
    assert flux is not None
    assert flux.grade == "A+"


def test_wakeup_and_bedtime_windows() -> None:
    readings = [
        GlucoseReading(timestamp=T0.replace(hour=7), value=6.0),
        GlucoseReading(timestamp=T0.replace(hour=10), value=9.0),
        GlucoseReading(timestamp=T0.replace(hour=22), value=8.0),
    ]
    assert wakeup_average(readings) == pytest.approx(6.0)
    assert bedtime_average(readings) == pytest.approx(8.0)
