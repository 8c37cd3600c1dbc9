"""Insulina activa (IOB) y totales de insulina a partir del historial de dosis.

Modelo bilineal: la actividad de un bolo sube linealmente hasta el pico
(75/180 de la duración) y baja linealmente hasta cero al final de la
duración. La fracción remanente es el área que queda bajo ese triángulo.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from glucose_tool.model import (
    DailyInsulinSummary,
    HourlyIOBData,
    InsulinHistory,
)
from glucose_tool.normalize import instant

PEAK_FRACTION = 75 / 180

_HOUR = timedelta(hours=1)


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


def _check_duration(duration_hours: float) -> None:
    if duration_hours <= 0:
        raise ValueError(f"Insulin duration must be positive: {duration_hours}")


def remaining_fraction(elapsed_hours: float, duration_hours: float) -> float:
    """Fraction of a bolus still active after ``elapsed_hours``.

    Args:
        elapsed_hours: Time since the dose.
        duration_hours: Duration of insulin action.

    Returns:
        1.0 at 0, 0.0 from ``duration_hours`` on, strictly decreasing in
        between.

    Raises:
        ValueError: If ``duration_hours`` is not positive.
    """
    _check_duration(duration_hours)
    if elapsed_hours <= 0:
        return 1.0
    if elapsed_hours >= duration_hours:
        return 0.0
    peak = duration_hours * PEAK_FRACTION
    if elapsed_hours < peak:
        return 1.0 - elapsed_hours**2 / (peak * duration_hours)
    return (duration_hours - elapsed_hours) ** 2 / (
        duration_hours * (duration_hours - peak)
    )


def basal_delivered(history: InsulinHistory, start: datetime, end: datetime) -> float:
    """Units of basal delivered in ``[start, end)``.

    Each rate applies from its timestamp until the next change; before the
    first change the rate is zero. Durations are real elapsed time, so a
    DST day delivers 23 or 25 hours of basal.
    """
    lo, hi = instant(start), instant(end)
    changes = sorted(
        ((instant(c.timestamp), c.rate) for c in history.basal), key=lambda c: c[0]
    )
    units = 0.0
    for i, (changed_at, rate) in enumerate(changes):
        seg_start = max(changed_at, lo)
        seg_end = changes[i + 1][0] if i + 1 < len(changes) else hi
        seg_end = min(seg_end, hi)
        if seg_end > seg_start:
            units += rate * _hours(seg_end - seg_start)
    return units


def bolus_delivered(history: InsulinHistory, start: datetime, end: datetime) -> float:
    """Units of bolus with timestamp in ``[start, end)``."""
    lo, hi = instant(start), instant(end)
    return sum(b.units for b in history.boluses if lo <= instant(b.timestamp) < hi)


def active_iob(history: InsulinHistory, at: datetime, duration_hours: float) -> float:
    """Bolus insulin still active at ``at``; basal is not included.

    Args:
        history: Dosing history.
        at: Evaluation instant.
        duration_hours: Duration of insulin action.

    Returns:
        Active units, 0 when no bolus falls inside the trailing window.
    """
    _check_duration(duration_hours)
    now = instant(at)
    total = 0.0
    for bolus in history.boluses:
        given_at = instant(bolus.timestamp)
        if given_at > now:
            continue
        total += bolus.units * remaining_fraction(
            _hours(now - given_at), duration_hours
        )
    return total


def _history_tz(history: InsulinHistory) -> tzinfo | None:
    """Zona horaria del primer evento del historial (None si no hay eventos)."""
    events = (*history.basal, *history.boluses)
    return events[0].timestamp.tzinfo if events else None


def hourly_iob(
    history: InsulinHistory,
    day: date,
    duration_hours: float,
    tz: tzinfo | None = None,
) -> list[HourlyIOBData]:
    """Hourly insulin table for ``day``.

    Entry ``h`` holds basal and bolus delivered during ``[h-1, h)`` and the
    active IOB at ``h:00``. Hour 0 therefore looks back into the previous
    day. Hours are local wall-clock hours of ``day``: on the spring-forward
    day the skipped hour has an empty window.

    Args:
        history: Dosing history (may span several days).
        day: Target calendar day.
        duration_hours: Duration of insulin action.
        tz: Time zone of the day boundaries; defaults to the history's.

    Returns:
        24 entries ordered by hour.
    """
    _check_duration(duration_hours)
    zone = tz if tz is not None else _history_tz(history)
    midnight = datetime.combine(day, time.min, zone)
    rows: list[HourlyIOBData] = []
    for hour in range(24):
        at = midnight + hour * _HOUR
        rows.append(
            HourlyIOBData(
                hour=hour,
                basal_in_previous_hour=basal_delivered(history, at - _HOUR, at),
                bolus_in_previous_hour=bolus_delivered(history, at - _HOUR, at),
                active_iob=active_iob(history, at, duration_hours),
            )
        )
    return rows


def daily_insulin_totals(history: InsulinHistory) -> list[DailyInsulinSummary]:
    """Basal and bolus totals for each day that has dosing events."""
    zone = _history_tz(history)
    days = sorted(
        {e.timestamp.date() for e in history.basal}
        | {b.timestamp.date() for b in history.boluses}
    )
    out: list[DailyInsulinSummary] = []
    for day in days:
        start = datetime.combine(day, time.min, zone)
        end = start + timedelta(days=1)
        basal = basal_delivered(history, start, end)
        bolus = bolus_delivered(history, start, end)
        out.append(
            DailyInsulinSummary(
                day=day,
                basal_total=basal,
                bolus_total=bolus,
                total_insulin=basal + bolus,
            )
        )
    return out
