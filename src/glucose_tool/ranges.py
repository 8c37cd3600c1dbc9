"""Categorización por rangos de glucosa y agregación por grupos (día, hora...)."""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TypeVar

from glucose_tool.model import (
    CategoryStats,
    FiveCategoryStats,
    GlucoseReading,
    GlucoseThresholds,
    RangeCategory,
    RangeCategoryMode,
    ThreeCategoryStats,
)
from glucose_tool.normalize import elapsed, filter_last_n_days

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

DAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
WORKDAYS: tuple[str, ...] = DAY_NAMES[:5]
WEEKEND: tuple[str, ...] = DAY_NAMES[5:]
WORKDAY_KEY = "Workday"
WEEKEND_KEY = "Weekend"
SYNTHETIC_KEYS: frozenset[str] = frozenset({WORKDAY_KEY, WEEKEND_KEY})

HOUR_GROUP_SIZES: tuple[int, ...] = (1, 2, 3, 4, 6)
TRAILING_DAY_WINDOWS: tuple[int, ...] = (90, 28, 14, 7, 3)

_MONTHS: tuple[str, ...] = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


@dataclass(frozen=True)
class TimePeriod:
    """Named half-open hour range ``[start_hour, end_hour)``.

    When ``start_hour >= end_hour`` the period wraps past midnight.
    """

    name: str
    start_hour: int
    end_hour: int

    def __post_init__(self) -> None:
        if not 0 <= self.start_hour <= 23 or not 0 <= self.end_hour <= 24:
            raise ValueError(
                f"Invalid hours for period {self.name!r}: "
                f"{self.start_hour}-{self.end_hour}"
            )

    def contains(self, hour: int) -> bool:
        """Return True if ``hour`` falls inside the period."""
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour


DEFAULT_TIME_PERIODS: tuple[TimePeriod, ...] = (
    TimePeriod("Night", 0, 6),
    TimePeriod("Morning", 6, 12),
    TimePeriod("Afternoon", 12, 18),
    TimePeriod("Evening", 18, 24),
)


def classify(
    value: float, thresholds: GlucoseThresholds, mode: RangeCategoryMode | int
) -> RangeCategory:
    """Bucket one glucose value.

    Each threshold is the inclusive lower bound of the band above it, so a
    value equal to a threshold belongs to the higher band. In 3-band mode
    ``low`` subsumes very low and ``high`` subsumes very high.

    Args:
        value: Glucose value in mmol/L.
        thresholds: Band limits in mmol/L.
        mode: 3 or 5 band mode.

    Returns:
        The range category.
    """
    five = RangeCategoryMode(mode) is RangeCategoryMode.FIVE
    if value < thresholds.low:
        if five and value < thresholds.very_low:
            return RangeCategory.VERY_LOW
        return RangeCategory.LOW
    if value < thresholds.high:
        return RangeCategory.IN_RANGE
    if five and value >= thresholds.very_high:
        return RangeCategory.VERY_HIGH
    return RangeCategory.HIGH


def empty_stats(mode: RangeCategoryMode | int) -> CategoryStats:
    """All-zero stats shaped for ``mode``."""
    if RangeCategoryMode(mode) is RangeCategoryMode.FIVE:
        return FiveCategoryStats()
    return ThreeCategoryStats()


def _stats_from_counts(
    counts: Mapping[RangeCategory, int], mode: RangeCategoryMode
) -> CategoryStats:
    """Arma el registro de conteos según el modo (3 o 5 bandas)."""
    total = sum(counts.values())
    if mode is RangeCategoryMode.FIVE:
        return FiveCategoryStats(
            very_low=counts.get(RangeCategory.VERY_LOW, 0),
            low=counts.get(RangeCategory.LOW, 0),
            in_range=counts.get(RangeCategory.IN_RANGE, 0),
            high=counts.get(RangeCategory.HIGH, 0),
            very_high=counts.get(RangeCategory.VERY_HIGH, 0),
            total=total,
        )
    return ThreeCategoryStats(
        low=counts.get(RangeCategory.LOW, 0),
        in_range=counts.get(RangeCategory.IN_RANGE, 0),
        high=counts.get(RangeCategory.HIGH, 0),
        total=total,
    )


def category_counts(stats: CategoryStats) -> dict[RangeCategory, int]:
    """Map each band reported by ``stats`` to its count."""
    if isinstance(stats, FiveCategoryStats):
        return {
            RangeCategory.VERY_LOW: stats.very_low,
            RangeCategory.LOW: stats.low,
            RangeCategory.IN_RANGE: stats.in_range,
            RangeCategory.HIGH: stats.high,
            RangeCategory.VERY_HIGH: stats.very_high,
        }
    return {
        RangeCategory.LOW: stats.low,
        RangeCategory.IN_RANGE: stats.in_range,
        RangeCategory.HIGH: stats.high,
    }


def category_stats(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
) -> CategoryStats:
    """Count readings per band for a single group."""
    mode = RangeCategoryMode(mode)
    counts = Counter(classify(r.value, thresholds, mode) for r in readings)
    return _stats_from_counts(counts, mode)


def percentage(count: int, total: int) -> float:
    """Percentage rounded to one decimal; 0 when ``total`` is 0."""
    if total == 0:
        return 0.0
    return round(count / total * 100, 1)


def percentages(stats: CategoryStats) -> dict[RangeCategory, float]:
    """Per-band percentages derived from the counts in ``stats``."""
    return {
        category: percentage(count, stats.total)
        for category, count in category_counts(stats).items()
    }


def aggregate(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
    key_fn: Callable[[GlucoseReading], K | None],
    keys: Iterable[K] | None = None,
) -> dict[K, CategoryStats]:
    """Group readings by ``key_fn`` and count bands per group.

    Args:
        readings: Glucose readings.
        thresholds: Band limits in mmol/L.
        mode: 3 or 5 band mode.
        key_fn: Maps a reading to its group key; ``None`` excludes it.
        keys: Optional closed set of keys. Every listed key appears in the
            result (zero stats when empty) and readings mapping to any
            other key are excluded.

    Returns:
        Stats per key, listed keys first in the given order, then keys in
        order of first appearance.
    """
    mode = RangeCategoryMode(mode)
    groups: dict[K, Counter[RangeCategory]] = {}
    known: set[K] | None = None
    if keys is not None:
        groups = {k: Counter() for k in keys}
        known = set(groups)

    excluded = 0
    for reading in readings:
        key = key_fn(reading)
        if key is None or (known is not None and key not in known):
            excluded += 1
            continue
        category = classify(reading.value, thresholds, mode)
        groups.setdefault(key, Counter())[category] += 1

    if excluded:
        logger.info("%d readings matched no group key and were excluded", excluded)
    return {key: _stats_from_counts(counts, mode) for key, counts in groups.items()}


def sum_stats(
    stats: Iterable[CategoryStats], mode: RangeCategoryMode | int
) -> CategoryStats:
    """Add several stats records of the same mode."""
    mode = RangeCategoryMode(mode)
    counts: Counter[RangeCategory] = Counter()
    for item in stats:
        counts.update(category_counts(item))
    return _stats_from_counts(counts, mode)


def by_day_of_week(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
) -> dict[str, CategoryStats]:
    """Stats for the 7 natural weekdays, Monday to Sunday."""
    return aggregate(
        readings,
        thresholds,
        mode,
        lambda r: DAY_NAMES[r.timestamp.weekday()],
        keys=DAY_NAMES,
    )


def with_workday_weekend(
    by_day: Mapping[str, CategoryStats], mode: RangeCategoryMode | int
) -> dict[str, CategoryStats]:
    """Add the derived ``Workday`` and ``Weekend`` views to a weekday map.

    The views are projections of the weekday buckets; use ``grand_total``
    when summing the result so they are not counted twice.
    """
    out = dict(by_day)
    out[WORKDAY_KEY] = sum_stats((by_day[d] for d in WORKDAYS if d in by_day), mode)
    out[WEEKEND_KEY] = sum_stats((by_day[d] for d in WEEKEND if d in by_day), mode)
    return out


def grand_total(
    groups: Mapping[str, CategoryStats], mode: RangeCategoryMode | int
) -> CategoryStats:
    """Sum the fundamental buckets of ``groups``, skipping synthetic views."""
    return sum_stats(
        (stats for key, stats in groups.items() if key not in SYNTHETIC_KEYS), mode
    )


def week_label(week_start: date) -> str:
    """Format a Monday-start week as ``"Oct 6-12"`` or ``"Sep 29-Oct 5"``."""
    start = week_start.date() if isinstance(week_start, datetime) else week_start
    end = start + timedelta(days=6)
    start_month = _MONTHS[start.month - 1]
    if start.month == end.month:
        return f"{start_month} {start.day}-{end.day}"
    return f"{start_month} {start.day}-{_MONTHS[end.month - 1]} {end.day}"


def by_week(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
) -> dict[str, CategoryStats]:
    """Stats per Monday-start week, chronological, keyed by week label.

    The label has no year, so weeks of different years sharing a label are
    merged into one entry.
    """
    weekly = aggregate(
        readings,
        thresholds,
        mode,
        lambda r: r.timestamp.date() - timedelta(days=r.timestamp.weekday()),
    )
    labelled: dict[str, list[CategoryStats]] = {}
    for start in sorted(weekly):
        label = week_label(start)
        if label in labelled:
            logger.warning("Week %s found in several years; stats merged", label)
        labelled.setdefault(label, []).append(weekly[start])
    return {label: sum_stats(items, mode) for label, items in labelled.items()}


def by_date(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
) -> dict[str, CategoryStats]:
    """Stats per calendar date (``YYYY-MM-DD``), chronological."""
    daily = aggregate(
        readings, thresholds, mode, lambda r: r.timestamp.date().isoformat()
    )
    return {day: daily[day] for day in sorted(daily)}


def by_hour(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
) -> dict[int, CategoryStats]:
    """Stats for each hour of day, 0 to 23."""
    return aggregate(
        readings, thresholds, mode, lambda r: r.timestamp.hour, keys=range(24)
    )


def by_hour_group(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
    group_size: int,
) -> dict[str, CategoryStats]:
    """Stats per block of ``group_size`` hours.

    Args:
        readings: Glucose readings.
        thresholds: Band limits in mmol/L.
        mode: 3 or 5 band mode.
        group_size: Hours per block, one of 1, 2, 3, 4 or 6.

    Returns:
        Stats keyed ``"HH:00"`` (size 1) or ``"HH:00-HH:59"``.

    Raises:
        ValueError: If ``group_size`` does not divide the day evenly.
    """
    if group_size not in HOUR_GROUP_SIZES:
        raise ValueError(f"Unsupported hour group size: {group_size}")

    def label(index: int) -> str:
        start = index * group_size
        if group_size == 1:
            return f"{start:02d}:00"
        return f"{start:02d}:00-{start + group_size - 1:02d}:59"

    labels = [label(i) for i in range(24 // group_size)]
    return aggregate(
        readings,
        thresholds,
        mode,
        lambda r: labels[r.timestamp.hour // group_size],
        keys=labels,
    )


def by_time_period(
    readings: Iterable[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
    periods: Sequence[TimePeriod] = DEFAULT_TIME_PERIODS,
    cutoff: datetime | None = None,
) -> dict[str, CategoryStats]:
    """Stats per named time-of-day period.

    Args:
        readings: Glucose readings.
        thresholds: Band limits in mmol/L.
        mode: 3 or 5 band mode.
        periods: Periods checked in order; the first match wins.
        cutoff: Readings at or after this instant are left out (partial
            days).

    Returns:
        Stats keyed by period name, in ``periods`` order.
    """

    def key_fn(reading: GlucoseReading) -> str | None:
        if cutoff is not None and reading.timestamp >= cutoff:
            return None
        for period in periods:
            if period.contains(reading.timestamp.hour):
                return period.name
        return None

    return aggregate(
        readings, thresholds, mode, key_fn, keys=[p.name for p in periods]
    )


def by_trailing_days(
    readings: Sequence[GlucoseReading],
    thresholds: GlucoseThresholds,
    mode: RangeCategoryMode | int,
    reference: datetime | None = None,
) -> dict[str, CategoryStats]:
    """Stats for the standard trailing windows that fit the data span.

    Windows of 90, 28, 14, 7 and 3 days are reported when they are not
    longer than the span between the first reading and the reference.
    """
    if not readings:
        return {}
    first = min(r.timestamp for r in readings)
    ref = reference if reference is not None else max(r.timestamp for r in readings)
    span_days = math.ceil(elapsed(first, ref) / timedelta(days=1))
    return {
        f"{days} days": category_stats(
            filter_last_n_days(readings, days, ref), thresholds, mode
        )
        for days in TRAILING_DAY_WINDOWS
        if days <= span_days
    }
