"""Modelos tipados para lecturas de glucosa, insulina y resultados de análisis."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum, IntEnum


class GlucoseSource(str, Enum):
    """Origin of a glucose value."""

    CGM = "cgm"
    BG = "bg"


class GlucoseUnit(str, Enum):
    """Display unit for glucose values."""

    MMOL_L = "mmol/L"
    MG_DL = "mg/dL"


class RangeCategoryMode(IntEnum):
    """Number of bands reported by the range categorizer."""

    THREE = 3
    FIVE = 5


class RangeCategory(str, Enum):
    """Glucose band of a single value."""

    VERY_LOW = "veryLow"
    LOW = "low"
    IN_RANGE = "inRange"
    HIGH = "high"
    VERY_HIGH = "veryHigh"


class RoCCategory(str, Enum):
    """Speed class of a rate-of-change value."""

    GOOD = "good"
    MEDIUM = "medium"
    BAD = "bad"


@dataclass(frozen=True)
class GlucoseReading:
    """One glucose measurement event (timestamped, mmol/L)."""

    timestamp: datetime
    value: float
    source: GlucoseSource = GlucoseSource.CGM


@dataclass(frozen=True)
class GlucoseThresholds:
    """Band limits in mmol/L; callers guarantee very_low < low < high < very_high."""

    very_low: float
    low: float
    high: float
    very_high: float


@dataclass(frozen=True)
class ThreeCategoryStats:
    """Counts for the 3-band view."""

    low: int = 0
    in_range: int = 0
    high: int = 0
    total: int = 0


@dataclass(frozen=True)
class FiveCategoryStats:
    """Counts for the 5-band view."""

    very_low: int = 0
    low: int = 0
    in_range: int = 0
    high: int = 0
    very_high: int = 0
    total: int = 0


CategoryStats = ThreeCategoryStats | FiveCategoryStats


@dataclass(frozen=True)
class AGPTimeSlotStats:
    """Percentile summary of one 5-minute time-of-day slot."""

    time_slot: str
    lowest: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    highest: float
    count: int


@dataclass(frozen=True)
class RoCDataPoint:
    """Rate of change (magnitude per 5 minutes, mmol/L) at a reading."""

    timestamp: datetime
    time_decimal: float
    roc: float
    glucose_value: float
    category: RoCCategory


@dataclass(frozen=True)
class RoCStats:
    """Aggregate statistics over a RoC series."""

    good_count: int = 0
    medium_count: int = 0
    bad_count: int = 0
    total_count: int = 0
    good_percentage: float = 0.0
    medium_percentage: float = 0.0
    bad_percentage: float = 0.0
    min_roc: float = 0.0
    max_roc: float = 0.0
    sd_roc: float = 0.0


@dataclass(frozen=True)
class HypoPeriod:
    """One contiguous run of readings below the low threshold."""

    start: datetime
    end: datetime
    nadir: float
    nadir_time: datetime
    duration_minutes: float
    is_severe: bool


@dataclass(frozen=True)
class HypoStats:
    """Hypoglycemia summary for a set of readings."""

    severe_count: int = 0
    non_severe_count: int = 0
    lowest_value: float | None = None
    longest_duration_minutes: float = 0.0
    total_duration_minutes: float = 0.0
    hypo_periods: tuple[HypoPeriod, ...] = ()


@dataclass(frozen=True)
class BasalRateChange:
    """Basal rate (U/h) in effect from ``timestamp`` until the next change."""

    timestamp: datetime
    rate: float


@dataclass(frozen=True)
class BolusDose:
    """Discrete bolus delivery (units)."""

    timestamp: datetime
    units: float


@dataclass(frozen=True)
class InsulinHistory:
    """Dosing history: basal rate changes plus bolus events."""

    basal: tuple[BasalRateChange, ...] = ()
    boluses: tuple[BolusDose, ...] = ()


@dataclass(frozen=True)
class HourlyIOBData:
    """Insulin delivered in the previous hour and IOB at the top of ``hour``."""

    hour: int
    basal_in_previous_hour: float
    bolus_in_previous_hour: float
    active_iob: float


@dataclass(frozen=True)
class DailyInsulinSummary:
    """Insulin totals for one calendar day."""

    day: date
    basal_total: float
    bolus_total: float
    total_insulin: float
