"""Configuración explícita del análisis (umbrales, modo, unidad, RoC, insulina)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from glucose_tool.model import GlucoseThresholds, GlucoseUnit, RangeCategoryMode
from glucose_tool.roc import RoCInterval

_THRESHOLD_KEYS: tuple[tuple[str, str], ...] = (
    ("veryLow", "very_low"),
    ("low", "low"),
    ("high", "high"),
    ("veryHigh", "very_high"),
)


def validate_thresholds(thresholds: GlucoseThresholds) -> GlucoseThresholds:
    """Reject thresholds that are not strictly ascending.

    The analytics functions assume a valid order; callers run this check
    before handing user settings to them.

    Raises:
        ValueError: If ``very_low < low < high < very_high`` does not hold.
    """
    ordered = (
        thresholds.very_low,
        thresholds.low,
        thresholds.high,
        thresholds.very_high,
    )
    if not all(a < b for a, b in zip(ordered, ordered[1:])):
        raise ValueError(f"Glucose thresholds must be strictly ascending: {ordered}")
    return thresholds


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one dashboard session."""

    thresholds: GlucoseThresholds
    mode: RangeCategoryMode
    unit: GlucoseUnit
    roc_interval: RoCInterval
    insulin_duration_hours: float

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> AnalysisConfig:
        """Build a validated config from stored settings.

        Expected keys: ``veryLow``, ``low``, ``high``, ``veryHigh`` (mmol/L),
        ``mode`` (3 or 5), ``unit`` (``"mmol/L"`` or ``"mg/dL"``),
        ``rocInterval`` (minutes) and ``insulinDuration`` (hours).

        Raises:
            ValueError: If a key is missing or a value is invalid.
        """
        missing = [
            key
            for key in (
                *(k for k, _ in _THRESHOLD_KEYS),
                "mode",
                "unit",
                "rocInterval",
                "insulinDuration",
            )
            if key not in settings
        ]
        if missing:
            raise ValueError(f"Missing settings: {', '.join(missing)}")

        try:
            thresholds = GlucoseThresholds(
                **{field: float(settings[key]) for key, field in _THRESHOLD_KEYS}
            )
            duration = float(settings["insulinDuration"])
            config = cls(
                thresholds=validate_thresholds(thresholds),
                mode=RangeCategoryMode(int(settings["mode"])),
                unit=GlucoseUnit(settings["unit"]),
                roc_interval=RoCInterval(int(settings["rocInterval"])),
                insulin_duration_hours=duration,
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid settings: {exc}") from exc

        if duration <= 0:
            raise ValueError(f"Insulin duration must be positive: {duration}")
        return config
