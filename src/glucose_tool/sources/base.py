"""Clases base para las fuentes de lecturas e insulina."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from glucose_tool.model import GlucoseReading, GlucoseUnit, InsulinHistory


@dataclass(frozen=True)
class SourcePaths:
    """Folder holding the exported glucose and insulin files."""

    root: Path


class DataSource(ABC):
    """Source of readings and dosing history for the analytics core."""

    def __init__(self, paths: SourcePaths) -> None:
        self._paths = paths

    def validate(self) -> None:
        """Check that the export folder exists.

        Raises:
            FileNotFoundError: If ``root`` is missing or is not a directory.
        """
        if not self._paths.root.is_dir():
            raise FileNotFoundError(str(self._paths.root))

    @abstractmethod
    def load_readings(
        self, path: Path, unit: GlucoseUnit | None = None
    ) -> list[GlucoseReading]:
        """Glucose readings in mmol/L from one export file."""

    @abstractmethod
    def load_insulin(self, path: Path) -> InsulinHistory:
        """Basal rate changes and boluses from one export file."""
