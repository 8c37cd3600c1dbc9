"""Punto de entrada: ``python -m glucose_tool``."""

from __future__ import annotations

from glucose_tool.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
