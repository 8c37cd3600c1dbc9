from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dateutil import tz

from glucose_tool.model import GlucoseSource, GlucoseUnit
from glucose_tool.sources.csv_export import (
    CsvExportPaths,
    CsvExportSource,
    _parse_number,
    _parse_timestamp,
    _unit_from_header,
)


def _source(root: Path) -> CsvExportSource:
    return CsvExportSource(CsvExportPaths(root=root), zone=tz.UTC)


def test_load_readings_mmol(tmp_path: Path) -> None:
    p = tmp_path / "glucose_2025-10-06.csv"
    p.write_text(
        "timestamp,value,source\n2025-10-06 08:00,5.5,cgm\n2025-10-06 08:05,6.1,bg\n",
        encoding="utf-8",
    )

    readings = _source(tmp_path).load_readings(p)

    assert [r.value for r in readings] == [5.5, 6.1]
    assert readings[0].timestamp == datetime(2025, 10, 6, 8, 0, tzinfo=tz.UTC)
    assert readings[0].source is GlucoseSource.CGM
    assert readings[1].source is GlucoseSource.BG


def test_load_readings_converts_mg_dl_from_header(tmp_path: Path) -> None:
    p = tmp_path / "glucose_mg.csv"
    p.write_text("Timestamp,Glucose (mg/dL)\n2025-10-06 08:00,90\n", encoding="utf-8")

    (reading,) = _source(tmp_path).load_readings(p)

    assert reading.value == pytest.approx(90 / 18.0182)


def test_load_readings_explicit_unit_wins(tmp_path: Path) -> None:
    p = tmp_path / "glucose_x.csv"
    p.write_text("timestamp,value\n2025-10-06 08:00,180\n", encoding="utf-8")
    (reading,) = _source(tmp_path).load_readings(p, GlucoseUnit.MG_DL)
    assert reading.value == pytest.approx(180 / 18.0182)


def test_load_readings_keeps_explicit_offset(tmp_path: Path) -> None:
    p = tmp_path / "glucose_tz.csv"
    p.write_text("timestamp,value\n2025-10-06T08:00:00+02:00,5.0\n", encoding="utf-8")
    (reading,) = _source(tmp_path).load_readings(p)
    assert reading.timestamp.utcoffset() == timedelta(hours=2)


def test_load_readings_drops_bad_rows_and_logs(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    p = tmp_path / "glucose_bad.csv"
    p.write_text(
        "timestamp,value\n"
        "2025-10-06 08:00,5.0\n"
        "not-a-date,5.0\n"
        "2025-10-06 08:10,\n"
        "2025-10-06 08:15,-1\n",
        encoding="utf-8",
    )
    with caplog.at_level(logging.WARNING, logger="glucose_tool.sources.csv_export"):
        readings = _source(tmp_path).load_readings(p)
    assert len(readings) == 1
    assert "dropped 3 unparseable rows" in caplog.text


def test_load_readings_requires_columns(tmp_path: Path) -> None:
    p = tmp_path / "glucose_cols.csv"
    p.write_text("foo,bar\n1,2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Missing timestamp column"):
        _source(tmp_path).load_readings(p)


def test_load_insulin(tmp_path: Path) -> None:
    p = tmp_path / "insulin_2025-10-06.csv"
    p.write_text(
        "timestamp,type,value\n"
        "2025-10-06 00:00,basal,0.8\n"
        "2025-10-06 08:00,Bolus,4\n"
        "2025-10-06 09:00,correction,1\n",
        encoding="utf-8",
    )

    history = _source(tmp_path).load_insulin(p)

    assert [b.rate for b in history.basal] == [0.8]
    assert [b.units for b in history.boluses] == [4.0]
    assert history.boluses[0].timestamp.hour == 8


def test_validate_raises_when_root_missing(tmp_path: Path) -> None:
    missing = tmp_path / "noexiste"
    with pytest.raises(FileNotFoundError, match=str(missing)):
        _source(missing).validate()


def test_newest_csv(tmp_path: Path) -> None:
    src = _source(tmp_path)
    with pytest.raises(FileNotFoundError, match="No glucose_"):
        src.newest_csv("glucose")

    old_f = tmp_path / "glucose_old.csv"
    new_f = tmp_path / "glucose_new.csv"
    old_f.write_text("timestamp,value\n", encoding="utf-8")
    new_f.write_text("timestamp,value\n", encoding="utf-8")
    os.utime(old_f, (1_000_000, 1_000_000))
    os.utime(new_f, (2_000_000, 2_000_000))

    assert src.newest_csv("glucose") == new_f


def test_parse_helpers() -> None:
    assert _parse_number("5,5") == 5.5
    assert _parse_number("nan") is None
    assert _parse_number("") is None
    assert _parse_timestamp("", tz.UTC) is None
    utc = _parse_timestamp("2025-10-06 08:00", timezone.utc)
    assert utc is not None and utc.tzinfo is timezone.utc
    assert _unit_from_header("Glucosa (mmol/L)") is GlucoseUnit.MMOL_L
    assert _unit_from_header("value") is None


def test_validate_rejects_file_as_root(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "glucose_2025-10-06.csv"
    not_a_dir.write_text("timestamp,glucose\n", encoding="utf-8")
    with pytest.raises(FileNotFoundError):
        _source(not_a_dir).validate()
    _source(tmp_path).validate()
