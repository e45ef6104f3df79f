"""
Tests for the reading-history sources in `adapters/storage/history.py`.

Covers:
- Result type for explicit error handling
- In-memory and JSON-export sources (missing file, corrupt JSON, string values)
- Latest device reading extraction
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from adapters.storage.history import (
    HEALTH_RECORDS_KEY,
    MEDICATIONS_KEY,
    HistorySource,
    InMemoryHistorySource,
    JsonFileHistorySource,
    Result,
    latest_device_reading,
)
from healthdash.services.normalization import normalize_reading


class TestResult:
    def test_ok(self) -> None:
        result: Result[str, Exception] = Result.ok("records")

        assert result.is_ok()
        assert result.unwrap() == "records"

    def test_err(self) -> None:
        result: Result[str, ValueError] = Result.err(ValueError("corrupt"))

        assert result.is_err()
        assert result.unwrap_or("default") == "default"
        with pytest.raises(ValueError, match="corrupt"):
            result.unwrap()

    def test_rejects_both_or_neither(self) -> None:
        with pytest.raises(ValueError):
            Result(value="a", error=ValueError("b"))
        with pytest.raises(ValueError):
            Result()

    def test_unwrap_err_on_ok(self) -> None:
        with pytest.raises(ValueError, match="unwrap_err"):
            Result.ok([]).unwrap_err()


class TestInMemoryHistorySource:
    def test_missing_key_is_empty(self) -> None:
        source: HistorySource = InMemoryHistorySource()

        assert source.read(HEALTH_RECORDS_KEY).unwrap() == []

    def test_non_list_value_is_an_error(self) -> None:
        source = InMemoryHistorySource({MEDICATIONS_KEY: {"name": "aspirin"}})

        result = source.read(MEDICATIONS_KEY)

        assert result.is_err()
        assert "must hold a list" in str(result.unwrap_err())

    def test_write_then_read_filters_non_records(self) -> None:
        source = InMemoryHistorySource()
        source.write(HEALTH_RECORDS_KEY, [{"type": "血压"}, "garbage"])  # type: ignore[list-item]

        assert source.read(HEALTH_RECORDS_KEY).unwrap() == [{"type": "血压"}]


class TestJsonFileHistorySource:
    def test_reads_localstorage_export(self, tmp_path: Path) -> None:
        export = tmp_path / "storage.json"
        records = [{"type": "体温", "device": True, "data": {"value": 36.8}}]
        # localStorage values are JSON strings
        export.write_text(json.dumps({HEALTH_RECORDS_KEY: json.dumps(records)}), encoding="utf-8")

        source = JsonFileHistorySource(export)

        assert source.source_name == "storage.json"
        assert source.read(HEALTH_RECORDS_KEY).unwrap() == records
        assert source.read(MEDICATIONS_KEY).unwrap() == []

    def test_missing_file(self, tmp_path: Path) -> None:
        result = JsonFileHistorySource(tmp_path / "absent.json").read(HEALTH_RECORDS_KEY)

        assert result.is_err()
        assert isinstance(result.unwrap_err(), OSError)

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"healthRecords": "{bad"}'])
    def test_corrupt_export(self, tmp_path: Path, content: str) -> None:
        export = tmp_path / "storage.json"
        export.write_text(content, encoding="utf-8")

        result = JsonFileHistorySource(export).read(HEALTH_RECORDS_KEY)

        assert result.is_err()
        assert isinstance(result.unwrap_err(), ValueError)


class TestLatestDeviceReading:
    RECORDS = [
        {
            "device": True,
            "type": "血压",
            "timestamp": "2026-10-17T08:00:00+00:00",
            "time": "10/17 08:00",
            "data": {"systolic": 150, "diastolic": 95, "pulse": 80},
        },
        {
            "device": True,
            "type": "血压",
            "timestamp": "2026-10-18T08:00:00+00:00",
            "time": "10/18 08:00",
            "data": {"systolic": 132, "diastolic": 84, "pulse": 74},
        },
        {
            "device": True,
            "type": "血氧",
            "timestamp": "2026-10-18T07:00:00",
            "data": {"percent": 96, "pi": 1.8, "pr": 75},
        },
        {
            "type": "体温",
            "timestamp": "2026-10-18T09:00:00+00:00",
            "data": {"value": 39.0, "location": "腋下"},
        },
    ]

    def test_newest_record_per_type(self) -> None:
        snapshot = latest_device_reading(self.RECORDS)

        assert snapshot.reading["bloodPressure"] == {"systolic": 132, "diastolic": 84, "pulse": 74}
        assert snapshot.reading["spO2"] == {"percent": 96, "pi": 1.8, "pr": 75}
        assert snapshot.measured_at["bloodPressure"] == "10/18 08:00"
        assert snapshot.measured_at["spO2"] == "2026-10-18T07:00:00"

    def test_manual_entries_are_ignored(self) -> None:
        snapshot = latest_device_reading(self.RECORDS)

        assert "temperature" not in snapshot.reading
        assert snapshot.total_records == 4
        assert snapshot.device_records == 3
        assert snapshot.last_update == datetime(2026, 10, 18, 8, 0, tzinfo=UTC)

    def test_snapshot_feeds_normalization(self) -> None:
        reading = normalize_reading(latest_device_reading(self.RECORDS).reading)

        assert reading.blood_pressure is not None
        assert reading.pulse == 74.0

    def test_no_device_records(self) -> None:
        snapshot = latest_device_reading([])

        assert not snapshot.has_data()
        assert snapshot.last_update is None
