"""
Reading-history sources.

The dashboard keeps its history in browser key-value storage: device records
under ``healthRecords``, daily summaries under ``healthData`` and the
medication list under ``medications``. Sources here read a snapshot of that
store (in memory, or a JSON export on disk) and return explicit ``Result``
values, because a missing or corrupt store is an expected condition, not an
exceptional one.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

HEALTH_RECORDS_KEY = "healthRecords"
DAILY_RECORDS_KEY = "healthData"
MEDICATIONS_KEY = "medications"

# Device record "type" values written by the device-entry form
BLOOD_PRESSURE_TYPES = frozenset({"血压", "血壓", "blood_pressure", "bloodPressure"})
SPO2_TYPES = frozenset({"血氧", "spo2", "spO2"})
TEMPERATURE_TYPES = frozenset({"体温", "體溫", "temperature"})

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)

Records = list[dict[str, Any]]

_NO_TIME = datetime.min.replace(tzinfo=UTC)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    When to use: a missing file or a corrupt export, not a programming error.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class HistorySource(Protocol):
    """
    A point-in-time view of the dashboard's key-value store.

    Each ``read`` is an independent snapshot; an assessment reads once.
    """

    source_name: str

    def read(self, key: str) -> Result[Records, Exception]:
        """
        Read the list stored under ``key``.

        Returns:
            Result[list[dict]]: The records (empty when the key is absent) or the
            reason the store could not be read.
        """
        ...


def _as_records(key: str, value: Any) -> Result[Records, Exception]:
    if value is None:
        return Result.ok([])
    if not isinstance(value, list):
        return Result.err(ValueError(f"{key} must hold a list, got {type(value).__name__}"))
    return Result.ok([item for item in value if isinstance(item, dict)])


class InMemoryHistorySource:
    """History held in a plain dict, e.g. posted by the dashboard or built in tests."""

    def __init__(self, store: dict[str, Any] | None = None, source_name: str = "memory") -> None:
        self.source_name = source_name
        self._store: dict[str, Any] = dict(store or {})
        self.logger = logger.bind(source=source_name)

    def read(self, key: str) -> Result[Records, Exception]:
        result = _as_records(key, self._store.get(key))
        if result.is_err():
            self.logger.warning("history_read_failed", key=key, error=str(result.unwrap_err()))
        return result

    def write(self, key: str, records: Records) -> None:
        self._store[key] = list(records)


class JsonFileHistorySource:
    """
    History exported from browser storage as one JSON object of key -> list.

    Values may themselves be JSON strings, as localStorage stores them.
    """

    def __init__(self, path: str | Path, source_name: str | None = None) -> None:
        self.path = Path(path)
        self.source_name = source_name or self.path.name
        self.logger = logger.bind(source=self.source_name)

    def read(self, key: str) -> Result[Records, Exception]:
        try:
            store = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(store, dict):
                raise ValueError("history export must be a JSON object")
            value = store.get(key)
            if isinstance(value, str):
                value = json.loads(value)
        except (OSError, ValueError) as e:
            self.logger.warning("history_read_failed", key=key, path=str(self.path), error=str(e))
            return Result.err(e)

        result = _as_records(key, value)
        if result.is_ok():
            self.logger.debug("history_read", key=key, count=len(result.unwrap()))
        return result


class DeviceSnapshot(BaseModel):
    """Latest device measurement of each kind, shaped as a raw reading."""

    reading: dict[str, Any] = Field(default_factory=dict)
    measured_at: dict[str, str | None] = Field(default_factory=dict)
    last_update: datetime | None = None
    total_records: int = 0
    device_records: int = 0

    def has_data(self) -> bool:
        return bool(self.reading)


def _record_time(record: dict[str, Any]) -> datetime:
    value = record.get("timestamp")
    if not isinstance(value, str):
        return _NO_TIME
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return _NO_TIME
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def latest_device_reading(records: Records) -> DeviceSnapshot:
    """
    Pick the newest blood-pressure, SpO2 and temperature device records.

    Records without a ``device`` marker are manual entries and are ignored.
    The result's ``reading`` feeds straight into ``normalize_reading``.
    """
    device_records = [r for r in records if r.get("device") and isinstance(r.get("data"), dict)]
    newest_first = sorted(device_records, key=_record_time, reverse=True)

    reading: dict[str, Any] = {}
    measured_at: dict[str, str | None] = {}
    for field, types, keys in (
        ("bloodPressure", BLOOD_PRESSURE_TYPES, ("systolic", "diastolic", "pulse")),
        ("spO2", SPO2_TYPES, ("percent", "pi", "pr")),
        ("temperature", TEMPERATURE_TYPES, ("value", "location")),
    ):
        latest = next((r for r in newest_first if r.get("type") in types), None)
        if latest is None:
            continue
        reading[field] = {key: latest["data"].get(key) for key in keys}
        measured_at[field] = latest.get("time") or latest.get("timestamp")

    stamps = [stamp for r in device_records if (stamp := _record_time(r)) > _NO_TIME]
    return DeviceSnapshot(
        reading=reading,
        measured_at=measured_at,
        last_update=max(stamps) if stamps else None,
        total_records=len(records),
        device_records=len(device_records),
    )
