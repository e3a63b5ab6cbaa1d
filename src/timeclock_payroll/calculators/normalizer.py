"""Timestamp normalization for stored time entries.

Stored documents carry clock times in several shapes: ISO-8601 strings,
epoch-second wrappers written by document stores (``{"_seconds": ...}``)
and native ``datetime`` values. Each raw value is classified once into a
tagged representation and converted to an aware UTC ``datetime``; nothing
downstream sees the raw shapes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Union

from timeclock_payroll.calculators.types import InvalidRange, TimeEntryInput, TimeRange


@dataclass(frozen=True)
class StringTimestamp:
    value: str

    def to_instant(self) -> datetime | None:
        text = self.value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return _as_utc(parsed)


@dataclass(frozen=True)
class EpochTimestamp:
    seconds: float
    nanoseconds: int = 0

    def to_instant(self) -> datetime | None:
        try:
            return datetime.fromtimestamp(self.seconds + self.nanoseconds / 1e9, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None


@dataclass(frozen=True)
class NativeTimestamp:
    value: datetime

    def to_instant(self) -> datetime | None:
        return _as_utc(self.value)


Timestamp = Union[StringTimestamp, EpochTimestamp, NativeTimestamp]


def _as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _epoch_from_mapping(raw: Mapping[str, Any]) -> EpochTimestamp | None:
    for seconds_key, nanos_key in (("_seconds", "_nanoseconds"), ("seconds", "nanoseconds")):
        seconds = raw.get(seconds_key)
        if seconds is None:
            continue
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return None
        nanos = raw.get(nanos_key) or 0
        if isinstance(nanos, bool) or not isinstance(nanos, int):
            nanos = 0
        return EpochTimestamp(seconds=seconds, nanoseconds=nanos)
    return None


def classify_timestamp(raw: Any) -> Timestamp | None:
    """Classify a stored timestamp value, or return None if unrecognized."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return NativeTimestamp(raw)
    if isinstance(raw, date):
        return NativeTimestamp(datetime.combine(raw, time.min))
    if isinstance(raw, str):
        return StringTimestamp(raw)
    if isinstance(raw, (int, float)):
        return EpochTimestamp(seconds=raw)
    if isinstance(raw, Mapping):
        return _epoch_from_mapping(raw)

    # Client SDK timestamp objects
    for converter in ("to_datetime", "toDate"):
        method = getattr(raw, converter, None)
        if callable(method):
            try:
                converted = method()
            except Exception:
                return None
            if isinstance(converted, datetime):
                return NativeTimestamp(converted)
            return None
    return None


def to_instant(raw: Any) -> datetime | None:
    """Convert any supported stored timestamp to an aware UTC datetime."""
    classified = classify_timestamp(raw)
    if classified is None:
        return None
    return classified.to_instant()


def normalize(
    start_raw: Any,
    end_raw: Any = None,
    entry_id: str | None = None,
) -> TimeRange | InvalidRange:
    """Build a TimeRange from raw clock-in/clock-out values.

    Never raises. An absent end yields an open range; a present but
    unparseable end, a missing or unparseable start, or an end before the
    start yields InvalidRange.
    """
    start = to_instant(start_raw)
    if start is None:
        reason = "missing clock-in" if start_raw is None else f"unparseable clock-in {start_raw!r}"
        return InvalidRange(reason, entry_id)

    if end_raw is None:
        return TimeRange(start=start, end=None, entry_id=entry_id)

    end = to_instant(end_raw)
    if end is None:
        return InvalidRange(f"unparseable clock-out {end_raw!r}", entry_id)
    if end < start:
        return InvalidRange(f"clock-out {end.isoformat()} precedes clock-in {start.isoformat()}", entry_id)

    return TimeRange(start=start, end=end, entry_id=entry_id)


def normalize_entry(entry: TimeEntryInput | TimeRange) -> TimeRange | InvalidRange:
    """Normalize a raw entry; already-normalized ranges pass through."""
    if isinstance(entry, TimeRange):
        return entry
    return normalize(entry.clock_in_at, entry.clock_out_at, entry.entry_id)
