"""Core data models for groups, streams and events.

This module defines:
- `LogGroup` / `LogStream`: metadata as listed by the log store.
- `RawLogEvent` / `FilterPage`: one record and one page of a filter call.
- `Event`: the canonical, normalized log event handed to consumers.
- `TimeWindow`: the [start, end] range a reader is bound to.

Design notes
------------
- Everything exchanged with the store is in milliseconds since the epoch.
- A stream that never ingested anything carries `last_ingestion_time_ms == 0`
  so it sorts last and falls outside any window starting after the epoch.
- `Event` timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

SHORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def from_millis(ms: int | None) -> datetime:
    """Convert milliseconds since the epoch to an aware UTC datetime (None -> epoch)."""
    return EPOCH + timedelta(milliseconds=ms or 0)


def to_millis(dt: datetime) -> int:
    """Convert a datetime to milliseconds since the epoch (naive = local time)."""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return (dt - EPOCH) // timedelta(milliseconds=1)


# === Store metadata ===


@dataclass(slots=True, frozen=True)
class LogGroup:
    name: str
    creation_time_ms: int = 0

    @property
    def creation_time(self) -> datetime:
        return from_millis(self.creation_time_ms)


@dataclass(slots=True, frozen=True)
class LogStream:
    """A stream as listed by the store, with its ingestion time normalized."""

    name: str
    creation_time_ms: int | None = None
    last_ingestion_time_ms: int = 0  # 0 == never ingested

    @property
    def creation_time(self) -> datetime:
        return from_millis(self.creation_time_ms)

    @property
    def last_ingestion_time(self) -> datetime:
        return from_millis(self.last_ingestion_time_ms)


# === Filter call records ===


@dataclass(slots=True, frozen=True)
class RawLogEvent:
    """One record returned by a filter call, before normalization."""

    event_id: str
    stream_name: str
    message: str
    timestamp_ms: int
    ingestion_time_ms: int


@dataclass(slots=True, frozen=True)
class FilterPage:
    events: list[RawLogEvent] = field(default_factory=list)
    next_token: str | None = None


# === Canonical event ===


@dataclass(slots=True, frozen=True)
class Event:
    """A normalized log event.

    `body` holds the parsed JSON object of the message, or
    `{"message": <raw text>}` when the message is not a JSON object. It is a
    read-only mapping.
    """

    id: str
    stream: str
    group: str
    ingest_time: datetime
    creation_time: datetime
    body: Mapping[str, Any] = field(hash=False)

    @property
    def message(self) -> Any:
        return self.body.get("message", "")

    @property
    def time_short(self) -> str:
        """Creation time in local time, e.g. `2024-03-01 13:23:37`."""
        return self.creation_time.astimezone().strftime(SHORT_TIME_FORMAT)

    def pretty_print(self) -> str:
        """Indented JSON of the full event."""
        data = {
            "id": self.id,
            "stream": self.stream,
            "group": self.group,
            "ingest_time": self.ingest_time.isoformat(),
            "creation_time": self.creation_time.isoformat(),
            "body": dict(self.body),
        }
        try:
            return json.dumps(data, indent=2, default=str)
        except ValueError:
            return repr(self)


# === Time window ===


@dataclass(slots=True, frozen=True)
class TimeWindow:
    """Inclusive time range; `end=None` means open (now, or keep following)."""

    start: datetime
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.end is not None and self.start > self.end:
            raise ValueError("window start must be <= window end")

    @property
    def start_ms(self) -> int:
        return to_millis(self.start)

    @property
    def end_ms(self) -> int | None:
        return None if self.end is None else to_millis(self.end)

    def resolved_end_ms(self, now: datetime) -> int:
        """End of the window in ms, using `now` when the window is open."""
        return to_millis(self.end if self.end is not None else now)

    def closed_at(self, now: datetime) -> TimeWindow:
        """Same window with an open end pinned to `now`."""
        if self.end is not None:
            return self
        return TimeWindow(start=min(self.start, now), end=now)
