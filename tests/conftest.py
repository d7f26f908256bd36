from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import pytest

from loro.core.models import FilterPage, LogGroup, LogStream, RawLogEvent, TimeWindow


def raw(event_id: str, message: str = "hello", *, stream: str = "app/1", ts: int = 1_000) -> RawLogEvent:
    return RawLogEvent(
        event_id=event_id,
        stream_name=stream,
        message=message,
        timestamp_ms=ts,
        ingestion_time_ms=ts + 5,
    )


def ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class FakeLogStore:
    """In-memory paginated store recording every call."""

    def __init__(
        self,
        *,
        groups: list[LogGroup] | None = None,
        streams: list[LogStream] | None = None,
        pages: dict[str | None, FilterPage] | None = None,
        page_size: int = 50,
    ) -> None:
        self.groups = groups if groups is not None else [LogGroup("/app/web", 1)]
        self.streams = streams or []
        self.pages = pages or {}
        self.page_size = page_size
        self.filter_error: Exception | None = None
        self.filter_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []
        self.stream_pages_served = 0
        self.closed = False

    async def list_log_groups(self, *, prefix: str):
        matches = [g for g in self.groups if g.name.startswith(prefix)]
        for i in range(0, len(matches), self.page_size):
            yield matches[i : i + self.page_size]

    async def list_log_streams(self, *, group: str, prefix: str | None = None, order_by_last_event: bool = False):
        self.stream_calls.append({"group": group, "prefix": prefix, "order_by_last_event": order_by_last_event})
        streams = list(self.streams)
        if prefix:
            streams = [s for s in streams if s.name.startswith(prefix)]
        elif order_by_last_event:
            streams.sort(key=lambda s: s.last_ingestion_time_ms, reverse=True)
        for i in range(0, len(streams), self.page_size):
            self.stream_pages_served += 1
            yield streams[i : i + self.page_size]

    async def filter_events(
        self,
        *,
        group: str,
        stream_names: Sequence[str] | None,
        start_ms: int,
        end_ms: int | None,
        next_token: str | None = None,
    ) -> FilterPage:
        self.filter_calls.append(
            {
                "group": group,
                "stream_names": None if stream_names is None else list(stream_names),
                "start_ms": start_ms,
                "end_ms": end_ms,
                "next_token": next_token,
            }
        )
        if self.filter_error is not None:
            raise self.filter_error
        return self.pages.get(next_token, FilterPage())

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> FakeLogStore:
    return FakeLogStore()


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow(start=ms(500), end=ms(10_000))
