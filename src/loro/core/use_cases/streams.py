"""Time-windowed stream selection.

Two mutually exclusive modes:

- Prefix mode: the store filters by stream name prefix and returns streams in
  its own order, so every page has to be inspected (result sets are small).
- Recency mode: the store returns streams by last event time, descending, so
  paging stops at the first stream whose last ingestion predates the window.

Both modes cap the result at `max_streams` and return it sorted by last
ingestion time, most recent first.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from datetime import datetime, timezone

from loro.core.errors import NoStreamsFound
from loro.core.interfaces import ILogStore
from loro.core.models import LogStream, TimeWindow
from loro.core.use_cases.groups import resolve_group

logger = logging.getLogger(__name__)


def _in_window_by_prefix(stream: LogStream, start_ms: int, end_ms: int) -> bool:
    return (
        stream.creation_time_ms is not None
        and stream.creation_time_ms < end_ms
        and stream.last_ingestion_time_ms > start_ms
    )


async def _select_by_prefix(
    store: ILogStore,
    group: str,
    prefix: str,
    start_ms: int,
    end_ms: int,
    max_streams: int,
) -> list[LogStream]:
    streams: list[LogStream] = []
    async with aclosing(store.list_log_streams(group=group, prefix=prefix)) as pages:
        async for page in pages:
            for s in page:
                if _in_window_by_prefix(s, start_ms, end_ms):
                    streams.append(s)
                    if len(streams) >= max_streams:
                        return streams
    return streams


async def _select_by_recency(
    store: ILogStore,
    group: str,
    start_ms: int,
    end_ms: int,
    max_streams: int,
) -> list[LogStream]:
    streams: list[LogStream] = []
    async with aclosing(store.list_log_streams(group=group, order_by_last_event=True)) as pages:
        async for page in pages:
            for s in page:
                if s.creation_time_ms is not None and s.creation_time_ms > end_ms:
                    # created after the window closed
                    continue
                if s.last_ingestion_time_ms < start_ms:
                    # every remaining stream was ingested even earlier
                    logger.debug("stream %r predates window, stop paging", s.name)
                    return streams
                streams.append(s)
                if len(streams) >= max_streams:
                    return streams
    return streams


async def select_streams(
    store: ILogStore,
    group: str,
    *,
    window: TimeWindow,
    prefix: str = "",
    max_streams: int,
    now: datetime | None = None,
) -> list[LogStream]:
    """
    Return at most `max_streams` streams of `group` active within `window`.

    Parameters
    ----------
    store : ILogStore
        Paginated log store.
    group : str
        Exact group name; resolved first, so a missing group raises
        `GroupNotFound` / `AmbiguousGroup`.
    window : TimeWindow
        Time range; an open end is taken as `now`.
    prefix : str
        Stream name prefix; empty selects the most recently active streams.
    max_streams : int
        Upper bound on the number of returned streams.

    Raises
    ------
    NoStreamsFound
        If nothing in the group matches the window (and prefix).
    """
    await resolve_group(store, group)

    now = now or datetime.now(timezone.utc)
    start_ms = window.start_ms
    end_ms = window.resolved_end_ms(now)

    if prefix:
        streams = await _select_by_prefix(store, group, prefix, start_ms, end_ms, max_streams)
    else:
        streams = await _select_by_recency(store, group, start_ms, end_ms, max_streams)

    streams.sort(key=lambda s: s.last_ingestion_time_ms, reverse=True)
    logger.debug("selected %d stream(s) in %r (prefix=%r)", len(streams), group, prefix)

    if not streams:
        raise NoStreamsFound(prefix)
    return streams
