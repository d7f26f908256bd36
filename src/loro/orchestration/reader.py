"""Log reader: the entry point tying group resolution, stream selection and
event streaming together for one group and time window.

This module provides two layers:

1) `LogReader`:
   - Depends ONLY on the `ILogStore` interface.
   - Owns the dedup cache shared by every event stream it starts.
   - Does NOT manage the store's lifecycle.

2) `open_reader(...)` (convenience wrapper):
   - Wires the concrete `CloudWatchLogStore` for CLI / script usage and
     closes it on exit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from loro.core.cache import EventCache
from loro.core.config import ReaderConfig, StoreConfig
from loro.core.interfaces import ILogStore
from loro.core.models import LogGroup, LogStream
from loro.core.use_cases.groups import list_groups, resolve_group
from loro.core.use_cases.stream_events import EventStream, EventStreamEngine
from loro.core.use_cases.streams import select_streams

logger = logging.getLogger(__name__)


class LogReader:
    """
    Reader for the logs of one group matching a stream prefix and time window.

    Build it with `await LogReader.create(...)` to check that the group exists
    up front; the plain constructor does no I/O.
    """

    def __init__(self, store: ILogStore, config: ReaderConfig) -> None:
        self._store = store
        self.config = config
        self.cache = EventCache(config.cache_size)

    @classmethod
    async def create(cls, store: ILogStore, config: ReaderConfig) -> LogReader:
        """Build a reader and resolve its group (raises if it does not exist)."""
        reader = cls(store, config)
        await reader.get_group()
        return reader

    async def list_groups(self) -> list[LogGroup]:
        """Every group whose name starts with the configured group name."""
        return await list_groups(self._store, self.config.group)

    async def get_group(self) -> LogGroup:
        """The group named exactly as configured."""
        return await resolve_group(self._store, self.config.group)

    async def list_streams(self, *, now: datetime | None = None) -> list[LogStream]:
        """At most `max_streams` streams active in the window, most recent first."""
        return await select_streams(
            self._store,
            self.config.group,
            window=self.config.window,
            prefix=self.config.stream_prefix,
            max_streams=self.config.max_streams,
            now=now,
        )

    async def stream_events(self, follow: bool = False, *, now: datetime | None = None) -> EventStream:
        """
        Start streaming events.

        Stream resolution errors are raised here; fetch errors end the
        returned stream and are exposed on `EventStream.error`.
        """
        engine = EventStreamEngine(self._store, self.config, self.cache)
        logger.debug(
            "streaming %r (prefix=%r, follow=%s)", self.config.group, self.config.stream_prefix, follow
        )
        return await engine.start(follow, now=now)


@asynccontextmanager
async def open_reader(
    config: ReaderConfig,
    store_config: StoreConfig | None = None,
    *,
    check_group: bool = True,
) -> AsyncIterator[LogReader]:
    """Open a CloudWatch-backed reader for `config`; the client is closed on exit.

    With `check_group=False` the group is not checked (e.g. to list groups
    by prefix).
    """
    from loro.clients.cloudwatch import CloudWatchLogStore

    store = CloudWatchLogStore(store_config or StoreConfig())
    try:
        if check_group:
            yield await LogReader.create(store, config)
        else:
            yield LogReader(store, config)
    finally:
        await store.aclose()
