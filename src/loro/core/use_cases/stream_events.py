"""Event streaming: paginated fetch, dedup and the follow loop.

`EventStreamEngine.start()` resolves the stream names (when a stream prefix is
configured) and spawns a producer task. The producer pages through the
store's filter call, drops events whose ID is already in the reader's
`EventCache`, and hands the rest to the consumer through a one-slot queue, so
it never runs ahead of a slow consumer.

The consumer iterates the returned `EventStream`. Iteration ends when the
producer task finishes; the reason is then available on `EventStream.error`:

- `None` after a complete, non-following run;
- `StreamCanceled` after `cancel()` (a clean stop);
- the store's exception after an upstream failure.

State machine
-------------
IDLE -> RESOLVING -> FETCHING -> FETCHING (more pages)
                              -> DONE (last page, not following)
                              -> WAITING -> FETCHING (last page, following)
                              -> FAILED | CANCELED
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum

from loro.core.cache import EventCache
from loro.core.config import ReaderConfig
from loro.core.errors import StreamCanceled
from loro.core.events import normalize_event
from loro.core.interfaces import ILogStore
from loro.core.models import Event, TimeWindow
from loro.core.use_cases.streams import select_streams

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    WAITING = "waiting"
    DONE = "done"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATES = frozenset({EngineState.DONE, EngineState.FAILED, EngineState.CANCELED})


# ---------------------------------------------------------------------------
# Consumer handle
# ---------------------------------------------------------------------------


class EventStream:
    """Live, async-iterable sequence of events fed by a producer task."""

    def __init__(
        self,
        engine: EventStreamEngine,
        queue: asyncio.Queue[Event],
        task: asyncio.Task[None],
    ) -> None:
        self._engine = engine
        self._queue = queue
        self._task = task

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> Event:
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._task.done():
            raise StopAsyncIteration

        getter = asyncio.ensure_future(self._queue.get())
        try:
            done, _ = await asyncio.wait({getter, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not getter.done():
                getter.cancel()

        if getter in done:
            return getter.result()
        # producer finished; drain what it left behind
        if not self._queue.empty():
            return self._queue.get_nowait()
        raise StopAsyncIteration

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def state(self) -> EngineState:
        return self._engine.state

    @property
    def closed(self) -> bool:
        """True once the producer has exited and no more events will arrive."""
        return self._task.done()

    @property
    def error(self) -> BaseException | None:
        """Why the stream ended; read it once iteration is over."""
        return self._engine.error

    def cancel(self) -> None:
        """Stop the producer at its next suspension point."""
        self._task.cancel()

    async def aclose(self) -> None:
        """Cancel the producer (if still running) and wait for it to exit."""
        self._task.cancel()
        await asyncio.wait({self._task})


# ---------------------------------------------------------------------------
# Producer
# ---------------------------------------------------------------------------


class EventStreamEngine:
    """
    Produces the deduplicated event sequence of one reader.

    The engine is single-use: `start()` may be called once. The dedup cache is
    shared with the owning reader and is only written by the producer task.
    """

    def __init__(
        self,
        store: ILogStore,
        config: ReaderConfig,
        cache: EventCache,
    ) -> None:
        self._store = store
        self._config = config
        self._cache = cache
        self.state = EngineState.IDLE
        self.error: BaseException | None = None

    def _set_state(self, state: EngineState) -> None:
        if state is not self.state:
            logger.debug("engine %s -> %s", self.state.value, state.value)
        self.state = state

    def effective_window(self, follow: bool, now: datetime) -> TimeWindow:
        """Configured window; an open end is pinned to `now` unless following."""
        window = self._config.window
        if follow or window.end is not None:
            return window
        return window.closed_at(now)

    async def _resolve_stream_names(self, window: TimeWindow, now: datetime) -> list[str] | None:
        if not self._config.stream_prefix:
            return None
        streams = await select_streams(
            self._store,
            self._config.group,
            window=window,
            prefix=self._config.stream_prefix,
            max_streams=self._config.max_streams,
            now=now,
        )
        return [s.name for s in streams]

    async def start(self, follow: bool, *, now: datetime | None = None) -> EventStream:
        """
        Resolve stream names and spawn the producer task.

        Raises
        ------
        GroupNotFound, AmbiguousGroup, NoStreamsFound
            Stream resolution failed; no task is started.
        RuntimeError
            The engine was already started.
        """
        if self.state is not EngineState.IDLE:
            raise RuntimeError("event stream engine can only be started once")

        now = now or datetime.now(timezone.utc)
        window = self.effective_window(follow, now)

        self._set_state(EngineState.RESOLVING)
        try:
            stream_names = await self._resolve_stream_names(window, now)
        except BaseException as e:
            self.error = e
            self._set_state(EngineState.FAILED)
            raise

        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=1)
        task = asyncio.create_task(self._pump(queue, window, stream_names, follow))
        task.add_done_callback(self._on_task_done)
        return EventStream(self, queue, task)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # a task canceled before its first step never enters `_pump`'s handlers
        if task.cancelled() and self.state not in TERMINAL_STATES:
            self.error = StreamCanceled()
            self._set_state(EngineState.CANCELED)

    async def _pump(
        self,
        queue: asyncio.Queue[Event],
        window: TimeWindow,
        stream_names: Sequence[str] | None,
        follow: bool,
    ) -> None:
        group = self._config.group
        next_token: str | None = None
        try:
            while True:
                self._set_state(EngineState.FETCHING)
                page = await self._store.filter_events(
                    group=group,
                    stream_names=stream_names,
                    start_ms=window.start_ms,
                    end_ms=window.end_ms,
                    next_token=next_token,
                )

                emitted = 0
                for raw in page.events:
                    if raw.event_id in self._cache:
                        continue
                    await queue.put(normalize_event(raw, group))
                    self._cache.add(raw.event_id)
                    emitted += 1
                logger.debug("page of %d event(s), %d new", len(page.events), emitted)

                if page.next_token is not None:
                    next_token = page.next_token
                    continue
                if not follow:
                    self._set_state(EngineState.DONE)
                    return

                # resume from the last token handed out; dedup drops repeats
                self._set_state(EngineState.WAITING)
                await asyncio.sleep(self._config.poll_interval_s)
        except asyncio.CancelledError:
            self.error = StreamCanceled()
            self._set_state(EngineState.CANCELED)
            raise
        except Exception as e:
            logger.warning("event stream for %r stopped: %s", group, e)
            self.error = e
            self._set_state(EngineState.FAILED)
