import asyncio

import pytest
from conftest import FakeLogStore, ms, raw

from loro.core.cache import EventCache
from loro.core.config import ReaderConfig
from loro.core.errors import NoStreamsFound, StreamCanceled, UpstreamFailure
from loro.core.models import FilterPage, LogGroup, LogStream, TimeWindow
from loro.core.use_cases.stream_events import EngineState, EventStreamEngine

GROUP = "/app/web"


def _engine(store: FakeLogStore, *, prefix: str = "", window: TimeWindow | None = None, cache=None):
    config = ReaderConfig(
        group=GROUP,
        window=window or TimeWindow(start=ms(500), end=ms(10_000)),
        stream_prefix=prefix,
        poll_interval_s=0.01,
    )
    return EventStreamEngine(store, config, cache if cache is not None else EventCache())


async def _collect(stream) -> list[str]:
    return [ev.id async for ev in stream]


@pytest.mark.asyncio
async def test_non_follow_pages_until_exhausted() -> None:
    store = FakeLogStore(
        pages={
            None: FilterPage([raw("e1"), raw("e2")], next_token="t1"),
            "t1": FilterPage([raw("e3")], next_token="t2"),
            "t2": FilterPage([raw("e4")]),
        }
    )
    engine = _engine(store)

    stream = await engine.start(follow=False)
    ids = await _collect(stream)

    assert ids == ["e1", "e2", "e3", "e4"]
    assert stream.error is None
    assert stream.closed
    assert engine.state is EngineState.DONE
    assert [c["next_token"] for c in store.filter_calls] == [None, "t1", "t2"]
    assert all(c["stream_names"] is None for c in store.filter_calls)


@pytest.mark.asyncio
async def test_overlapping_pages_are_deduplicated() -> None:
    store = FakeLogStore(
        pages={
            None: FilterPage([raw("e1"), raw("e2")], next_token="t1"),
            "t1": FilterPage([raw("e2"), raw("e1"), raw("e3")]),
        }
    )

    stream = await _engine(store).start(follow=False)

    assert await _collect(stream) == ["e1", "e2", "e3"]


@pytest.mark.asyncio
async def test_page_order_is_kept() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("z", ts=3), raw("a", ts=1), raw("m", ts=2)])})

    stream = await _engine(store).start(follow=False)

    assert await _collect(stream) == ["z", "a", "m"]


@pytest.mark.asyncio
async def test_events_are_normalized() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1", '{"level": "warn"}', stream="app/9")])})

    stream = await _engine(store).start(follow=False)
    events = [ev async for ev in stream]

    assert events[0].group == GROUP
    assert events[0].stream == "app/9"
    assert events[0].body == {"level": "warn"}


@pytest.mark.asyncio
async def test_open_window_is_pinned_to_now_when_not_following() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1")])})
    engine = _engine(store, window=TimeWindow(start=ms(500)))

    stream = await engine.start(follow=False, now=ms(9_999))
    await _collect(stream)

    assert store.filter_calls[0]["start_ms"] == 500
    assert store.filter_calls[0]["end_ms"] == 9_999


@pytest.mark.asyncio
async def test_upstream_error_ends_stream_after_emitted_events() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1"), raw("e2")], next_token="t1")})
    failure = UpstreamFailure("FilterLogEvents", "ThrottlingException: Rate exceeded")
    fetch_page = store.filter_events

    async def failing_second_page(**kwargs):
        if kwargs["next_token"] == "t1":
            raise failure
        return await fetch_page(**kwargs)

    store.filter_events = failing_second_page
    engine = _engine(store)
    stream = await engine.start(follow=False)

    ids = await _collect(stream)

    assert ids == ["e1", "e2"]
    assert stream.error is failure
    assert engine.state is EngineState.FAILED


@pytest.mark.asyncio
async def test_stream_prefix_restricts_filter_to_selected_streams() -> None:
    store = FakeLogStore(
        groups=[LogGroup(GROUP, 1)],
        streams=[
            LogStream("task/a", 100, 6_000),
            LogStream("task/b", 100, 9_000),
            LogStream("other", 100, 9_500),
        ],
        pages={None: FilterPage([raw("e1", stream="task/b")])},
    )

    stream = await _engine(store, prefix="task/").start(follow=False)
    await _collect(stream)

    assert store.filter_calls[0]["stream_names"] == ["task/b", "task/a"]
    assert len(store.stream_calls) == 1


@pytest.mark.asyncio
async def test_stream_resolution_fails_fast() -> None:
    store = FakeLogStore(groups=[LogGroup(GROUP, 1)], streams=[])
    engine = _engine(store, prefix="task/")

    with pytest.raises(NoStreamsFound):
        await engine.start(follow=False)

    assert engine.state is EngineState.FAILED
    assert store.filter_calls == []


@pytest.mark.asyncio
async def test_engine_starts_once() -> None:
    engine = _engine(FakeLogStore())
    stream = await engine.start(follow=False)
    await _collect(stream)

    with pytest.raises(RuntimeError):
        await engine.start(follow=False)


@pytest.mark.asyncio
async def test_producer_waits_for_slow_consumer() -> None:
    store = FakeLogStore(
        pages={
            None: FilterPage([raw("e1"), raw("e2"), raw("e3")], next_token="t1"),
            "t1": FilterPage([raw("e4")]),
        }
    )
    stream = await _engine(store).start(follow=False)

    for _ in range(10):
        await asyncio.sleep(0)

    assert len(store.filter_calls) == 1
    assert not stream.closed
    assert await _collect(stream) == ["e1", "e2", "e3", "e4"]


# ---------------------------------------------------------------------------
# Follow mode
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_follow_surfaces_only_new_events() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1"), raw("e2")])})
    engine = _engine(store, window=TimeWindow(start=ms(500)))
    stream = await engine.start(follow=True)

    first = [await stream.__anext__(), await stream.__anext__()]
    store.pages[None] = FilterPage([raw("e1"), raw("e2"), raw("e3")])
    third = await asyncio.wait_for(stream.__anext__(), timeout=2)
    await stream.aclose()

    assert [ev.id for ev in first] == ["e1", "e2"]
    assert third.id == "e3"
    assert all(c["end_ms"] is None for c in store.filter_calls)
    assert all(c["start_ms"] == 500 for c in store.filter_calls)


@pytest.mark.asyncio
async def test_follow_resumes_from_last_token() -> None:
    store = FakeLogStore(
        pages={
            None: FilterPage([raw("e1")], next_token="t1"),
            "t1": FilterPage([raw("e2")]),
        }
    )
    stream = await _engine(store, window=TimeWindow(start=ms(500))).start(follow=True)

    await stream.__anext__()
    await stream.__anext__()
    while len(store.filter_calls) < 4:
        await asyncio.sleep(0.01)
    await stream.aclose()

    tokens = [c["next_token"] for c in store.filter_calls]
    assert tokens[:2] == [None, "t1"]
    assert set(tokens[2:]) == {"t1"}


@pytest.mark.asyncio
async def test_cancel_while_following_closes_promptly() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1")])})
    engine = _engine(store, window=TimeWindow(start=ms(500)))
    stream = await engine.start(follow=True)
    assert (await stream.__anext__()).id == "e1"

    stream.cancel()
    rest = await asyncio.wait_for(_collect(stream), timeout=1)

    assert rest == []
    assert stream.closed
    assert isinstance(stream.error, StreamCanceled)
    assert engine.state is EngineState.CANCELED


@pytest.mark.asyncio
async def test_cancel_before_first_fetch_reports_cancellation() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1")])})
    engine = _engine(store, window=TimeWindow(start=ms(500)))
    stream = await engine.start(follow=True)

    stream.cancel()
    rest = await asyncio.wait_for(_collect(stream), timeout=1)

    assert rest == []
    assert store.filter_calls == []
    assert isinstance(stream.error, StreamCanceled)
    assert engine.state is EngineState.CANCELED


@pytest.mark.asyncio
async def test_aclose_right_after_start_reports_cancellation() -> None:
    engine = _engine(FakeLogStore(), window=TimeWindow(start=ms(500)))
    stream = await engine.start(follow=True)

    await stream.aclose()

    assert stream.closed
    assert isinstance(stream.error, StreamCanceled)
    assert engine.state is EngineState.CANCELED


@pytest.mark.asyncio
async def test_cancel_interrupts_pending_fetch() -> None:
    store = FakeLogStore()
    started = asyncio.Event()

    async def hanging_filter(**kwargs):
        started.set()
        await asyncio.sleep(3600)

    store.filter_events = hanging_filter
    stream = await _engine(store).start(follow=True)
    await started.wait()

    stream.cancel()
    rest = await asyncio.wait_for(_collect(stream), timeout=1)

    assert rest == []
    assert isinstance(stream.error, StreamCanceled)


@pytest.mark.asyncio
async def test_context_manager_stops_producer() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1")])})

    async with await _engine(store, window=TimeWindow(start=ms(500))).start(follow=True) as stream:
        await stream.__anext__()

    assert stream.closed
    assert isinstance(stream.error, StreamCanceled)


@pytest.mark.asyncio
async def test_cancel_after_completion_keeps_success() -> None:
    store = FakeLogStore(pages={None: FilterPage([raw("e1")])})
    stream = await _engine(store).start(follow=False)
    await _collect(stream)

    stream.cancel()

    assert stream.error is None
