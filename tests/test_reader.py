import pytest
from conftest import FakeLogStore, ms, raw

from loro.core.config import ReaderConfig
from loro.core.errors import AmbiguousGroup, GroupNotFound
from loro.core.models import FilterPage, LogGroup, LogStream, TimeWindow
from loro.orchestration.reader import LogReader


def _config(group: str = "/app/web", **kwargs) -> ReaderConfig:
    return ReaderConfig(group=group, window=TimeWindow(start=ms(500), end=ms(10_000)), **kwargs)


@pytest.mark.asyncio
async def test_create_fails_fast_for_missing_group(store: FakeLogStore) -> None:
    with pytest.raises(GroupNotFound):
        await LogReader.create(store, _config("/nope"))


@pytest.mark.asyncio
async def test_create_fails_fast_for_ambiguous_group() -> None:
    store = FakeLogStore(groups=[LogGroup("/app/web-1"), LogGroup("/app/web-2")])

    with pytest.raises(AmbiguousGroup):
        await LogReader.create(store, _config("/app/web"))


@pytest.mark.asyncio
async def test_events_are_emitted_once_per_reader(store: FakeLogStore) -> None:
    store.pages = {None: FilterPage([raw("e1"), raw("e2")])}
    reader = await LogReader.create(store, _config())

    first = [ev.id async for ev in await reader.stream_events()]
    store.pages = {None: FilterPage([raw("e2"), raw("e3")])}
    second = [ev.id async for ev in await reader.stream_events()]

    assert first == ["e1", "e2"]
    assert second == ["e3"]


@pytest.mark.asyncio
async def test_list_streams_uses_config() -> None:
    store = FakeLogStore(
        groups=[LogGroup("/app/web")],
        streams=[LogStream("task/1", 100, 900), LogStream("task/2", 100, 5_000), LogStream("x", 100, 9_000)],
    )
    reader = LogReader(store, _config(stream_prefix="task/", max_streams=1))

    streams = await reader.list_streams()

    assert [s.name for s in streams] == ["task/1"]


@pytest.mark.asyncio
async def test_list_groups_returns_all_prefix_matches() -> None:
    store = FakeLogStore(groups=[LogGroup("/app/web"), LogGroup("/app/web-admin"), LogGroup("/db")])
    reader = LogReader(store, _config("/app/"))

    groups = await reader.list_groups()

    assert [g.name for g in groups] == ["/app/web", "/app/web-admin"]


def test_config_rejects_non_positive_max_streams() -> None:
    with pytest.raises(ValueError):
        _config(max_streams=0)


def test_window_rejects_start_after_end() -> None:
    with pytest.raises(ValueError):
        TimeWindow(start=ms(2_000), end=ms(1_000))
