import asyncio
import contextlib
import logging
import signal
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from loro.constants import MAX_STREAMS
from loro.core.config import ReaderConfig, StoreConfig
from loro.core.errors import LoroError, StreamCanceled, TimeParseError, UpstreamFailure
from loro.core.models import EPOCH, SHORT_TIME_FORMAT, TimeWindow, from_millis
from loro.core.use_cases.stream_events import EventStream
from loro.orchestration.reader import open_reader
from loro.render import DEFAULT_FORMAT, EventFormatter
from loro.timeparse import parse_time

console = Console(highlight=False)
err_console = Console(stderr=True)

# warn when a non-following fetch has been silent this long
SLOW_WARNING_S = 7.0

SINCE_HELP = (
    "Fetch logs since timestamp (e.g. 2013-01-02T13:23:37), relative "
    "(e.g. 42m for 42 minutes), or all for all logs"
)
UNTIL_HELP = "Fetch logs until timestamp (e.g. 2013-01-02T13:23:37) or relative (e.g. 42m for 42 minutes)"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    logging.getLogger("loro").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _parse(expr: str, now: datetime, param: str) -> datetime:
    try:
        return parse_time(expr, now)
    except TimeParseError as e:
        raise click.BadParameter(str(e), param_hint=param) from e


def _window(since: str, until: str | None, now: datetime) -> TimeWindow:
    start = _parse(since, now, "--since")
    end = None if until is None else _parse(until, now, "--until")
    try:
        return TimeWindow(start=start, end=end)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--since/--until") from e


def _ms(ms: int | None) -> str:
    if not ms:
        return "-"
    return from_millis(ms).astimezone().strftime(SHORT_TIME_FORMAT)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--region", default=None, help="AWS region (defaults to the AWS environment)")
@click.option("--profile", default=None, help="AWS profile name")
@click.option("--endpoint-url", default=None, help="Override the CloudWatch Logs endpoint")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, region: str | None, profile: str | None, endpoint_url: str | None, verbose: bool) -> None:
    """loro: Loro Only Repeats Output. Reads and tails CloudWatch Logs."""
    _setup_logging(verbose)
    ctx.obj = StoreConfig(region=region, profile=profile, endpoint_url=endpoint_url)


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------


async def _print_events(stream: EventStream, formatter: EventFormatter, follow: bool) -> None:
    events = aiter(stream)
    while True:
        pending = asyncio.ensure_future(anext(events))
        while True:
            done, _ = await asyncio.wait({pending}, timeout=SLOW_WARNING_S)
            if done:
                break
            if not follow:
                err_console.print("logs are taking a while to load... possibly try a smaller time window")
        try:
            event = pending.result()
        except StopAsyncIteration:
            return
        console.print(formatter.format(event), soft_wrap=True)


async def _get(config: ReaderConfig, store_config: StoreConfig, formatter: EventFormatter, follow: bool) -> None:
    async with open_reader(config, store_config) as reader:
        stream = await reader.stream_events(follow)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # not available on Windows event loops
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stream.cancel)

        async with stream:
            await _print_events(stream, formatter, follow)

    err = stream.error
    if err is None or isinstance(err, StreamCanceled):
        return
    if isinstance(err, LoroError):
        raise err
    raise UpstreamFailure("FilterLogEvents", f"{type(err).__name__}: {err}") from err


@cli.command("get")
@click.argument("group", default="/")
@click.option("-p", "--prefix", default="", help="Stream Name or prefix")
@click.option("-f", "--follow", is_flag=True, help="Follow log streams")
@click.option(
    "-o", "--format", "event_format", default=DEFAULT_FORMAT, show_default=True,
    help="Format template for displaying log events",
)
@click.option("-s", "--since", default="1h", show_default=True, help=SINCE_HELP)
@click.option("-u", "--until", default=None, help=f"{UNTIL_HELP}  [default: now]")
@click.option(
    "-m", "--max-streams", type=click.IntRange(min=1), default=MAX_STREAMS, show_default=True,
    help="Maximum number of streams to fetch from (for prefix search)",
)
@click.option("-r", "--raw", is_flag=True, help="Raw JSON output")
@click.pass_obj
def get_cmd(
    store_config: StoreConfig,
    group: str,
    prefix: str,
    follow: bool,
    event_format: str,
    since: str,
    until: str | None,
    max_streams: int,
    raw: bool,
) -> None:
    """Get logs from a group or stream."""
    if until is not None and follow:
        raise click.UsageError("can't set both --until and --follow")

    config = ReaderConfig(
        group=group,
        window=_window(since, until, datetime.now(timezone.utc)),
        stream_prefix=prefix,
        max_streams=max_streams,
    )
    try:
        formatter = EventFormatter(event_format, raw=raw)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--format") from e

    try:
        asyncio.run(_get(config, store_config, formatter, follow))
    except LoroError as e:
        raise click.ClickException(str(e)) from e


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@cli.group("list")
def list_cmd() -> None:
    """List groups or streams."""


@list_cmd.command("groups")
@click.argument("group", default="/")
@click.pass_obj
def list_groups_cmd(store_config: StoreConfig, group: str) -> None:
    """List groups matching a name prefix."""
    config = ReaderConfig(group=group, window=TimeWindow(start=EPOCH))

    async def run() -> list:
        async with open_reader(config, store_config, check_group=False) as reader:
            return await reader.list_groups()

    try:
        groups = asyncio.run(run())
    except LoroError as e:
        raise click.ClickException(str(e)) from e

    table = Table("Group", "Creation", box=None, header_style="bold")
    for g in groups:
        table.add_row(g.name, _ms(g.creation_time_ms))
    console.print(table)


@list_cmd.command("streams")
@click.argument("group", default="/")
@click.option("-p", "--prefix", default="", help="Stream Name or prefix")
@click.option("-s", "--since", default="1h", show_default=True, help=SINCE_HELP)
@click.option("-u", "--until", default="now", show_default=True, help=UNTIL_HELP)
@click.option(
    "-m", "--max-streams", type=click.IntRange(min=1), default=50, show_default=True,
    help="Maximum number of streams to fetch from (for prefix search)",
)
@click.pass_obj
def list_streams_cmd(
    store_config: StoreConfig,
    group: str,
    prefix: str,
    since: str,
    until: str,
    max_streams: int,
) -> None:
    """List streams of a group active in the time window."""
    config = ReaderConfig(
        group=group,
        window=_window(since, until, datetime.now(timezone.utc)),
        stream_prefix=prefix,
        max_streams=max_streams,
    )

    async def run() -> list:
        async with open_reader(config, store_config, check_group=False) as reader:
            return await reader.list_streams()

    try:
        streams = asyncio.run(run())
    except LoroError as e:
        raise click.ClickException(str(e)) from e

    table = Table("Stream", "Last Event", "Creation", box=None, header_style="bold")
    for s in streams:
        table.add_row(s.name, _ms(s.last_ingestion_time_ms), _ms(s.creation_time_ms))
    console.print(table)


def main() -> None:
    cli(auto_envvar_prefix="LORO")


if __name__ == "__main__":
    main()
