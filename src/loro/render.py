"""Rendering of events for terminal output (rich markup)."""

from __future__ import annotations

from string import Formatter
from typing import Any

from rich.markup import escape

from loro.core.models import Event

DEFAULT_FORMAT = "[ {stream} ] {time_short} - {message}"

FIELDS = frozenset({"stream", "group", "id", "time_short", "message", "event"})

MISSING_VALUE = "<no value>"

PALETTE = (
    "red",
    "green",
    "yellow",
    "blue",
    "magenta",
    "cyan",
    "bright_red",
    "bright_green",
    "bright_yellow",
    "bright_blue",
    "bright_magenta",
    "bright_cyan",
)


class StreamColors:
    """Stable color per stream name, assigned in order of first appearance."""

    def __init__(self, palette: tuple[str, ...] = PALETTE) -> None:
        self._palette = palette
        self._assigned: dict[str, str] = {}

    def __call__(self, name: str) -> str:
        color = self._assigned.get(name)
        if color is None:
            color = self._palette[len(self._assigned) % len(self._palette)]
            self._assigned[name] = color
        return color


def _escape_value(v: Any) -> Any:
    return escape(v) if isinstance(v, str) else v


class _BodyFields(dict):
    """Body fields for templates; a missing key renders as `<no value>`."""

    def __missing__(self, key: str) -> str:
        return MISSING_VALUE


class EventFormatter:
    """Format events with a `str.format` template.

    Available fields: `stream` (colored), `group`, `id`, `time_short`,
    `message` and `event` (the parsed body, e.g. `{event[level]}`).
    With `raw=True` the whole event is printed as indented JSON.
    """

    def __init__(self, template: str = DEFAULT_FORMAT, *, raw: bool = False, color: bool = True) -> None:
        self.template = template
        self.raw = raw
        self.color = color
        self._colors = StreamColors()
        if not raw:
            self._check_template(template)

    @staticmethod
    def _check_template(template: str) -> None:
        try:
            names = [field for _, field, _, _ in Formatter().parse(template) if field is not None]
        except ValueError as e:
            raise ValueError(f"invalid format template: {e}") from e
        for name in names:
            root = name.split(".", 1)[0].split("[", 1)[0]
            if root not in FIELDS:
                raise ValueError(f"unknown field '{root}' in format template")

    def format(self, event: Event) -> str:
        """Return the rich-markup line for `event`."""
        if self.raw:
            return escape(event.pretty_print())

        stream = escape(event.stream)
        if self.color:
            color = self._colors(event.stream)
            stream = f"[{color}]{stream}[/{color}]"
        return self.template.format(
            stream=stream,
            group=escape(event.group),
            id=event.id,
            time_short=event.time_short,
            message=_escape_value(event.message),
            event=_BodyFields((k, _escape_value(v)) for k, v in event.body.items()),
        )
