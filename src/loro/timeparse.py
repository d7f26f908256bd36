"""Parsing of `--since` / `--until` time expressions.

Accepted forms:
- `all`: the Unix epoch (fetch everything)
- `now`: the reference time
- relative durations counted back from now, e.g. `42m`, `1h30m`, `2d`, `90s`
- absolute ISO-8601 timestamps, e.g. `2013-01-02T13:23:37`; naive values are
  taken as local time
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from loro.core.errors import TimeParseError
from loro.core.models import EPOCH

_UNITS: dict[str, timedelta] = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}

_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d|w)")
_DURATION = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|s|m|h|d|w))+")


def parse_duration(expr: str) -> timedelta:
    """Parse a compound duration like `1h30m`."""
    text = expr.strip().lower()
    if not _DURATION.fullmatch(text):
        raise TimeParseError(expr)
    total = timedelta()
    for amount, unit in _PART.findall(text):
        total += float(amount) * _UNITS[unit]
    return total


def parse_time(expr: str, now: datetime | None = None) -> datetime:
    """Resolve a time expression to an aware datetime relative to `now`."""
    now = now or datetime.now(timezone.utc)
    text = expr.strip()
    lowered = text.lower()

    if lowered == "all":
        return EPOCH
    if lowered == "now":
        return now
    if _DURATION.fullmatch(lowered):
        return now - parse_duration(lowered)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise TimeParseError(expr) from e
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
