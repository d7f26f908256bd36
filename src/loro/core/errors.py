"""Error taxonomy for group/stream resolution and event streaming.

Resolution errors (`GroupNotFound`, `AmbiguousGroup`, `NoStreamsFound`) are
raised before any streaming starts. `UpstreamFailure` wraps errors coming
from the remote log store. `StreamCanceled` marks an externally requested
stop and is not a failure.
"""

from __future__ import annotations


class LoroError(Exception):
    """Base class for all errors raised by loro."""


class GroupNotFound(LoroError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Could not find log group '{name}'")


class AmbiguousGroup(LoroError):
    """The name only matched other groups by prefix."""

    def __init__(self, name: str, suggestions: list[str]) -> None:
        self.name = name
        self.suggestions = list(suggestions)
        lines = "\n".join(self.suggestions)
        super().__init__(f"Could not find log group '{name}'.\n\nDid you mean:\n\n{lines}\n")


class NoStreamsFound(LoroError):
    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        if prefix:
            msg = f"No log streams found matching task prefix '{prefix}' in your time window."
        else:
            msg = "No log streams found in your time window."
        super().__init__(f"{msg}  Consider adjusting your time window with --since and/or --until")


class UpstreamFailure(LoroError):
    """The remote log store rejected or failed a call."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class StreamCanceled(LoroError):
    def __init__(self) -> None:
        super().__init__("event stream canceled")


class TimeParseError(LoroError, ValueError):
    def __init__(self, expr: str) -> None:
        self.expr = expr
        super().__init__(f"failed to parse time '{expr}'")
