from __future__ import annotations

from .core.config import ReaderConfig, StoreConfig
from .core.errors import (
    AmbiguousGroup,
    GroupNotFound,
    LoroError,
    NoStreamsFound,
    StreamCanceled,
    UpstreamFailure,
)
from .core.models import Event, LogGroup, LogStream, TimeWindow
from .orchestration.reader import LogReader, open_reader

__all__ = [
    "LogReader",
    "open_reader",
    "ReaderConfig",
    "StoreConfig",
    "Event",
    "LogGroup",
    "LogStream",
    "TimeWindow",
    "LoroError",
    "GroupNotFound",
    "AmbiguousGroup",
    "NoStreamsFound",
    "UpstreamFailure",
    "StreamCanceled",
]
