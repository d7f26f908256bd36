"""Core data models, configuration, errors and use cases.

This package provides:
- Data models (LogGroup, LogStream, RawLogEvent, Event, TimeWindow)
- Configuration classes (ReaderConfig, StoreConfig)
- The ILogStore interface and the error taxonomy
"""

from loro.core.config import ReaderConfig, StoreConfig
from loro.core.interfaces import ILogStore
from loro.core.models import Event, FilterPage, LogGroup, LogStream, RawLogEvent, TimeWindow

__all__ = [
    "ReaderConfig",
    "StoreConfig",
    "ILogStore",
    "Event",
    "FilterPage",
    "LogGroup",
    "LogStream",
    "RawLogEvent",
    "TimeWindow",
]
