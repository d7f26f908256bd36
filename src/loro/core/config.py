from __future__ import annotations

from dataclasses import dataclass

from loro.constants import MAX_EVENTS_PER_CALL, MAX_STREAMS, POLL_INTERVAL_S, STORE_MAX_ATTEMPTS
from loro.core.models import TimeWindow


@dataclass(frozen=True)
class ReaderConfig:
    """Configuration for a log reader bound to one group and time window."""

    group: str
    window: TimeWindow
    stream_prefix: str = ""
    max_streams: int = MAX_STREAMS
    poll_interval_s: float = POLL_INTERVAL_S
    cache_size: int = MAX_EVENTS_PER_CALL

    def __post_init__(self) -> None:
        if self.max_streams < 1:
            raise ValueError("max_streams must be >= 1")
        if self.cache_size < 1:
            raise ValueError("cache_size must be >= 1")


@dataclass(frozen=True)
class StoreConfig:
    """Configuration for the CloudWatch Logs client."""

    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None
    max_attempts: int = STORE_MAX_ATTEMPTS
    timeout_s: int = 20
