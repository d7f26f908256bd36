from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from typing import Protocol, runtime_checkable

from loro.core.models import FilterPage, LogGroup, LogStream


# ---------------------------------------------------------------------------
# ILogStore
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogStore(Protocol):
    """
    Abstract paginated log store.

    Domain expectations:
    - Listing calls yield one list per page so callers can stop paging early.
    - Timestamps are milliseconds since the epoch.
    - Nullable ingestion times are already normalized to 0.
    - It hides the underlying SDK / HTTP technology.
    """

    def list_log_groups(self, *, prefix: str) -> AsyncGenerator[list[LogGroup], None]:
        """
        Yield pages of groups whose name starts with `prefix`, in store order.
        """
        ...

    def list_log_streams(
        self,
        *,
        group: str,
        prefix: str | None = None,
        order_by_last_event: bool = False,
    ) -> AsyncGenerator[list[LogStream], None]:
        """
        Yield pages of streams in `group`.

        Either filtered by name `prefix` (store order), or, with
        `order_by_last_event`, sorted by last event time descending.
        """
        ...

    async def filter_events(
        self,
        *,
        group: str,
        stream_names: Sequence[str] | None,
        start_ms: int,
        end_ms: int | None,
        next_token: str | None = None,
    ) -> FilterPage:
        """
        Return one page of events interleaved across streams.

        Implementations:
        - CloudWatch Logs (`CloudWatchLogStore`)
        - In-memory store for testing
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying client."""
        ...
