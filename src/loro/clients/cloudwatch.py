"""CloudWatch Logs implementation of `ILogStore`.

This module provides:
- `CloudWatchLogStore`: an async client built on aioboto3 with a bounded
  transport-level retry budget
- Helpers mapping CloudWatch Logs API dicts into loro models

botocore errors are re-raised as `UpstreamFailure`, chained to the botocore error.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import AsyncExitStack
from typing import Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from loro.core.config import StoreConfig
from loro.core.errors import UpstreamFailure
from loro.core.models import FilterPage, LogGroup, LogStream, RawLogEvent

logger = logging.getLogger(__name__)


def to_log_group(g: Mapping[str, Any]) -> LogGroup:
    return LogGroup(name=g["logGroupName"], creation_time_ms=int(g.get("creationTime") or 0))


def to_log_stream(s: Mapping[str, Any]) -> LogStream:
    """Map a stream description; a missing last ingestion time becomes 0."""
    created = s.get("creationTime")
    return LogStream(
        name=s["logStreamName"],
        creation_time_ms=None if created is None else int(created),
        last_ingestion_time_ms=int(s.get("lastIngestionTime") or 0),
    )


def to_raw_event(e: Mapping[str, Any]) -> RawLogEvent:
    return RawLogEvent(
        event_id=e["eventId"],
        stream_name=e.get("logStreamName") or "",
        message=e.get("message") or "",
        timestamp_ms=int(e.get("timestamp") or 0),
        ingestion_time_ms=int(e.get("ingestionTime") or 0),
    )


def _upstream(operation: str, err: Exception) -> UpstreamFailure:
    if isinstance(err, ClientError):
        info = err.response.get("Error", {})
        msg = f"{info.get('Code', 'ClientError')}: {info.get('Message', err)}"
    else:
        msg = str(err)
    logger.debug("%s failed", operation, exc_info=err)
    return UpstreamFailure(operation, msg)


class CloudWatchLogStore:
    """Async CloudWatch Logs client.

    Parameters
    ----------
    config : StoreConfig
        Region / profile / endpoint overrides, retry budget and timeouts.
    """

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self._session = aioboto3.Session(profile_name=config.profile, region_name=config.region)
        self._stack = AsyncExitStack()
        self._client: Any = None

    async def _logs(self) -> Any:
        if self._client is None:
            botocore_config = Config(
                retries={"max_attempts": self.config.max_attempts, "mode": "standard"},
                connect_timeout=self.config.timeout_s,
                read_timeout=self.config.timeout_s,
            )
            self._client = await self._stack.enter_async_context(
                self._session.client("logs", endpoint_url=self.config.endpoint_url, config=botocore_config)
            )
        return self._client

    async def list_log_groups(self, *, prefix: str) -> AsyncGenerator[list[LogGroup], None]:
        """Yield pages of DescribeLogGroups for `prefix`."""
        client = await self._logs()
        params: dict[str, Any] = {}
        if prefix:
            params["logGroupNamePrefix"] = prefix
        try:
            async for page in client.get_paginator("describe_log_groups").paginate(**params):
                yield [to_log_group(g) for g in page.get("logGroups", [])]
        except (BotoCoreError, ClientError) as e:
            raise _upstream("DescribeLogGroups", e) from e

    async def list_log_streams(
        self,
        *,
        group: str,
        prefix: str | None = None,
        order_by_last_event: bool = False,
    ) -> AsyncGenerator[list[LogStream], None]:
        """Yield pages of DescribeLogStreams, by name prefix or by recency."""
        client = await self._logs()
        params: dict[str, Any] = {"logGroupName": group}
        if prefix:
            params["logStreamNamePrefix"] = prefix
        elif order_by_last_event:
            params["orderBy"] = "LastEventTime"
            params["descending"] = True
        try:
            async for page in client.get_paginator("describe_log_streams").paginate(**params):
                yield [to_log_stream(s) for s in page.get("logStreams", [])]
        except (BotoCoreError, ClientError) as e:
            raise _upstream("DescribeLogStreams", e) from e

    async def filter_events(
        self,
        *,
        group: str,
        stream_names: Sequence[str] | None,
        start_ms: int,
        end_ms: int | None,
        next_token: str | None = None,
    ) -> FilterPage:
        """One FilterLogEvents page, interleaved across streams."""
        client = await self._logs()
        params: dict[str, Any] = {
            "logGroupName": group,
            "startTime": start_ms,
            "interleaved": True,
        }
        if end_ms is not None:
            params["endTime"] = end_ms
        if stream_names:
            params["logStreamNames"] = list(stream_names)
        if next_token:
            params["nextToken"] = next_token
        try:
            resp = await client.filter_log_events(**params)
        except (BotoCoreError, ClientError) as e:
            raise _upstream("FilterLogEvents", e) from e
        return FilterPage(
            events=[to_raw_event(e) for e in resp.get("events", [])],
            next_token=resp.get("nextToken"),
        )

    async def aclose(self) -> None:
        """Close the underlying client."""
        await self._stack.aclose()
        self._client = None
