"""Normalization of raw store records into `Event` objects."""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Any

from loro.core.models import Event, RawLogEvent, from_millis


def parse_body(message: str) -> dict[str, Any]:
    """Parse a message as a JSON object, else wrap it as `{"message": message}`."""
    try:
        body = json.loads(message)
    except (TypeError, ValueError):
        return {"message": message}
    if not isinstance(body, dict):
        return {"message": message}
    return body


def normalize_event(raw: RawLogEvent, group: str) -> Event:
    """Build the canonical `Event` for a raw record of `group`. Never fails."""
    return Event(
        id=raw.event_id,
        stream=raw.stream_name,
        group=group,
        ingest_time=from_millis(raw.ingestion_time_ms),
        creation_time=from_millis(raw.timestamp_ms),
        body=MappingProxyType(parse_body(raw.message)),
    )
