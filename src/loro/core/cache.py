from __future__ import annotations

from collections import OrderedDict

from loro.constants import MAX_EVENTS_PER_CALL


class EventCache:
    """Bounded LRU set of already emitted event IDs.

    Once an ID is evicted it may be emitted again by a later overlapping
    fetch; capacity matches the largest page a filter call can return.
    """

    def __init__(self, capacity: int = MAX_EVENTS_PER_CALL) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, event_id: object) -> bool:
        # membership does not refresh recency
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, event_id: str) -> bool:
        """Record `event_id`; return True if an older ID was evicted."""
        if event_id in self._ids:
            self._ids.move_to_end(event_id)
            return False
        self._ids[event_id] = None
        if len(self._ids) > self.capacity:
            self._ids.popitem(last=False)
            return True
        return False
