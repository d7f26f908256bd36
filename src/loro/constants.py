from __future__ import annotations

# Largest page a single filter call can return; also sizes the dedup cache
MAX_EVENTS_PER_CALL = 10_000
# Largest stream list a single filter call accepts
MAX_STREAMS = 100
# Suggestions offered when a group name only matches by prefix
MAX_GROUP_SUGGESTIONS = 5
# Pause between empty polls while following
POLL_INTERVAL_S = 0.1
# Transport-level retry budget for the store client
STORE_MAX_ATTEMPTS = 10
