from __future__ import annotations

import logging

from loro.constants import MAX_GROUP_SUGGESTIONS
from loro.core.errors import AmbiguousGroup, GroupNotFound
from loro.core.interfaces import ILogStore
from loro.core.models import LogGroup

logger = logging.getLogger(__name__)


async def list_groups(store: ILogStore, prefix: str) -> list[LogGroup]:
    """Return every group whose name starts with `prefix`, across all pages."""
    groups: list[LogGroup] = []
    async for page in store.list_log_groups(prefix=prefix):
        groups.extend(page)
    logger.debug("groups matching prefix %r: %d", prefix, len(groups))
    return groups


async def resolve_group(store: ILogStore, name: str) -> LogGroup:
    """
    Return the group named exactly `name`.

    Raises `GroupNotFound` when nothing matches the prefix, and
    `AmbiguousGroup` with up to five store-ordered suggestions when the first
    match is not exact.
    """
    groups = await list_groups(store, name)
    if not groups:
        raise GroupNotFound(name)

    if groups[0].name != name:
        suggestions = [g.name for g in groups[:MAX_GROUP_SUGGESTIONS]]
        raise AmbiguousGroup(name, suggestions)

    return groups[0]
