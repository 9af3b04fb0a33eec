"""
Bounded in-memory activity ledger.

One record per attempted remote operation. Append-only, FIFO eviction past
capacity, memory-resident for the lifetime of the owning service.
"""

from __future__ import annotations

from collections import deque
from typing import Any

from .models import ActivityItem, ResourceType

MAX_ACTIVITY_ITEMS = 1000
DEFAULT_QUERY_LIMIT = 100

# camelCase filter keys accepted alongside the record's own field names
_FILTER_ALIASES = {"resourceType": "resource_type", "resourceId": "resource_id"}


class ActivityLedger:
    def __init__(self, capacity: int = MAX_ACTIVITY_ITEMS) -> None:
        self._items: deque[ActivityItem] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    def record(
        self,
        action: str,
        resource_type: ResourceType,
        resource_id: str,
        details: dict[str, Any] | None,
        success: bool,
        error: str | None = None,
    ) -> ActivityItem:
        item = ActivityItem(
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details or {},
            success=success,
            error=None if success else error,
        )
        # deque(maxlen) drops from the left once full
        self._items.append(item)
        return item

    def query(
        self, limit: int | None = None, filter: dict[str, Any] | None = None
    ) -> list[ActivityItem]:
        """Return up to `limit` most recent items, oldest first."""
        items = list(self._items)
        if filter:
            wanted = {_FILTER_ALIASES.get(k, k): v for k, v in filter.items()}
            items = [
                it
                for it in items
                if all(getattr(it, k, None) == v for k, v in wanted.items())
            ]
        n = DEFAULT_QUERY_LIMIT if limit is None else int(limit)
        if n <= 0:
            return []
        return items[-n:]

    def clear(self) -> None:
        self._items.clear()
