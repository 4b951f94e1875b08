"""Explicit cache for active schedule lookups.

Owned by whoever builds the engine and passed in; callers that edit an
item's schedules call :meth:`ScheduleCache.invalidate` for that item.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable

from horamed.models import ScheduleDefinition

DEFAULT_TTL_SECONDS = 300.0


class ScheduleCache:
    """Per-item active schedules with a time-to-live."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[uuid.UUID, tuple[float, list[ScheduleDefinition]]] = {}

    def get(self, item_id: uuid.UUID) -> list[ScheduleDefinition] | None:
        entry = self._entries.get(item_id)
        if entry is None:
            return None
        stored_at, schedules = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[item_id]
            return None
        return schedules

    def put(self, item_id: uuid.UUID, schedules: list[ScheduleDefinition]) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[item_id] = (now, list(schedules))

    def invalidate(self, item_id: uuid.UUID) -> None:
        self._entries.pop(item_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, now: float) -> None:
        # get() only evicts the item it reads; stale entries for other items go here
        expired = [
            item_id
            for item_id, (stored_at, _) in self._entries.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for item_id in expired:
            del self._entries[item_id]
