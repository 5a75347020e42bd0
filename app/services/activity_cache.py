"""
Local activity cache.

Ordered, optionally bounded, newest-first list of ActivityRecord kept in
sync by the feed client (incremental events plus periodic full refetches).
At most one entry per id. Incremental patches are best-effort ordered:
inserts are prepended and updates replace in place, nothing is re-sorted
until the next replace_all.
"""
import logging
from typing import Callable, Iterable, Optional

from app.schemas import ActivityRecord

logger = logging.getLogger(__name__)

CacheListener = Callable[[tuple[ActivityRecord, ...]], None]


class ActivityCache:
    def __init__(self, capacity: Optional[int] = None) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: list[ActivityRecord] = []
        self._listeners: list[CacheListener] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, record_id: object) -> bool:
        return any(r.id == record_id for r in self._items)

    def snapshot(self) -> tuple[ActivityRecord, ...]:
        return tuple(self._items)

    def replace_all(self, records: Iterable[ActivityRecord]) -> None:
        ordered = sorted(records, key=lambda r: r.created_at, reverse=True)
        seen: set[str] = set()
        fresh: list[ActivityRecord] = []
        for record in ordered:
            if record.id in seen:
                continue
            seen.add(record.id)
            fresh.append(record)
        self._items = self._trim(fresh)
        self._notify()

    def apply_insert(self, record: ActivityRecord) -> bool:
        if record.id in self:
            return False
        self._items = self._trim([record, *self._items])
        self._notify()
        return True

    def apply_update(self, record: ActivityRecord) -> bool:
        for index, existing in enumerate(self._items):
            if existing.id == record.id:
                self._items[index] = record
                self._notify()
                return True
        return False

    def apply_delete(self, record_id: str) -> bool:
        remaining = [r for r in self._items if r.id != record_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._notify()
        return True

    def add_listener(self, listener: CacheListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CacheListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _trim(self, items: list[ActivityRecord]) -> list[ActivityRecord]:
        if self.capacity is None:
            return items
        return items[: self.capacity]

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                logger.error("Activity cache listener failed: %s", exc, exc_info=True)
