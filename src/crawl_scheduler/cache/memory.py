"""In-process cache store, lost when the process exits."""
from __future__ import annotations

import time
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any

from ..exceptions import CacheNotInitializedError
from .base import BaseCache


@dataclass
class _Record:
    value: Any
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class _QueuedValue:
    value: Any
    priority: float


def _descending(item: _QueuedValue) -> float:
    return -item.priority


class MemoryCache(BaseCache):
    """Volatile store backed by plain dicts and sorted lists.

    None of the coroutines suspend, so a ``dequeue`` can never interleave
    with another consumer on the same event loop.
    """

    def __init__(self, expire: float | None = None) -> None:
        super().__init__(expire)
        self._records: dict[str, _Record] | None = None
        self._queues: dict[str, list[_QueuedValue]] | None = None

    async def init(self) -> None:
        if self._records is None:
            self._records = {}
            self._queues = {}

    async def close(self) -> None:
        # Contents survive close(); clear() drops them.
        return None

    async def clear(self) -> None:
        self._require()
        self._records.clear()
        self._queues.clear()

    async def get(self, key: str) -> Any | None:
        records = self._require()
        record = records.get(key)
        if record is None:
            return None
        if record.expired(time.monotonic()):
            del records[key]
            return None
        return record.value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        records = self._require()
        ttl = ttl if ttl is not None else self.expire
        expires_at = time.monotonic() + ttl if ttl else None
        records[key] = _Record(value, expires_at)

    async def add(self, key: str, value: Any, ttl: float | None = None) -> bool:
        records = self._require()
        record = records.get(key)
        if record is not None and not record.expired(time.monotonic()):
            return False
        ttl = ttl if ttl is not None else self.expire
        expires_at = time.monotonic() + ttl if ttl else None
        records[key] = _Record(value, expires_at)
        return True

    async def remove(self, key: str) -> None:
        records = self._require()
        records.pop(key, None)
        self._queues.pop(key, None)

    async def enqueue(self, queue: str, value: Any, priority: float = 0) -> None:
        self._require()
        items = self._queues.setdefault(queue, [])
        index = bisect_right(items, -priority, key=_descending)
        items.insert(index, _QueuedValue(value, priority))

    async def dequeue(self, queue: str) -> Any | None:
        self._require()
        items = self._queues.get(queue)
        if not items:
            return None
        return items.pop(0).value

    async def size(self, queue: str) -> int:
        self._require()
        return len(self._queues.get(queue, ()))

    def _require(self) -> dict[str, _Record]:
        if self._records is None:
            raise CacheNotInitializedError("MemoryCache used before init()")
        return self._records
