"""Cache store interface.

A store keeps two kinds of data side by side: scalar records (dedup
fingerprints, cached robots.txt bodies) and named priority queues of crawl
entries. ``dequeue`` must be atomic against every other consumer of the same
backing store; the priority queue relies on it instead of locks.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseCache(ABC):
    """Abstract cache store.

    Args:
        expire: Default time-to-live in seconds for scalar records, applied
            when ``set`` is called without an explicit ``ttl``. ``None``
            keeps records until cleared.
    """

    def __init__(self, expire: float | None = None) -> None:
        self.expire = expire

    @abstractmethod
    async def init(self) -> None:
        """Open connections or allocate storage."""

    @abstractmethod
    async def close(self) -> None:
        """Release the store's resources."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every record and queue."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a JSON-compatible value."""

    @abstractmethod
    async def add(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store ``value`` only if ``key`` is absent; return whether it was stored.

        Atomic against every other writer of the same backing store.
        """

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a scalar record or a whole queue."""

    @abstractmethod
    async def enqueue(self, queue: str, value: Any, priority: float = 0) -> None:
        """Insert ``value`` into ``queue``.

        Higher priorities come out first; equal priorities come out in
        insertion order.
        """

    @abstractmethod
    async def dequeue(self, queue: str) -> Any | None:
        """Atomically remove and return the highest-priority value."""

    @abstractmethod
    async def size(self, queue: str) -> int:
        """Number of values waiting in ``queue``."""
