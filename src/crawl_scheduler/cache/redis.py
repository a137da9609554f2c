"""Redis-backed cache store shared across processes.

Queues are sorted sets scored by priority. Redis orders members with equal
scores lexicographically, and ``ZPOPMAX`` takes the greatest, so every member
starts with an inverted, zero-padded sequence number: the oldest member of a
priority band sorts last and is popped first.

    member = "99999999999999999958:" + json.dumps(entry)
"""
from __future__ import annotations

import json
from typing import Any

from redis.asyncio import Redis

from ..exceptions import CacheNotInitializedError
from ..logging import get_logger
from .base import BaseCache

logger = get_logger(__name__)

SEQUENCE_WIDTH = 20
SEQUENCE_CEILING = 10**SEQUENCE_WIDTH - 1


class RedisCache(BaseCache):
    """Persistent store on a Redis server.

    Args:
        url: Connection URL, e.g. ``redis://localhost:6379/0``.
        client: Pre-built ``redis.asyncio`` client. The caller keeps
            ownership and closes it.
        expire: Default TTL in seconds for scalar records.
        **connection: Keyword arguments for ``redis.asyncio.Redis`` when
            neither ``url`` nor ``client`` is given.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        client: Redis | None = None,
        expire: float | None = None,
        **connection: Any,
    ) -> None:
        super().__init__(expire)
        self._url = url
        self._connection = connection
        self._client = client
        self._owns_client = client is None

    async def init(self) -> None:
        if self._client is not None:
            return
        if self._url:
            self._client = Redis.from_url(self._url, decode_responses=True)
        else:
            self._client = Redis(decode_responses=True, **self._connection)
        logger.debug("cache.redis.connected", url=self._url)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def clear(self) -> None:
        await self._require().flushdb()

    async def get(self, key: str) -> Any | None:
        raw = await self._require().get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = ttl if ttl is not None else self.expire
        px = int(ttl * 1000) if ttl else None
        await self._require().set(key, json.dumps(value), px=px)

    async def add(self, key: str, value: Any, ttl: float | None = None) -> bool:
        ttl = ttl if ttl is not None else self.expire
        px = int(ttl * 1000) if ttl else None
        stored = await self._require().set(key, json.dumps(value), px=px, nx=True)
        return bool(stored)

    async def remove(self, key: str) -> None:
        await self._require().delete(key)

    async def enqueue(self, queue: str, value: Any, priority: float = 0) -> None:
        client = self._require()
        sequence = await client.incr(f"{queue}:sequence")
        member = f"{SEQUENCE_CEILING - sequence:0{SEQUENCE_WIDTH}d}:{json.dumps(value)}"
        await client.zadd(queue, {member: priority})

    async def dequeue(self, queue: str) -> Any | None:
        popped = await self._require().zpopmax(queue)
        if not popped:
            return None
        member, _score = popped[0]
        _sequence, _, payload = member.partition(":")
        return json.loads(payload)

    async def size(self, queue: str) -> int:
        return await self._require().zcard(queue)

    def _require(self) -> Redis:
        if self._client is None:
            raise CacheNotInitializedError("RedisCache used before init()")
        return self._client
