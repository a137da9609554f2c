"""Tests for the cache stores, run against both backends."""
from __future__ import annotations

import asyncio

import fakeredis
import pytest

from crawl_scheduler.cache import MemoryCache, RedisCache
from crawl_scheduler.exceptions import CacheNotInitializedError


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(params=["memory", "redis"])
def make_cache(request):
    """Factory for an uninitialized store of each kind."""
    if request.param == "memory":
        return MemoryCache
    server = fakeredis.FakeServer()

    def _redis(**kwargs):
        client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
        return RedisCache(client=client, **kwargs)

    return _redis


# =============================================================================
# Scalar records
# =============================================================================


class TestRecords:
    """get/set/remove/clear."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, make_cache):
        """Test stored values round-trip as JSON-compatible data."""
        cache = make_cache()
        await cache.init()
        await cache.set("fingerprint", "1")
        await cache.set("robots", {"body": "User-agent: *"})

        assert await cache.get("fingerprint") == "1"
        assert await cache.get("robots") == {"body": "User-agent: *"}
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_empty_string_is_a_stored_value(self, make_cache):
        """Test "" is distinguishable from a missing key."""
        cache = make_cache()
        await cache.init()
        await cache.set("http://example.test/robots.txt", "")

        assert await cache.get("http://example.test/robots.txt") == ""

    @pytest.mark.asyncio
    async def test_remove(self, make_cache):
        """Test remove deletes a record."""
        cache = make_cache()
        await cache.init()
        await cache.set("key", "1")
        await cache.remove("key")

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_add_only_stores_absent_keys(self, make_cache):
        """Test add refuses a key that already holds a value."""
        cache = make_cache()
        await cache.init()

        assert await cache.add("fingerprint", "1") is True
        assert await cache.add("fingerprint", "2") is False
        assert await cache.get("fingerprint") == "1"

    @pytest.mark.asyncio
    async def test_concurrent_add_has_one_winner(self, make_cache):
        """Test only one of many concurrent adds of a key succeeds."""
        cache = make_cache()
        await cache.init()
        results = await asyncio.gather(*(cache.add("fingerprint", "1") for _ in range(10)))

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_clear_empties_records_and_queues(self, make_cache):
        """Test clear drops everything."""
        cache = make_cache()
        await cache.init()
        await cache.set("key", "1")
        await cache.enqueue("queue", ["entry"], 1)
        await cache.clear()

        assert await cache.get("key") is None
        assert await cache.size("queue") == 0


class TestMemoryExpiry:
    """MemoryCache TTL handling."""

    @pytest.mark.asyncio
    async def test_ttl_expires_record(self):
        """Test a record with a TTL disappears after it elapses."""
        cache = MemoryCache()
        await cache.init()
        await cache.set("key", "1", ttl=0.01)
        await asyncio.sleep(0.03)

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_default_expire(self):
        """Test the store-wide expire applies when no TTL is given."""
        cache = MemoryCache(expire=0.01)
        await cache.init()
        await cache.set("key", "1")
        await asyncio.sleep(0.03)

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_use_before_init_raises(self):
        """Test an uninitialized store refuses calls."""
        with pytest.raises(CacheNotInitializedError):
            await MemoryCache().get("key")


class TestRedisSpecifics:
    """RedisCache details that differ from the in-process store."""

    @pytest.mark.asyncio
    async def test_set_applies_ttl(self):
        """Test set() passes the TTL to Redis."""
        client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
        cache = RedisCache(client=client, expire=60)
        await cache.init()
        await cache.set("key", "1")

        assert 0 < await client.pttl("key") <= 60_000

    @pytest.mark.asyncio
    async def test_shared_queue_between_instances(self):
        """Test two stores on one server drain the same queue without overlap."""
        server = fakeredis.FakeServer()
        first = RedisCache(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        second = RedisCache(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        await first.init()
        await second.init()
        for i in range(10):
            await first.enqueue("queue", [i], 0)

        popped = await asyncio.gather(*(cache.dequeue("queue") for cache in [first, second] * 5))

        assert sorted(entry[0] for entry in popped) == list(range(10))
        assert await second.dequeue("queue") is None

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        """Test close() does not close a client it did not create."""
        client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
        cache = RedisCache(client=client)
        await cache.init()
        await cache.close()

        assert await client.ping()


# =============================================================================
# Queues
# =============================================================================


class TestQueues:
    """enqueue/dequeue/size ordering guarantees."""

    @pytest.mark.asyncio
    async def test_descending_priority(self, make_cache):
        """Test higher priorities come out first."""
        cache = make_cache()
        await cache.init()
        for value, priority in [("low", 1), ("high", 10), ("middle", 5)]:
            await cache.enqueue("queue", value, priority)

        assert [await cache.dequeue("queue") for _ in range(3)] == ["high", "middle", "low"]

    @pytest.mark.asyncio
    async def test_fifo_among_equal_priorities(self, make_cache):
        """Test equal priorities come out in insertion order."""
        cache = make_cache()
        await cache.init()
        for i in range(5):
            await cache.enqueue("queue", {"n": i}, 3)
        await cache.enqueue("queue", {"n": "urgent"}, 4)

        values = [await cache.dequeue("queue") for _ in range(6)]

        assert values == [{"n": "urgent"}] + [{"n": i} for i in range(5)]

    @pytest.mark.asyncio
    async def test_size_tracks_pushes_minus_pops(self, make_cache):
        """Test size after mixed enqueues and dequeues."""
        cache = make_cache()
        await cache.init()
        for i in range(4):
            await cache.enqueue("queue", i, i)
        await cache.dequeue("queue")

        assert await cache.size("queue") == 3
        assert await cache.size("other") == 0

    @pytest.mark.asyncio
    async def test_dequeue_empty(self, make_cache):
        """Test dequeue on an empty queue returns None."""
        cache = make_cache()
        await cache.init()

        assert await cache.dequeue("queue") is None

    @pytest.mark.asyncio
    async def test_remove_queue(self, make_cache):
        """Test remove() drops a whole queue."""
        cache = make_cache()
        await cache.init()
        await cache.enqueue("queue", "entry", 0)
        await cache.remove("queue")

        assert await cache.size("queue") == 0

    @pytest.mark.asyncio
    async def test_entries_keep_their_shape(self, make_cache):
        """Test a crawl entry comes back as the list that was pushed."""
        cache = make_cache()
        await cache.init()
        entry = [{"url": "http://example.test/", "priority": 0}, 2, "http://example.test/prev"]
        await cache.enqueue("queue", entry, 2_000_000)

        assert await cache.dequeue("queue") == entry
