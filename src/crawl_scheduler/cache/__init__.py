"""Cache stores for dedup records, robots.txt bodies and crawl queues."""
from .base import BaseCache
from .memory import MemoryCache
from .redis import RedisCache

__all__ = ["BaseCache", "MemoryCache", "RedisCache"]
