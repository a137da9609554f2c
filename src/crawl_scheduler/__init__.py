"""crawl-scheduler - Bounded-concurrency web crawl scheduler.

Priority-ordered, store-backed crawl queue with deduplication, robots.txt
and domain policy, retries, and depth-limited link expansion.
"""

__version__ = "0.1.0"

from .cache import BaseCache, MemoryCache, RedisCache
from .crawler import Crawler
from .events import AsyncEventBus, CrawlerEvent
from .exceptions import (
    CacheNotInitializedError,
    CrawlerError,
    CrawlerValidationError,
    ExporterError,
    FetchError,
    RequestFailedError,
)
from .exporter import BaseExporter, CSVExporter, JSONLineExporter
from .fetcher import FetchBackend, Fetcher, HttpFetchBackend
from .models import CrawlResult, RequestOptions

__all__ = [
    "AsyncEventBus",
    "BaseCache",
    "BaseExporter",
    "CSVExporter",
    "CacheNotInitializedError",
    "CrawlResult",
    "Crawler",
    "CrawlerError",
    "CrawlerEvent",
    "CrawlerValidationError",
    "ExporterError",
    "FetchBackend",
    "FetchError",
    "Fetcher",
    "HttpFetchBackend",
    "JSONLineExporter",
    "MemoryCache",
    "RedisCache",
    "RequestFailedError",
    "RequestOptions",
]
