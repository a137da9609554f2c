"""Crawl orchestrator wiring the queue, admission, executor and expansion.

Example:

    async with await Crawler.launch(max_concurrency=4, max_depth=2) as crawler:
        crawler.on(CrawlerEvent.REQUEST_FINISHED, print)
        await crawler.queue(["https://example.com/"])
        await crawler.on_idle()
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from .admission import AdmissionController
from .cache import BaseCache, MemoryCache
from .config import SETTINGS
from .devices import DEVICES
from .events import AsyncEventBus, CrawlerEvent, emit_logged
from .exceptions import CrawlerValidationError
from .executor import RequestBudget, RequestExecutor
from .expansion import LinkExpander, effective_priority
from .exporter import BaseExporter
from .fetcher import FetchBackend, HttpFetchBackend
from .helpers import normalize_url
from .logging import get_logger
from .models import CRAWLER_OPTIONS, RequestOptions
from .priority_queue import PULL_EVENT, PriorityQueue
from .robots import RobotsPolicy

logger = get_logger(__name__)

QueueItem = str | Mapping[str, Any] | RequestOptions


class Crawler:
    """Bounded-concurrency crawler over a priority queue in a cache store.

    Args:
        backend: Fetch backend; defaults to ``HttpFetchBackend``.
        cache: Store for the queue, dedup markers and robots.txt bodies.
            Crawlers sharing a ``RedisCache`` and ``queue_name`` drain one
            queue together.
        exporter: Receives every successful result.
        max_concurrency: Requests in flight at once; None for unbounded.
        max_request: Pause after this many finished requests; 0 disables.
        persist_cache: Keep the store's contents on close.
        pre_request: Hook run before admission; a falsy result skips.
        on_success: Hook called with each ``CrawlResult``.
        on_error: Hook called with each ``RequestFailedError``.
        custom_crawl: ``custom_crawl(fetcher, crawl)`` wraps each attempt.
        queue_name: Name of the queue inside the store.
        robots_client: httpx client used to fetch robots.txt.
        pull_interval: Seconds between queue watch ticks.
        **defaults: Default request options (``max_depth``, ``priority``,
            ``retry_count``, ...) applied to every queued request.
    """

    def __init__(
        self,
        backend: FetchBackend | None = None,
        *,
        cache: BaseCache | None = None,
        exporter: BaseExporter | None = None,
        max_concurrency: int | None = SETTINGS.max_concurrency,
        max_request: int = SETTINGS.max_request,
        persist_cache: bool = False,
        pre_request: Callable[[RequestOptions], Any] | None = None,
        on_success: Callable[..., Any] | None = None,
        on_error: Callable[..., Any] | None = None,
        custom_crawl: Callable[..., Any] | None = None,
        queue_name: str = SETTINGS.queue_name,
        robots_client: Any = None,
        pull_interval: float = SETTINGS.pull_interval,
        **defaults: Any,
    ) -> None:
        self._backend = backend or HttpFetchBackend()
        self._cache = cache or MemoryCache()
        self._exporter = exporter
        self._max_concurrency = max_concurrency
        self._persist_cache = persist_cache
        self._defaults = defaults
        self._disconnected = False
        self._initialized = False

        self.events = AsyncEventBus()
        self._queue = PriorityQueue(
            self._cache,
            name=queue_name,
            max_concurrency=max_concurrency,
            interval=pull_interval,
        )
        self._budget = RequestBudget(self._queue, self.events, max_request)
        self._robots = RobotsPolicy(self._cache, self.events, client=robots_client)
        self._admission = AdmissionController(
            self._cache,
            self.events,
            self._robots,
            default_user_agent=self._backend.user_agent,
            pre_request=pre_request,
        )
        self._executor = RequestExecutor(
            backend=self._backend,
            cache=self._cache,
            events=self.events,
            expander=LinkExpander(self._queue, self._cache, self.events),
            budget=self._budget,
            exporter=exporter,
            on_success=on_success,
            on_error=on_error,
            custom_crawl=custom_crawl,
        )
        self._queue.on(PULL_EVENT, self._start_request)
        self._backend.on_disconnect(self._handle_disconnect)

    @classmethod
    async def launch(cls, backend: FetchBackend | None = None, **options: Any) -> Crawler:
        """Build a crawler (HTTP backend unless given) and ``init()`` it."""
        crawler = cls(backend, **options)
        await crawler.init()
        return crawler

    async def __aenter__(self) -> Crawler:
        if not self._initialized:
            await self.init()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def init(self) -> None:
        logger.debug("crawler.init", queue=self._queue.name)
        await self._cache.init()
        self._queue.init()
        self._initialized = True

    async def close(self) -> None:
        """Stop pulling, close the fetch backend and release the store."""
        logger.debug("crawler.close", requested=self._budget.count)
        self._queue.end()
        await self._backend.close()
        await self._shutdown()
        logger.debug("crawler.closed")

    async def disconnect(self) -> None:
        """Like ``close`` but leaves the fetch backend running."""
        logger.debug("crawler.disconnect", requested=self._budget.count)
        self._queue.end()
        await self._shutdown()
        await self._handle_disconnect()

    def on(self, event: CrawlerEvent | str, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self.events.on(event, handler)

    def off(self, event: CrawlerEvent | str, handler: Callable[..., Any]) -> None:
        self.events.off(event, handler)

    def queue(self, requests: QueueItem | list[QueueItem]) -> asyncio.Future[list[None]]:
        """Validate and enqueue one or more requests at depth 1.

        Validation happens immediately and raises ``CrawlerValidationError``;
        the returned awaitable completes once every request is in the store.
        """
        items = requests if isinstance(requests, list) else [requests]
        prepared = [self._prepare(item) for item in items]
        logger.debug("crawler.queue", count=len(prepared))
        return asyncio.gather(*(self._push(options, 1, None) for options in prepared))

    def user_agent(self) -> str:
        return self._backend.user_agent()

    def pause(self) -> None:
        logger.debug("crawler.pause")
        self._queue.pause()

    def resume(self) -> None:
        logger.debug("crawler.resume")
        self._queue.resume()

    def is_paused(self) -> bool:
        return self._queue.is_paused()

    def set_max_request(self, max_request: int) -> None:
        logger.debug("crawler.set_max_request", max_request=max_request)
        self._budget.max_request = max_request

    async def on_idle(self) -> None:
        logger.debug("crawler.on_idle")
        await self._queue.on_idle()
        logger.debug("crawler.idle", requested=self._budget.count)

    async def queue_size(self) -> int:
        return await self._queue.size()

    def pending_queue_size(self) -> int:
        return self._queue.pending()

    def requested_count(self) -> int:
        return self._budget.count

    async def clear_cache(self) -> None:
        logger.debug("crawler.clear_cache")
        await self._cache.clear()

    def _prepare(self, item: QueueItem) -> RequestOptions:
        if isinstance(item, str):
            data: dict[str, Any] = {"url": item}
        elif isinstance(item, RequestOptions):
            data = item.model_dump(exclude_unset=True)
        elif isinstance(item, Mapping):
            data = dict(item)
        else:
            raise CrawlerValidationError(f"Cannot queue {type(item).__name__}")

        overridden = sorted(CRAWLER_OPTIONS & data.keys())
        if overridden:
            raise CrawlerValidationError(f"Overriding {overridden[0]} is not allowed!")

        merged = {**self._defaults, **data}
        if not merged.get("url"):
            raise CrawlerValidationError("Url must be defined!")
        if merged.get("device") and merged["device"] not in DEVICES:
            raise CrawlerValidationError("Specified device is not supported!")
        if (merged.get("delay") or 0) > 0 and self._max_concurrency != 1:
            raise CrawlerValidationError("Max concurrency must be 1 when delay is set!")
        merged["url"] = normalize_url(merged["url"])
        try:
            return RequestOptions(**merged)
        except ValidationError as exc:
            raise CrawlerValidationError(str(exc)) from exc

    async def _push(self, options: RequestOptions, depth: int, previous_url: str | None) -> None:
        await self._queue.push(
            options.to_entry(),
            depth,
            previous_url,
            priority=effective_priority(options, depth),
        )

    async def _start_request(self, entry: dict[str, Any], depth: int, previous_url: str | None) -> None:
        options = RequestOptions.model_validate(entry)
        if not await self._admission.admit(options):
            return
        await self._executor.run(options, depth, previous_url)

    async def _shutdown(self) -> None:
        if self._exporter is not None:
            self._exporter.write_footer()
            self._exporter.end()
            await self._exporter.on_end()
        if not self._persist_cache:
            await self._cache.clear()
        await self._cache.close()
        await self._robots.close()

    async def _handle_disconnect(self) -> None:
        if self._disconnected:
            return
        self._disconnected = True
        await emit_logged(self.events, CrawlerEvent.DISCONNECTED)
