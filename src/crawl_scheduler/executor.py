"""Retry/backoff state machine for one admitted request.

    DISPATCHING -> SUCCEEDED
    DISPATCHING -> RETRYING -> DISPATCHING -> ... -> FAILED

Retries are not re-admitted: the dedup marker is removed while a request
waits to retry and written again once it reaches a terminal state.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from .admission import VISITED
from .cache import BaseCache
from .events import AsyncEventBus, CrawlerEvent, emit_logged
from .exceptions import RequestFailedError
from .expansion import LinkExpander
from .fetcher import FetchBackend, Fetcher
from .helpers import call_hook, generate_key
from .logging import get_logger
from .models import CrawlResult, RequestOptions
from .priority_queue import PriorityQueue

logger = get_logger(__name__)


class RequestState(str, Enum):
    DISPATCHING = "dispatching"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RequestBudget:
    """Counts finished requests and pauses the queue at ``max_request``.

    ``max_request`` of 0 means unlimited.
    """

    def __init__(self, queue: PriorityQueue, events: AsyncEventBus, max_request: int = 0) -> None:
        self._queue = queue
        self._events = events
        self.max_request = max_request
        self.count = 0

    async def record(self) -> None:
        self.count += 1
        if self.max_request and self.count >= self.max_request:
            logger.info("crawler.max_request_reached", requested=self.count, max_request=self.max_request)
            await emit_logged(self._events, CrawlerEvent.MAX_REQUEST_REACHED)
            self._queue.pause()


class RequestExecutor:
    """Runs fetch attempts for admitted requests until success or give-up."""

    def __init__(
        self,
        *,
        backend: FetchBackend,
        cache: BaseCache,
        events: AsyncEventBus,
        expander: LinkExpander,
        budget: RequestBudget,
        exporter: Any = None,
        on_success: Callable[[CrawlResult], Any] | None = None,
        on_error: Callable[[RequestFailedError], Any] | None = None,
        custom_crawl: Callable[..., Any] | None = None,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._events = events
        self._expander = expander
        self._budget = budget
        self._exporter = exporter
        self._on_success = on_success
        self._on_error = on_error
        self._custom_crawl = custom_crawl

    async def run(self, options: RequestOptions, depth: int, previous_url: str | None) -> RequestState:
        attempts = 0
        result: CrawlResult | None = None

        async def before_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            self._log_state(RequestState.RETRYING, options, retry_state.attempt_number, error=error)
            await emit_logged(self._events, CrawlerEvent.REQUEST_RETRIED, options)
            await self._unmark(options)

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(options.retry_count + 1),
            wait=wait_fixed(options.retry_delay),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self._attempt(options, depth, previous_url, attempts - 1)
        except Exception as exc:
            await self._fail(RequestFailedError(exc, options, depth, previous_url, attempts))
            return RequestState.FAILED
        await self._succeed(result, options, depth)
        return RequestState.SUCCEEDED

    async def _attempt(
        self,
        options: RequestOptions,
        depth: int,
        previous_url: str | None,
        retries: int,
    ) -> CrawlResult:
        self._log_state(RequestState.DISPATCHING, options, retries)
        await emit_logged(self._events, CrawlerEvent.REQUEST_STARTED, options)
        fetcher = self._backend.open(options, depth, previous_url)
        try:
            return await self._crawl(fetcher)
        finally:
            await self._close(fetcher)

    async def _crawl(self, fetcher: Fetcher) -> CrawlResult:
        if self._custom_crawl is not None:
            return await call_hook(self._custom_crawl, fetcher, fetcher.crawl)
        return await fetcher.crawl()

    async def _succeed(self, result: CrawlResult, options: RequestOptions, depth: int) -> None:
        self._log_state(RequestState.SUCCEEDED, options, status=result.response.status)
        await emit_logged(self._events, CrawlerEvent.REQUEST_FINISHED, result)
        already_requested = await self._check_requested_redirect(options, result)
        await self._mark(options)
        await self._mark_redirects(options, result)
        if already_requested:
            logger.debug("executor.redirect_already_requested", url=options.url, final_url=result.response.url)
            await self._budget.record()
            await asyncio.sleep(options.delay)
            return
        if self._exporter is not None:
            self._exporter.write_line(result)
        if self._on_success is not None:
            await self._run_hook(self._on_success, result)
        await self._budget.record()
        await self._expander.expand(result.links, options, depth)
        await asyncio.sleep(options.delay)

    async def _fail(self, error: RequestFailedError) -> None:
        options = error.options
        self._log_state(RequestState.FAILED, options, error=error.error, attempts=error.attempts)
        await emit_logged(self._events, CrawlerEvent.REQUEST_FAILED, error)
        await self._mark(options)
        if self._on_error is not None:
            await self._run_hook(self._on_error, error)
        await self._budget.record()
        await asyncio.sleep(options.delay)

    async def _check_requested_redirect(self, options: RequestOptions, result: CrawlResult) -> bool:
        if not options.skip_requested_redirect or result.response.url == options.url:
            return False
        return await self._cache.get(generate_key(options.for_link(result.response.url))) is not None

    async def _mark(self, options: RequestOptions) -> None:
        if options.skip_duplicates:
            await self._cache.set(generate_key(options), VISITED)

    async def _unmark(self, options: RequestOptions) -> None:
        if options.skip_duplicates:
            await self._cache.remove(generate_key(options))

    async def _mark_redirects(self, options: RequestOptions, result: CrawlResult) -> None:
        if not options.skip_requested_redirect:
            return
        urls = [hop.url for hop in result.redirect_chain] + [result.response.url]
        for url in urls:
            await self._mark(options.for_link(url))

    async def _close(self, fetcher: Fetcher) -> None:
        try:
            await fetcher.close()
        except Exception:
            logger.exception("executor.fetcher_close_failed", url=fetcher.options.url)

    async def _run_hook(self, hook: Callable[..., Any], *args: Any) -> None:
        try:
            await call_hook(hook, *args)
        except Exception:
            logger.exception("executor.hook_failed", hook=getattr(hook, "__name__", repr(hook)))

    def _log_state(
        self,
        state: RequestState,
        options: RequestOptions,
        retries: int | None = None,
        **context: Any,
    ) -> None:
        if "error" in context:
            context["error"] = repr(context["error"])
        logger.debug("executor.state", state=state.value, url=options.url, retries=retries, **context)
