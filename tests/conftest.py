"""Shared fixtures: an in-memory fetch backend serving a fixed link graph."""
from __future__ import annotations

import asyncio
from collections import defaultdict
from functools import partial
from typing import Any

import pytest

from crawl_scheduler.events import CrawlerEvent
from crawl_scheduler.exceptions import FetchError
from crawl_scheduler.fetcher import FetchBackend, Fetcher
from crawl_scheduler.models import CrawlResult, RedirectHop, RequestOptions, ResponseInfo

IDLE_TIMEOUT = 5.0


class FakeFetcher(Fetcher):
    def __init__(self, backend: FakeBackend, options: RequestOptions, depth: int, previous_url: str | None):
        super().__init__(options, depth, previous_url)
        self._backend = backend

    async def crawl(self) -> CrawlResult:
        backend = self._backend
        url = self.options.url
        backend.calls.append(url)
        backend.in_flight += 1
        backend.max_in_flight = max(backend.max_in_flight, backend.in_flight)
        try:
            await asyncio.sleep(backend.latency)
            if url in backend.failing:
                raise FetchError("connection refused", url)
            if backend.fail_times.get(url, 0) > 0:
                backend.fail_times[url] -= 1
                raise FetchError("connection reset", url)
            final_url = backend.redirects.get(url, url)
            chain = [RedirectHop(url=url, status=301)] if final_url != url else []
            return CrawlResult(
                options=self.options,
                depth=self.depth,
                previous_url=self.previous_url,
                response=ResponseInfo(ok=True, status=200, url=final_url),
                redirect_chain=chain,
                result={"url": final_url},
                links=list(backend.graph.get(final_url, [])),
            )
        finally:
            backend.in_flight -= 1

    async def close(self) -> None:
        self._backend.closed += 1
        if self._backend.fail_close:
            raise RuntimeError("close failed")


class FakeBackend(FetchBackend):
    """Serves pages from ``graph`` (url -> outbound links) without I/O."""

    def __init__(
        self,
        graph: dict[str, list[str]] | None = None,
        *,
        failing: set[str] | None = None,
        fail_times: dict[str, int] | None = None,
        redirects: dict[str, str] | None = None,
        latency: float = 0.0,
        fail_close: bool = False,
    ) -> None:
        super().__init__()
        self.graph = graph or {}
        self.failing = failing or set()
        self.fail_times = dict(fail_times or {})
        self.redirects = redirects or {}
        self.latency = latency
        self.fail_close = fail_close
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = 0

    def open(self, options: RequestOptions, depth: int, previous_url: str | None) -> FakeFetcher:
        return FakeFetcher(self, options, depth, previous_url)

    def user_agent(self) -> str:
        return "FakeBot/1.0"


class EventRecorder:
    """Collects every crawler event's arguments by event."""

    def __init__(self, crawler: Any) -> None:
        self.events: dict[CrawlerEvent, list[tuple[Any, ...]]] = defaultdict(list)
        for event in CrawlerEvent:
            crawler.on(event, partial(self._record, event))

    def _record(self, event: CrawlerEvent, *args: Any) -> None:
        self.events[event].append(args)

    def count(self, event: CrawlerEvent) -> int:
        return len(self.events[event])

    def urls(self, event: CrawlerEvent) -> list[str]:
        return [args[0].url for args in self.events[event]]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_backend():
    """Factory for fake fetch backends."""
    return FakeBackend


@pytest.fixture
def crawler_options() -> dict[str, Any]:
    """Crawler options that keep tests fast and offline."""
    return {
        "obey_robots_txt": False,
        "retry_delay": 0,
        "pull_interval": 0.01,
    }


@pytest.fixture
def record_events():
    """Attach an EventRecorder to a crawler."""
    return EventRecorder


@pytest.fixture
def wait_idle():
    """Wait for a crawler to go idle, failing the test instead of hanging."""

    async def _wait(crawler: Any) -> None:
        await asyncio.wait_for(crawler.on_idle(), IDLE_TIMEOUT)

    return _wait
