"""Fetcher interfaces.

A ``FetchBackend`` owns whatever is shared between requests (connection
pools, browser processes). It hands out one ``Fetcher`` per attempt, which
the executor closes whether the attempt succeeded or not.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from ..helpers import call_hook
from ..models import CrawlResult, RequestOptions


class Fetcher(ABC):
    """A single fetch attempt."""

    def __init__(self, options: RequestOptions, depth: int, previous_url: str | None) -> None:
        self.options = options
        self.depth = depth
        self.previous_url = previous_url

    @abstractmethod
    async def crawl(self) -> CrawlResult:
        """Fetch the page. Raise on transport failure."""

    async def close(self) -> None:
        return None


class FetchBackend(ABC):
    """Factory of per-attempt fetchers sharing one set of resources."""

    def __init__(self) -> None:
        self._disconnect_callbacks: list[Callable[[], Any]] = []

    @abstractmethod
    def open(self, options: RequestOptions, depth: int, previous_url: str | None) -> Fetcher:
        """Create the fetcher for one attempt."""

    @abstractmethod
    def user_agent(self) -> str:
        """User agent sent when a request names none."""

    async def close(self) -> None:
        await self._notify_disconnect()

    def on_disconnect(self, callback: Callable[[], Any]) -> None:
        """Register ``callback`` to run when the backend goes away."""
        self._disconnect_callbacks.append(callback)

    async def _notify_disconnect(self) -> None:
        callbacks, self._disconnect_callbacks = self._disconnect_callbacks, []
        for callback in callbacks:
            await call_hook(callback)
