from __future__ import annotations

from typing import Any


class CrawlerError(Exception):
    """Base exception for the crawl scheduler."""


class CrawlerValidationError(CrawlerError, ValueError):
    """Raised by ``Crawler.queue`` for requests that can never be dispatched."""


class CacheNotInitializedError(CrawlerError):
    """Raised when a cache store is used before ``init()``."""


class ExporterError(CrawlerError):
    """Raised for exporter misconfiguration."""


class FetchError(CrawlerError):
    """Transport-level failure while fetching a page."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class RequestFailedError(CrawlerError):
    """A request that exhausted its retries.

    Wraps the last error raised by the fetcher together with the request
    context, so ``on_error`` hooks and ``REQUEST_FAILED`` listeners can tell
    which request gave up.
    """

    def __init__(
        self,
        error: BaseException,
        options: Any,
        depth: int,
        previous_url: str | None,
        attempts: int,
    ) -> None:
        super().__init__(str(error) or error.__class__.__name__)
        self.error = error
        self.options = options
        self.depth = depth
        self.previous_url = previous_url
        self.attempts = attempts

    def __str__(self) -> str:
        url = getattr(self.options, "url", None)
        return f"{url}: {self.error!r} after {self.attempts} attempt(s)"
