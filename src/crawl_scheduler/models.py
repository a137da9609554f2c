"""Request descriptors and crawl results.

``RequestOptions`` is the unit that travels through the queue. It is
serialized with ``model_dump(mode="json")`` before being enqueued so the same
entry can be stored in-process or in Redis and read back by any scheduler
attached to the queue.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .config import SETTINGS

# Fields that belong to the crawler instance and may not be overridden
# per request through ``Crawler.queue``.
CRAWLER_OPTIONS = frozenset({
    "max_concurrency",
    "max_request",
    "cache",
    "exporter",
    "persist_cache",
    "pre_request",
    "on_success",
    "on_error",
    "custom_crawl",
    "queue_name",
})


class RequestOptions(BaseModel):
    """A request descriptor: target URL plus crawl policy.

    Unknown keyword arguments are kept and passed through to the fetcher.
    """

    model_config = ConfigDict(extra="allow")

    url: str

    # Ordering
    priority: int = 0
    depth_priority: bool = True
    max_depth: int = Field(default=SETTINGS.max_depth, ge=1)

    # Scope
    allowed_domains: list[str] | None = None
    denied_domains: list[str] | None = None
    obey_robots_txt: bool = True
    skip_duplicates: bool = True
    skip_requested_redirect: bool = False

    # Retry/backoff (seconds)
    retry_count: int = Field(default=SETTINGS.retry_count, ge=0)
    retry_delay: float = Field(default=SETTINGS.retry_delay, ge=0)
    delay: float = Field(default=0.0, ge=0)
    timeout: float | None = SETTINGS.timeout

    # Passed to the fetcher, part of the dedup fingerprint
    device: str | None = None
    user_agent: str | None = None
    extra_headers: dict[str, str] = Field(default_factory=dict)
    cookies: list[dict[str, Any]] | None = None

    def for_link(self, url: str) -> RequestOptions:
        """Child descriptor inheriting this request's policy."""
        return self.model_copy(update={"url": url}, deep=True)

    def to_entry(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RedirectHop(BaseModel):
    url: str
    status: int | None = None


class ResponseInfo(BaseModel):
    ok: bool
    status: int
    url: str
    headers: dict[str, str] = Field(default_factory=dict)


class CrawlResult(BaseModel):
    """Outcome of one successful fetch attempt."""

    options: RequestOptions
    depth: int = 1
    previous_url: str | None = None
    response: ResponseInfo
    redirect_chain: list[RedirectHop] = Field(default_factory=list)
    cookies: list[dict[str, Any]] = Field(default_factory=list)
    result: Any = None
    links: list[str] = Field(default_factory=list)

