from __future__ import annotations

import os
from dataclasses import dataclass, field


def _f(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _s(name: str, default: str | None) -> str | None:
    value = os.getenv(name)
    return value if value else default


DEFAULT_USER_AGENT = "CrawlSchedulerBot/0.1 (+https://example.com/bot)"


@dataclass(frozen=True)
class CrawlerSettings:
    max_concurrency: int = field(default_factory=lambda: _i("CRAWLER_MAX_CONCURRENCY", 10))
    max_request: int = field(default_factory=lambda: _i("CRAWLER_MAX_REQUEST", 0))
    max_depth: int = field(default_factory=lambda: _i("CRAWLER_MAX_DEPTH", 1))

    # Retry/backoff (seconds, fixed delay)
    retry_count: int = field(default_factory=lambda: _i("CRAWLER_RETRY_COUNT", 3))
    retry_delay: float = field(default_factory=lambda: _f("CRAWLER_RETRY_DELAY", 10.0))
    timeout: float = field(default_factory=lambda: _f("CRAWLER_TIMEOUT", 30.0))

    user_agent: str = field(
        default_factory=lambda: _s("CRAWLER_USER_AGENT", DEFAULT_USER_AGENT)
    )

    # Pull loop safety-net interval (seconds)
    pull_interval: float = field(default_factory=lambda: _f("CRAWLER_PULL_INTERVAL", 0.2))
    queue_name: str = field(default_factory=lambda: _s("CRAWLER_QUEUE_NAME", "queue"))

    redis_url: str | None = field(default_factory=lambda: _s("CRAWLER_REDIS_URL", None))
    log_level: str = field(default_factory=lambda: _s("CRAWLER_LOG_LEVEL", "INFO"))


SETTINGS = CrawlerSettings()
