"""robots.txt evaluation with bodies cached in the crawl's cache store."""
from __future__ import annotations

from urllib.robotparser import RobotFileParser

import httpx

from .cache import BaseCache
from .config import SETTINGS
from .events import AsyncEventBus, CrawlerEvent, emit_logged
from .helpers import get_robots_url
from .logging import get_logger

logger = get_logger(__name__)


class RobotsPolicy:
    """Decides whether a URL may be fetched under its origin's robots.txt.

    Bodies are cached per robots URL. A failed fetch is reported through
    ``ROBOTS_TXT_REQUEST_FAILED`` and cached as ``""``, which allows
    everything. Error statuses (404, 500, ...) also count as "no rules".
    """

    def __init__(
        self,
        cache: BaseCache,
        events: AsyncEventBus,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = SETTINGS.timeout,
    ) -> None:
        self._cache = cache
        self._events = events
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        robots_url = get_robots_url(url)
        body = await self._cache.get(robots_url)
        if body is None:
            body = await self._fetch(robots_url, user_agent)
            await self._cache.set(robots_url, body)
        if not body:
            return True
        parser = RobotFileParser(robots_url)
        parser.parse(body.splitlines())
        return parser.can_fetch(user_agent, url)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _fetch(self, robots_url: str, user_agent: str) -> str:
        client = self._get_client()
        try:
            response = await client.get(
                robots_url,
                headers={"User-Agent": user_agent},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("robots.fetch_failed", robots_url=robots_url, error=str(exc))
            await emit_logged(self._events, CrawlerEvent.ROBOTS_TXT_REQUEST_FAILED, exc)
            return ""
        if not response.is_success:
            logger.debug("robots.no_rules", robots_url=robots_url, status=response.status_code)
            return ""
        return response.text

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self._timeout)
        return self._client
