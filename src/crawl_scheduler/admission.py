"""Admission pipeline run on every dequeued request.

Order: the ``pre_request`` hook and ``PRE_REQUEST`` listeners first, then
duplicate, robots and domain checks together. A rejected request produces
exactly one event.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from .cache import BaseCache
from .devices import resolve_user_agent
from .events import AsyncEventBus, CrawlerEvent, emit_logged
from .helpers import call_hook, check_domain_match, generate_key, get_hostname
from .logging import get_logger
from .models import RequestOptions
from .robots import RobotsPolicy

logger = get_logger(__name__)

VISITED = "1"


def is_domain_allowed(options: RequestOptions, url: str | None = None) -> bool:
    hostname = get_hostname(url or options.url)
    if options.allowed_domains is not None and not check_domain_match(options.allowed_domains, hostname):
        return False
    if options.denied_domains is not None and check_domain_match(options.denied_domains, hostname):
        return False
    return True


class AdmissionController:
    """Decides whether a dequeued request is dispatched.

    Args:
        cache: Store shared with the queue; holds dedup markers.
        events: Crawler event bus.
        robots: robots.txt policy.
        default_user_agent: Returns the fetch backend's user agent, used
            when a request names neither a user agent nor a device.
        pre_request: Optional hook; a falsy result skips the request.
    """

    def __init__(
        self,
        cache: BaseCache,
        events: AsyncEventBus,
        robots: RobotsPolicy,
        *,
        default_user_agent: Callable[[], str],
        pre_request: Callable[[RequestOptions], Any] | None = None,
    ) -> None:
        self._cache = cache
        self._events = events
        self._robots = robots
        self._default_user_agent = default_user_agent
        self._pre_request = pre_request

    async def admit(self, options: RequestOptions) -> bool:
        if not await self._run_pre_request(options):
            logger.debug("admission.vetoed", url=options.url)
            await emit_logged(self._events, CrawlerEvent.REQUEST_SKIPPED, options)
            return False

        duplicate, robots_allowed, domain_allowed = await asyncio.gather(
            self._check_duplicate(options),
            self._check_robots(options),
            self._check_domain(options),
        )
        if duplicate:
            logger.debug("admission.duplicate", url=options.url)
            await emit_logged(self._events, CrawlerEvent.REQUEST_SKIPPED, options)
            return False
        if not robots_allowed:
            logger.debug("admission.disallowed", url=options.url)
            await emit_logged(self._events, CrawlerEvent.REQUEST_DISALLOWED, options)
            return False
        if not domain_allowed:
            logger.debug("admission.out_of_domain", url=options.url)
            await emit_logged(self._events, CrawlerEvent.REQUEST_SKIPPED, options)
            return False
        return True

    async def _run_pre_request(self, options: RequestOptions) -> bool:
        if self._pre_request is not None:
            if not await call_hook(self._pre_request, options):
                return False
        results = await emit_logged(self._events, CrawlerEvent.PRE_REQUEST, options)
        return all(result is not False for result in results)

    async def _check_duplicate(self, options: RequestOptions) -> bool:
        if not options.skip_duplicates:
            return False
        return not await self._cache.add(generate_key(options), VISITED)

    async def _check_robots(self, options: RequestOptions) -> bool:
        if not options.obey_robots_txt:
            return True
        user_agent = resolve_user_agent(options, self._default_user_agent())
        return await self._robots.is_allowed(options.url, user_agent)

    async def _check_domain(self, options: RequestOptions) -> bool:
        return is_domain_allowed(options)
