"""Turns a page's links into child requests one level deeper."""
from __future__ import annotations

from collections.abc import Iterable

from .admission import is_domain_allowed
from .cache import BaseCache
from .events import AsyncEventBus, CrawlerEvent, emit_logged
from .helpers import generate_key
from .logging import get_logger
from .models import RequestOptions
from .priority_queue import PriorityQueue

logger = get_logger(__name__)

# Keeps every depth band apart for explicit priorities in (-500_000, 500_000).
DEPTH_PRIORITY_WEIGHT = 1_000_000


def effective_priority(options: RequestOptions, depth: int) -> int:
    """Queue score of a request at ``depth``.

    With ``depth_priority`` deeper requests outrank shallower ones
    (depth-first); without it, only the explicit priority counts and equal
    priorities come out in insertion order (breadth-first).
    """
    if options.depth_priority:
        return depth * DEPTH_PRIORITY_WEIGHT + options.priority
    return options.priority


class LinkExpander:
    def __init__(self, queue: PriorityQueue, cache: BaseCache, events: AsyncEventBus) -> None:
        self._queue = queue
        self._cache = cache
        self._events = events

    async def expand(self, links: Iterable[str], options: RequestOptions, depth: int) -> int:
        """Queue children of ``options`` for ``links``; returns how many were pushed."""
        if depth >= options.max_depth:
            await emit_logged(self._events, CrawlerEvent.MAX_DEPTH_REACHED)
            return 0
        pushed = 0
        for link in links:
            child = options.for_link(link)
            if not is_domain_allowed(child):
                continue
            # Admission still decides; this only avoids queueing known URLs.
            if child.skip_duplicates and await self._cache.get(generate_key(child)) is not None:
                continue
            await self._queue.push(
                child.to_entry(),
                depth + 1,
                options.url,
                priority=effective_priority(child, depth + 1),
            )
            pushed += 1
        logger.debug("expansion.pushed", url=options.url, depth=depth, children=pushed)
        return pushed
