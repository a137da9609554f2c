"""Consumer side of a crawl queue with a bounded number of in-flight pulls.

Entries live in a cache store (see ``crawl_scheduler.cache``). The queue
pulls from the store whenever a slot frees up, a push lands, or the watch
interval ticks, and broadcasts each entry as a ``"pull"`` event. The watch
tick is what notices entries pushed by other processes sharing the store.
"""
from __future__ import annotations

import asyncio
from typing import Any

from .cache import BaseCache
from .config import SETTINGS
from .events import AsyncEventBus
from .logging import get_logger

logger = get_logger(__name__)

PULL_EVENT = "pull"


class PriorityQueue(AsyncEventBus):
    """Priority queue draining into ``"pull"`` handlers.

    Args:
        cache: Store holding the entries.
        name: Queue name inside the store.
        max_concurrency: Upper bound on concurrent pulls, None for unbounded.
        interval: Seconds between watch ticks.
    """

    def __init__(
        self,
        cache: BaseCache,
        *,
        name: str = SETTINGS.queue_name,
        max_concurrency: int | None = None,
        interval: float = SETTINGS.pull_interval,
    ) -> None:
        super().__init__()
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.name = name
        self._cache = cache
        self._max_concurrency = max_concurrency
        self._interval = interval
        self._paused = False
        self._pending = 0
        self._idle_waiters: list[asyncio.Future[None]] = []
        self._watcher: asyncio.Task[None] | None = None
        self._pulls: set[asyncio.Task[None]] = set()

    def init(self) -> None:
        self._watch()

    def end(self) -> None:
        self._unwatch()

    async def push(self, *item: Any, priority: float = 0) -> None:
        await self._cache.enqueue(self.name, list(item), priority)
        self._schedule_pull()

    def pause(self) -> None:
        self._paused = True
        self._unwatch()
        self._resolve_idle()

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._watch()
        self._schedule_pull()

    def is_paused(self) -> bool:
        return self._paused

    def pending(self) -> int:
        return self._pending

    async def size(self) -> int:
        return await self._cache.size(self.name)

    async def on_idle(self) -> None:
        """Wait until nothing is in flight and the store has run dry.

        Also returns when the queue is paused.
        """
        if self._paused:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        await waiter

    def _schedule_pull(self) -> None:
        task = asyncio.ensure_future(self._pull())
        self._pulls.add(task)
        task.add_done_callback(self._pulls.discard)

    async def _pull(self) -> None:
        if self._paused:
            return
        if self._max_concurrency is not None and self._pending >= self._max_concurrency:
            return
        self._pending += 1
        entry = None
        try:
            entry = await self._cache.dequeue(self.name)
            if entry is not None:
                await self.emit(PULL_EVENT, *entry)
        except Exception:
            logger.exception("queue.pull_failed", queue=self.name, pending=self._pending)
        finally:
            self._pending -= 1
        if entry is None:
            if self._pending == 0:
                self._resolve_idle()
            return
        self._schedule_pull()

    def _resolve_idle(self) -> None:
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _watch(self) -> None:
        self._unwatch()
        self._watcher = asyncio.get_running_loop().create_task(self._watch_loop())

    def _unwatch(self) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._schedule_pull()
