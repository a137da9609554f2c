"""Async publish/subscribe with a joined completion awaitable."""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from enum import Enum
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

Handler = Callable[..., Any]


class CrawlerEvent(str, Enum):
    """Lifecycle events emitted by a crawler."""

    PRE_REQUEST = "prerequest"
    REQUEST_STARTED = "requeststarted"
    REQUEST_SKIPPED = "requestskipped"
    REQUEST_DISALLOWED = "requestdisallowed"
    REQUEST_FINISHED = "requestfinished"
    REQUEST_RETRIED = "requestretried"
    REQUEST_FAILED = "requestfailed"
    ROBOTS_TXT_REQUEST_FAILED = "robotstxtrequestfailed"
    MAX_DEPTH_REACHED = "maxdepthreached"
    MAX_REQUEST_REACHED = "maxrequestreached"
    DISCONNECTED = "disconnected"


def _event_name(event: str | Enum) -> str:
    return event.value if isinstance(event, Enum) else event


class AsyncEventBus:
    """Event emitter whose ``emit`` waits for every handler.

    Handlers run in registration order and may be plain callables or
    coroutine functions. ``emit`` never stops at the first failure: all
    handlers are joined, then the first error is raised.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str | Enum, handler: Handler) -> Handler:
        self._handlers.setdefault(_event_name(event), []).append(handler)
        return handler

    def off(self, event: str | Enum, handler: Handler) -> None:
        handlers = self._handlers.get(_event_name(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def listeners(self, event: str | Enum) -> list[Handler]:
        return list(self._handlers.get(_event_name(event), []))

    def listener_count(self, event: str | Enum) -> int:
        return len(self._handlers.get(_event_name(event), []))

    def remove_all_listeners(self, event: str | Enum | None = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(_event_name(event), None)

    async def emit(self, event: str | Enum, *args: Any) -> list[Any]:
        """Call every handler of ``event`` and wait for all of them.

        Returns the handler results in registration order.
        """
        awaitables = []
        for handler in self.listeners(event):
            awaitables.append(_invoke(handler, args))
        results = await asyncio.gather(*awaitables, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)


async def _invoke(handler: Handler, args: tuple[Any, ...]) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def emit_logged(bus: AsyncEventBus, event: str | Enum, *args: Any) -> list[Any]:
    """Emit a lifecycle event, logging listener failures instead of raising."""
    try:
        return await bus.emit(event, *args)
    except Exception:
        logger.exception("events.listener_failed", event_name=_event_name(event))
        return []
