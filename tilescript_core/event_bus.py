from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeAlias

EventPayload: TypeAlias = Dict[str, Any]
EventHandler: TypeAlias = Callable[[EventPayload], Awaitable[None]]

WILDCARD = "*"


class EventBus:
    """Pub/sub hub between the execution core and a presentation layer.

    The core only publishes. Handlers registered under WILDCARD receive every
    topic; the payload always carries its topic under the "topic" key.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)
        # Lazy initialization to avoid event loop binding issues
        self._lock: Optional[asyncio.Lock] = None
        self._loop_id: Optional[int] = None
        self._pending: set[asyncio.Task] = set()
        self._logger = logging.getLogger("tilescript.event_bus")

    def _ensure_lock(self) -> asyncio.Lock:
        """Get or create lock for current event loop."""
        try:
            loop_id = id(asyncio.get_running_loop())
            if self._loop_id is not None and self._loop_id != loop_id:
                self._lock = None
            if self._lock is None:
                self._lock = asyncio.Lock()
                self._loop_id = loop_id
        except RuntimeError:
            if self._lock is None:
                self._lock = asyncio.Lock()
        return self._lock

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Register an async handler for a topic (or WILDCARD)."""
        async with self._ensure_lock():
            if handler not in self._subscribers[topic]:
                self._subscribers[topic].append(handler)

    async def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        async with self._ensure_lock():
            if handler in self._subscribers.get(topic, []):
                self._subscribers[topic].remove(handler)

    def _handlers_for(self, topic: str) -> List[EventHandler]:
        return list(self._subscribers.get(topic, [])) + list(self._subscribers.get(WILDCARD, []))

    async def publish(self, topic: str, payload: EventPayload) -> None:
        """Publish an event to all subscribers of `topic` and WILDCARD."""
        async with self._ensure_lock():
            handlers = self._handlers_for(topic)
        self._dispatch(topic, handlers, payload)

    def emit(self, topic: str, payload: EventPayload) -> None:
        """Fire-and-forget publish for synchronous callers (timer callbacks).

        Requires a running event loop; without one the event is dropped.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._logger.debug(f"No running loop, dropping '{topic}' event")
            return
        self._dispatch(topic, self._handlers_for(topic), payload)

    def _dispatch(self, topic: str, handlers: List[EventHandler], payload: EventPayload) -> None:
        if not handlers:
            self._logger.debug(f"No subscribers for topic '{topic}'")
            return
        message = {"topic": topic, **payload}
        for handler in handlers:
            task = asyncio.create_task(self._safe_dispatch(topic, handler, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _safe_dispatch(self, topic: str, handler: EventHandler, payload: EventPayload) -> None:
        """Keep one handler failure from stopping the bus."""
        handler_name = getattr(handler, "__name__", str(handler))
        try:
            await handler(payload)
        except Exception as exc:
            self._logger.exception(
                f"EventBus handler error in '{handler_name}' for topic '{topic}'",
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait until every dispatched handler has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._subscribers.clear()
