"""Time sources for TileScript Engine.

The scheduler, the movement bridge and the timed capabilities never read the
wall clock or call asyncio directly. They go through a Clock so that:

- RealClock runs against the asyncio event loop (interactive play), and
- VirtualClock advances instantly and deterministically (tests, headless
  simulation), firing timers in due-time order.

Timers are cancellable handles; cancelling one guarantees its callback never
runs.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from typing import Callable, Protocol

from .utils.logging import get_logger

logger = get_logger("clock")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run `callback` after `delay` seconds; returns a cancellable handle."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine for `seconds`."""


class RealClock(Clock):
    """Wall-clock time driven by the running asyncio loop."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, delay), callback)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class VirtualTimer:
    """Timer handle for VirtualClock."""

    __slots__ = ("due", "callback", "_cancelled")

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class VirtualClock(Clock):
    """Deterministic clock whose time only moves when asked to.

    Time moves through `advance()` (tests) or when every coroutine sleeping on
    this clock is waiting, in which case `sleep()` jumps straight to the next
    due timer.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._heap: list[tuple[float, int, VirtualTimer]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._heap, (timer.due, next(self._seq), timer))
        return timer

    def pending(self) -> int:
        """Number of armed, non-cancelled timers."""
        return sum(1 for _, _, timer in self._heap if not timer.cancelled())

    def _fire(self, timer: VirtualTimer) -> None:
        try:
            timer.callback()
        except Exception:
            logger.exception("Virtual timer callback failed")

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every timer due on the way, in order.

        Timers armed by callbacks during the advance fire too if they fall
        inside the window.
        """
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        target = self._now + seconds
        while self._heap and self._heap[0][0] <= target:
            due, _, timer = heapq.heappop(self._heap)
            if timer.cancelled():
                continue
            self._now = due
            self._fire(timer)
        self._now = target

    def advance_to_next(self) -> bool:
        """Jump to the earliest pending timer and fire everything due then."""
        while self._heap and self._heap[0][2].cancelled():
            heapq.heappop(self._heap)
        if not self._heap:
            return False
        self.advance(self._heap[0][0] - self._now)
        return True

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        woke = asyncio.get_running_loop().create_future()

        def wake() -> None:
            if not woke.done():
                woke.set_result(None)

        self.call_later(seconds, wake)
        while not woke.done():
            # Let other coroutines reach their own suspension points first.
            await asyncio.sleep(0)
            if not woke.done():
                self.advance_to_next()
