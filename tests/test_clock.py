import asyncio
import unittest

import pytest

from tilescript_engine.clock import VirtualClock


def test_advance_fires_timers_in_due_order() -> None:
    clock = VirtualClock()
    fired = []
    clock.call_later(3, lambda: fired.append("c"))
    clock.call_later(1, lambda: fired.append("a"))
    clock.call_later(2, lambda: fired.append("b"))

    clock.advance(2.5)

    assert fired == ["a", "b"]
    assert clock.now() == 2.5
    assert clock.pending() == 1


def test_cancelled_timer_never_fires() -> None:
    clock = VirtualClock()
    fired = []
    handle = clock.call_later(1, lambda: fired.append("x"))
    handle.cancel()

    clock.advance(5)

    assert fired == []
    assert handle.cancelled()


def test_timer_armed_during_advance_fires_inside_window() -> None:
    clock = VirtualClock()
    fired = []

    def first() -> None:
        fired.append(("first", clock.now()))
        clock.call_later(1, lambda: fired.append(("second", clock.now())))

    clock.call_later(1, first)
    clock.advance(3)

    assert fired == [("first", 1), ("second", 2)]


def test_failing_callback_does_not_stop_the_clock() -> None:
    clock = VirtualClock()
    fired = []

    def boom() -> None:
        raise RuntimeError("boom")

    clock.call_later(1, boom)
    clock.call_later(2, lambda: fired.append("after"))
    clock.advance(2)

    assert fired == ["after"]


def test_cannot_move_backwards() -> None:
    with pytest.raises(ValueError):
        VirtualClock().advance(-1)


class VirtualSleepTest(unittest.IsolatedAsyncioTestCase):
    async def test_sleep_advances_time(self) -> None:
        clock = VirtualClock()
        await clock.sleep(1.5)
        self.assertEqual(clock.now(), 1.5)

    async def test_concurrent_sleepers_share_the_timeline(self) -> None:
        clock = VirtualClock()
        woke = []

        async def sleeper(name: str, seconds: float) -> None:
            await clock.sleep(seconds)
            woke.append((name, clock.now()))

        await asyncio.gather(sleeper("long", 2), sleeper("short", 1))

        self.assertEqual(woke, [("short", 1), ("long", 2)])
        self.assertEqual(clock.now(), 2)

    async def test_sleep_fires_earlier_timers(self) -> None:
        clock = VirtualClock()
        fired = []
        clock.call_later(0.5, lambda: fired.append(clock.now()))

        await clock.sleep(1)

        self.assertEqual(fired, [0.5])


if __name__ == "__main__":
    unittest.main()
