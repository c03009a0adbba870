import asyncio
import unittest

from tilescript_core import WILDCARD, EventBus


class EventBusTest(unittest.IsolatedAsyncioTestCase):
    async def test_publish_delivers_payload(self) -> None:
        bus = EventBus()
        seen = []

        async def handler(payload):
            seen.append(payload)

        await bus.subscribe("demo", handler)
        await bus.publish("demo", {"value": 42})
        await asyncio.sleep(0)  # allow scheduled tasks to run

        self.assertEqual(seen, [{"topic": "demo", "value": 42}])

    async def test_wildcard_receives_every_topic(self) -> None:
        bus = EventBus()
        topics = []

        async def handler(payload):
            topics.append(payload["topic"])

        await bus.subscribe(WILDCARD, handler)
        bus.emit("execution.line", {"line_number": 1})
        bus.emit("task.started", {"label": "planting"})
        await bus.drain()

        self.assertEqual(topics, ["execution.line", "task.started"])

    async def test_clear_drops_subscriptions(self) -> None:
        bus = EventBus()
        seen = []

        async def handler(payload):
            seen.append(payload)

        await bus.subscribe("demo", handler)
        bus.clear()
        await bus.publish("demo", {"value": 1})
        await asyncio.sleep(0)

        self.assertEqual(seen, [])

    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen = []

        async def handler(payload):
            seen.append(payload["value"])

        await bus.subscribe("demo", handler)
        await bus.publish("demo", {"value": 1})
        await bus.drain()
        await bus.unsubscribe("demo", handler)
        await bus.publish("demo", {"value": 2})
        await bus.drain()

        self.assertEqual(seen, [1])

    async def test_handler_failure_isolated(self) -> None:
        bus = EventBus()
        seen = []

        async def bad_handler(payload):
            raise RuntimeError("boom")

        async def good_handler(payload):
            seen.append(payload.get("value"))

        await bus.subscribe("demo", bad_handler)
        await bus.subscribe("demo", good_handler)
        with self.assertLogs("tilescript.event_bus", level="ERROR"):
            await bus.publish("demo", {"value": 7})
            await bus.drain()

        self.assertEqual(seen, [7])


def test_emit_without_loop_is_dropped() -> None:
    bus = EventBus()
    bus.emit("demo", {"value": 1})  # must not raise outside an event loop


if __name__ == "__main__":
    unittest.main()
