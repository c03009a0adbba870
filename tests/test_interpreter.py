"""Interpreter tests: call resolution, control flow, failures and events."""

import asyncio
import unittest

from tilescript_core import Actor, ActorStats, EventBus, FailureKind, Position, ok
from tilescript_core.events import (
    TOPIC_EXECUTION_CALL,
    TOPIC_EXECUTION_COMPLETED,
    TOPIC_EXECUTION_ERROR,
    TOPIC_EXECUTION_FAILED,
    TOPIC_EXECUTION_LINE,
    TOPIC_EXECUTION_OUTPUT,
    TOPIC_EXECUTION_STARTED,
)
from tilescript_engine import EngineConfig, ExecutionConfig, ScriptRuntime
from tilescript_engine.capabilities import Capability, CapabilityCategory, build_default_registry


def make_interpreter(scripts=None, config=None, event_bus=None):
    runtime = ScriptRuntime(config or EngineConfig(use_virtual_clock=True), event_bus=event_bus)
    interpreter = runtime.add_actor(Actor(id="qubit", position=Position(x=5, y=5)), scripts)
    return runtime, interpreter


class CallResolutionTest(unittest.IsolatedAsyncioTestCase):
    async def test_unknown_function_is_not_found(self) -> None:
        _, interpreter = make_interpreter()

        result = await interpreter.execute_function("foo")

        self.assertFalse(result.success)
        self.assertEqual(result.kind, FailureKind.NOT_FOUND)
        self.assertIn("not found", result.message)

    async def test_missing_main(self) -> None:
        _, interpreter = make_interpreter({"helper": "move_up()"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.NOT_FOUND)
        self.assertEqual(result.message, "No main function found")

    async def test_subroutine_with_parameter_and_return(self) -> None:
        _, interpreter = make_interpreter(
            {
                "main": "x = double(4)\nprint(x)",
                "double": "def double(n):\n    return n * 2",
            }
        )

        result = await interpreter.execute_main()

        self.assertTrue(result.success, result.message)
        self.assertEqual(result.message, "Execution completed successfully")
        self.assertEqual(interpreter.context.output, ["8"])

    async def test_def_inside_main_is_callable(self) -> None:
        _, interpreter = make_interpreter({"main": "def helper():\n    return 5\nprint(helper())"})

        await interpreter.execute_main()

        self.assertEqual(interpreter.context.output, ["5"])

    async def test_capability_wins_over_subroutine(self) -> None:
        runtime, interpreter = make_interpreter({"main": "get_energy()", "get_energy": "print('shadow')"})

        result = await interpreter.execute_main()

        self.assertTrue(result.success)
        self.assertEqual(interpreter.context.output, [])

    async def test_subroutine_argument_count(self) -> None:
        _, interpreter = make_interpreter({"main": "greet(1, 2)", "greet": "def greet(name):\n    print(name)"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.PRECONDITION)
        self.assertEqual(result.line, 1)

    async def test_blocking_tile_function_holds_the_script(self) -> None:
        runtime, interpreter = make_interpreter({"main": "crank()\nprint(get_energy())"})
        runtime.add_tile("dynamo", Position(x=5, y=5))

        result = await interpreter.execute_main()

        self.assertTrue(result.success, result.message)
        self.assertEqual(interpreter.context.output, ["95"])
        self.assertEqual(runtime.clock.now(), 10.0)
        self.assertEqual(runtime.store.get_resource("energy"), 10)

    async def test_single_call_does_not_wait(self) -> None:
        runtime, interpreter = make_interpreter()
        runtime.add_tile("dynamo", Position(x=5, y=5))

        await interpreter.execute_function("crank")
        result = await interpreter.execute_function("get_energy")

        self.assertEqual(result.kind, FailureKind.BLOCKED)
        self.assertEqual(result.message, "Entity is currently busy: Cranking the dynamo")

    async def test_wait_gives_up_after_timeout(self) -> None:
        config = EngineConfig(execution=ExecutionConfig(unblock_timeout_sec=2), use_virtual_clock=True)
        runtime, interpreter = make_interpreter({"main": "crank()\nprint('late')"}, config=config)
        runtime.add_tile("dynamo", Position(x=5, y=5))

        with self.assertLogs("tilescript.interpreter", level="WARNING"):
            result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.BLOCKED)
        self.assertEqual(result.line, 2)
        self.assertEqual(runtime.clock.now(), 2.5)


class ControlFlowTest(unittest.IsolatedAsyncioTestCase):
    async def test_loops_and_conditionals(self) -> None:
        source = (
            "total = 0\n"
            "for i in range(5):\n"
            "    if i == 3:\n"
            "        continue\n"
            "    total += i\n"
            "count = 0\n"
            "while count < 10:\n"
            "    count += 1\n"
            "    if count == 4:\n"
            "        break\n"
            'message = "total " + total\n'
            "print(message, count)\n"
        )
        _, interpreter = make_interpreter({"main": source})

        result = await interpreter.execute_main()

        self.assertTrue(result.success, result.message)
        self.assertEqual(interpreter.context.output, ["total 7 4"])
        self.assertEqual(interpreter.variables["total"], 7)

    async def test_if_elif_else_picks_one_branch(self) -> None:
        source = (
            "energy = get_energy()\n"
            "if energy < 20:\n"
            "    print('low')\n"
            "elif energy < 150:\n"
            "    print('fine')\n"
            "else:\n"
            "    print('full')\n"
        )
        _, interpreter = make_interpreter({"main": source})

        await interpreter.execute_main()

        self.assertEqual(interpreter.context.output, ["fine"])

    async def test_loop_over_text_and_tile_info(self) -> None:
        runtime, interpreter = make_interpreter(
            {"main": "for c in 'ab':\n    print(c)\ntile = scanner(3, 3)\nprint(tile['type'])"}
        )
        runtime.add_tile("farmland", Position(x=3, y=3))

        await interpreter.execute_main()

        self.assertEqual(interpreter.context.output, ["a", "b", "farmland"])

    async def test_movement_in_a_loop(self) -> None:
        runtime, interpreter = make_interpreter({"main": "for step in range(3):\n    move_right()"})

        result = await interpreter.execute_main()

        self.assertTrue(result.success)
        actor = runtime.store.get_actor("qubit")
        self.assertEqual(actor.position, Position(x=8, y=5))
        self.assertEqual(actor.stats.energy, 85)

    async def test_while_iteration_cap(self) -> None:
        config = EngineConfig(execution=ExecutionConfig(max_loop_iterations=5), use_virtual_clock=True)
        _, interpreter = make_interpreter({"main": "n = 0\nwhile True:\n    n += 1"}, config=config)

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.RUNTIME)
        self.assertEqual(result.message, "While loop exceeded maximum iterations (5). Possible infinite loop.")
        self.assertEqual(result.line, 2)
        self.assertEqual(interpreter.variables["n"], 5)

    async def test_lenient_assignment(self) -> None:
        _, interpreter = make_interpreter({"main": "name = hello world\nratio = 1 / 0\nprint(name)\nprint(ratio)"})

        result = await interpreter.execute_main()

        self.assertTrue(result.success)
        self.assertEqual(interpreter.context.output, ["hello world", "1 / 0"])

    async def test_unknown_name_is_its_own_text(self) -> None:
        _, interpreter = make_interpreter({"main": "print(hello)"})

        await interpreter.execute_main()

        self.assertEqual(interpreter.context.output, ["hello"])

    async def test_undefined_variable_in_augmented_assignment(self) -> None:
        _, interpreter = make_interpreter({"main": "move_up()\ntotal += 1"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.RUNTIME)
        self.assertEqual(result.message, "Variable 'total' is not defined")
        self.assertEqual(result.line, 2)

    async def test_break_outside_loop(self) -> None:
        _, interpreter = make_interpreter({"main": "break"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.SYNTAX)


class FailureTest(unittest.IsolatedAsyncioTestCase):
    async def test_failure_stops_the_script_with_its_line(self) -> None:
        runtime, interpreter = make_interpreter({"main": "move_right()\nmove_to(999, 0)\nmove_right()"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.BOUNDS)
        self.assertEqual(result.line, 2)
        self.assertEqual(runtime.store.get_actor("qubit").position, Position(x=6, y=5))

    async def test_actual_cost_above_energy_fails_without_rollback(self) -> None:
        registry = build_default_registry()
        dug = []

        async def dig(context):
            dug.append(context.actor_id)
            return ok("Dug a hole", energy_cost=50)

        registry.register(Capability("dig", CapabilityCategory.INTERACTION, "Dig a hole", dig, energy_cost=0))
        runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True), registry=registry)
        interpreter = runtime.add_actor(
            Actor(id="qubit", position=Position(x=5, y=5), stats=ActorStats(energy=20)),
            {"main": "dig()\nprint('after')"},
        )

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.RESOURCE)
        self.assertEqual(result.message, "Not enough energy. Required: 50, Available: 20")
        self.assertEqual(result.line, 1)
        self.assertEqual(dug, ["qubit"])
        self.assertEqual(runtime.store.get_actor("qubit").stats.energy, 20)
        self.assertEqual(interpreter.context.output, [])

    async def test_failed_call_inside_expression(self) -> None:
        _, interpreter = make_interpreter({"main": "x = foo()"})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.NOT_FOUND)
        self.assertEqual(result.line, 1)

    async def test_syntax_error_reports_line(self) -> None:
        _, interpreter = make_interpreter({"main": "move_right()\n\nmove_left("})

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.SYNTAX)
        self.assertEqual(result.line, 3)
        self.assertTrue(result.message.startswith("Syntax error in 'main' on line 3:"))

    async def test_fixed_script_recompiles(self) -> None:
        _, interpreter = make_interpreter({"main": "print("})
        self.assertFalse((await interpreter.execute_main()).success)

        interpreter.set_subroutines({"main": "print('fixed')"})
        result = await interpreter.execute_main()

        self.assertTrue(result.success)
        self.assertEqual(interpreter.context.output, ["fixed"])

    async def test_busy_actor(self) -> None:
        runtime, interpreter = make_interpreter({"main": "move_right()"})
        runtime.scheduler.start_actor_task("qubit", "eating", 2, "Eating")

        result = await interpreter.execute_main()

        self.assertEqual(result.kind, FailureKind.BLOCKED)
        self.assertEqual(runtime.store.get_actor("qubit").position, Position(x=5, y=5))

    async def test_stop_halts_before_next_statement(self) -> None:
        _, interpreter = make_interpreter({"main": "while True:\n    wait(1)"})

        task = asyncio.create_task(interpreter.execute_main())
        for _ in range(20):
            await asyncio.sleep(0)
        self.assertTrue(interpreter.is_running)
        interpreter.stop()
        result = await task

        self.assertEqual(result.kind, FailureKind.STOPPED)
        self.assertEqual(result.message, "Execution stopped")
        self.assertFalse(interpreter.is_running)


class InterpreterEventsTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bus = EventBus()
        self.seen = []

        async def record(payload) -> None:
            self.seen.append(payload)

        await self.bus.subscribe("*", record)

    async def test_successful_run(self) -> None:
        _, interpreter = make_interpreter({"main": "x = 1\nprint(x)"}, event_bus=self.bus)

        await interpreter.execute_main()
        await self.bus.drain()

        topics = [payload["topic"] for payload in self.seen]
        self.assertEqual(topics[0], TOPIC_EXECUTION_STARTED)
        self.assertEqual(topics[-1], TOPIC_EXECUTION_COMPLETED)
        lines = [p["line_number"] for p in self.seen if p["topic"] == TOPIC_EXECUTION_LINE]
        self.assertEqual(lines, [1, 2])
        calls = [p["function_name"] for p in self.seen if p["topic"] == TOPIC_EXECUTION_CALL]
        self.assertIn("print", calls)
        self.assertIn(TOPIC_EXECUTION_OUTPUT, topics)

    async def test_failure_emits_learner_error(self) -> None:
        _, interpreter = make_interpreter({"main": "move_to(999, 0)"}, event_bus=self.bus)

        await interpreter.execute_main()
        await self.bus.drain()

        errors = [p for p in self.seen if p["topic"] == TOPIC_EXECUTION_ERROR]
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0]["concept"], "coordinates")
        self.assertEqual(errors[0]["line_number"], 1)
        self.assertEqual(self.seen[-1]["topic"], TOPIC_EXECUTION_FAILED)


if __name__ == "__main__":
    unittest.main()
