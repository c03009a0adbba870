"""ScriptRuntime and scenario file tests."""

import asyncio
import unittest
from pathlib import Path

import pytest

from tilescript_core import Actor, ActorKind, FailureKind, Position
from tilescript_engine import EngineConfig, ScriptRuntime, VirtualClock, build_runtime, load_scenario, parse_scenario

EXAMPLE_SCENARIO = Path(__file__).resolve().parent.parent / "examples" / "farm_and_mine.yaml"

SMALL_SCENARIO = """
name: Tiny
world:
  width: 8
  height: 6
  resources: {wheat: 2}
tiles:
  - type: farmland
    id: field
    position: [3, 2]
    properties: {growth_seconds: 1}
actors:
  - id: player
    position: [2, 2]
    variables: {steps: 1}
    scripts:
      main: |
        for i in range(steps):
            move_right()
        plant("corn")
  - id: helper
    kind: drone
    position: [0, 0]
"""


# ============================================================================
# Scenario parsing
# ============================================================================


def test_parse_scenario() -> None:
    scenario = parse_scenario(SMALL_SCENARIO)

    assert scenario.name == "Tiny"
    assert scenario.world.width == 8
    assert scenario.tiles[0].position == Position(x=3, y=2)
    assert scenario.actors[0].scripts["main"].startswith("for i in range(steps):")
    helper = scenario.actors[1].to_actor()
    assert helper.kind == ActorKind.DRONE
    assert helper.stats.speed == 3.0


def test_scenario_must_be_a_mapping() -> None:
    with pytest.raises(ValueError):
        parse_scenario("- just\n- a list\n")


def test_bad_position_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_scenario("tiles:\n  - type: farmland\n    position: [1, 2, 3]\n")


def test_build_runtime_places_everything() -> None:
    runtime = build_runtime(parse_scenario(SMALL_SCENARIO), EngineConfig(use_virtual_clock=True))

    assert runtime.store.bounds.width == 8
    assert runtime.store.get_resource("wheat") == 2
    assert runtime.store.get_tile("field").type == "farmland"
    assert runtime.store.get_tile("field").properties["growth_seconds"] == 1
    assert set(runtime.interpreters) == {"player", "helper"}
    assert runtime.interpreters["player"].subroutine_names() == ["main"]
    assert isinstance(runtime.clock, VirtualClock)


def test_build_runtime_does_not_touch_the_given_config() -> None:
    config = EngineConfig(use_virtual_clock=True)

    build_runtime(parse_scenario(SMALL_SCENARIO), config)

    assert config.world.width == 52


def test_unknown_tile_type_fails_the_build() -> None:
    scenario = parse_scenario("tiles:\n  - type: volcano\n    position: [1, 1]\n")
    with pytest.raises(ValueError):
        build_runtime(scenario, EngineConfig(use_virtual_clock=True))


def test_actor_outside_world_fails_the_build() -> None:
    scenario = parse_scenario("world: {width: 4, height: 4}\nactors:\n  - id: p\n    position: [9, 9]\n")
    with pytest.raises(ValueError):
        build_runtime(scenario, EngineConfig(use_virtual_clock=True))


def test_interpreter_for_unknown_actor() -> None:
    runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))
    with pytest.raises(ValueError):
        runtime.interpreter_for("nobody")


# ============================================================================
# Running
# ============================================================================


class ScriptRuntimeTest(unittest.IsolatedAsyncioTestCase):
    async def test_run_small_scenario(self) -> None:
        runtime = build_runtime(parse_scenario(SMALL_SCENARIO), EngineConfig(use_virtual_clock=True))

        results = await runtime.run_all()

        self.assertEqual(list(results), ["player"])
        self.assertTrue(results["player"].success, results["player"].message)
        self.assertTrue(await runtime.wait_for_tasks())
        field = runtime.store.get_tile("field")
        self.assertEqual(field.state, {"status": "ready", "crop": "corn"})

    async def test_run_example_scenario(self) -> None:
        runtime = build_runtime(load_scenario(EXAMPLE_SCENARIO), EngineConfig(use_virtual_clock=True))

        results = await runtime.run_all()

        for actor_id, result in results.items():
            self.assertTrue(result.success, f"{actor_id}: {result.message}")
        store = runtime.store
        self.assertEqual(store.get_resource("wheat"), 1)
        self.assertEqual(store.get_resource("bitcoin"), 0)
        self.assertEqual(store.get_tile("wallet").state["stored"], {"bitcoin": 1})
        self.assertEqual(store.get_tile("miner").state["status"], "idle")
        self.assertEqual(runtime.interpreters["player"].context.output, ["Energy left: 80"])
        self.assertEqual(runtime.interpreters["drone"].context.output, ["Stored 1 bitcoin"])

    async def test_run_actor_without_scripts(self) -> None:
        runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))

        result = await runtime.run_actor("ghost")

        self.assertEqual(result.kind, FailureKind.NOT_FOUND)

    async def test_stop_cancels_tasks_without_completing_them(self) -> None:
        runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))
        runtime.add_tile("farmland", Position(x=1, y=1), tile_id="field")
        runtime.add_actor(Actor(id="player", position=Position(x=1, y=1)), {"main": "plant()\nmove_right()"})

        task = asyncio.create_task(runtime.run_all())
        for _ in range(50):
            await asyncio.sleep(0)
            if runtime.store.get_actor("player").is_blocked:
                break
        self.assertTrue(runtime.store.get_actor("player").is_blocked)

        runtime.stop()
        results = await task

        self.assertEqual(results["player"].kind, FailureKind.STOPPED)
        actor = runtime.store.get_actor("player")
        self.assertFalse(actor.is_blocked)
        self.assertEqual(actor.position, Position(x=1, y=1))
        self.assertEqual(actor.stats.energy, 95)
        self.assertEqual(runtime.store.get_tile("field").state, {"status": "empty", "crop": None})
        self.assertEqual(runtime.scheduler.active_keys(), [])

    async def test_actors_run_concurrently_on_one_clock(self) -> None:
        runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))
        runtime.add_actor(Actor(id="a", position=Position(x=0, y=0)), {"main": "wait(3)\nprint(1)"})
        runtime.add_actor(Actor(id="b", position=Position(x=0, y=5)), {"main": "wait(2)\nprint(2)"})

        results = await runtime.run_all()

        self.assertTrue(all(result.success for result in results.values()))
        self.assertEqual(runtime.clock.now(), 3)


if __name__ == "__main__":
    unittest.main()
