"""
Script runtime for TileScript Engine.

ScriptRuntime wires the engine services together as explicit objects (no
module-level singletons) and runs one Interpreter per controllable actor:
the player and any drones. Interpreters share the store, scheduler and clock;
each one respects its own actor's blocked flag.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional

from tilescript_core import (
    Actor,
    EventBus,
    ExecutionResult,
    FailureKind,
    Position,
    Tile,
    WorldBounds,
    fail,
)

from .capabilities import CapabilityRegistry, build_default_registry
from .clock import Clock, RealClock, VirtualClock
from .config import EngineConfig
from .context import ExecutionContext
from .interpreter import Interpreter
from .movement import MovementBridge, SimulatedMovementBridge
from .scheduler import TaskScheduler
from .tiles import TileFunctionDispatch, TileTypeRegistry, build_default_tile_types
from .utils.logging import get_logger, log_operation
from .world_store import WorldStateStore

logger = get_logger("runtime")


class ScriptRuntime:
    """Owns the engine services and the per-actor interpreters.

    Usage:
        runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))
        runtime.add_actor(Actor(id="player", position=Position(x=5, y=5)))
        runtime.load_scripts("player", {"main": "move_right()"})
        results = await runtime.run_all()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        store: Optional[WorldStateStore] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        registry: Optional[CapabilityRegistry] = None,
        tile_types: Optional[TileTypeRegistry] = None,
        bridge: Optional[MovementBridge] = None,
    ):
        self.config = config or EngineConfig()
        self.clock = clock or (VirtualClock() if self.config.use_virtual_clock else RealClock())
        self.store = store or WorldStateStore(
            bounds=WorldBounds(width=self.config.world.width, height=self.config.world.height)
        )
        self.event_bus = event_bus or EventBus()
        self.scheduler = TaskScheduler(self.store, self.clock, self.event_bus)
        self.bridge = bridge or SimulatedMovementBridge(self.store, self.clock)
        self.registry = registry or build_default_registry()
        self.tile_types = tile_types or build_default_tile_types()
        self.tiles = TileFunctionDispatch(self.store, self.scheduler, self.tile_types)
        self._interpreters: Dict[str, Interpreter] = {}

    # ========================================================================
    # World setup
    # ========================================================================

    def add_actor(self, actor: Actor, scripts: Optional[Mapping[str, str]] = None) -> Interpreter:
        """Place an actor in the world and create its interpreter."""
        self.store.add_actor(actor)
        interpreter = self.interpreter_for(actor.id)
        if scripts:
            interpreter.set_subroutines(scripts)
        return interpreter

    def add_tile(
        self,
        tile_type: str,
        position: Position,
        name: Optional[str] = None,
        tile_id: Optional[str] = None,
        state: Optional[Dict[str, Any]] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Tile:
        tile = self.tile_types.create_tile(tile_type, position, name, tile_id, state, properties)
        return self.store.add_tile(tile)

    def interpreter_for(self, actor_id: str, variables: Optional[Dict[str, Any]] = None) -> Interpreter:
        """The actor's interpreter, created on first use."""
        interpreter = self._interpreters.get(actor_id)
        if interpreter is not None:
            return interpreter
        actor = self.store.get_actor(actor_id)
        if actor is None:
            raise ValueError(f"Actor {actor_id} not found")
        context = ExecutionContext(
            actor=actor,
            store=self.store,
            scheduler=self.scheduler,
            clock=self.clock,
            bridge=self.bridge,
            tiles=self.tiles,
            config=self.config,
            event_bus=self.event_bus,
            variables=dict(variables or {}),
        )
        interpreter = Interpreter(context, self.registry)
        self._interpreters[actor_id] = interpreter
        return interpreter

    def load_scripts(self, actor_id: str, scripts: Mapping[str, str]) -> None:
        self.interpreter_for(actor_id).set_subroutines(scripts)

    @property
    def interpreters(self) -> Dict[str, Interpreter]:
        return dict(self._interpreters)

    # ========================================================================
    # Execution
    # ========================================================================

    async def run_actor(self, actor_id: str) -> ExecutionResult:
        interpreter = self._interpreters.get(actor_id)
        if interpreter is None:
            return fail(FailureKind.NOT_FOUND, f"No scripts loaded for actor '{actor_id}'")
        return await interpreter.execute_main()

    async def run_all(self, actor_ids: Optional[Iterable[str]] = None) -> Dict[str, ExecutionResult]:
        """Run every (or the selected) actor's main script concurrently."""
        ids: List[str] = list(actor_ids) if actor_ids is not None else [
            actor_id for actor_id, interpreter in self._interpreters.items() if interpreter.subroutine_names()
        ]
        log_operation(logger, "Running scripts", {"actors": ", ".join(ids) or "none"})
        results = await asyncio.gather(*(self.run_actor(actor_id) for actor_id in ids))
        return dict(zip(ids, results))

    def stop(self) -> None:
        """Stop every interpreter and cancel every scheduled task.

        Energy already spent is not refunded. A tile left mid-task (planting,
        mining) returns to its resting status so it can be used again.
        """
        for actor_id, interpreter in self._interpreters.items():
            interpreter.stop()
            self.bridge.stop(actor_id)
        cancelled = self.scheduler.cancel_all()
        log_operation(logger, "Runtime stopped", {"cancelled_tasks": cancelled})

    async def wait_for_tasks(self, timeout: Optional[float] = None) -> bool:
        """Let scheduled tasks run to completion.

        With a VirtualClock time jumps straight to each due timer. Returns
        False if tasks were still active when `timeout` (clock seconds) ran
        out.
        """
        deadline = None if timeout is None else self.clock.now() + timeout
        while self.scheduler.active_keys():
            if deadline is not None and self.clock.now() >= deadline:
                return False
            if isinstance(self.clock, VirtualClock):
                if not self.clock.advance_to_next():
                    break
                await asyncio.sleep(0)
            else:
                await self.clock.sleep(0.05)
        return not self.scheduler.active_keys()
