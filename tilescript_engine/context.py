"""Execution context handed to every capability executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from tilescript_core import Actor, EventBus, Tile

from .clock import Clock
from .config import EngineConfig
from .movement import MovementBridge
from .scheduler import TaskScheduler
from .world_store import WorldStateStore

if TYPE_CHECKING:
    from .tiles import TileFunctionDispatch


@dataclass
class ExecutionContext:
    """Services and per-actor state visible to a running script.

    `actor` is a snapshot. The store stays authoritative; call
    `refresh_actor()` after anything that may have changed the world.
    """

    actor: Actor
    store: WorldStateStore
    scheduler: TaskScheduler
    clock: Clock
    bridge: MovementBridge
    tiles: "TileFunctionDispatch"
    config: EngineConfig = field(default_factory=EngineConfig)
    event_bus: Optional[EventBus] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    output: List[str] = field(default_factory=list)

    @property
    def actor_id(self) -> str:
        return self.actor.id

    def refresh_actor(self) -> Actor:
        """Re-read the actor snapshot from the store."""
        fresh = self.store.get_actor(self.actor.id)
        if fresh is not None:
            self.actor = fresh
        return self.actor

    def current_tile(self) -> Optional[Tile]:
        """Tile under the actor, looked up from the store."""
        return self.store.get_tile_at(self.refresh_actor().position)
