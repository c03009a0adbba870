"""Movement bridge for TileScript Engine.

The movement capabilities never change an actor's position themselves. They
ask a MovementBridge to move the actor and wait for the answer; the bridge
owns the tween and writes positions into the WorldStateStore.

SimulatedMovementBridge walks a Manhattan path (x first, then y), one tile
per step, each step lasting 1 / speed seconds on the engine clock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from tilescript_core import Position

from .clock import Clock
from .utils.logging import get_logger
from .world_store import WorldStateStore

logger = get_logger("movement")


class MovementBridge(ABC):
    """Interface between movement capabilities and whatever animates actors."""

    @abstractmethod
    async def request_move(self, actor_id: str, target: Position) -> bool:
        """Move an actor to `target`; True once it arrived, False if refused."""

    @abstractmethod
    def stop(self, actor_id: str) -> None:
        """Halt an in-flight move for the actor."""


def manhattan_path(start: Position, target: Position) -> List[Position]:
    """Positions visited from start (exclusive) to target (inclusive)."""
    path = []
    current = start
    step_x = 1 if target.x > start.x else -1
    while current.x != target.x:
        current = current.offset(dx=step_x)
        path.append(current)
    step_y = 1 if target.y > start.y else -1
    while current.y != target.y:
        current = current.offset(dy=step_y)
        path.append(current)
    return path


class SimulatedMovementBridge(MovementBridge):
    """Clock-driven movement without a renderer.

    A move is refused when the target is outside the world, when any tile on
    the path is marked `walkable: False` in its properties, or when another
    actor stands on the path. Stopping a move leaves the actor on the last
    tile it fully reached.
    """

    def __init__(self, store: WorldStateStore, clock: Clock):
        self.store = store
        self.clock = clock
        self._moving: Dict[str, bool] = {}

    def is_moving(self, actor_id: str) -> bool:
        return self._moving.get(actor_id, False)

    def _is_passable(self, actor_id: str, position: Position) -> bool:
        if not self.store.bounds.contains(position):
            return False
        tile = self.store.get_tile_at(position)
        if tile is not None and tile.properties.get("walkable", True) is False:
            return False
        return self.store.get_actor_at(position, exclude=actor_id) is None

    async def request_move(self, actor_id: str, target: Position) -> bool:
        actor = self.store.get_actor(actor_id)
        if actor is None:
            logger.warning(f"Move requested for unknown actor {actor_id}")
            return False
        if self.is_moving(actor_id):
            logger.debug(f"{actor_id} is already moving")
            return False

        path = manhattan_path(actor.position, target)
        if not all(self._is_passable(actor_id, step) for step in path):
            logger.debug(f"Path for {actor_id} to {target} is blocked")
            return False

        step_seconds = 1.0 / actor.stats.speed
        self._moving[actor_id] = True
        try:
            for step in path:
                await self.clock.sleep(step_seconds)
                if not self._moving.get(actor_id):
                    logger.info(f"Movement of {actor_id} stopped before {step}")
                    return False
                self.store.update_actor(actor_id, position=step)
        finally:
            self._moving.pop(actor_id, None)

        logger.debug(f"{actor_id} arrived at {target}")
        return True

    def stop(self, actor_id: str) -> None:
        if actor_id in self._moving:
            self._moving[actor_id] = False

    def stop_all(self) -> None:
        for actor_id in list(self._moving):
            self._moving[actor_id] = False
