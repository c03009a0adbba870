"""World state store for TileScript Engine.

The WorldStateStore is the single authority for actors, tiles, global
resource counters and world bounds. Interpreters read snapshots from it and
write back through partial updates.

Models are replaced, never mutated in place: every update builds a new model
with `model_copy(update=...)`, so a snapshot handed out earlier stays a
consistent picture of the moment it was taken.

The store is synchronous. Because nothing here awaits, a call to `apply()`
cannot interleave with another coroutine and is therefore atomic with respect
to the asyncio timeline.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from tilescript_core import Actor, ActorStats, Position, Tile, WorldBounds

from .utils.logging import get_logger

logger = get_logger("world_store")

# Partial-update keys merged shallowly into the existing value instead of
# replacing it.
_MERGED_ACTOR_FIELDS = ("stats",)
_MERGED_TILE_FIELDS = ("state", "properties")

DEFAULT_RESOURCES = {"wheat": 0, "energy": 0, "bitcoin": 0}


class WorldStateStore:
    """In-memory authoritative world state."""

    def __init__(
        self,
        bounds: Optional[WorldBounds] = None,
        resources: Optional[Dict[str, int]] = None,
    ):
        self.bounds = bounds or WorldBounds()
        self._actors: Dict[str, Actor] = {}
        self._tiles: Dict[str, Tile] = {}
        self._resources: Dict[str, int] = dict(DEFAULT_RESOURCES)
        if resources:
            self._resources.update(resources)

    # ========================================================================
    # Registration
    # ========================================================================

    def add_actor(self, actor: Actor) -> Actor:
        if actor.id in self._actors:
            raise ValueError(f"Actor {actor.id} already exists")
        if not self.bounds.contains(actor.position):
            raise ValueError(f"Actor {actor.id} placed outside the world at {actor.position}")
        self._actors[actor.id] = actor
        logger.debug(f"Added {actor}")
        return actor

    def add_tile(self, tile: Tile) -> Tile:
        if tile.id in self._tiles:
            raise ValueError(f"Tile {tile.id} already exists")
        if not self.bounds.contains(tile.position):
            raise ValueError(f"Tile {tile.id} placed outside the world at {tile.position}")
        self._tiles[tile.id] = tile
        logger.debug(f"Added {tile}")
        return tile

    def remove_tile(self, tile_id: str) -> Optional[Tile]:
        return self._tiles.pop(tile_id, None)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_actor(self, actor_id: str) -> Optional[Actor]:
        return self._actors.get(actor_id)

    def get_tile(self, tile_id: str) -> Optional[Tile]:
        return self._tiles.get(tile_id)

    def get_tile_at(self, position: Position) -> Optional[Tile]:
        """Tile occupying the given coordinates, if any."""
        for tile in self._tiles.values():
            if tile.position == position:
                return tile
        return None

    def get_actor_at(self, position: Position, exclude: Optional[str] = None) -> Optional[Actor]:
        for actor in self._actors.values():
            if actor.id != exclude and actor.position == position:
                return actor
        return None

    def actors(self) -> List[Actor]:
        return list(self._actors.values())

    def tiles(self) -> List[Tile]:
        return list(self._tiles.values())

    @property
    def resources(self) -> Dict[str, int]:
        """Copy of the global resource counters."""
        return dict(self._resources)

    def get_resource(self, name: str) -> int:
        return self._resources.get(name, 0)

    # ========================================================================
    # Mutation
    # ========================================================================

    def _updated_actor(self, actor_id: str, changes: Dict[str, Any]) -> Actor:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise ValueError(f"Actor {actor_id} not found")
        update = dict(changes)
        for key in _MERGED_ACTOR_FIELDS:
            if key in update and isinstance(update[key], dict):
                update[key] = ActorStats(**{**actor.stats.model_dump(), **update[key]})
        # Validate the merged result so a bad partial raises here
        return Actor.model_validate({**actor.model_dump(), **_dumped(update)})

    def _updated_tile(self, tile_id: str, changes: Dict[str, Any]) -> Tile:
        tile = self._tiles.get(tile_id)
        if tile is None:
            raise ValueError(f"Tile {tile_id} not found")
        update = dict(changes)
        for key in _MERGED_TILE_FIELDS:
            if key in update:
                update[key] = {**getattr(tile, key), **update[key]}
        return Tile.model_validate({**tile.model_dump(), **_dumped(update)})

    def update_actor(self, actor_id: str, **changes: Any) -> Actor:
        """Apply a partial update to an actor.

        `stats` is merged into the current stats; any other field replaces
        the current value.

        Raises:
            ValueError: If the actor does not exist
        """
        actor = self._updated_actor(actor_id, changes)
        self._actors[actor_id] = actor
        return actor

    def update_tile(self, tile_id: str, **changes: Any) -> Tile:
        """Apply a partial update to a tile (`state`/`properties` merge)."""
        tile = self._updated_tile(tile_id, changes)
        self._tiles[tile_id] = tile
        return tile

    def update_resources(self, **changes: int) -> Dict[str, int]:
        """Set global resource counters."""
        for name, value in changes.items():
            if value < 0:
                raise ValueError(f"Resource {name} cannot go negative ({value})")
        self._resources.update(changes)
        return self.resources

    def apply(
        self,
        actor: Optional[Tuple[str, Dict[str, Any]]] = None,
        tile: Optional[Tuple[str, Dict[str, Any]]] = None,
        resources: Optional[Dict[str, int]] = None,
    ) -> None:
        """Apply several partial updates as one unit.

        Every update is validated before any of them is written; a failure
        leaves the store untouched.
        """
        new_actor = self._updated_actor(*actor) if actor else None
        new_tile = self._updated_tile(*tile) if tile else None
        if resources:
            for name, value in resources.items():
                if value < 0:
                    raise ValueError(f"Resource {name} cannot go negative ({value})")

        if new_actor is not None:
            self._actors[new_actor.id] = new_actor
        if new_tile is not None:
            self._tiles[new_tile.id] = new_tile
        if resources:
            self._resources.update(resources)

    def debit_energy(self, actor_id: str, amount: int) -> bool:
        """Subtract energy; False without effect if the actor cannot cover it."""
        actor = self._actors.get(actor_id)
        if actor is None or actor.stats.energy < amount:
            return False
        self.update_actor(actor_id, stats={"energy": actor.stats.energy - amount})
        logger.debug(f"Debited {amount} energy from {actor_id}")
        return True

    def summary(self) -> Dict[str, Any]:
        """Plain-data view of the world, for reports."""
        return {
            "bounds": {"width": self.bounds.width, "height": self.bounds.height},
            "resources": self.resources,
            "actors": [
                {
                    "id": a.id,
                    "name": a.name,
                    "position": [a.position.x, a.position.y],
                    "energy": a.stats.energy,
                    "task": a.task_state.current_task,
                }
                for a in self._actors.values()
            ],
            "tiles": [
                {
                    "id": t.id,
                    "type": t.type,
                    "position": [t.position.x, t.position.y],
                    "state": dict(t.state),
                    "task": t.task_state.current_task,
                }
                for t in self._tiles.values()
            ],
        }


def _dumped(update: Dict[str, Any]) -> Dict[str, Any]:
    """Turn model values into plain data so model_validate sees one shape."""
    return {
        key: value.model_dump() if hasattr(value, "model_dump") else value
        for key, value in update.items()
    }
