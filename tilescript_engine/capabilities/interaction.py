"""Interaction capabilities: working with the tile under the actor.

The type-gated actions check the tile type first and fail without touching
anything when the actor is on the wrong tile (or on none). Otherwise they hand
over to TileFunctionDispatch, which owns every other precondition.
"""

from __future__ import annotations

from typing import Any, Optional

from tilescript_core import ExecutionResult, FailureKind, ParameterSpec, Tile, fail, ok

from ..context import ExecutionContext
from ..tiles import HARVEST_ENERGY_COST, PLANT_ENERGY_COST, STORE_ENERGY_COST, display_name
from .registry import Capability, CapabilityCategory, CapabilityRegistry

REQUIRED_TILE = {
    "plant": ("farmland", "You must be on farmland to plant"),
    "harvest": ("farmland", "You must be on farmland to harvest"),
    "eat": ("food", "You must be on a food tile to eat"),
    "store": ("storage", "You must be on a storage tile to store resources"),
}


def describe_tile(tile: Tile) -> dict[str, Any]:
    """Plain-data view of a tile for scripts."""
    return {
        "id": tile.id,
        "name": display_name(tile),
        "type": tile.type,
        "position": [tile.position.x, tile.position.y],
        "state": dict(tile.state),
        "functions": tile.function_names(),
        "busy": tile.is_blocked,
    }


def _gated(function_name: str):
    tile_type, message = REQUIRED_TILE[function_name]

    async def execute(context: ExecutionContext, *args: Any, **kwargs: Any) -> ExecutionResult:
        tile: Optional[Tile] = context.current_tile()
        if tile is None or tile.type != tile_type:
            here = f"on {display_name(tile)}" if tile else "on an empty tile"
            return fail(
                FailureKind.PRECONDITION,
                f"{message} (currently {here} at {context.actor.position})",
                data={"required_tile": tile_type},
            )
        result = await context.tiles.invoke(context.actor.id, tile, function_name, args, kwargs)
        context.refresh_actor()
        return result

    execute.__name__ = function_name
    return execute


async def get_current_tile(context: ExecutionContext) -> ExecutionResult:
    tile = context.current_tile()
    if tile is None:
        return ok(f"No tile at {context.actor.position}", value=None)
    info = describe_tile(tile)
    return ok(f"On {info['name']} at {tile.position}", value=info, data=info)


async def can_harvest(context: ExecutionContext) -> ExecutionResult:
    tile = context.current_tile()
    ready = (
        tile is not None
        and tile.type == "farmland"
        and tile.state.get("status") == "ready"
        and not tile.is_blocked
    )
    return ok("Ready to harvest" if ready else "Nothing to harvest here", value=ready)


def register_interaction_capabilities(registry: CapabilityRegistry) -> None:
    registry.register(
        Capability(
            name="plant",
            category=CapabilityCategory.INTERACTION,
            description="Plant a crop on the farmland you stand on",
            executor=_gated("plant"),
            parameters=[ParameterSpec(name="crop", type="string", required=False, default="wheat")],
            energy_cost=PLANT_ENERGY_COST,
        )
    )
    registry.register(
        Capability(
            name="harvest",
            category=CapabilityCategory.INTERACTION,
            description="Harvest the ready crop you stand on",
            executor=_gated("harvest"),
            energy_cost=HARVEST_ENERGY_COST,
            returns="amount harvested",
        )
    )
    registry.register(
        Capability(
            name="eat",
            category=CapabilityCategory.INTERACTION,
            description="Eat at a food tile to restore energy",
            executor=_gated("eat"),
        )
    )
    registry.register(
        Capability(
            name="store",
            category=CapabilityCategory.INTERACTION,
            description="Move global resources into the storage tile you stand on",
            executor=_gated("store"),
            parameters=[
                ParameterSpec(name="amount", type="number", required=False, default=1),
                ParameterSpec(name="resource", type="string", required=False, default="bitcoin"),
            ],
            energy_cost=STORE_ENERGY_COST,
            returns="total stored",
        )
    )
    registry.register(
        Capability(
            name="get_current_tile",
            category=CapabilityCategory.INTERACTION,
            description="Describe the tile you stand on",
            executor=get_current_tile,
            returns="tile info, or None",
        )
    )
    registry.register(
        Capability(
            name="can_harvest",
            category=CapabilityCategory.INTERACTION,
            description="Whether the crop under you is ready",
            executor=can_harvest,
            returns="True or False",
        )
    )
