"""
Tile types and tile function dispatch for TileScript Engine.

Tiles expose functions that only work while an actor stands on them
(`plant()` on farmland, `collect()` on a mining terminal, ...). This module
holds:

- TileTypeRegistry: tile type definitions (default state/properties, bound
  function specs, energy requirement) and their implementations
- TileFunctionDispatch: precondition checks and invocation

PRECONDITIONS (checked in order, before any side effect):
1. the function is bound to the tile                  -> not_found
2. the actor stands on the tile's exact coordinates   -> precondition
3. the actor is not mid-task                          -> blocked
4. the tile is not mid-task (unless the function allows it) -> blocked
5. the actor's energy meets the tile's energy_required -> resource

Implementations are synchronous: they read, decide and write through the
store and scheduler without awaiting, so each call is atomic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import BaseModel, Field

from tilescript_core import (
    Actor,
    ExecutionResult,
    Failure,
    FailureKind,
    ParameterSpec,
    Position,
    Tile,
    TileFunctionSpec,
    fail,
    not_enough_energy,
    ok,
)

from .scheduler import TaskScheduler
from .utils.logging import get_logger
from .world_store import WorldStateStore

logger = get_logger("tiles")

PLANT_ENERGY_COST = 5
HARVEST_ENERGY_COST = 5
STORE_ENERGY_COST = 2
COLLECT_ENERGY_COST = 5
CRANK_ENERGY_COST = 5

PLANTING_SECONDS = 2.0
EATING_SECONDS = 2.0


# ============================================================================
# Definitions
# ============================================================================


class TileTypeDefinition(BaseModel):
    """Blueprint for tiles of one type."""
    type: str
    name: str
    description: str = Field(default="")
    functions: list[TileFunctionSpec] = Field(default_factory=list)
    default_properties: dict[str, Any] = Field(default_factory=dict)
    default_state: dict[str, Any] = Field(default_factory=dict)
    energy_required: int = Field(default=0, ge=0)


@dataclass
class TileCall:
    """Everything a tile function implementation may touch."""

    store: WorldStateStore
    scheduler: TaskScheduler
    actor: Actor
    tile: Tile
    spec: TileFunctionSpec

    @property
    def energy(self) -> int:
        return self.actor.stats.energy

    def require_energy(self, amount: int) -> Optional[Failure]:
        if self.energy < amount:
            return not_enough_energy(amount, self.energy)
        return None

    def debit(self, amount: int) -> None:
        self.store.update_actor(self.actor.id, stats={"energy": self.energy - amount})


TileFunction = Callable[..., ExecutionResult]


def display_name(tile: Tile) -> str:
    return tile.name or tile.type.replace("_", " ")


class TileTypeRegistry:
    """Catalog of tile types and the functions implementing them."""

    def __init__(self):
        self._definitions: Dict[str, TileTypeDefinition] = {}
        self._implementations: Dict[str, Dict[str, TileFunction]] = {}

    def register(self, definition: TileTypeDefinition, implementations: Dict[str, TileFunction]) -> None:
        """Register a tile type.

        Raises:
            ValueError: On a duplicate type, or when a declared function has
                no implementation
        """
        if definition.type in self._definitions:
            raise ValueError(f"Tile type '{definition.type}' is already registered")
        missing = [spec.name for spec in definition.functions if spec.name not in implementations]
        if missing:
            raise ValueError(f"Tile type '{definition.type}' has no implementation for: {', '.join(missing)}")
        self._definitions[definition.type] = definition
        self._implementations[definition.type] = dict(implementations)
        logger.debug(f"Registered tile type: {definition.type}")

    def get(self, tile_type: str) -> Optional[TileTypeDefinition]:
        return self._definitions.get(tile_type)

    def types(self) -> list[str]:
        return list(self._definitions)

    def implementation(self, tile_type: str, function_name: str) -> Optional[TileFunction]:
        return self._implementations.get(tile_type, {}).get(function_name)

    def create_tile(
        self,
        tile_type: str,
        position: Position,
        name: Optional[str] = None,
        tile_id: Optional[str] = None,
        state: Optional[dict[str, Any]] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> Tile:
        """Build a Tile from its type definition plus overrides.

        Raises:
            ValueError: If the tile type is unknown
        """
        definition = self._definitions.get(tile_type)
        if definition is None:
            raise ValueError(f"Unknown tile type '{tile_type}'. Known types: {', '.join(self.types())}")
        fields: dict[str, Any] = {
            "type": tile_type,
            "name": name or definition.name,
            "description": definition.description,
            "position": position,
            "functions": list(definition.functions),
            "properties": {**definition.default_properties, **(properties or {})},
            "state": {**definition.default_state, **(state or {})},
            "energy_required": definition.energy_required,
        }
        if tile_id:
            fields["id"] = tile_id
        return Tile(**fields)


# ============================================================================
# Farmland
# ============================================================================


def plant(call: TileCall, crop: str = "wheat") -> ExecutionResult:
    status = call.tile.state.get("status", "empty")
    if status != "empty":
        return fail(FailureKind.PRECONDITION, f"Cannot plant here - the farmland is {status}")
    if failure := call.require_energy(PLANT_ENERGY_COST):
        return failure

    tile_id = call.tile.id
    growth_seconds = float(call.tile.properties.get("growth_seconds", 5))
    planting_seconds = PLANTING_SECONDS * call.actor.stats.planting_speed_multiplier
    store, scheduler = call.store, call.scheduler

    def finished_growing() -> None:
        store.update_tile(tile_id, state={"status": "ready"})

    def abandoned() -> None:
        store.update_tile(tile_id, state={"status": "empty", "crop": None})

    def finished_planting() -> None:
        store.update_tile(tile_id, state={"status": "growing"})
        scheduler.start_tile_task(
            tile_id,
            "growing",
            growth_seconds,
            f"{crop} growing",
            owner_actor_id=call.actor.id,
            on_complete=finished_growing,
            on_cancel=abandoned,
        )

    if not scheduler.start_actor_task(
        call.actor.id,
        "planting",
        planting_seconds,
        f"Planting {crop}",
        on_complete=finished_planting,
        on_cancel=abandoned,
    ):
        return fail(FailureKind.BLOCKED, f"Cannot plant right now - {call.actor.name} is busy")

    call.debit(PLANT_ENERGY_COST)
    store.update_tile(tile_id, state={"status": "planting", "crop": crop})
    return ok(
        f"Planting {crop}",
        data={"crop": crop, "growth_seconds": growth_seconds},
        duration_ms=planting_seconds * 1000.0,
    )


def harvest(call: TileCall) -> ExecutionResult:
    if call.tile.state.get("status") != "ready":
        return fail(FailureKind.PRECONDITION, "Crop is not ready to harvest yet")
    if failure := call.require_energy(HARVEST_ENERGY_COST):
        return failure

    crop = call.tile.state.get("crop") or "wheat"
    amount = call.actor.stats.harvest_amount
    call.store.apply(
        actor=(call.actor.id, {"stats": {"energy": call.energy - HARVEST_ENERGY_COST}}),
        tile=(call.tile.id, {"state": {"status": "empty", "crop": None}}),
        resources={crop: call.store.get_resource(crop) + amount},
    )
    return ok(f"Harvested {amount} {crop}", value=amount, data={"crop": crop, "amount": amount})


# ============================================================================
# Food
# ============================================================================


def eat(call: TileCall) -> ExecutionResult:
    restore = int(call.tile.properties.get("energy_restore", 50))
    store, actor_id = call.store, call.actor.id

    def finished_eating() -> None:
        actor = store.get_actor(actor_id)
        if actor is None:
            return
        energy = min(actor.stats.max_energy, actor.stats.energy + restore)
        store.update_actor(actor_id, stats={"energy": energy})

    if not call.scheduler.start_actor_task(
        actor_id, "eating", EATING_SECONDS, f"Eating at {display_name(call.tile)}", on_complete=finished_eating
    ):
        return fail(FailureKind.BLOCKED, f"Cannot eat right now - {call.actor.name} is busy")
    return ok(f"Eating (+{restore} energy)", data={"energy_restore": restore}, duration_ms=EATING_SECONDS * 1000.0)


# ============================================================================
# Storage
# ============================================================================


def store_resource(call: TileCall, amount: Any = 1, resource: str = "bitcoin") -> ExecutionResult:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0 or int(amount) != amount:
        return fail(FailureKind.PRECONDITION, f"Amount to store must be a positive whole number, got {amount!r}")
    amount = int(amount)
    available = call.store.get_resource(resource)
    if available < amount:
        return fail(
            FailureKind.RESOURCE,
            f"Not enough {resource}. Required: {amount}, Available: {available}",
            data={"required": amount, "available": available},
        )
    if failure := call.require_energy(STORE_ENERGY_COST):
        return failure

    stored = dict(call.tile.state.get("stored", {}))
    stored[resource] = stored.get(resource, 0) + amount
    call.store.apply(
        actor=(call.actor.id, {"stats": {"energy": call.energy - STORE_ENERGY_COST}}),
        tile=(call.tile.id, {"state": {"stored": stored}}),
        resources={resource: available - amount},
    )
    return ok(f"Stored {amount} {resource}", value=stored[resource], data={"stored": stored})


# ============================================================================
# Mining terminal
# ============================================================================


def mine_initiate(call: TileCall) -> ExecutionResult:
    status = call.tile.state.get("status", "idle")
    if status == "ready":
        return fail(FailureKind.PRECONDITION, "Bitcoin is ready - collect it before mining again")
    if status != "idle":
        return fail(FailureKind.PRECONDITION, "Mining is already in progress")

    cost = call.tile.energy_required
    initiate_seconds = float(call.tile.properties.get("initiate_seconds", 3))
    mining_seconds = float(call.tile.properties.get("mining_seconds", 10))
    quantity = int(call.tile.properties.get("yield", 1))
    store, scheduler = call.store, call.scheduler
    tile_id, actor_id = call.tile.id, call.actor.id

    def finished_mining() -> None:
        store.update_tile(tile_id, state={"status": "ready", "quantity": quantity})

    def abandoned() -> None:
        store.update_tile(tile_id, state={"status": "idle"})

    def finished_initiating() -> None:
        store.update_tile(tile_id, state={"status": "mining"})
        scheduler.start_tile_task(
            tile_id,
            "mining",
            mining_seconds,
            "Mining bitcoin",
            owner_actor_id=actor_id,
            on_complete=finished_mining,
            on_cancel=abandoned,
        )

    if not scheduler.start_actor_task(
        actor_id,
        "mining_initiate",
        initiate_seconds,
        "Starting the mining terminal",
        on_complete=finished_initiating,
        on_cancel=abandoned,
    ):
        return fail(FailureKind.BLOCKED, f"Cannot start mining right now - {call.actor.name} is busy")

    call.debit(cost)
    store.update_tile(tile_id, state={"status": "initiating"})
    return ok(
        "Mining started",
        data={"initiate_seconds": initiate_seconds, "mining_seconds": mining_seconds},
        duration_ms=initiate_seconds * 1000.0,
    )


def collect(call: TileCall) -> ExecutionResult:
    if call.tile.state.get("status") != "ready":
        return fail(FailureKind.PRECONDITION, "Bitcoin not ready - mining not finished")
    if failure := call.require_energy(COLLECT_ENERGY_COST):
        return failure

    quantity = int(call.tile.state.get("quantity", 0))
    call.store.apply(
        actor=(call.actor.id, {"stats": {"energy": call.energy - COLLECT_ENERGY_COST}}),
        tile=(call.tile.id, {"state": {"status": "idle", "quantity": 0}}),
        resources={"bitcoin": call.store.get_resource("bitcoin") + quantity},
    )
    return ok(f"Collected {quantity} bitcoin", value=quantity, data={"quantity": quantity})


# ============================================================================
# Dynamo
# ============================================================================


def crank(call: TileCall) -> ExecutionResult:
    if failure := call.require_energy(CRANK_ENERGY_COST):
        return failure

    output = int(call.tile.properties.get("energy_output", 10))
    crank_seconds = float(call.tile.properties.get("crank_seconds", 10))
    store, tile_id = call.store, call.tile.id

    def finished_cranking() -> None:
        tile = store.get_tile(tile_id)
        if tile is None:
            return
        store.apply(
            tile=(tile_id, {"state": {"energy_produced": tile.state.get("energy_produced", 0) + output}}),
            resources={"energy": store.get_resource("energy") + output},
        )

    if not call.scheduler.start_actor_task(
        call.actor.id, "cranking", crank_seconds, "Cranking the dynamo", on_complete=finished_cranking
    ):
        return fail(FailureKind.BLOCKED, f"Cannot crank right now - {call.actor.name} is busy")

    call.debit(CRANK_ENERGY_COST)
    return ok(f"Cranking (+{output} energy when done)", data={"energy_output": output}, duration_ms=crank_seconds * 1000.0)


# ============================================================================
# Default catalog
# ============================================================================


def build_default_tile_types() -> TileTypeRegistry:
    """Registry holding farmland, food, storage, mining_terminal and dynamo."""
    registry = TileTypeRegistry()
    registry.register(
        TileTypeDefinition(
            type="farmland",
            name="Farmland",
            description="Plant crops and harvest them once grown",
            functions=[
                TileFunctionSpec(
                    name="plant",
                    description="Plant a crop on empty farmland",
                    parameters=[ParameterSpec(name="crop", type="string", required=False, default="wheat")],
                    blocks_actor=True,
                ),
                TileFunctionSpec(name="harvest", description="Harvest a ready crop", requires_idle_tile=False),
            ],
            default_properties={"growth_seconds": 5},
            default_state={"status": "empty", "crop": None},
        ),
        {"plant": plant, "harvest": harvest},
    )
    registry.register(
        TileTypeDefinition(
            type="food",
            name="Food",
            description="Eat to restore energy",
            functions=[TileFunctionSpec(name="eat", description="Eat and restore energy", blocks_actor=True)],
            default_properties={"energy_restore": 50},
        ),
        {"eat": eat},
    )
    registry.register(
        TileTypeDefinition(
            type="storage",
            name="Wallet",
            description="Stores global resources",
            functions=[
                TileFunctionSpec(
                    name="store",
                    description="Move resources from the global pool into this storage",
                    parameters=[
                        ParameterSpec(name="amount", type="number", required=False, default=1),
                        ParameterSpec(name="resource", type="string", required=False, default="bitcoin"),
                    ],
                ),
            ],
            default_state={"stored": {}},
        ),
        {"store": store_resource},
    )
    registry.register(
        TileTypeDefinition(
            type="mining_terminal",
            name="Mining Terminal",
            description="Mines bitcoin over time",
            functions=[
                TileFunctionSpec(name="mine_initiate", description="Start mining", blocks_actor=True),
                TileFunctionSpec(name="collect", description="Collect mined bitcoin", requires_idle_tile=False),
            ],
            default_properties={"initiate_seconds": 3, "mining_seconds": 10, "yield": 1},
            default_state={"status": "idle", "quantity": 0},
            energy_required=10,
        ),
        {"mine_initiate": mine_initiate, "collect": collect},
    )
    registry.register(
        TileTypeDefinition(
            type="dynamo",
            name="Dynamo",
            description="Crank to generate energy",
            functions=[TileFunctionSpec(name="crank", description="Crank the dynamo", blocks_actor=True)],
            default_properties={"energy_output": 10, "crank_seconds": 10},
            default_state={"energy_produced": 0},
        ),
        {"crank": crank},
    )
    return registry


# ============================================================================
# Dispatch
# ============================================================================


class TileFunctionDispatch:
    """Resolves and invokes functions bound to tiles."""

    def __init__(self, store: WorldStateStore, scheduler: TaskScheduler, tile_types: TileTypeRegistry):
        self.store = store
        self.scheduler = scheduler
        self.tile_types = tile_types

    def find(self, actor: Actor, function_name: str) -> Optional[Tile]:
        """Tile under the actor that binds `function_name`, if any."""
        tile = self.store.get_tile_at(actor.position)
        if tile is not None and tile.get_function(function_name) is not None:
            return tile
        return None

    async def invoke(
        self,
        actor_id: str,
        tile: Tile,
        function_name: str,
        args: Sequence[Any] = (),
        kwargs: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Check preconditions, then run the tile function."""
        tile = self.store.get_tile(tile.id) or tile
        name = display_name(tile)

        spec = tile.get_function(function_name)
        implementation = self.tile_types.implementation(tile.type, function_name)
        if spec is None or implementation is None:
            return fail(FailureKind.NOT_FOUND, f"Function '{function_name}' is not available on {name}")

        actor = self.store.get_actor(actor_id)
        if actor is None:
            return fail(FailureKind.NOT_FOUND, f"Actor {actor_id} not found")
        if actor.position != tile.position:
            return fail(
                FailureKind.PRECONDITION,
                f"You must be on the {name} at {tile.position} to use {function_name}()",
            )
        if actor.is_blocked:
            return fail(FailureKind.BLOCKED, f"Entity is currently busy: {actor.task_state.describe()}")
        if spec.requires_idle_tile and tile.is_blocked:
            return fail(FailureKind.BLOCKED, f"{name} is already in use: {tile.task_state.describe()}")
        if actor.stats.energy < tile.energy_required:
            return not_enough_energy(tile.energy_required, actor.stats.energy)

        bound = _bind_arguments(spec, args, kwargs or {})
        if isinstance(bound, Failure):
            return bound

        logger.debug(f"{actor_id} -> {tile.type}.{function_name}({bound})")
        call = TileCall(self.store, self.scheduler, actor, tile, spec)
        return implementation(call, **bound)


def _bind_arguments(spec: TileFunctionSpec, args: Sequence[Any], kwargs: dict[str, Any]) -> dict[str, Any] | Failure:
    """Map call arguments onto the declared parameters."""
    if len(args) > len(spec.parameters):
        return fail(
            FailureKind.PRECONDITION,
            f"{spec.name}() takes {len(spec.parameters)} argument(s) but {len(args)} were given",
        )
    known = {param.name for param in spec.parameters}
    unexpected = [key for key in kwargs if key not in known]
    if unexpected:
        return fail(FailureKind.PRECONDITION, f"{spec.name}() got an unexpected argument '{unexpected[0]}'")

    bound: dict[str, Any] = {}
    for index, param in enumerate(spec.parameters):
        if index < len(args):
            bound[param.name] = args[index]
        elif param.name in kwargs:
            bound[param.name] = kwargs[param.name]
        elif param.required:
            return fail(FailureKind.PRECONDITION, f"{spec.name}() is missing the argument '{param.name}'")
    return bound
