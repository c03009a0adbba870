"""Movement capabilities: move_up/down/left/right and move_to.

Each move validates the target against the world bounds before the bridge is
asked for anything, then waits for the bridge to finish. Positions are never
written here; the snapshot is re-read from the store after a successful move.
"""

from __future__ import annotations

from typing import Any

from tilescript_core import ExecutionResult, FailureKind, ParameterSpec, Position, fail, ok

from ..context import ExecutionContext
from .arguments import as_int
from .registry import Capability, CapabilityCategory, CapabilityRegistry

DIRECTIONS = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}


def _step_cost(context: ExecutionContext, *args: Any, **kwargs: Any) -> int:
    return context.config.execution.move_energy_cost


def _move_to_cost(context: ExecutionContext, *args: Any, **kwargs: Any) -> int:
    target = _parse_target(*args, **kwargs)
    # Unusable targets fail in the executor without spending anything
    if target is None or not context.store.bounds.contains(target):
        return 0
    distance = context.refresh_actor().position.distance_to(target)
    return distance * context.config.execution.move_energy_cost


def _parse_target(*args: Any, **kwargs: Any) -> Position | None:
    x = args[0] if len(args) > 0 else kwargs.get("x")
    y = args[1] if len(args) > 1 else kwargs.get("y")
    x, y = as_int(x), as_int(y)
    if x is None or y is None:
        return None
    return Position(x=x, y=y)


def _out_of_bounds(context: ExecutionContext, target: Position, label: str) -> ExecutionResult:
    bounds = context.store.bounds
    return fail(
        FailureKind.BOUNDS,
        f"Cannot move {label} - position {target} is out of bounds "
        f"(world is {bounds.width}x{bounds.height})",
        data={"target": [target.x, target.y]},
    )


async def _travel(context: ExecutionContext, target: Position, label: str, cost: int) -> ExecutionResult:
    actor = context.refresh_actor()
    distance = actor.position.distance_to(target)

    arrived = await context.bridge.request_move(actor.id, target)
    if not arrived:
        return fail(FailureKind.BLOCKED, f"Cannot move {label} - blocked", data={"target": [target.x, target.y]})

    actor = context.refresh_actor()
    return ok(
        f"Moved {label}" if label.startswith("to ") else f"Moved {label} to {actor.position}",
        value=[actor.position.x, actor.position.y],
        data={"position": [actor.position.x, actor.position.y], "distance": distance},
        duration_ms=distance * 1000.0 / actor.stats.speed,
        energy_cost=cost,
    )


def _make_step(direction: str):
    dx, dy = DIRECTIONS[direction]

    async def move(context: ExecutionContext) -> ExecutionResult:
        target = context.refresh_actor().position.offset(dx, dy)
        if not context.store.bounds.contains(target):
            return _out_of_bounds(context, target, direction)
        return await _travel(context, target, direction, context.config.execution.move_energy_cost)

    move.__name__ = f"move_{direction}"
    return move


async def move_to(context: ExecutionContext, *args: Any, **kwargs: Any) -> ExecutionResult:
    """Walk to (x, y) along a Manhattan path."""
    target = _parse_target(*args, **kwargs)
    if target is None:
        return fail(FailureKind.PRECONDITION, "move_to needs whole-number coordinates: move_to(x, y)")
    if not context.store.bounds.contains(target):
        return _out_of_bounds(context, target, "to")

    actor = context.refresh_actor()
    if actor.position == target:
        return ok(f"Already at {target}", value=[target.x, target.y], energy_cost=0)

    cost = actor.position.distance_to(target) * context.config.execution.move_energy_cost
    return await _travel(context, target, f"to {target}", cost)


def register_movement_capabilities(registry: CapabilityRegistry) -> None:
    for direction in DIRECTIONS:
        registry.register(
            Capability(
                name=f"move_{direction}",
                category=CapabilityCategory.MOVEMENT,
                description=f"Move one tile {direction}",
                executor=_make_step(direction),
                energy_cost=_step_cost,
                returns="new position [x, y]",
            )
        )
    registry.register(
        Capability(
            name="move_to",
            category=CapabilityCategory.MOVEMENT,
            description="Walk to the given coordinates",
            executor=move_to,
            parameters=[
                ParameterSpec(name="x", type="number", description="Target column"),
                ParameterSpec(name="y", type="number", description="Target row"),
            ],
            energy_cost=_move_to_cost,
            returns="new position [x, y]",
        )
    )
