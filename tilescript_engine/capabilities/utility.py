"""Utility capabilities: read-only queries and pure helpers.

None of these touch the world, except scanner() whose declared energy cost
the interpreter debits.
"""

from __future__ import annotations

from typing import Any

from tilescript_core import ExecutionResult, FailureKind, ParameterSpec, Position, fail, ok

from ..context import ExecutionContext
from .arguments import as_int, as_number
from .interaction import describe_tile
from .registry import Capability, CapabilityCategory, CapabilityRegistry

RANGE_LIMIT = 100000


async def get_position(context: ExecutionContext) -> ExecutionResult:
    position = context.refresh_actor().position
    return ok(f"Position: {position}", value=[position.x, position.y])


async def get_energy(context: ExecutionContext) -> ExecutionResult:
    stats = context.refresh_actor().stats
    return ok(f"Energy: {stats.energy}/{stats.max_energy}", value=stats.energy)


async def get_inventory(context: ExecutionContext) -> ExecutionResult:
    inventory = context.refresh_actor().inventory
    items = [{"name": item.name, "type": item.type, "quantity": item.quantity} for item in inventory.items]
    return ok(
        f"Inventory: {inventory.used_slots}/{inventory.capacity} slots used",
        value=items,
        data={"capacity": inventory.capacity},
    )


def _scanner_cost(context: ExecutionContext, *args: Any, **kwargs: Any) -> int:
    return context.config.execution.scanner_energy_cost


async def scanner(context: ExecutionContext, x: Any = None, y: Any = None) -> ExecutionResult:
    """Report what is at (x, y) anywhere in the world."""
    cx, cy = as_int(x), as_int(y)
    if cx is None or cy is None:
        return fail(FailureKind.PRECONDITION, "scanner needs whole-number coordinates: scanner(x, y)")
    position = Position(x=cx, y=cy)
    if not context.store.bounds.contains(position):
        return fail(FailureKind.BOUNDS, f"Cannot scan {position} - out of bounds")

    cost = context.config.execution.scanner_energy_cost
    tile = context.store.get_tile_at(position)
    if tile is None:
        return ok(f"Nothing at {position}", value=None, energy_cost=cost)
    info = describe_tile(tile)
    return ok(f"Found {info['name']} at {position}", value=info, data=info, energy_cost=cost)


async def range_values(context: ExecutionContext, *args: Any) -> ExecutionResult:
    numbers = [as_int(arg) for arg in args]
    if not 1 <= len(args) <= 3 or any(n is None for n in numbers):
        return fail(FailureKind.PRECONDITION, "range() takes 1 to 3 whole numbers: range(stop) or range(start, stop, step)")
    if len(numbers) == 3 and numbers[2] == 0:
        return fail(FailureKind.PRECONDITION, "range() step cannot be zero")
    values = range(*numbers)
    if len(values) > RANGE_LIMIT:
        return fail(FailureKind.PRECONDITION, f"range() is limited to {RANGE_LIMIT} values")
    return ok(value=list(values))


async def length(context: ExecutionContext, value: Any = None) -> ExecutionResult:
    if not isinstance(value, (str, list, tuple, dict)):
        return fail(FailureKind.PRECONDITION, f"len() needs a list or text, got {value!r}")
    return ok(value=len(value))


def _numbers(name: str, args: tuple[Any, ...], allow_empty: bool = False) -> list[float] | str:
    values = list(args[0]) if len(args) == 1 and isinstance(args[0], (list, tuple)) else list(args)
    if not values and not allow_empty:
        return f"{name}() needs at least one number"
    converted = []
    for value in values:
        number = as_number(value)
        if number is None:
            return f"{name}() only works with numbers, got {value!r}"
        converted.append(int(number) if number.is_integer() and not isinstance(value, float) else number)
    return converted


def _aggregate(name: str, reducer):
    async def execute(context: ExecutionContext, *args: Any) -> ExecutionResult:
        values = _numbers(name, args, allow_empty=name == "sum")
        if isinstance(values, str):
            return fail(FailureKind.PRECONDITION, values)
        return ok(value=reducer(values))

    execute.__name__ = name
    return execute


async def absolute(context: ExecutionContext, value: Any = None) -> ExecutionResult:
    number = as_number(value)
    if number is None:
        return fail(FailureKind.PRECONDITION, f"abs() needs a number, got {value!r}")
    return ok(value=abs(value) if isinstance(value, (int, float)) else abs(number))


def register_utility_capabilities(registry: CapabilityRegistry) -> None:
    utility = CapabilityCategory.UTILITY
    registry.register(Capability("get_position", utility, "Your current [x, y]", get_position, returns="[x, y]"))
    registry.register(Capability("get_energy", utility, "Your current energy", get_energy, returns="energy"))
    registry.register(
        Capability("get_inventory", utility, "Items you carry", get_inventory, returns="list of items")
    )
    registry.register(
        Capability(
            "scanner",
            utility,
            "Inspect the tile at (x, y)",
            scanner,
            parameters=[ParameterSpec(name="x", type="number"), ParameterSpec(name="y", type="number")],
            energy_cost=_scanner_cost,
            returns="tile info, or None",
        )
    )
    registry.register(
        Capability(
            "range",
            utility,
            "Numbers from start up to (not including) stop",
            range_values,
            parameters=[
                ParameterSpec(name="start", type="number", required=False, default=0),
                ParameterSpec(name="stop", type="number"),
                ParameterSpec(name="step", type="number", required=False, default=1),
            ],
            returns="list of numbers",
        )
    )
    registry.register(
        Capability(
            "len",
            utility,
            "Number of items in a list or characters in text",
            length,
            parameters=[ParameterSpec(name="value", type="any")],
            returns="count",
        )
    )
    for name, reducer, description in (
        ("min", min, "Smallest of the numbers"),
        ("max", max, "Largest of the numbers"),
        ("sum", sum, "Total of the numbers"),
    ):
        registry.register(
            Capability(
                name,
                utility,
                description,
                _aggregate(name, reducer),
                parameters=[ParameterSpec(name="values", type="list")],
                returns="number",
            )
        )
    registry.register(
        Capability(
            "abs",
            utility,
            "Distance of a number from zero",
            absolute,
            parameters=[ParameterSpec(name="value", type="number")],
            returns="number",
        )
    )
