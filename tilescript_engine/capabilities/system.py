"""System capabilities: wait, sleep and print."""

from __future__ import annotations

from typing import Any

from tilescript_core import ExecutionResult, FailureKind, ParameterSpec, fail, ok
from tilescript_core.events import TOPIC_EXECUTION_OUTPUT, create_output_event

from ..context import ExecutionContext
from ..script.evaluator import display_text
from ..utils.logging import get_logger
from .arguments import as_number
from .registry import Capability, CapabilityCategory, CapabilityRegistry

logger = get_logger("capabilities.system")


def _make_delay(name: str):
    async def delay(context: ExecutionContext, seconds: Any = None) -> ExecutionResult:
        value = as_number(seconds)
        if value is None:
            return fail(FailureKind.PRECONDITION, f"{name}() needs a number of seconds, got {seconds!r}")
        if value < 0:
            return fail(FailureKind.PRECONDITION, f"{name}() cannot take a negative time ({value:g} seconds)")
        await context.clock.sleep(value)
        return ok(f"Waited {value:g} seconds", data={"seconds": value})

    delay.__name__ = name
    return delay


async def print_message(context: ExecutionContext, *values: Any) -> ExecutionResult:
    """Emit script output for the presentation layer."""
    message = " ".join(display_text(value) for value in values)
    context.output.append(message)
    logger.info(f"[{context.actor.name}] {message}")
    if context.event_bus is not None:
        context.event_bus.emit(
            TOPIC_EXECUTION_OUTPUT,
            create_output_event(context.actor.id, context.actor.name, message),
        )
    return ok(message)


def register_system_capabilities(registry: CapabilityRegistry) -> None:
    seconds = [ParameterSpec(name="seconds", type="number", description="How long to wait")]
    registry.register(
        Capability(
            name="wait",
            category=CapabilityCategory.SYSTEM,
            description="Pause the script",
            executor=_make_delay("wait"),
            parameters=seconds,
        )
    )
    registry.register(
        Capability(
            name="sleep",
            category=CapabilityCategory.SYSTEM,
            description="Pause the script (same as wait)",
            executor=_make_delay("sleep"),
            parameters=seconds,
        )
    )
    registry.register(
        Capability(
            name="print",
            category=CapabilityCategory.SYSTEM,
            description="Show a message",
            executor=print_message,
            parameters=[ParameterSpec(name="message", type="any", required=False, default="")],
        )
    )
