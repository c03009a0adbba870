"""
Capability registry for TileScript Engine.

A capability is a named host operation a script can call: an async executor
plus the metadata a glossary or editor needs (category, description,
parameters) and a declared energy cost the interpreter checks before the
executor runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Union

from tilescript_core import ExecutionResult, ParameterSpec

from ..context import ExecutionContext
from ..utils.logging import get_logger

logger = get_logger("capabilities")

CapabilityExecutor = Callable[..., Awaitable[ExecutionResult]]
EnergyCost = Union[int, Callable[..., int]]


class CapabilityCategory(str, Enum):
    MOVEMENT = "movement"
    INTERACTION = "interaction"
    SYSTEM = "system"
    UTILITY = "utility"


@dataclass
class Capability:
    """Descriptor of one callable operation.

    Attributes:
        name: Name scripts call it by
        category: Glossary grouping
        description: One-line help text
        parameters: Declared parameters, in positional order
        executor: ``async (context, *args, **kwargs) -> ExecutionResult``
        energy_cost: Constant cost, or ``(context, *args, **kwargs) -> int``
        returns: Short description of the value produced in expressions
    """

    name: str
    category: CapabilityCategory
    description: str
    executor: CapabilityExecutor
    parameters: list[ParameterSpec] = field(default_factory=list)
    energy_cost: EnergyCost = 0
    returns: str = ""

    def declared_cost(self, context: ExecutionContext, *args: Any, **kwargs: Any) -> int:
        """Energy this call is declared to consume, before it runs."""
        if callable(self.energy_cost):
            return max(0, int(self.energy_cost(context, *args, **kwargs)))
        return self.energy_cost

    def signature(self) -> str:
        params = []
        for spec in self.parameters:
            if spec.required:
                params.append(spec.name)
            else:
                params.append(f"{spec.name}={spec.default!r}")
        return f"{self.name}({', '.join(params)})"


class CapabilityRegistry:
    """Catalog of capabilities, keyed by exact name.

    Usage:
        registry = CapabilityRegistry()
        registry.register(Capability(...))
        capability = registry.get_capability("move_right")
    """

    def __init__(self):
        self._capabilities: dict[str, Capability] = {}

    def register(self, capability: Capability) -> None:
        """Register a capability.

        Raises:
            ValueError: If a capability with the same name already exists
        """
        if capability.name in self._capabilities:
            raise ValueError(f"Capability '{capability.name}' is already registered")
        self._capabilities[capability.name] = capability
        logger.debug(f"Registered capability: {capability.name} ({capability.category.value})")

    def get_capability(self, name: str) -> Capability | None:
        return self._capabilities.get(name)

    def get_all_capabilities(self) -> list[Capability]:
        return list(self._capabilities.values())

    def get_capabilities_by_category(self, category: CapabilityCategory | str) -> list[Capability]:
        category = CapabilityCategory(category)
        return [c for c in self._capabilities.values() if c.category == category]

    def get_capability_names(self) -> list[str]:
        return list(self._capabilities)

    def create_name_to_executor_map(self) -> dict[str, CapabilityExecutor]:
        return {name: c.executor for name, c in self._capabilities.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[Capability]:
        return iter(list(self._capabilities.values()))

    def __len__(self) -> int:
        return len(self._capabilities)
