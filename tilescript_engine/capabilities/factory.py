"""Builds the default capability catalog."""

from __future__ import annotations

from .interaction import register_interaction_capabilities
from .movement import register_movement_capabilities
from .registry import CapabilityRegistry
from .system import register_system_capabilities
from .utility import register_utility_capabilities


def build_default_registry() -> CapabilityRegistry:
    """Registry with every movement, interaction, system and utility capability."""
    registry = CapabilityRegistry()
    register_movement_capabilities(registry)
    register_interaction_capabilities(registry)
    register_system_capabilities(registry)
    register_utility_capabilities(registry)
    return registry
