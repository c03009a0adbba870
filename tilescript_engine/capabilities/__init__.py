"""Host operations callable from scripts."""

from .factory import build_default_registry
from .registry import (
    Capability,
    CapabilityCategory,
    CapabilityExecutor,
    CapabilityRegistry,
    EnergyCost,
)

__all__ = [
    "Capability",
    "CapabilityCategory",
    "CapabilityExecutor",
    "CapabilityRegistry",
    "EnergyCost",
    "build_default_registry",
]
