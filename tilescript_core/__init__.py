"""TileScript Core - world models, results and presentation events.

This package provides the data shared by every TileScript service:

Models:
- Position, WorldBounds
- Actor, ActorStats, Inventory, InventoryItem, ActorKind
- Tile, TileFunctionSpec, ParameterSpec
- TaskState, ProgressInfo

Results (tagged variant, never raised):
- Success, Failure, FailureKind, ExecutionResult

Presentation:
- EventBus, event topics and payload builders
- LearnerError, enhance_error, explain_concept

ARCHITECTURAL PRINCIPLES:
1. The world state store is AUTHORITY; interpreters hold snapshots
2. Only the task scheduler writes TaskState
3. Failures are values, not exceptions
"""

from .models import (
    ActorKind,
    Position,
    WorldBounds,
    ProgressInfo,
    TaskState,
    ActorStats,
    InventoryItem,
    Inventory,
    Actor,
    ParameterSpec,
    TileFunctionSpec,
    Tile,
)
from .results import (
    ExecutionResult,
    Failure,
    FailureKind,
    Success,
    fail,
    not_enough_energy,
    ok,
)
from .event_bus import EventBus, EventHandler, EventPayload, WILDCARD
from .feedback import LearnerError, enhance_error, explain_concept

__version__ = "0.1.0"

__all__ = [
    # Models
    "ActorKind",
    "Position",
    "WorldBounds",
    "ProgressInfo",
    "TaskState",
    "ActorStats",
    "InventoryItem",
    "Inventory",
    "Actor",
    "ParameterSpec",
    "TileFunctionSpec",
    "Tile",
    # Results
    "ExecutionResult",
    "Success",
    "Failure",
    "FailureKind",
    "ok",
    "fail",
    "not_enough_energy",
    # Presentation
    "EventBus",
    "EventHandler",
    "EventPayload",
    "WILDCARD",
    "LearnerError",
    "enhance_error",
    "explain_concept",
]
