"""Core world models for TileScript.

This module defines the data carried between the world state store, the task
scheduler, the capability registry and the interpreter.

AUTHORITY: the WorldStateStore holds the canonical copies of these models.
An interpreter only ever holds a snapshot of its actor, re-synchronized after
every call that may have mutated the world.

TASK STATE INVARIANT
====================
`TaskState.is_blocked` is True if and only if `TaskState.progress` holds an
active ProgressInfo. Only the TaskScheduler writes TaskState.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Enums and Geometry
# ============================================================================


class ActorKind(str, Enum):
    """Classification for controllable actors."""
    PLAYER = "player"
    DRONE = "drone"


class Position(BaseModel):
    """Integer grid coordinate."""
    x: int = Field(default=0, description="Column (grows to the right)")
    y: int = Field(default=0, description="Row (grows downward)")

    model_config = ConfigDict(frozen=True)

    def offset(self, dx: int = 0, dy: int = 0) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)

    def distance_to(self, other: "Position") -> int:
        """Manhattan distance to another position."""
        return abs(self.x - other.x) + abs(self.y - other.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class WorldBounds(BaseModel):
    """Playable area: [0, width) x [0, height)."""
    width: int = Field(default=52, gt=0)
    height: int = Field(default=32, gt=0)

    model_config = ConfigDict(frozen=True)

    def contains(self, position: Position) -> bool:
        return 0 <= position.x < self.width and 0 <= position.y < self.height


# ============================================================================
# Task State
# ============================================================================


class ProgressInfo(BaseModel):
    """Progress record for a running task.

    `start_time` is expressed in clock seconds (see tilescript_engine.clock),
    `duration_ms` in milliseconds.
    """
    is_active: bool = Field(default=True)
    start_time: float = Field(description="Clock time the task started (seconds)")
    duration_ms: float = Field(ge=0, description="Total task duration in milliseconds")
    description: str = Field(default="", description="Human-readable task description")
    owner_actor_id: Optional[str] = Field(default=None, description="Actor that started a tile task")

    model_config = ConfigDict(frozen=True)

    def percent(self, now: float) -> float:
        """Completion percentage clamped to [0, 100]."""
        if not self.is_active:
            return 0.0
        if self.duration_ms <= 0:
            return 100.0
        elapsed_ms = (now - self.start_time) * 1000.0
        return max(0.0, min(1.0, elapsed_ms / self.duration_ms)) * 100.0

    def remaining_ms(self, now: float) -> float:
        elapsed_ms = (now - self.start_time) * 1000.0
        return max(0.0, self.duration_ms - elapsed_ms)


class TaskState(BaseModel):
    """Blocked flag plus the task occupying an actor or tile."""
    is_blocked: bool = Field(default=False)
    current_task: Optional[str] = Field(default=None)
    progress: Optional[ProgressInfo] = Field(default=None)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _blocked_matches_progress(self) -> "TaskState":
        has_progress = self.progress is not None and self.progress.is_active
        if self.is_blocked != has_progress:
            raise ValueError("is_blocked must be True exactly when an active progress record exists")
        return self

    @classmethod
    def idle(cls) -> "TaskState":
        return cls()

    @classmethod
    def running(cls, label: str, progress: ProgressInfo) -> "TaskState":
        return cls(is_blocked=True, current_task=label, progress=progress)

    def describe(self) -> str:
        """Human-readable name of the task, for busy messages."""
        if self.progress is not None and self.progress.description:
            return self.progress.description
        return self.current_task or "Unknown task"


# ============================================================================
# Actors
# ============================================================================


class ActorStats(BaseModel):
    """Numeric stats for an actor. Extra project-specific stats are allowed."""
    energy: int = Field(default=100, ge=0)
    max_energy: int = Field(default=100, gt=0)
    speed: float = Field(default=2.0, gt=0, description="Walking speed in tiles per second")
    harvest_amount: int = Field(default=1, ge=0)
    planting_speed_multiplier: float = Field(default=1.0, gt=0)

    model_config = ConfigDict(extra="allow")


class InventoryItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    type: str
    quantity: int = Field(default=1, ge=0)
    properties: dict[str, Any] = Field(default_factory=dict)


class Inventory(BaseModel):
    items: list[InventoryItem] = Field(default_factory=list)
    capacity: int = Field(default=10, ge=0)

    def quantity_of(self, item_type: str) -> int:
        return sum(item.quantity for item in self.items if item.type == item_type)

    @property
    def used_slots(self) -> int:
        return len(self.items)


class Actor(BaseModel):
    """A controllable entity: the player or an auxiliary drone."""
    id: str = Field(default_factory=lambda: f"actor_{uuid.uuid4().hex[:8]}")
    name: str = Field(default="Qubit")
    kind: ActorKind = Field(default=ActorKind.PLAYER)
    position: Position = Field(default_factory=Position)
    stats: ActorStats = Field(default_factory=ActorStats)
    inventory: Inventory = Field(default_factory=Inventory)
    task_state: TaskState = Field(default_factory=TaskState)

    @property
    def is_blocked(self) -> bool:
        return self.task_state.is_blocked

    def __str__(self) -> str:
        return f"Actor({self.name}, {self.id} @ {self.position})"


# ============================================================================
# Tiles
# ============================================================================


class ParameterSpec(BaseModel):
    """Declared parameter of a capability or tile function."""
    name: str
    type: str = Field(default="number", description="number | string | boolean | list | any")
    required: bool = Field(default=True)
    description: str = Field(default="")
    default: Any = Field(default=None)

    model_config = ConfigDict(frozen=True)


class TileFunctionSpec(BaseModel):
    """Metadata for a function bound to a tile type."""
    name: str
    description: str = Field(default="")
    parameters: list[ParameterSpec] = Field(default_factory=list)
    blocks_actor: bool = Field(default=False)
    requires_idle_tile: bool = Field(
        default=True,
        description="Refuse the call while the tile itself is mid-task",
    )

    model_config = ConfigDict(frozen=True)


class Tile(BaseModel):
    """A positioned world object offering zero or more bound functions."""
    id: str = Field(default_factory=lambda: f"tile_{uuid.uuid4().hex[:8]}")
    type: str
    name: str = Field(default="")
    description: str = Field(default="")
    position: Position
    functions: list[TileFunctionSpec] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)
    state: dict[str, Any] = Field(default_factory=dict)
    energy_required: int = Field(default=0, ge=0)
    task_state: TaskState = Field(default_factory=TaskState)

    @property
    def is_blocked(self) -> bool:
        return self.task_state.is_blocked

    def function_names(self) -> list[str]:
        return [spec.name for spec in self.functions]

    def get_function(self, name: str) -> Optional[TileFunctionSpec]:
        return next((spec for spec in self.functions if spec.name == name), None)

    def __str__(self) -> str:
        return f"Tile({self.name or self.type} @ {self.position})"
