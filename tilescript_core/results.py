"""Execution results for TileScript.

Every capability, tile function, statement and subroutine produces an
ExecutionResult instead of raising. The result is a tagged variant:

- Success: optional value (for calls used inside expressions), data payload,
  duration (for pacing) and energy cost (debited by the interpreter).
- Failure: a message and a FailureKind classifying what went wrong.

Callers branch on `result.success` or use isinstance checks.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FailureKind(str, Enum):
    """Classification of failed results."""
    BOUNDS = "bounds"              # target outside world dimensions
    BLOCKED = "blocked"            # actor/tile already mid-task, or path blocked
    PRECONDITION = "precondition"  # wrong tile type, not co-located, not ready
    RESOURCE = "resource"          # insufficient energy or global resource quantity
    NOT_FOUND = "not_found"        # unknown capability/subroutine/tile function
    SYNTAX = "syntax"              # script could not be parsed
    RUNTIME = "runtime"            # unexpected exception converted to a result
    STOPPED = "stopped"            # cooperative stop observed


class Success(BaseModel):
    """Successful outcome."""
    status: Literal["success"] = "success"
    message: str = Field(default="")
    value: Any = Field(default=None, description="Return value when used in an expression")
    data: dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = Field(default=None, ge=0)
    energy_cost: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def success(self) -> bool:
        return True


class Failure(BaseModel):
    """Failed outcome. Never raised; returned."""
    status: Literal["failure"] = "failure"
    message: str
    kind: FailureKind = Field(default=FailureKind.RUNTIME)
    data: dict[str, Any] = Field(default_factory=dict)
    line: Optional[int] = Field(default=None, description="Script line number, when known")

    model_config = ConfigDict(frozen=True)

    @property
    def success(self) -> bool:
        return False

    @property
    def value(self) -> Any:
        return None

    @property
    def duration_ms(self) -> Optional[float]:
        return None

    @property
    def energy_cost(self) -> Optional[int]:
        return None


ExecutionResult = Union[Success, Failure]


def ok(
    message: str = "",
    *,
    value: Any = None,
    data: dict[str, Any] | None = None,
    duration_ms: float | None = None,
    energy_cost: int | None = None,
) -> Success:
    """Shorthand constructor for Success."""
    return Success(
        message=message,
        value=value,
        data=dict(data or {}),
        duration_ms=duration_ms,
        energy_cost=energy_cost,
    )


def fail(kind: FailureKind, message: str, *, data: dict[str, Any] | None = None, line: int | None = None) -> Failure:
    """Shorthand constructor for Failure."""
    return Failure(message=message, kind=kind, data=dict(data or {}), line=line)


def not_enough_energy(required: int, available: int) -> Failure:
    return fail(
        FailureKind.RESOURCE,
        f"Not enough energy. Required: {required}, Available: {available}",
        data={"required": required, "available": available},
    )
