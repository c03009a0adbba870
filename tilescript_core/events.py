"""Canonical presentation events emitted by the TileScript core.

The core never renders anything. It publishes these payloads on the EventBus
and a presentation layer (editor highlighting, toasts, progress bars) decides
what to show.
"""

from __future__ import annotations

from typing import Any, List, Optional

from .event_bus import EventPayload
from .feedback import LearnerError
from .results import ExecutionResult

# Execution lifecycle
TOPIC_EXECUTION_STARTED = "execution.started"
TOPIC_EXECUTION_COMPLETED = "execution.completed"
TOPIC_EXECUTION_FAILED = "execution.failed"
TOPIC_EXECUTION_STOPPED = "execution.stopped"

# Tracing
TOPIC_EXECUTION_LINE = "execution.line"
TOPIC_EXECUTION_CALL = "execution.call"
TOPIC_EXECUTION_OUTPUT = "execution.output"
TOPIC_EXECUTION_ERROR = "execution.error"

# Scheduler
TOPIC_TASK_STARTED = "task.started"
TOPIC_TASK_COMPLETED = "task.completed"
TOPIC_TASK_CANCELLED = "task.cancelled"


def create_execution_started_event(actor_id: str, subroutines: List[str]) -> EventPayload:
    return {
        "actor_id": actor_id,
        "subroutines": list(subroutines),
    }


def create_execution_finished_event(actor_id: str, result: ExecutionResult) -> EventPayload:
    """Payload shared by the completed, failed and stopped topics."""
    payload: EventPayload = {
        "actor_id": actor_id,
        "success": result.success,
        "message": result.message,
    }
    if not result.success:
        payload["kind"] = result.kind.value
        payload["line"] = result.line
    return payload


def create_line_event(actor_id: str, function_name: str, line: str, line_number: int) -> EventPayload:
    """Emitted before each statement executes (editor line highlight)."""
    return {
        "actor_id": actor_id,
        "function_name": function_name,
        "line": line,
        "line_number": line_number,
    }


def create_call_event(actor_id: str, function_name: str, args: List[Any]) -> EventPayload:
    return {
        "actor_id": actor_id,
        "function_name": function_name,
        "args": list(args),
    }


def create_output_event(actor_id: str, actor_name: str, message: str) -> EventPayload:
    return {
        "actor_id": actor_id,
        "actor_name": actor_name,
        "message": message,
    }


def create_error_event(actor_id: str, learner_error: LearnerError, line_number: Optional[int] = None) -> EventPayload:
    """Structured, learner-facing error for display."""
    return {
        "actor_id": actor_id,
        "line_number": line_number,
        **learner_error.model_dump(),
    }


def create_task_event(
    key_type: str,
    target_id: str,
    label: str,
    description: str = "",
    duration_ms: float | None = None,
    owner_actor_id: str | None = None,
) -> EventPayload:
    """Task lifecycle payload. `key_type` is "actor" or "tile"."""
    event: EventPayload = {
        "key_type": key_type,
        "target_id": target_id,
        "label": label,
        "description": description,
    }
    if duration_ms is not None:
        event["duration_ms"] = duration_ms
    if owner_actor_id is not None:
        event["owner_actor_id"] = owner_actor_id
    return event
