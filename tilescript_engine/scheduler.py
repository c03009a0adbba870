"""Task scheduler for TileScript Engine.

The TaskScheduler is the ONLY component that writes TaskState. It enforces
"at most one active task per key" for actors and tiles, and finishes each
task through a single clock timer.

Completion order for a task:
1. the timer entry is released,
2. the `on_complete` callback runs (the task is still visible as active),
3. the task state is cleared, unless the callback started a new task on the
   same key, in which case the new task stays in place.

Cancelling a task skips `on_complete` and runs its `on_cancel` hook instead,
so an owner can release world state the completion would have moved on.

Callback exceptions are logged and never reach the clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Literal, Optional, Tuple

from tilescript_core import EventBus, ProgressInfo, TaskState
from tilescript_core.events import (
    TOPIC_TASK_CANCELLED,
    TOPIC_TASK_COMPLETED,
    TOPIC_TASK_STARTED,
    create_task_event,
)

from .clock import Clock, TimerHandle
from .utils.logging import get_logger
from .world_store import WorldStateStore

logger = get_logger("scheduler")

KeyType = Literal["actor", "tile"]
CompletionCallback = Callable[[], None]


@dataclass
class _ScheduledTask:
    key_type: KeyType
    target_id: str
    label: str
    timer: TimerHandle
    on_cancel: Optional[CompletionCallback] = None


class TaskScheduler:
    """Per-key mutual exclusion and timed completion."""

    def __init__(self, store: WorldStateStore, clock: Clock, event_bus: Optional[EventBus] = None):
        self.store = store
        self.clock = clock
        self.event_bus = event_bus
        self._tasks: Dict[Tuple[KeyType, str], _ScheduledTask] = {}
        # Keys whose completion callback is currently running
        self._completing: set[Tuple[KeyType, str]] = set()

    # ========================================================================
    # Starting tasks
    # ========================================================================

    def start_actor_task(
        self,
        actor_id: str,
        label: str,
        duration_sec: float,
        description: str = "",
        on_complete: Optional[CompletionCallback] = None,
        on_cancel: Optional[CompletionCallback] = None,
    ) -> bool:
        """Block an actor for `duration_sec`.

        Returns:
            False without any effect if the actor is unknown or already busy
        """
        return self._start("actor", actor_id, label, duration_sec, description, None, on_complete, on_cancel)

    def start_tile_task(
        self,
        tile_id: str,
        label: str,
        duration_sec: float,
        description: str = "",
        owner_actor_id: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None,
        on_cancel: Optional[CompletionCallback] = None,
    ) -> bool:
        """Block a tile for `duration_sec`; see start_actor_task."""
        return self._start("tile", tile_id, label, duration_sec, description, owner_actor_id, on_complete, on_cancel)

    def _current_state(self, key_type: KeyType, target_id: str) -> Optional[TaskState]:
        if key_type == "actor":
            actor = self.store.get_actor(target_id)
            return actor.task_state if actor else None
        tile = self.store.get_tile(target_id)
        return tile.task_state if tile else None

    def _write_state(self, key_type: KeyType, target_id: str, state: TaskState) -> None:
        if key_type == "actor":
            self.store.update_actor(target_id, task_state=state)
        else:
            self.store.update_tile(target_id, task_state=state)

    def _start(
        self,
        key_type: KeyType,
        target_id: str,
        label: str,
        duration_sec: float,
        description: str,
        owner_actor_id: Optional[str],
        on_complete: Optional[CompletionCallback],
        on_cancel: Optional[CompletionCallback] = None,
    ) -> bool:
        key = (key_type, target_id)
        state = self._current_state(key_type, target_id)
        if state is None:
            logger.warning(f"Cannot start '{label}': unknown {key_type} {target_id}")
            return False
        if key in self._tasks or (state.is_blocked and key not in self._completing):
            logger.debug(f"Rejected '{label}' on busy {key_type} {target_id} ({state.current_task})")
            return False
        if duration_sec < 0:
            raise ValueError(f"Task duration cannot be negative: {duration_sec}")

        progress = ProgressInfo(
            start_time=self.clock.now(),
            duration_ms=duration_sec * 1000.0,
            description=description,
            owner_actor_id=owner_actor_id,
        )
        self._write_state(key_type, target_id, TaskState.running(label, progress))

        timer = self.clock.call_later(
            duration_sec, lambda: self._complete(key_type, target_id, on_complete)
        )
        self._tasks[key] = _ScheduledTask(key_type, target_id, label, timer, on_cancel)

        logger.info(f"Started {key_type} task '{label}' on {target_id} ({duration_sec:.1f}s)")
        self._emit(
            TOPIC_TASK_STARTED,
            key_type,
            target_id,
            label,
            description,
            duration_ms=progress.duration_ms,
            owner_actor_id=owner_actor_id,
        )
        return True

    # ========================================================================
    # Completion and cancellation
    # ========================================================================

    def _complete(self, key_type: KeyType, target_id: str, on_complete: Optional[CompletionCallback]) -> None:
        key = (key_type, target_id)
        task = self._tasks.pop(key, None)
        if task is None:
            return

        if on_complete is not None:
            self._completing.add(key)
            try:
                on_complete()
            except Exception:
                logger.exception(f"Completion callback for '{task.label}' on {target_id} failed")
            finally:
                self._completing.discard(key)

        if key not in self._tasks and self._current_state(key_type, target_id) is not None:
            self._write_state(key_type, target_id, TaskState.idle())

        logger.info(f"Completed {key_type} task '{task.label}' on {target_id}")
        self._emit(TOPIC_TASK_COMPLETED, key_type, target_id, task.label)

    def cancel(self, target_id: str) -> bool:
        """Cancel the active task on an actor or tile; only its on_cancel hook runs."""
        cancelled = False
        for key_type in ("actor", "tile"):
            task = self._tasks.pop((key_type, target_id), None)
            if task is not None:
                self._cancel_task(task)
                cancelled = True
        return cancelled

    def cancel_all(self) -> int:
        """Cancel every active task; completion callbacks are never invoked."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            self._cancel_task(task)
        if tasks:
            logger.info(f"Cancelled {len(tasks)} active task(s)")
        return len(tasks)

    def _cancel_task(self, task: _ScheduledTask) -> None:
        task.timer.cancel()
        if self._current_state(task.key_type, task.target_id) is not None:
            self._write_state(task.key_type, task.target_id, TaskState.idle())
        if task.on_cancel is not None:
            try:
                task.on_cancel()
            except Exception:
                logger.exception(f"Cancel hook for '{task.label}' on {task.target_id} failed")
        logger.debug(f"Cancelled {task.key_type} task '{task.label}' on {task.target_id}")
        self._emit(TOPIC_TASK_CANCELLED, task.key_type, task.target_id, task.label)

    # ========================================================================
    # Queries
    # ========================================================================

    def _progress_for(self, target_id: str) -> Optional[ProgressInfo]:
        for key_type in ("actor", "tile"):
            state = self._current_state(key_type, target_id)
            if state is not None and state.progress is not None and state.progress.is_active:
                return state.progress
        return None

    def get_progress(self, target_id: str) -> float:
        """Completion percentage in [0, 100]; 0 when nothing is running."""
        progress = self._progress_for(target_id)
        return progress.percent(self.clock.now()) if progress else 0.0

    def get_remaining_time(self, actor_id: Optional[str] = None, tile_id: Optional[str] = None) -> float:
        """Remaining milliseconds of the actor's (or tile's) task, never negative."""
        target_id = actor_id or tile_id
        if target_id is None:
            return 0.0
        progress = self._progress_for(target_id)
        return progress.remaining_ms(self.clock.now()) if progress else 0.0

    def can_actor_act(self, actor_id: str) -> bool:
        state = self._current_state("actor", actor_id)
        return state is not None and not state.is_blocked

    def can_tile_act(self, tile_id: str) -> bool:
        state = self._current_state("tile", tile_id)
        return state is not None and not state.is_blocked

    def active_keys(self) -> List[Tuple[KeyType, str]]:
        return list(self._tasks)

    def _emit(self, topic: str, key_type: KeyType, target_id: str, label: str, description: str = "", **extra) -> None:
        if self.event_bus is None:
            return
        self.event_bus.emit(topic, create_task_event(key_type, target_id, label, description, **extra))
