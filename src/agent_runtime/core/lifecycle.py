"""Explicit lifecycle state machine for a single Task.

The current state and the ordered history of states are kept in
``task.context["lifecycle"]`` so they travel with the task and end up in
API responses and logs.
"""

from __future__ import annotations

import logging
from enum import Enum

from agent_runtime.core.models import Task

logger = logging.getLogger(__name__)

LIFECYCLE_KEY = "lifecycle"


class TaskState(str, Enum):
    CREATED = "created"
    CLASSIFIED = "classified"
    PARAM_PENDING = "param_pending"
    PARAM_BOUND = "param_bound"
    PARAM_FAILED = "param_failed"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    TERMINATED_AT_PARAM_FAILED = "terminated_at_param_failed"
    NO_CAPABILITY = "no_capability"


ALLOWED_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.CREATED: {TaskState.CLASSIFIED},
    TaskState.CLASSIFIED: {
        TaskState.PARAM_BOUND,
        TaskState.PARAM_PENDING,
        TaskState.PARAM_FAILED,
        TaskState.NO_CAPABILITY,
    },
    TaskState.PARAM_PENDING: {TaskState.PARAM_BOUND, TaskState.PARAM_FAILED},
    TaskState.PARAM_BOUND: {TaskState.DISPATCHED},
    TaskState.PARAM_FAILED: {TaskState.TERMINATED_AT_PARAM_FAILED},
    TaskState.DISPATCHED: {TaskState.COMPLETED},
    TaskState.COMPLETED: set(),
    TaskState.TERMINATED_AT_PARAM_FAILED: set(),
    TaskState.NO_CAPABILITY: set(),
}

TERMINAL_STATES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: TaskState, to: TaskState) -> TaskState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def _parse_state(value: object) -> TaskState | None:
    try:
        return TaskState(value)
    except ValueError:
        return None


def current_state(task: Task) -> TaskState:
    """Current state; anything unreadable counts as CREATED."""

    raw = task.context.get(LIFECYCLE_KEY)
    if isinstance(raw, dict):
        state = _parse_state(raw.get("state"))
        if state is not None:
            return state
    return TaskState.CREATED


def state_history(task: Task) -> list[TaskState]:
    raw = task.context.get(LIFECYCLE_KEY)
    if isinstance(raw, dict) and isinstance(raw.get("history"), list):
        history = [s for s in map(_parse_state, raw["history"]) if s is not None]
        if history:
            return history
    return [TaskState.CREATED]


def start(task: Task) -> TaskState:
    """Put ``task`` back at CREATED with a fresh history.

    Entry points call this so a resubmitted task, or one whose context
    already carries a ``lifecycle`` entry, starts a new run.
    """
    if LIFECYCLE_KEY in task.context:
        logger.debug(
            "Resetting task lifecycle",
            extra={"task_id": task.id, "previous": task.context[LIFECYCLE_KEY]},
        )
    task.context[LIFECYCLE_KEY] = {
        "state": TaskState.CREATED.value,
        "history": [TaskState.CREATED.value],
    }
    return TaskState.CREATED


def advance(task: Task, to: TaskState) -> TaskState:
    """Move ``task`` to ``to``, failing loudly on an illegal transition."""

    history = state_history(task)
    next_state = transition(current=current_state(task), to=to)
    history.append(next_state)
    task.context[LIFECYCLE_KEY] = {
        "state": next_state.value,
        "history": [s.value for s in history],
    }
    return next_state
