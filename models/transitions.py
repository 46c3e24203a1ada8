"""Allowed generation task status transitions.

Two paths share the same task table:
  analysis:  pending -> analyzing -> outline_ready -> generating -> completed
  legacy:    pending -> processing -> completed
``failed`` is reachable from every non-terminal status. Terminal tasks
never change again.
"""

from config.exceptions import InvalidTransitionError
from models.enums import TaskStatus

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ANALYZING, TaskStatus.PROCESSING, TaskStatus.FAILED}),
    TaskStatus.ANALYZING: frozenset({TaskStatus.OUTLINE_READY, TaskStatus.FAILED}),
    TaskStatus.OUTLINE_READY: frozenset({TaskStatus.GENERATING, TaskStatus.FAILED}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.GENERATING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def can_transition(current: TaskStatus | str, target: TaskStatus | str) -> bool:
    return TaskStatus(target) in ALLOWED_TRANSITIONS[TaskStatus(current)]


def sources_for(target: TaskStatus | str) -> list[TaskStatus]:
    """Statuses from which ``target`` may be entered."""
    target = TaskStatus(target)
    return [s for s, allowed in ALLOWED_TRANSITIONS.items() if target in allowed]


def ensure_transition(task_id: str, current: TaskStatus | str, target: TaskStatus | str) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(task_id, TaskStatus(current).value, TaskStatus(target).value)
