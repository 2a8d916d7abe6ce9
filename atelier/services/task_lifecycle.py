"""
Task lifecycle — progress and status derivation.

Every function here is pure: it reads a task (persistent or transient) and
returns a value.  Nothing is cached; callers recompute on every read so
concurrent subtask ticks and approval decisions from different parties are
always reflected.

Status derivation order:
    1. frozen (aborted / on_hold)        → unchanged
    2. no subtasks                       → unchanged (explicit actions drive it)
    3. no subtask completed              → todo
    4. every subtask completed           → done if the four gating approvals
                                           are approved, else review
    5. otherwise                         → in_progress

Usage:
    from atelier.services.task_lifecycle import derive_status, calculate_task_progress

    task.status = derive_status(task, task.status)
"""

import logging
import math

from atelier.models.task import (
    ADVANCE_TRANSITIONS,
    COMPLETE_TRANSITIONS,
    FROZEN_TASK_STATUSES,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_REVIEW,
    STATUS_TODO,
)
from atelier.services.approval_ledger import gating_approvals_met

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (12.5 → 13, not banker's 12)."""
    return int(math.floor(value + 0.5))


# Fallback progress per status when a task has neither an explicit value nor subtasks.
_STATUS_PROGRESS = {
    STATUS_DONE: 100,
    STATUS_REVIEW: 100,
    STATUS_IN_PROGRESS: 50,
}


def is_task_frozen(status) -> bool:
    return status in FROZEN_TASK_STATUSES


def calculate_task_progress(task) -> int:
    """Return the task's completion percentage (0–100).

    Explicit ``progress`` wins (clamped), then the subtask ratio, then a
    status-based default.  Never raises.
    """
    explicit = getattr(task, "progress", None)
    if explicit is not None:
        try:
            return max(0, min(100, round_half_up(float(explicit))))
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric progress %r on task %s",
                         explicit, getattr(task, "id", None))

    subtasks = list(getattr(task, "subtasks", None) or [])
    if subtasks:
        completed = sum(1 for s in subtasks if s.is_completed)
        return round_half_up(100 * completed / len(subtasks))

    return _STATUS_PROGRESS.get(getattr(task, "status", None), 0)


def calculate_project_progress(tasks) -> int:
    """Mean task progress, rounded; 0 for a project without tasks."""
    tasks = list(tasks or [])
    if not tasks:
        return 0
    return round_half_up(sum(calculate_task_progress(t) for t in tasks) / len(tasks))


def derive_status(task, current_status=STATUS_TODO) -> str:
    """Compute the lifecycle status implied by subtasks and approvals.

    Idempotent and side-effect free; ``task`` is never mutated.
    """
    if is_task_frozen(current_status):
        return current_status

    subtasks = list(getattr(task, "subtasks", None) or [])
    if not subtasks:
        return current_status

    completed = sum(1 for s in subtasks if s.is_completed)
    if completed == 0:
        return STATUS_TODO
    if completed == len(subtasks):
        return STATUS_DONE if gating_approvals_met(task) else STATUS_REVIEW
    return STATUS_IN_PROGRESS


# ── Transition tables ────────────────────────────────────────────────────────


def next_complete_status(current_status) -> str | None:
    """Target of the two-press "complete" action, or None when refused."""
    return COMPLETE_TRANSITIONS.get(current_status)


def next_advance_status(current_status) -> str | None:
    """Target of the one-column quick advance, or None when refused."""
    return ADVANCE_TRANSITIONS.get(current_status)


def get_available_actions(task, blocked: bool) -> list[str]:
    """Lifecycle actions the UI may offer for this task right now."""
    if is_task_frozen(task.status) or blocked or task.status == STATUS_DONE:
        return []
    actions = []
    if next_complete_status(task.status):
        actions.append("complete")
    if next_advance_status(task.status):
        actions.append("advance")
    return actions
