"""
Task service — task writes and lifecycle actions.

Lifecycle actions:
    complete   two-press gesture via COMPLETE_TRANSITIONS; ticks every subtask
    advance    one column right via ADVANCE_TRANSITIONS
    status     explicit write; the only way into or out of aborted / on_hold

Rules shared by every action:
    - frozen tasks are refused by complete / advance
    - a blocked task that is not already done is refused (TaskBlockedError)
    - no path reaches done while a gating approval is not approved
    - advance and status writes into done also need every subtask ticked

After subtask or approval writes the status is re-derived from scratch;
explicit actions store their table result.

Creating a task, or reassigning it to a vendor, unions the vendor into the
project's ``vendor_ids`` as a second, independent write.
"""

import logging

from atelier.core.exceptions import (
    NotFoundError,
    PermissionDenied,
    TaskBlockedError,
    TransitionError,
    ValidationError,
)
from atelier.models import _uuid, db
from atelier.models.audit import write_audit
from atelier.models.auth import ROLE_ADMIN, ROLE_VENDOR, User
from atelier.models.task import (
    FROZEN_TASK_STATUSES,
    STATUS_DONE,
    STATUS_TODO,
    TASK_PRIORITIES,
    TASK_STATUSES,
    SubTask,
    Task,
)
from atelier.services.access_policy import (
    can_decide_approval,
    get_project_access,
    get_task_access,
    visible_tasks,
)
from atelier.services.approval_ledger import gating_approvals_met, seed_approvals, set_approval
from atelier.services.dependency_resolver import get_blocking_tasks, is_blocked, validate_dependencies
from atelier.services.store import get_store
from atelier.services.task_lifecycle import (
    calculate_task_progress,
    derive_status,
    get_available_actions,
    is_task_frozen,
    next_advance_status,
    next_complete_status,
)
from atelier.utils.helpers import parse_date, require_choice, require_fields

logger = logging.getLogger(__name__)


def _log_extra(task, user=None, **extra) -> dict:
    return {"task_id": task.id, "project_id": task.project_id,
            "user_id": getattr(user, "id", None), **extra}


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_task_for(user, task_id: str) -> Task:
    """Load a task the user can see; hidden and missing tasks are both 404."""
    task = db.session.get(Task, task_id)
    if task is None or not get_task_access(user, task.project, task).can_view:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def task_payload(user, task: Task) -> dict:
    """Task with derived progress, blocking and capability fields."""
    project = task.project
    blocking = get_blocking_tasks(task, project.tasks)
    blocked = is_blocked(task, project.tasks)
    result = task.to_dict()
    result.update({
        "computed_progress": calculate_task_progress(task),
        "is_frozen": is_task_frozen(task.status),
        "is_blocked": blocked,
        "blocking_task_ids": [t.id for t in blocking],
        "available_actions": get_available_actions(task, blocked),
        "access": get_task_access(user, project, task).to_dict(),
    })
    return result


def list_tasks(user, project) -> list[dict]:
    return [task_payload(user, t) for t in visible_tasks(user, project)]


# ═════════════════════════════════════════════════════════════════════════════
# Writes
# ═════════════════════════════════════════════════════════════════════════════


def _union_vendor(project, assignee_id: str | None) -> None:
    if not assignee_id:
        return
    assignee = db.session.get(User, assignee_id)
    if assignee is not None and assignee.role == ROLE_VENDOR:
        get_store().array_union("projects", project.id, "vendor_ids", assignee_id)


def _rederive(task: Task) -> None:
    derived = derive_status(task, task.status)
    if derived != task.status:
        logger.info("Task status %s → %s (derived)", task.status, derived,
                    extra=_log_extra(task, event_type="task.status"))
        task.status = derived


def create_task(user, project, data: dict) -> Task:
    if not get_project_access(user, project).can_manage_tasks:
        raise PermissionDenied(user.id, "manage_tasks")
    require_fields(data, "title")
    status = data.get("status") or STATUS_TODO
    require_choice(status, TASK_STATUSES, "status")
    priority = data.get("priority") or "medium"
    require_choice(priority, TASK_PRIORITIES, "priority")

    task = Task(
        id=_uuid(),
        project_id=project.id,
        title=data["title"],
        description=data.get("description") or "",
        category=data.get("category") or "",
        status=status,
        priority=priority,
        assignee_id=data.get("assignee_id"),
        start_date=parse_date(data.get("start_date")),
        due_date=parse_date(data.get("due_date")),
        dependencies=[],
    )
    if data.get("dependencies"):
        task.dependencies = validate_dependencies(task, data["dependencies"], project.tasks)
    for position, title in enumerate(data.get("subtasks") or []):
        task.subtasks.append(SubTask(title=title, position=position))
    seed_approvals(task)
    if status == STATUS_DONE and not gating_approvals_met(task):
        task.status = STATUS_TODO

    get_store().add(f"projects/{project.id}/tasks", task)
    _union_vendor(project, task.assignee_id)

    write_audit(entity_type="task", entity_id=task.id, action="create", actor=user.id,
                project_id=project.id, diff={"title": task.title, "assignee_id": task.assignee_id})
    db.session.commit()
    logger.info("Task created", extra=_log_extra(task, user))
    return task


def update_task(user, task: Task, data: dict) -> Task:
    if not get_task_access(user, task.project, task).can_edit:
        raise PermissionDenied(user.id, "edit_task")
    if "priority" in data:
        require_choice(data["priority"], TASK_PRIORITIES, "priority")
    if data.get("progress") is not None:
        try:
            data = {**data, "progress": max(0, min(100, int(data["progress"])))}
        except (TypeError, ValueError):
            raise ValidationError("progress must be an integer", details={"progress": data["progress"]})
    for key in ("title", "description", "category", "priority", "progress"):
        if key in data:
            setattr(task, key, data[key])
    for key in ("start_date", "due_date"):
        if key in data:
            setattr(task, key, parse_date(data[key]))

    reassigned = "assignee_id" in data and data["assignee_id"] != task.assignee_id
    if reassigned:
        task.assignee_id = data["assignee_id"]
    get_store().save(task)
    if reassigned:
        _union_vendor(task.project, task.assignee_id)
    return task


def delete_task(user, task: Task) -> None:
    if not get_task_access(user, task.project, task).can_delete:
        raise PermissionDenied(user.id, "delete_task")
    project_id = task.project_id
    task_id = task.id
    get_store().delete(f"projects/{project_id}/tasks", task_id)
    write_audit(entity_type="task", entity_id=task_id, action="delete", actor=user.id,
                project_id=project_id)
    db.session.commit()


# ── Subtasks ─────────────────────────────────────────────────────────────────


def add_subtask(user, task: Task, title: str) -> SubTask:
    if not get_task_access(user, task.project, task).can_edit:
        raise PermissionDenied(user.id, "edit_task")
    require_fields({"title": title}, "title")
    subtask = SubTask(title=title, position=len(task.subtasks))
    task.subtasks.append(subtask)
    _rederive(task)
    get_store().save(task)
    return subtask


def toggle_subtask(user, task: Task, subtask_id: str, is_completed: bool | None = None) -> Task:
    if not get_task_access(user, task.project, task).can_edit:
        raise PermissionDenied(user.id, "edit_task")
    subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
    if subtask is None:
        raise NotFoundError(resource="SubTask", resource_id=subtask_id)

    subtask.is_completed = (not subtask.is_completed) if is_completed is None else bool(is_completed)
    _rederive(task)
    write_audit(entity_type="task", entity_id=task.id, action="task.subtask", actor=user.id,
                project_id=task.project_id,
                diff={"subtask_id": subtask.id, "is_completed": subtask.is_completed})
    return get_store().save(task)


# ── Approvals ────────────────────────────────────────────────────────────────


def record_approval(user, task: Task, gate: str, party: str, status: str) -> Task:
    """Write one (gate, party) cell; only that party's authority may decide."""
    if not can_decide_approval(user, task.project, party):
        raise PermissionDenied(user.id, f"approve_{party}", f"not the {party} authority")

    before = task.status
    set_approval(task, gate, party, status, user.id)
    _rederive(task)
    write_audit(entity_type="task", entity_id=task.id, action="task.approval", actor=user.id,
                project_id=task.project_id,
                diff={"gate": gate, "party": party, "status": status,
                      "task_status": [before, task.status]})
    return get_store().save(task)


# ── Lifecycle actions ────────────────────────────────────────────────────────


def _check_movable(task: Task, action: str) -> None:
    if task.status in FROZEN_TASK_STATUSES:
        raise TransitionError(task.id, action, task.status, "task is frozen")
    if task.status != STATUS_DONE:
        blocking = get_blocking_tasks(task, task.project.tasks)
        if blocking:
            raise TaskBlockedError(task.id, action, task.status, [t.id for t in blocking])


def _check_done_allowed(task: Task, action: str, target: str, *, ticks_subtasks=False) -> None:
    """DONE needs the four gating approvals and, unless the action ticks them, closed subtasks."""
    if target != STATUS_DONE or task.status == STATUS_DONE:
        return
    if not gating_approvals_met(task):
        raise TransitionError(task.id, action, task.status, "awaiting start/completion approvals")
    if not ticks_subtasks and any(not s.is_completed for s in task.subtasks):
        raise TransitionError(task.id, action, task.status, "subtasks still open")


def _apply_transition(user, task: Task, action: str, target: str) -> Task:
    before = task.status
    task.status = target
    write_audit(entity_type="task", entity_id=task.id, action=f"task.{action}", actor=user.id,
                project_id=task.project_id, diff={"status": [before, target]})
    logger.info("Task %s: %s → %s", action, before, target,
                extra=_log_extra(task, user, event_type=f"task.{action}"))
    return get_store().save(task)


def complete_task(user, task: Task) -> Task:
    """First press sends work to review; the second confirms done."""
    if not get_task_access(user, task.project, task).can_update_status:
        raise PermissionDenied(user.id, "complete_task")
    target = next_complete_status(task.status)
    if target is None:
        raise TransitionError(task.id, "complete", task.status, "no complete transition")
    _check_movable(task, "complete")
    _check_done_allowed(task, "complete", target, ticks_subtasks=True)

    for subtask in task.subtasks:
        subtask.is_completed = True
    return _apply_transition(user, task, "complete", target)


def advance_task(user, task: Task) -> Task:
    if not get_task_access(user, task.project, task).can_update_status:
        raise PermissionDenied(user.id, "advance_task")
    target = next_advance_status(task.status)
    if target is None:
        raise TransitionError(task.id, "advance", task.status, "no advance transition")
    _check_movable(task, "advance")
    _check_done_allowed(task, "advance", target)
    return _apply_transition(user, task, "advance", target)


def set_task_status(user, task: Task, status: str) -> Task:
    """Explicit status write.  Freezing and unfreezing are Admin-only."""
    require_choice(status, TASK_STATUSES, "status")
    if not get_task_access(user, task.project, task).can_update_status:
        raise PermissionDenied(user.id, "update_status")
    entering_or_leaving_frozen = (
        status in FROZEN_TASK_STATUSES or task.status in FROZEN_TASK_STATUSES
    )
    if entering_or_leaving_frozen and user.role != ROLE_ADMIN:
        raise PermissionDenied(user.id, "update_status", "only an admin may freeze or unfreeze")
    if status == task.status:
        return task
    if status not in FROZEN_TASK_STATUSES and task.status not in FROZEN_TASK_STATUSES:
        if status != STATUS_TODO:
            _check_movable(task, "status")
    _check_done_allowed(task, "status", status)
    return _apply_transition(user, task, "status", status)


def set_dependencies(user, task: Task, dependencies) -> Task:
    if not get_task_access(user, task.project, task).can_edit:
        raise PermissionDenied(user.id, "edit_task")
    cleaned = validate_dependencies(task, dependencies, task.project.tasks)
    before = list(task.dependencies or [])
    task.dependencies = cleaned
    write_audit(entity_type="task", entity_id=task.id, action="task.dependencies", actor=user.id,
                project_id=task.project_id, diff={"dependencies": [before, cleaned]})
    return get_store().save(task)
