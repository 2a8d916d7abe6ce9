"""
Dependency resolver — blocking checks over a project's task set.

A task is blocked when it is frozen (aborted / on_hold) or when any task
named in ``dependencies`` exists in the project and is not done.  A
dangling dependency id is simply absent from the task set and therefore
does not block.  Resolution is one level deep and recomputed per call.

Edits to ``dependencies`` are validated separately: same project, no
self-reference, and no cycle (iterative DFS over the in-memory graph).
"""

import logging

from atelier.core.exceptions import ValidationError
from atelier.models.task import FROZEN_TASK_STATUSES, STATUS_DONE

logger = logging.getLogger(__name__)


def _index(all_tasks) -> dict:
    return {t.id: t for t in (all_tasks or []) if getattr(t, "id", None)}


def get_blocking_tasks(task, all_tasks) -> list:
    """Dependency tasks that exist in ``all_tasks`` and are not yet done."""
    by_id = _index(all_tasks)
    blocking = []
    for dep_id in getattr(task, "dependencies", None) or []:
        dep = by_id.get(dep_id)
        if dep is None:
            continue
        if dep.status != STATUS_DONE:
            blocking.append(dep)
    return blocking


def is_blocked(task, all_tasks) -> bool:
    if getattr(task, "status", None) in FROZEN_TASK_STATUSES:
        return True
    return bool(get_blocking_tasks(task, all_tasks))


def validate_no_cycle(task_id: str, new_dependencies, all_tasks) -> bool:
    """
    Check that giving ``task_id`` the prerequisites ``new_dependencies``
    does not close a cycle.

    Walks from each new prerequisite through existing ``dependencies``
    edges; reaching ``task_id`` again means a cycle.  Returns True if safe.
    """
    graph = {t.id: list(t.dependencies or []) for t in all_tasks or []}
    graph[task_id] = list(new_dependencies)

    visited = set()
    stack = list(new_dependencies)

    while stack:
        current = stack.pop()
        if current == task_id:
            return False
        if current in visited:
            continue
        visited.add(current)
        stack.extend(graph.get(current, []))

    return True


def validate_dependencies(task, new_dependencies, all_tasks) -> list[str]:
    """Return the cleaned dependency list or raise ValidationError.

    ``all_tasks`` must be the task set of ``task``'s project.
    """
    cleaned = []
    for dep_id in new_dependencies or []:
        if not isinstance(dep_id, str) or not dep_id:
            raise ValidationError("Dependency ids must be non-empty strings",
                                  details={"dependencies": dep_id})
        if dep_id not in cleaned:
            cleaned.append(dep_id)

    if task.id in cleaned:
        raise ValidationError("A task cannot depend on itself",
                              details={"dependencies": task.id})

    by_id = _index(all_tasks)
    foreign = [d for d in cleaned if d not in by_id]
    if foreign:
        raise ValidationError("Dependencies must reference tasks in the same project",
                              details={"unknown_task_ids": foreign})

    if not validate_no_cycle(task.id, cleaned, all_tasks):
        logger.info("Rejected cyclic dependency edit", extra={"task_id": task.id})
        raise ValidationError("Dependencies would create a cycle",
                              details={"dependencies": cleaned})

    return cleaned
