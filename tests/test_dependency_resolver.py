"""
Dependency resolver unit tests.

Tests cover:
  - Blocking by unfinished prerequisites, unblocking once they are done
  - Dangling ids do not block; frozen tasks are always blocked
  - Edit validation: self-reference, foreign ids, cycles, de-duplication
"""

import pytest

from atelier.core.exceptions import ValidationError
from atelier.models.task import Task
from atelier.services.dependency_resolver import (
    get_blocking_tasks,
    is_blocked,
    validate_dependencies,
    validate_no_cycle,
)


def _t(task_id, status="todo", deps=()):
    return Task(id=task_id, title=task_id, status=status, dependencies=list(deps))


class TestBlocking:
    def test_unfinished_prerequisite_blocks(self):
        a = _t("A", "in_progress")
        b = _t("B", deps=["A"])
        assert is_blocked(b, [a, b])
        assert get_blocking_tasks(b, [a, b]) == [a]

    def test_done_prerequisite_unblocks(self):
        a = _t("A", "in_progress")
        b = _t("B", deps=["A"])
        assert is_blocked(b, [a, b])
        a.status = "done"
        assert not is_blocked(b, [a, b])

    def test_only_unfinished_dependencies_listed(self):
        a, c = _t("A", "done"), _t("C", "review")
        b = _t("B", deps=["A", "C"])
        assert [t.id for t in get_blocking_tasks(b, [a, b, c])] == ["C"]

    def test_dangling_dependency_does_not_block(self):
        b = _t("B", deps=["deleted-task"])
        assert not is_blocked(b, [b])

    @pytest.mark.parametrize("frozen", ["aborted", "on_hold"])
    def test_frozen_task_is_blocked(self, frozen):
        task = _t("A", frozen)
        assert is_blocked(task, [task])

    def test_resolution_is_one_level(self):
        a = _t("A", "todo")
        b = _t("B", "done", deps=["A"])
        c = _t("C", deps=["B"])
        assert not is_blocked(c, [a, b, c])


class TestValidation:
    def test_cycle_detected(self):
        a = _t("A", deps=["B"])
        b = _t("B", deps=["C"])
        c = _t("C")
        assert not validate_no_cycle("C", ["A"], [a, b, c])
        assert validate_no_cycle("A", ["C"], [a, b, c])

    def test_self_reference_rejected(self):
        a = _t("A")
        with pytest.raises(ValidationError, match="itself"):
            validate_dependencies(a, ["A"], [a])

    def test_foreign_ids_rejected(self):
        a = _t("A")
        with pytest.raises(ValidationError) as exc:
            validate_dependencies(a, ["other-project-task"], [a])
        assert exc.value.details["unknown_task_ids"] == ["other-project-task"]

    def test_cycle_rejected(self):
        a, b = _t("A"), _t("B", deps=["A"])
        with pytest.raises(ValidationError, match="cycle"):
            validate_dependencies(a, ["B"], [a, b])

    def test_duplicates_collapsed(self):
        a, b = _t("A"), _t("B")
        assert validate_dependencies(a, ["B", "B"], [a, b]) == ["B"]

    def test_empty_list_clears(self):
        a = _t("A", deps=["B"])
        assert validate_dependencies(a, [], [a]) == []
