"""
Task API tests — creation, approvals, lifecycle actions and dependencies.

Tests cover:
  - Create seeds the approval ledger and unions the vendor into vendor_ids
  - Subtask ticks re-derive the status; approvals complete the gate
  - Only the matching authority may decide a party's cell
  - Two-press complete, quick advance, blocked and frozen refusals
  - Done requires the four gating approvals on every path
  - Freezing / unfreezing restricted to admins
  - Dependency edits validated (self, foreign, cycle)
"""

import pytest

from atelier.models import db
from atelier.models.project import Project
from atelier.models.task import Task

ALL_GATING = {
    ("start", "client"): "approved",
    ("start", "admin"): "approved",
    ("completion", "client"): "approved",
    ("completion", "admin"): "approved",
}


def _approve(client, task_id, gate, party, user, auth_headers, status="approved"):
    return client.post(f"/api/v1/tasks/{task_id}/approvals",
                       json={"gate": gate, "party": party, "status": status},
                       headers=auth_headers(user))


# ═════════════════════════════════════════════════════════════════════════
# CREATE & READ
# ═════════════════════════════════════════════════════════════════════════

class TestCreate:
    def test_create_seeds_ledger_and_vendor(self, client, designer, make_user, project, auth_headers):
        painter = make_user("vendor-paint", "vendor")
        res = client.post(f"/api/v1/projects/{project.id}/tasks",
                          json={"title": "Painting", "assignee_id": painter.id,
                                "subtasks": ["Putty", "Primer"]},
                          headers=auth_headers(designer))
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "todo"
        assert data["approvals"]["start"]["client"]["status"] == "pending"
        assert "designer" not in data["approvals"]["completion"]
        assert painter.id in db.session.get(Project, project.id).vendor_ids

    def test_create_done_without_approvals_downgraded(self, client, admin, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/tasks",
                          json={"title": "Handover", "status": "done"},
                          headers=auth_headers(admin))
        assert res.get_json()["status"] == "todo"

    def test_client_cannot_create(self, client, client_user, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/tasks", json={"title": "x"},
                          headers=auth_headers(client_user))
        assert res.status_code == 403

    def test_vendor_cannot_read_other_task(self, client, vendor, make_task, project, auth_headers):
        task = make_task(project, assignee_id="someone-else")
        assert client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(vendor)).status_code == 404

    def test_payload_fields(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, subtasks=[("a", True), ("b", False)])
        data = client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(admin)).get_json()
        assert data["computed_progress"] == 50
        assert data["is_blocked"] is False
        assert data["available_actions"] == ["complete", "advance"]
        assert data["access"]["approval_parties"] == ["admin"]

    def test_progress_clamped(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.patch(f"/api/v1/tasks/{task.id}", json={"progress": 140},
                           headers=auth_headers(admin))
        assert res.get_json()["computed_progress"] == 100

    def test_non_numeric_progress(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.patch(f"/api/v1/tasks/{task.id}", json={"progress": "lots"},
                           headers=auth_headers(admin))
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# SUBTASKS & APPROVALS
# ═════════════════════════════════════════════════════════════════════════

class TestDerivedStatus:
    def test_ticks_move_status(self, client, vendor, make_task, project, auth_headers):
        task = make_task(project, assignee_id=vendor.id,
                         subtasks=[("Cut", False), ("Fix", False)])
        first, second = task.subtasks
        headers = auth_headers(vendor)

        res = client.patch(f"/api/v1/tasks/{task.id}/subtasks/{first.id}", headers=headers)
        assert res.get_json()["status"] == "in_progress"
        res = client.patch(f"/api/v1/tasks/{task.id}/subtasks/{second.id}",
                           json={"is_completed": True}, headers=headers)
        assert res.get_json()["status"] == "review"

    def test_last_approval_makes_done(self, client, admin, make_task, project, auth_headers):
        approvals = {**ALL_GATING, ("completion", "admin"): "pending"}
        task = make_task(project, status="review", subtasks=[("a", True), ("b", True)],
                         approvals=approvals)
        res = _approve(client, task.id, "completion", "admin", admin, auth_headers)
        assert res.status_code == 200
        assert res.get_json()["status"] == "done"

    def test_approval_leaves_other_cells(self, client, client_user, make_task, project, auth_headers):
        task = make_task(project, approvals={("start", "admin"): "approved"})
        res = _approve(client, task.id, "completion", "client", client_user, auth_headers)
        approvals = res.get_json()["approvals"]
        assert approvals["completion"]["client"]["status"] == "approved"
        assert approvals["completion"]["client"]["updated_by"] == client_user.id
        assert approvals["start"]["admin"]["status"] == "approved"
        assert approvals["start"]["client"]["status"] == "pending"
        assert approvals["completion"]["admin"]["status"] == "pending"

    def test_only_matching_authority(self, client, designer, client_user, make_task, project, auth_headers):
        task = make_task(project)
        assert _approve(client, task.id, "start", "admin", client_user, auth_headers).status_code == 403
        assert _approve(client, task.id, "start", "client", designer, auth_headers).status_code == 403
        res = _approve(client, task.id, "completion", "designer", designer, auth_headers)
        assert res.status_code == 200
        assert res.get_json()["approvals"]["completion"]["designer"]["status"] == "approved"

    def test_missing_approval_fields(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.post(f"/api/v1/tasks/{task.id}/approvals", json={"gate": "start"},
                          headers=auth_headers(admin))
        assert res.status_code == 400

    def test_frozen_task_ignores_ticks(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, status="on_hold", subtasks=[("a", False)])
        res = client.patch(f"/api/v1/tasks/{task.id}/subtasks/{task.subtasks[0].id}",
                           headers=auth_headers(admin))
        assert res.get_json()["status"] == "on_hold"


# ═════════════════════════════════════════════════════════════════════════
# LIFECYCLE ACTIONS
# ═════════════════════════════════════════════════════════════════════════

class TestLifecycle:
    def test_two_press_complete(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, subtasks=[("a", False)], approvals=ALL_GATING)
        headers = auth_headers(admin)
        res = client.post(f"/api/v1/tasks/{task.id}/complete", headers=headers)
        assert res.get_json()["status"] == "review"
        assert res.get_json()["subtasks"][0]["is_completed"] is True
        res = client.post(f"/api/v1/tasks/{task.id}/complete", headers=headers)
        assert res.get_json()["status"] == "done"

    def test_complete_to_done_needs_approvals(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, status="review")
        res = client.post(f"/api/v1/tasks/{task.id}/complete", headers=auth_headers(admin))
        assert res.status_code == 409
        assert db.session.get(Task, task.id).status == "review"

    def test_advance_steps(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.post(f"/api/v1/tasks/{task.id}/advance", headers=auth_headers(admin))
        assert res.get_json()["status"] == "in_progress"

    def test_blocked_task_refused(self, client, admin, make_task, project, auth_headers):
        prereq = make_task(project, title="Electrical", status="in_progress")
        task = make_task(project, title="Ceiling", dependencies=[prereq.id])
        res = client.post(f"/api/v1/tasks/{task.id}/advance", headers=auth_headers(admin))
        assert res.status_code == 409
        assert res.get_json()["details"]["blocking_task_ids"] == [prereq.id]

    def test_unblocked_once_prerequisite_done(self, client, admin, make_task, project, auth_headers):
        prereq = make_task(project, title="Electrical", status="done", approvals=ALL_GATING)
        task = make_task(project, title="Ceiling", dependencies=[prereq.id])
        res = client.post(f"/api/v1/tasks/{task.id}/advance", headers=auth_headers(admin))
        assert res.status_code == 200

    @pytest.mark.parametrize("action", ["complete", "advance"])
    def test_frozen_refused(self, client, admin, make_task, project, auth_headers, action):
        task = make_task(project, status="aborted")
        res = client.post(f"/api/v1/tasks/{task.id}/{action}", headers=auth_headers(admin))
        assert res.status_code == 409

    def test_status_write_to_done_needs_approvals(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.put(f"/api/v1/tasks/{task.id}/status", json={"status": "done"},
                         headers=auth_headers(admin))
        assert res.status_code == 409

    def test_advance_to_done_needs_ticked_subtasks(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, status="review", subtasks=[("a", False), ("b", False)],
                         approvals=ALL_GATING)
        res = client.post(f"/api/v1/tasks/{task.id}/advance", headers=auth_headers(admin))
        assert res.status_code == 409
        assert "subtasks" in res.get_json()["error"]
        assert db.session.get(Task, task.id).status == "review"

    def test_status_write_to_done_needs_ticked_subtasks(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, status="in_progress", subtasks=[("a", True), ("b", False)],
                         approvals=ALL_GATING)
        res = client.put(f"/api/v1/tasks/{task.id}/status", json={"status": "done"},
                         headers=auth_headers(admin))
        assert res.status_code == 409
        assert db.session.get(Task, task.id).status == "in_progress"

    def test_advance_to_done_with_ticked_subtasks(self, client, admin, make_task, project, auth_headers):
        task = make_task(project, status="review", subtasks=[("a", True)], approvals=ALL_GATING)
        res = client.post(f"/api/v1/tasks/{task.id}/advance", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["status"] == "done"

    def test_only_admin_freezes(self, client, admin, vendor, make_task, project, auth_headers):
        task = make_task(project, assignee_id=vendor.id)
        url = f"/api/v1/tasks/{task.id}/status"
        assert client.put(url, json={"status": "on_hold"},
                          headers=auth_headers(vendor)).status_code == 403
        res = client.put(url, json={"status": "on_hold"}, headers=auth_headers(admin))
        assert res.get_json()["status"] == "on_hold"
        res = client.put(url, json={"status": "in_progress"}, headers=auth_headers(admin))
        assert res.get_json()["status"] == "in_progress"

    def test_invalid_status(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.put(f"/api/v1/tasks/{task.id}/status", json={"status": "sleeping"},
                         headers=auth_headers(admin))
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# DEPENDENCIES
# ═════════════════════════════════════════════════════════════════════════

class TestDependencies:
    def test_set_and_reject_cycle(self, client, admin, make_task, project, auth_headers):
        a = make_task(project, title="A")
        b = make_task(project, title="B")
        headers = auth_headers(admin)
        res = client.put(f"/api/v1/tasks/{b.id}/dependencies", json={"dependencies": [a.id]},
                         headers=headers)
        assert res.get_json()["dependencies"] == [a.id]
        assert res.get_json()["is_blocked"] is True

        res = client.put(f"/api/v1/tasks/{a.id}/dependencies", json={"dependencies": [b.id]},
                         headers=headers)
        assert res.status_code == 422

    def test_foreign_project_rejected(self, client, admin, make_project, make_task, project, auth_headers):
        other = make_task(make_project(name="Other"))
        task = make_task(project)
        res = client.put(f"/api/v1/tasks/{task.id}/dependencies", json={"dependencies": [other.id]},
                         headers=auth_headers(admin))
        assert res.status_code == 422

    def test_not_a_list(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        res = client.put(f"/api/v1/tasks/{task.id}/dependencies", json={"dependencies": "A"},
                         headers=auth_headers(admin))
        assert res.status_code == 400

    def test_delete_task(self, client, admin, make_task, project, auth_headers):
        task = make_task(project)
        assert client.delete(f"/api/v1/tasks/{task.id}", headers=auth_headers(admin)).status_code == 200
        assert db.session.get(Task, task.id) is None
