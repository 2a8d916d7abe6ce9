"""
Pending-action aggregator tests.

Tests cover:
  - Task start / completion cells per party, "Start: " / "End: " labels
  - Document inbox: admin first, client after admin approval
  - Additional-budget and client-payment cells for admin and client
  - Cross-project aggregation and active-tenant narrowing for admins
  - Roles with nothing to decide get an empty inbox
"""

from atelier.models import db
from atelier.models.auth import Tenant
from atelier.services.pending_actions import get_pending_actions, get_pending_actions_for_project


def _labels(actions):
    return sorted(a.label for a in actions)


class TestTaskActions:
    def test_admin_sees_both_gates(self, admin, make_task, project):
        make_task(project, title="Flooring")
        actions = get_pending_actions_for_project(admin, project)
        assert _labels(actions) == ["End: Flooring", "Start: Flooring"]
        assert {a.party for a in actions} == {"admin"}
        assert all(a.type == "task" and a.project_name == project.name for a in actions)

    def test_decided_cell_drops_out(self, client_user, make_task, project):
        task = make_task(project, title="Flooring", approvals={("start", "client"): "approved"})
        actions = get_pending_actions_for_project(client_user, project)
        assert _labels(actions) == ["End: Flooring"]
        assert actions[0].task_id == task.id
        assert actions[0].gate == "completion"

    def test_designer_only_for_requested_cells(self, designer, make_task, project):
        make_task(project, title="Lighting")
        assert get_pending_actions_for_project(designer, project) == []
        make_task(project, title="Wallpaper", approvals={("completion", "designer"): "pending"})
        assert _labels(get_pending_actions_for_project(designer, project)) == ["End: Wallpaper"]

    def test_vendor_has_no_inbox(self, vendor, make_task, project):
        make_task(project, assignee_id=vendor.id)
        assert get_pending_actions_for_project(vendor, project) == []

    def test_one_entry_per_cell(self, admin, make_task, project):
        make_task(project, title="Plumbing")
        first = get_pending_actions_for_project(admin, project)
        second = get_pending_actions_for_project(admin, project)
        assert first == second
        assert len({(a.task_id, a.gate, a.party) for a in first}) == len(first)


class TestDocumentActions:
    def test_admin_sees_pending_document(self, admin, make_document, project):
        make_document(project, name="Moodboard.pdf")
        assert _labels(get_pending_actions_for_project(admin, project)) == ["Doc: Moodboard.pdf"]

    def test_client_waits_for_admin(self, client_user, make_document, project):
        doc = make_document(project, name="Moodboard.pdf")
        assert get_pending_actions_for_project(client_user, project) == []

        doc.approval_status = "approved"
        doc.client_approval_status = "pending"
        db.session.commit()
        actions = get_pending_actions_for_project(client_user, project)
        assert _labels(actions) == ["Doc: Moodboard.pdf"]
        assert actions[0].type == "doc"
        assert actions[0].entity_id == doc.id

    def test_client_decision_clears(self, client_user, make_document, project):
        make_document(project, approval_status="approved", client_approval_status="approved")
        assert get_pending_actions_for_project(client_user, project) == []


class TestFinancialActions:
    def test_budget_and_payment_cells(self, admin, client_user, make_record, project):
        make_record(project, 5000, description="Extra wardrobe", is_additional_budget=True,
                    admin_approval_for_additional_budget="pending",
                    client_approval_for_additional_budget="approved")
        make_record(project, 20000, description="Advance", record_type="income",
                    is_client_payment=True, admin_approval_for_payment="pending",
                    client_approval_for_payment="pending")

        assert _labels(get_pending_actions_for_project(admin, project)) == [
            "Budget: Extra wardrobe", "Payment: Advance",
        ]
        assert _labels(get_pending_actions_for_project(client_user, project)) == [
            "Payment: Advance",
        ]

    def test_unflagged_record_ignored(self, admin, make_record, project):
        make_record(project, 100, description="Paint", admin_approval_for_payment="pending")
        assert get_pending_actions_for_project(admin, project) == []


class TestAggregation:
    def test_across_projects(self, admin, make_project, make_task, project):
        other = make_project(name="Villa")
        make_task(project, title="A")
        make_task(other, title="B")
        actions = get_pending_actions(admin, [project, other])
        assert {a.project_name for a in actions} == {project.name, "Villa"}
        assert len(actions) == 4

    def test_admin_narrowed_to_active_tenant(self, make_user, make_project, make_task, tenant):
        db.session.add(Tenant(id="tenant-two", name="Second", admin_id="admin-1"))
        db.session.commit()
        owner = make_user("admin-1", "admin", tenant_ids=["tenant-two"])
        home = make_project(name="Home")
        away = make_project(tenant_id="tenant-two", name="Away")
        make_task(home, title="H")
        make_task(away, title="W")

        actions = get_pending_actions(owner, [home, away], active_tenant_id="tenant-two")
        assert {a.project_name for a in actions} == {"Away"}

    def test_invisible_projects_skipped(self, make_user, make_task, project):
        stranger = make_user("client-x", "client")
        make_task(project)
        assert get_pending_actions(stranger, [project]) == []

    def test_to_dict_shape(self, admin, make_task, project):
        make_task(project, title="Doors")
        item = get_pending_actions(admin, [project])[0].to_dict()
        assert set(item) == {"label", "type", "project_id", "project_name", "task_id",
                             "entity_id", "gate", "party"}
