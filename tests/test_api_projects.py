"""
Project API tests — projects, team, meetings, documents, financials, inbox, vendor metrics.

Tests cover:
  - Listing scoped by role and active tenant; hidden projects 404, missing capability 403
  - Create / update / delete, team membership edits
  - Meetings: vendor visibility, attendee additions
  - Documents: upload, admin → client decision order, sharing
  - Financials: add (admin only), billing and payment approvals
  - Pending-action inbox over HTTP
  - Vendor metrics sync and read
"""

import pytest

from atelier.models import db
from atelier.models.project import Project


# ═════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════

class TestProjects:
    def test_admin_creates_project(self, client, admin, auth_headers):
        res = client.post("/api/v1/projects", json={"name": "Lake House", "budget": 1500000},
                          headers=auth_headers(admin))
        assert res.status_code == 201
        data = res.get_json()
        assert data["tenant_id"] == admin.tenant_id
        assert data["initial_budget"] == 1500000
        assert data["access"]["can_delete_project"] is True

    def test_non_admin_cannot_create(self, client, designer, auth_headers):
        res = client.post("/api/v1/projects", json={"name": "X"}, headers=auth_headers(designer))
        assert res.status_code == 403

    def test_create_requires_name(self, client, admin, auth_headers):
        res = client.post("/api/v1/projects", json={}, headers=auth_headers(admin))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"name": "required"}

    def test_list_by_role(self, client, vendor, make_user, project, auth_headers):
        assert len(client.get("/api/v1/projects", headers=auth_headers(vendor)).get_json()) == 1
        outsider = make_user("vendor-2", "vendor")
        assert client.get("/api/v1/projects", headers=auth_headers(outsider)).get_json() == []

    def test_hidden_project_is_404(self, client, make_user, project, auth_headers):
        outsider = make_user("client-9", "client")
        res = client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(outsider))
        assert res.status_code == 404

    def test_missing_capability_is_403(self, client, client_user, project, auth_headers):
        res = client.patch(f"/api/v1/projects/{project.id}", json={"name": "Renamed"},
                           headers=auth_headers(client_user))
        assert res.status_code == 403

    def test_client_does_not_see_hidden_vendors(self, client, client_user, project, auth_headers):
        project.hidden_vendor_ids = ["vendor-1"]
        db.session.commit()
        res = client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(client_user))
        assert res.get_json()["vendor_ids"] == []

    def test_designer_updates(self, client, designer, project, auth_headers):
        res = client.patch(f"/api/v1/projects/{project.id}",
                           json={"status": "execution", "deadline": "31/12/2026"},
                           headers=auth_headers(designer))
        assert res.status_code == 200
        assert res.get_json()["deadline"] == "2026-12-31"

    def test_invalid_status(self, client, admin, project, auth_headers):
        res = client.patch(f"/api/v1/projects/{project.id}", json={"status": "dreaming"},
                           headers=auth_headers(admin))
        assert res.status_code == 422

    def test_delete(self, client, admin, project, auth_headers):
        res = client.delete(f"/api/v1/projects/{project.id}", headers=auth_headers(admin))
        assert res.status_code == 200
        assert db.session.get(Project, project.id) is None

    def test_access_endpoint(self, client, vendor, project, auth_headers):
        data = client.get(f"/api/v1/projects/{project.id}/access",
                          headers=auth_headers(vendor)).get_json()
        assert data["can_view_project"] is True
        assert data["can_view_financials"] is False

    def test_progress(self, client, admin, make_task, project, auth_headers):
        make_task(project, status="done")
        make_task(project, status="todo")
        data = client.get(f"/api/v1/projects/{project.id}/progress",
                          headers=auth_headers(admin)).get_json()
        assert data["progress"] == 50


class TestTeam:
    def test_add_and_remove_member(self, client, designer, make_user, project, auth_headers):
        helper = make_user("designer-2", "designer")
        res = client.post(f"/api/v1/projects/{project.id}/team", json={"user_id": helper.id},
                          headers=auth_headers(designer))
        assert res.status_code == 201
        assert res.get_json()["team_members"] == [helper.id]

        res = client.delete(f"/api/v1/projects/{project.id}/team/{helper.id}",
                            headers=auth_headers(designer))
        assert res.get_json()["team_members"] == []

    def test_unknown_member(self, client, admin, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/team", json={"user_id": "ghost"},
                          headers=auth_headers(admin))
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# MEETINGS & DOCUMENTS
# ═════════════════════════════════════════════════════════════════════════

class TestMeetings:
    def test_vendor_sees_attended_only(self, client, admin, vendor, project, auth_headers):
        headers = auth_headers(admin)
        client.post(f"/api/v1/projects/{project.id}/meetings",
                    json={"title": "Site measure", "attendees": [vendor.id]}, headers=headers)
        client.post(f"/api/v1/projects/{project.id}/meetings",
                    json={"title": "Budget talk"}, headers=headers)

        titles = [m["title"] for m in client.get(f"/api/v1/projects/{project.id}/meetings",
                                                 headers=auth_headers(vendor)).get_json()]
        assert titles == ["Site measure"]

    def test_attendee_adds_attendees(self, client, client_user, make_meeting, project, auth_headers):
        meeting = make_meeting(project, attendees=[client_user.id])
        res = client.post(f"/api/v1/projects/{project.id}/meetings/{meeting.id}/attendees",
                          json={"attendees": ["designer-1"]}, headers=auth_headers(client_user))
        assert res.status_code == 200
        assert res.get_json()["attendees"] == [client_user.id, "designer-1"]

    def test_non_admin_cannot_delete(self, client, client_user, make_meeting, project, auth_headers):
        meeting = make_meeting(project, attendees=[client_user.id])
        res = client.delete(f"/api/v1/projects/{project.id}/meetings/{meeting.id}",
                            headers=auth_headers(client_user))
        assert res.status_code == 403


class TestDocuments:
    def test_decision_order(self, client, admin, client_user, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/documents",
                          json={"name": "Render.png", "doc_type": "image"},
                          headers=auth_headers(admin))
        assert res.status_code == 201
        doc_id = res.get_json()["id"]
        url = f"/api/v1/projects/{project.id}/documents/{doc_id}/decision"

        early = client.post(url, json={"party": "client", "decision": "approved"},
                            headers=auth_headers(client_user))
        assert early.status_code == 403

        res = client.post(url, json={"party": "admin", "decision": "approved"},
                          headers=auth_headers(admin))
        assert res.get_json()["client_approval_status"] == "pending"

        res = client.post(url, json={"party": "client", "decision": "approved"},
                          headers=auth_headers(client_user))
        assert res.status_code == 200
        assert res.get_json()["client_approval_status"] == "approved"

    def test_share_with_vendor(self, client, designer, vendor, make_document, project, auth_headers):
        doc = make_document(project)
        base = f"/api/v1/projects/{project.id}/documents"
        assert client.get(base, headers=auth_headers(vendor)).get_json() == []

        client.post(f"{base}/{doc.id}/share", json={"shared_with": ["vendor"]},
                    headers=auth_headers(designer))
        assert [d["id"] for d in client.get(base, headers=auth_headers(vendor)).get_json()] == [doc.id]

    def test_invalid_doc_type(self, client, admin, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/documents",
                          json={"name": "x", "doc_type": "video"}, headers=auth_headers(admin))
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# FINANCIALS, INBOX, VENDOR METRICS
# ═════════════════════════════════════════════════════════════════════════

class TestFinancials:
    def test_admin_adds_and_both_approve(self, client, admin, client_user, vendor, project, auth_headers):
        base = f"/api/v1/projects/{project.id}/financials"
        res = client.post(base, json={"amount": 4500, "vendor_id": vendor.id, "paid_by": "admin"},
                          headers=auth_headers(admin))
        assert res.status_code == 201
        record_id = res.get_json()["id"]

        client.post(f"{base}/{record_id}/approve", json={"kind": "billing", "decision": True},
                    headers=auth_headers(admin))
        res = client.post(f"{base}/{record_id}/approve", json={"kind": "billing", "decision": True},
                          headers=auth_headers(client_user))
        data = res.get_json()
        assert data["admin_approved"] is True
        assert data["client_approved"] is True

    def test_designer_cannot_add(self, client, designer, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/financials", json={"amount": 1},
                          headers=auth_headers(designer))
        assert res.status_code == 403

    def test_vendor_cannot_view(self, client, vendor, project, auth_headers):
        res = client.get(f"/api/v1/projects/{project.id}/financials", headers=auth_headers(vendor))
        assert res.status_code == 403

    def test_payment_kind_requires_flag(self, client, admin, make_record, project, auth_headers):
        record = make_record(project, 100)
        res = client.post(f"/api/v1/projects/{project.id}/financials/{record.id}/approve",
                          json={"kind": "client_payment", "decision": "approved"},
                          headers=auth_headers(admin))
        assert res.status_code == 422

    def test_negative_amount(self, client, admin, project, auth_headers):
        res = client.post(f"/api/v1/projects/{project.id}/financials", json={"amount": -5},
                          headers=auth_headers(admin))
        assert res.status_code == 422


class TestInbox:
    def test_pending_actions(self, client, admin, make_task, project, auth_headers):
        make_task(project, title="False ceiling")
        data = client.get("/api/v1/pending-actions", headers=auth_headers(admin)).get_json()
        assert data["count"] == 2
        assert sorted(i["label"] for i in data["items"]) == ["End: False ceiling",
                                                             "Start: False ceiling"]


class TestVendorMetricsApi:
    @pytest.fixture()
    def billed(self, project, vendor, make_task, make_record):
        make_task(project, assignee_id=vendor.id)
        make_record(project, 3000, vendor_id=vendor.id, admin_approved=True, client_approved=True)
        return project

    def test_sync_then_read(self, client, admin, vendor, billed, auth_headers):
        res = client.post("/api/v1/vendors/metrics/sync", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["result"]["vendors_updated"] == 1

        data = client.get(f"/api/v1/vendors/{vendor.id}/metrics",
                          headers=auth_headers(vendor)).get_json()
        assert data["project_metrics"][billed.id]["net_amount"] == 3000
        assert data["stale_possible"] is True

    def test_sync_admin_only(self, client, vendor, billed, auth_headers):
        assert client.post("/api/v1/vendors/metrics/sync",
                           headers=auth_headers(vendor)).status_code == 403

    def test_vendor_cannot_read_other_vendor(self, client, vendor, make_user, auth_headers):
        other = make_user("vendor-2", "vendor")
        res = client.get(f"/api/v1/vendors/{other.id}/metrics", headers=auth_headers(vendor))
        assert res.status_code == 403
