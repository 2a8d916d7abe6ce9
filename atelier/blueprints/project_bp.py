"""
Project blueprint — projects, team, meetings and the pending-action inbox.

Routes:
  GET    /projects                                      – projects visible in the active tenant
  POST   /projects                                      – create (admin)
  GET    /projects/<pid>                                – detail with capability set
  PATCH  /projects/<pid>                                – edit
  DELETE /projects/<pid>                                – delete (admin)
  GET    /projects/<pid>/access                         – caller's capability set
  GET    /projects/<pid>/progress                       – project and per-task progress
  POST   /projects/<pid>/team                           – add team member
  DELETE /projects/<pid>/team/<uid>                     – remove team member
  GET    /projects/<pid>/meetings                       – meetings visible to the caller
  POST   /projects/<pid>/meetings                       – schedule
  POST   /projects/<pid>/meetings/<mid>/attendees       – add attendees
  DELETE /projects/<pid>/meetings/<mid>                 – delete
  GET    /pending-actions                               – the caller's approval inbox
"""

from flask import Blueprint, g, jsonify

from atelier.blueprints import json_body
from atelier.middleware.project_access import current_user, require_project_capability
from atelier.services import project_service
from atelier.services.pending_actions import get_pending_actions
from atelier.utils.errors import E, api_error

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects", methods=["GET"])
def list_projects():
    user = current_user()
    projects = project_service.list_projects(user, g.jwt_tenant_id)
    return jsonify([project_service.project_payload(user, p) for p in projects])


@project_bp.route("/projects", methods=["POST"])
def create_project():
    user = current_user()
    project = project_service.create_project(user, g.jwt_tenant_id, json_body())
    return jsonify(project_service.project_payload(user, project)), 201


@project_bp.route("/projects/<project_id>", methods=["GET"])
@require_project_capability()
def get_project(project_id):
    return jsonify(project_service.project_payload(g.current_user, g.project))


@project_bp.route("/projects/<project_id>", methods=["PATCH"])
@require_project_capability("can_edit_project")
def update_project(project_id):
    project = project_service.update_project(g.current_user, g.project, json_body())
    return jsonify(project_service.project_payload(g.current_user, project))


@project_bp.route("/projects/<project_id>", methods=["DELETE"])
@require_project_capability("can_delete_project")
def delete_project(project_id):
    project_service.delete_project(g.current_user, g.project)
    return jsonify({"deleted": True, "id": project_id})


@project_bp.route("/projects/<project_id>/access", methods=["GET"])
@require_project_capability()
def project_access(project_id):
    return jsonify(g.project_access.to_dict())


@project_bp.route("/projects/<project_id>/progress", methods=["GET"])
@require_project_capability()
def project_progress(project_id):
    return jsonify(project_service.project_progress(g.project))


# ── Team ─────────────────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/team", methods=["POST"])
@require_project_capability("can_manage_team")
def add_team_member(project_id):
    """Body: { user_id }"""
    member_id = json_body().get("user_id")
    if not member_id:
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")
    project = project_service.add_team_member(g.current_user, g.project, member_id)
    return jsonify({"team_members": project.team_members or []}), 201


@project_bp.route("/projects/<project_id>/team/<member_id>", methods=["DELETE"])
@require_project_capability("can_manage_team")
def remove_team_member(project_id, member_id):
    project = project_service.remove_team_member(g.current_user, g.project, member_id)
    return jsonify({"team_members": project.team_members or []})


# ═════════════════════════════════════════════════════════════════════════════
# Meetings
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<project_id>/meetings", methods=["GET"])
@require_project_capability()
def list_meetings(project_id):
    return jsonify(project_service.list_meetings(g.current_user, g.project))


@project_bp.route("/projects/<project_id>/meetings", methods=["POST"])
@require_project_capability("can_manage_meetings")
def create_meeting(project_id):
    meeting = project_service.create_meeting(g.current_user, g.project, json_body())
    return jsonify(meeting.to_dict()), 201


@project_bp.route("/projects/<project_id>/meetings/<meeting_id>/attendees", methods=["POST"])
@require_project_capability()
def add_meeting_attendees(project_id, meeting_id):
    """Body: { attendees: [user_id, ...] }"""
    meeting = project_service.add_meeting_attendees(
        g.current_user, g.project, meeting_id, json_body().get("attendees") or [],
    )
    return jsonify(meeting.to_dict())


@project_bp.route("/projects/<project_id>/meetings/<meeting_id>", methods=["DELETE"])
@require_project_capability()
def delete_meeting(project_id, meeting_id):
    project_service.delete_meeting(g.current_user, g.project, meeting_id)
    return jsonify({"deleted": True, "id": meeting_id})


# ═════════════════════════════════════════════════════════════════════════════
# Pending actions
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/pending-actions", methods=["GET"])
def pending_actions():
    user = current_user()
    projects = project_service.list_projects(user, g.jwt_tenant_id)
    actions = get_pending_actions(user, projects, g.jwt_tenant_id)
    return jsonify({"count": len(actions), "items": [a.to_dict() for a in actions]})
