"""
Project service — projects, team membership and meetings.

Every read goes through the access policy; a project the caller cannot view
is reported as not found.
"""

import logging

from atelier.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from atelier.models import db
from atelier.models.audit import write_audit
from atelier.models.auth import ROLE_ADMIN, User
from atelier.models.project import PROJECT_STATUSES, PROJECT_TYPES, Project, ProjectMeeting
from atelier.services.access_policy import (
    accessible_projects,
    get_meeting_access,
    get_project_access,
    visible_meetings,
    visible_vendor_ids,
)
from atelier.services.store import get_store
from atelier.services.task_lifecycle import calculate_project_progress, calculate_task_progress
from atelier.utils.helpers import parse_amount, parse_date, require_choice, require_fields

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "description", "status", "project_type", "category",
                    "budget", "designer_charge_percentage", "start_date", "deadline",
                    "hidden_vendor_ids")


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


def list_projects(user, active_tenant_id=None) -> list[Project]:
    query = Project.query
    if user.role == ROLE_ADMIN:
        query = query.filter(Project.tenant_id.in_(sorted(user.tenant_scope)))
    return accessible_projects(user, query.order_by(Project.created_at).all(), active_tenant_id)


def get_project_for(user, project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or not get_project_access(user, project).can_view_project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _apply_fields(project: Project, data: dict) -> None:
    if "status" in data:
        require_choice(data["status"], PROJECT_STATUSES, "status")
    if data.get("project_type") is not None:
        require_choice(data["project_type"], PROJECT_TYPES, "project_type")
    for key in _EDITABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in ("start_date", "deadline"):
            value = parse_date(value)
        elif key == "budget":
            value = parse_amount(value, "budget")
        elif key == "hidden_vendor_ids":
            value = [v for v in dict.fromkeys(value or []) if v]
        setattr(project, key, value)


def create_project(user, tenant_id: str, data: dict) -> Project:
    """Admins create projects inside a tenant they act in."""
    if user.role != ROLE_ADMIN:
        raise PermissionDenied(user.id, "create_project")
    if tenant_id not in user.tenant_scope:
        raise PermissionDenied(user.id, "create_project", f"tenant {tenant_id} not in scope")
    require_fields(data, "name")

    project = Project(
        tenant_id=tenant_id,
        name=data["name"],
        client_id=data.get("client_id"),
        client_ids=[c for c in dict.fromkeys(data.get("client_ids") or []) if c],
        lead_designer_id=data.get("lead_designer_id"),
        team_members=[m for m in dict.fromkeys(data.get("team_members") or []) if m],
        created_by=user.id,
    )
    project.initial_budget = parse_amount(data.get("budget", 0), "budget")
    _apply_fields(project, {k: v for k, v in data.items() if k != "name"})
    get_store().add("projects", project)

    write_audit(entity_type="project", entity_id=project.id, action="create",
                actor=user.id, project_id=project.id, tenant_id=tenant_id,
                diff={"name": project.name})
    db.session.commit()
    logger.info("Project %s created", project.id,
                extra={"project_id": project.id, "tenant_id": tenant_id})
    return project


def update_project(user, project: Project, data: dict) -> Project:
    if not get_project_access(user, project).can_edit_project:
        raise PermissionDenied(user.id, "edit_project")
    _apply_fields(project, data)
    return get_store().save(project)


def delete_project(user, project: Project) -> None:
    if not get_project_access(user, project).can_delete_project:
        raise PermissionDenied(user.id, "delete_project")
    project_id = project.id
    get_store().delete("projects", project_id)
    write_audit(entity_type="project", entity_id=project_id, action="delete",
                actor=user.id, project_id=project_id)
    db.session.commit()


def project_payload(user, project: Project) -> dict:
    result = project.to_dict()
    result["vendor_ids"] = visible_vendor_ids(user, project)
    result["access"] = get_project_access(user, project).to_dict()
    result["progress"] = calculate_project_progress(project.tasks)
    return result


def project_progress(project: Project) -> dict:
    return {
        "project_id": project.id,
        "progress": calculate_project_progress(project.tasks),
        "tasks": {t.id: calculate_task_progress(t) for t in project.tasks},
    }


# ── Team membership ──────────────────────────────────────────────────────────


def add_team_member(user, project: Project, member_id: str) -> Project:
    if not get_project_access(user, project).can_manage_team:
        raise PermissionDenied(user.id, "manage_team")
    if db.session.get(User, member_id) is None:
        raise NotFoundError(resource="User", resource_id=member_id)

    get_store().array_union("projects", project.id, "team_members", member_id)
    write_audit(entity_type="project", entity_id=project.id, action="project.team_add",
                actor=user.id, project_id=project.id, diff={"member_id": member_id})
    db.session.commit()
    return project


def remove_team_member(user, project: Project, member_id: str) -> Project:
    if not get_project_access(user, project).can_manage_team:
        raise PermissionDenied(user.id, "manage_team")

    get_store().array_remove("projects", project.id, "team_members", member_id)
    write_audit(entity_type="project", entity_id=project.id, action="project.team_remove",
                actor=user.id, project_id=project.id, diff={"member_id": member_id})
    db.session.commit()
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Meetings
# ═════════════════════════════════════════════════════════════════════════════


def list_meetings(user, project: Project) -> list[dict]:
    return [
        {**m.to_dict(), "access": get_meeting_access(user, project, m).to_dict()}
        for m in visible_meetings(user, project)
    ]


def create_meeting(user, project: Project, data: dict) -> ProjectMeeting:
    if not get_project_access(user, project).can_manage_meetings:
        raise PermissionDenied(user.id, "manage_meetings")
    require_fields(data, "title")
    attendees = [a for a in dict.fromkeys(data.get("attendees") or []) if a]
    if user.id not in attendees:
        attendees.append(user.id)
    meeting = ProjectMeeting(
        title=data["title"],
        date=parse_date(data.get("date")),
        meeting_type=data.get("meeting_type") or "progress",
        notes=data.get("notes") or "",
        attendees=attendees,
    )
    return get_store().add(f"projects/{project.id}/meetings", meeting)


def _meeting_for(project: Project, meeting_id: str) -> ProjectMeeting:
    return get_store().require(f"projects/{project.id}/meetings", meeting_id)


def add_meeting_attendees(user, project: Project, meeting_id: str, attendee_ids) -> ProjectMeeting:
    meeting = _meeting_for(project, meeting_id)
    access = get_meeting_access(user, project, meeting)
    if not access.can_view:
        raise NotFoundError(resource="ProjectMeeting", resource_id=meeting_id)
    if not access.can_add_attendees:
        raise PermissionDenied(user.id, "add_attendees")
    if not attendee_ids:
        raise ValidationError("attendees must not be empty", details={"attendees": "required"})
    return get_store().array_union(f"projects/{project.id}/meetings", meeting.id,
                                   "attendees", *attendee_ids)


def delete_meeting(user, project: Project, meeting_id: str) -> None:
    meeting = _meeting_for(project, meeting_id)
    if not get_meeting_access(user, project, meeting).can_delete:
        raise PermissionDenied(user.id, "delete_meeting")
    get_store().delete(f"projects/{project.id}/meetings", meeting.id)
