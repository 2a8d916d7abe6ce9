"""
Role-based access and visibility engine.

One ``AccessPolicy`` subclass per role evaluates a (user, entity) pair into
an immutable capability value object.  Capabilities are recomputed from the
current role and membership lists on every call and never cached.

Membership predicates (evaluated against the project):
    admin     project.tenant_id in user.tenant_scope
    designer  lead_designer_id == user.id or user.id in team_members
    client    client_id == user.id or user.id in client_ids
    vendor    assigned to a task, or listed in vendor_ids / team_members

Unknown roles, missing users and missing projects get the empty capability
set; nothing in this module raises.

Usage:
    from atelier.services.access_policy import get_project_access

    access = get_project_access(user, project)
    if not access.can_manage_tasks:
        raise PermissionDenied(user.id, "manage_tasks")
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from atelier.models.auth import ROLE_ADMIN, ROLE_CLIENT, ROLE_DESIGNER, ROLE_VENDOR
from atelier.models.task import FROZEN_TASK_STATUSES
from atelier.services.approval_ledger import get_approval_status

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Capability value objects
# ═════════════════════════════════════════════════════════════════════════════


class _Capabilities:
    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProjectAccess(_Capabilities):
    can_view_project: bool = False
    can_edit_project: bool = False
    can_delete_project: bool = False
    can_manage_tasks: bool = False
    can_manage_meetings: bool = False
    can_view_financials: bool = False
    can_manage_financials: bool = False
    can_upload_documents: bool = False
    can_manage_team: bool = False
    can_approve_completion: bool = False


@dataclass(frozen=True)
class TaskAccess(_Capabilities):
    can_view: bool = False
    can_edit: bool = False
    can_update_status: bool = False
    can_delete: bool = False
    can_comment: bool = False
    can_resolve_comments: bool = False
    can_request_approval: bool = False
    approval_parties: tuple = ()


@dataclass(frozen=True)
class MeetingAccess(_Capabilities):
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_add_attendees: bool = False


@dataclass(frozen=True)
class DocumentAccess(_Capabilities):
    can_view: bool = False
    can_upload: bool = False
    can_delete: bool = False
    can_comment: bool = False
    can_resolve_comments: bool = False
    can_share: bool = False
    can_decide_as_admin: bool = False
    can_decide_as_client: bool = False


@dataclass(frozen=True)
class FinancialAccess(_Capabilities):
    can_view: bool = False
    can_add: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_approve_as_admin: bool = False
    can_approve_as_client: bool = False


NO_PROJECT_ACCESS = ProjectAccess()
NO_TASK_ACCESS = TaskAccess()
NO_MEETING_ACCESS = MeetingAccess()
NO_DOCUMENT_ACCESS = DocumentAccess()
NO_FINANCIAL_ACCESS = FinancialAccess()


# ── Membership predicates ────────────────────────────────────────────────────


def _ids(values) -> list:
    return [v for v in (values or []) if v]


def is_team_member(user, project) -> bool:
    return user.id in _ids(project.team_members)


def is_project_client(user, project) -> bool:
    return user.role == ROLE_CLIENT and (
        project.client_id == user.id or user.id in _ids(project.client_ids)
    )


def is_project_designer(user, project) -> bool:
    return user.role == ROLE_DESIGNER and (
        project.lead_designer_id == user.id or is_team_member(user, project)
    )


def has_assigned_task(user, project) -> bool:
    return any(t.assignee_id == user.id for t in project.tasks or [])


def is_project_vendor(user, project) -> bool:
    return user.role == ROLE_VENDOR and (
        user.id in _ids(project.vendor_ids)
        or is_team_member(user, project)
        or has_assigned_task(user, project)
    )


# ═════════════════════════════════════════════════════════════════════════════
# Policies
# ═════════════════════════════════════════════════════════════════════════════


class AccessPolicy:
    """Base policy: deny everything.  Role subclasses override the hooks."""

    role: str | None = None

    def __init__(self, user):
        self.user = user

    # ── hooks ──

    def project_access(self, project) -> ProjectAccess:
        return NO_PROJECT_ACCESS

    def approval_parties(self, project) -> tuple:
        """Approval parties this user decides for on ``project``."""
        return ()

    def task_visible(self, project, task) -> bool:
        return self.project_access(project).can_view_project

    def meeting_visible(self, project, meeting) -> bool:
        return self.project_access(project).can_view_project

    def shares_document(self, project, document) -> bool:
        shared = _ids(document.shared_with)
        return self.role in shared or self.user.id in shared

    def financial_access(self, project) -> FinancialAccess:
        return NO_FINANCIAL_ACCESS

    # ── derived ──

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def task_access(self, project, task) -> TaskAccess:
        project_access = self.project_access(project)
        if not project_access.can_view_project or not self.task_visible(project, task):
            return NO_TASK_ACCESS
        is_assignee = task.assignee_id == self.user.id
        frozen = task.status in FROZEN_TASK_STATUSES
        can_edit = self.is_admin or (is_assignee and not frozen)
        return TaskAccess(
            can_view=True,
            can_edit=can_edit,
            can_update_status=can_edit,
            can_delete=self.is_admin,
            can_comment=True,
            can_resolve_comments=can_edit or project_access.can_edit_project,
            can_request_approval=is_assignee,
            approval_parties=self.approval_parties(project),
        )

    def meeting_access(self, project, meeting) -> MeetingAccess:
        if not self.meeting_visible(project, meeting):
            return NO_MEETING_ACCESS
        is_attendee = self.user.id in _ids(meeting.attendees)
        return MeetingAccess(
            can_view=True,
            can_edit=self.is_admin or is_attendee,
            can_delete=self.is_admin,
            can_add_attendees=self.is_admin or is_attendee,
        )

    def document_access(self, project, document) -> DocumentAccess:
        project_access = self.project_access(project)
        if not project_access.can_view_project:
            return NO_DOCUMENT_ACCESS
        can_view = (
            self.is_admin
            or project_access.can_edit_project
            or is_project_client(self.user, project)
            or self.shares_document(project, document)
        )
        can_share = self.is_admin or project_access.can_edit_project
        return DocumentAccess(
            can_view=can_view,
            can_upload=project_access.can_upload_documents,
            can_delete=can_share,
            can_comment=can_view,
            can_resolve_comments=can_view and can_share,
            can_share=can_share,
            can_decide_as_admin=self.is_admin,
            can_decide_as_client=(
                is_project_client(self.user, project)
                and can_view
                and document.approval_status == "approved"
            ),
        )


class DenyAllPolicy(AccessPolicy):
    """Unknown role or missing user."""


class AdminPolicy(AccessPolicy):
    role = ROLE_ADMIN

    def _in_tenant(self, project) -> bool:
        return project.tenant_id in self.user.tenant_scope

    def project_access(self, project) -> ProjectAccess:
        if not self._in_tenant(project):
            return NO_PROJECT_ACCESS
        return ProjectAccess(**{name: True for name in ProjectAccess.__dataclass_fields__})

    def approval_parties(self, project) -> tuple:
        return ("admin",) if self._in_tenant(project) else ()

    def financial_access(self, project) -> FinancialAccess:
        if not self._in_tenant(project):
            return NO_FINANCIAL_ACCESS
        return FinancialAccess(
            can_view=True, can_add=True, can_edit=True, can_delete=True,
            can_approve_as_admin=True, can_approve_as_client=False,
        )


class DesignerPolicy(AccessPolicy):
    role = ROLE_DESIGNER

    def project_access(self, project) -> ProjectAccess:
        if not is_project_designer(self.user, project):
            return NO_PROJECT_ACCESS
        return ProjectAccess(
            can_view_project=True,
            can_edit_project=True,
            can_manage_tasks=True,
            can_manage_meetings=True,
            can_view_financials=True,
            can_upload_documents=True,
            can_manage_team=True,
        )

    def approval_parties(self, project) -> tuple:
        return ("designer",) if is_project_designer(self.user, project) else ()

    def financial_access(self, project) -> FinancialAccess:
        if not is_project_designer(self.user, project):
            return NO_FINANCIAL_ACCESS
        return FinancialAccess(can_view=True)


class ClientPolicy(AccessPolicy):
    role = ROLE_CLIENT

    def project_access(self, project) -> ProjectAccess:
        if is_project_client(self.user, project):
            return ProjectAccess(
                can_view_project=True,
                can_manage_meetings=True,
                can_view_financials=True,
                can_upload_documents=True,
                can_approve_completion=True,
            )
        if is_team_member(self.user, project):
            return ProjectAccess(can_view_project=True, can_manage_meetings=True)
        return NO_PROJECT_ACCESS

    def approval_parties(self, project) -> tuple:
        return ("client",) if is_project_client(self.user, project) else ()

    def financial_access(self, project) -> FinancialAccess:
        if not is_project_client(self.user, project):
            return NO_FINANCIAL_ACCESS
        return FinancialAccess(can_view=True, can_approve_as_client=True)


class VendorPolicy(AccessPolicy):
    role = ROLE_VENDOR

    def project_access(self, project) -> ProjectAccess:
        if not is_project_vendor(self.user, project):
            return NO_PROJECT_ACCESS
        listed = (
            self.user.id in _ids(project.vendor_ids)
            or is_team_member(self.user, project)
        )
        return ProjectAccess(
            can_view_project=True,
            can_manage_tasks=True,
            can_manage_meetings=listed,
            can_upload_documents=True,
        )

    def task_visible(self, project, task) -> bool:
        return task.assignee_id == self.user.id and is_project_vendor(self.user, project)

    def meeting_visible(self, project, meeting) -> bool:
        return (
            self.user.id in _ids(meeting.attendees)
            and is_project_vendor(self.user, project)
        )


_POLICIES = {
    ROLE_ADMIN: AdminPolicy,
    ROLE_DESIGNER: DesignerPolicy,
    ROLE_CLIENT: ClientPolicy,
    ROLE_VENDOR: VendorPolicy,
}


def policy_for(user) -> AccessPolicy:
    if user is None:
        return DenyAllPolicy(None)
    return _POLICIES.get(getattr(user, "role", None), DenyAllPolicy)(user)


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def get_project_access(user, project) -> ProjectAccess:
    if user is None or project is None:
        return NO_PROJECT_ACCESS
    return policy_for(user).project_access(project)


def get_task_access(user, project, task) -> TaskAccess:
    if user is None or project is None or task is None:
        return NO_TASK_ACCESS
    return policy_for(user).task_access(project, task)


def get_meeting_access(user, project, meeting) -> MeetingAccess:
    if user is None or project is None or meeting is None:
        return NO_MEETING_ACCESS
    return policy_for(user).meeting_access(project, meeting)


def get_document_access(user, project, document) -> DocumentAccess:
    if user is None or project is None or document is None:
        return NO_DOCUMENT_ACCESS
    return policy_for(user).document_access(project, document)


def get_financial_access(user, project) -> FinancialAccess:
    if user is None or project is None:
        return NO_FINANCIAL_ACCESS
    return policy_for(user).financial_access(project)


def can_decide_approval(user, project, party: str) -> bool:
    """Whether ``user`` is the authority for ``party`` cells on ``project``."""
    if user is None or project is None:
        return False
    return party in policy_for(user).approval_parties(project)


def can_user_approve_task(user, project, task, gate: str, party: str) -> bool:
    """Authority for the party and the cell is still pending (or absent)."""
    if not can_decide_approval(user, project, party):
        return False
    if not get_task_access(user, project, task).can_view:
        return False
    return get_approval_status(task, gate, party) in (None, "pending")


def visible_tasks(user, project, tasks=None) -> list:
    if user is None or project is None:
        return []
    policy = policy_for(user)
    tasks = project.tasks if tasks is None else tasks
    return [t for t in tasks or [] if policy.task_visible(project, t)]


def visible_meetings(user, project, meetings=None) -> list:
    if user is None or project is None:
        return []
    policy = policy_for(user)
    meetings = project.meetings if meetings is None else meetings
    return [m for m in meetings or [] if policy.meeting_visible(project, m)]


def visible_documents(user, project, documents=None) -> list:
    documents = project.documents if documents is None and project is not None else documents
    return [
        d for d in documents or []
        if get_document_access(user, project, d).can_view
    ]


def visible_vendor_ids(user, project) -> list:
    """Project vendors the user may see; clients do not see hidden vendors."""
    if not get_project_access(user, project).can_view_project:
        return []
    vendors = _ids(project.vendor_ids)
    if user.role == ROLE_CLIENT:
        hidden = set(_ids(project.hidden_vendor_ids))
        vendors = [v for v in vendors if v not in hidden]
    return vendors


def accessible_projects(user, projects, active_tenant_id: str | None = None) -> list:
    """Projects the user can view.

    Admins are additionally narrowed to ``active_tenant_id`` when given.
    """
    result = []
    for project in projects or []:
        if (
            active_tenant_id is not None
            and getattr(user, "role", None) == ROLE_ADMIN
            and project.tenant_id != active_tenant_id
        ):
            continue
        if get_project_access(user, project).can_view_project:
            result.append(project)
    return result
