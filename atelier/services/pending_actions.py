"""
Pending-action aggregator.

Scans every approval-relevant entity of the projects a user can view and
returns the items waiting on that user:

    task       pending start / completion cell for the user's party
    doc        admin:  approval_status pending
               client: admin-approved, client decision still open, and the
                       document is shared with them or they are a project client
    fin        pending additional-budget / client-payment cell for the
               user's party (admin or client)

Each (entity, gate, party) cell yields at most one entry, so no dedup pass is
needed.  Pure: reads in-memory entities, no I/O.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from atelier.models.auth import ROLE_ADMIN, ROLE_CLIENT
from atelier.services.access_policy import (
    accessible_projects,
    is_project_client,
    policy_for,
)
from atelier.services.approval_ledger import PENDING, pending_cells

_GATE_LABELS = {"start": "Start", "completion": "End"}


@dataclass(frozen=True)
class PendingAction:
    label: str
    type: str
    project_id: str
    project_name: str
    task_id: str | None = None
    entity_id: str | None = None
    gate: str | None = None
    party: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _task_actions(user, project) -> list[PendingAction]:
    parties = policy_for(user).approval_parties(project)
    if not parties:
        return []
    actions = []
    for task in project.tasks or []:
        for gate, party in pending_cells(task, parties=parties):
            actions.append(PendingAction(
                label=f"{_GATE_LABELS[gate]}: {task.title}",
                type="task",
                project_id=project.id,
                project_name=project.name,
                task_id=task.id,
                entity_id=task.id,
                gate=gate,
                party=party,
            ))
    return actions


def _document_actions(user, project) -> list[PendingAction]:
    actions = []
    for doc in project.documents or []:
        if user.role == ROLE_ADMIN:
            waiting = doc.approval_status == PENDING
        elif user.role == ROLE_CLIENT:
            waiting = (
                doc.approval_status == "approved"
                and doc.client_approval_status in (None, PENDING)
                and (user.id in (doc.shared_with or []) or is_project_client(user, project))
            )
        else:
            waiting = False
        if waiting:
            actions.append(PendingAction(
                label=f"Doc: {doc.name}",
                type="doc",
                project_id=project.id,
                project_name=project.name,
                entity_id=doc.id,
                party=user.role,
            ))
    return actions


def _financial_actions(user, project) -> list[PendingAction]:
    if user.role == ROLE_ADMIN:
        party = "admin"
    elif user.role == ROLE_CLIENT and is_project_client(user, project):
        party = "client"
    else:
        return []

    actions = []
    for record in project.financial_records or []:
        checks = (
            ("Budget", record.is_additional_budget,
             getattr(record, f"{party}_approval_for_additional_budget")),
            ("Payment", record.is_client_payment,
             getattr(record, f"{party}_approval_for_payment")),
        )
        for prefix, flagged, status in checks:
            if flagged and status == PENDING:
                actions.append(PendingAction(
                    label=f"{prefix}: {record.description}",
                    type="fin",
                    project_id=project.id,
                    project_name=project.name,
                    entity_id=record.id,
                    party=party,
                ))
    return actions


def get_pending_actions_for_project(user, project) -> list[PendingAction]:
    if user is None or project is None:
        return []
    return (
        _task_actions(user, project)
        + _document_actions(user, project)
        + _financial_actions(user, project)
    )


def get_pending_actions(user, projects, active_tenant_id: str | None = None) -> list[PendingAction]:
    """All pending actions across the projects ``user`` can view."""
    actions = []
    for project in accessible_projects(user, projects, active_tenant_id):
        actions.extend(get_pending_actions_for_project(user, project))
    return actions
