"""
Approval ledger — per task, per gate, per party.

Each (gate, party) cell is independent: writing one never touches another,
a rejection does not cascade, and re-approving after a rejection simply
overwrites the cell.  Two writers on the same cell resolve by last write
wins; there is no application-level lock.

Only ``start.client``, ``start.admin``, ``completion.client`` and
``completion.admin`` gate the done status.  The designer cell is tracked
but never gates.
"""

import logging
from datetime import datetime, timezone

from atelier.core.exceptions import ValidationError
from atelier.models.task import (
    APPROVAL_GATES,
    APPROVAL_PARTIES,
    APPROVAL_STATUSES,
    DEFAULT_APPROVAL_PARTIES,
    GATING_APPROVALS,
    TaskApproval,
)

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


def get_approval(task, gate: str, party: str):
    """Return the ``TaskApproval`` cell or None when it was never created."""
    for cell in getattr(task, "approvals", None) or []:
        if cell.gate == gate and cell.party == party:
            return cell
    return None


def get_approval_status(task, gate: str, party: str) -> str | None:
    cell = get_approval(task, gate, party)
    return cell.status if cell is not None else None


def gating_approvals_met(task) -> bool:
    """True when all four gating cells are approved."""
    return all(
        get_approval_status(task, gate, party) == APPROVED
        for gate, party in GATING_APPROVALS
    )


def _validate_cell(gate: str, party: str, status: str | None = None) -> None:
    errors = {}
    if gate not in APPROVAL_GATES:
        errors["gate"] = f"must be one of {list(APPROVAL_GATES)}"
    if party not in APPROVAL_PARTIES:
        errors["party"] = f"must be one of {list(APPROVAL_PARTIES)}"
    if status is not None and status not in APPROVAL_STATUSES:
        errors["status"] = f"must be one of {sorted(APPROVAL_STATUSES)}"
    if errors:
        raise ValidationError("Invalid approval cell", details=errors)


def set_approval(task, gate: str, party: str, status: str, approver_id: str | None,
                 *, now: datetime | None = None) -> TaskApproval:
    """Write exactly one (gate, party) cell, stamping approver and time.

    The cell is created when absent (e.g. the optional designer cell).
    """
    _validate_cell(gate, party, status)

    cell = get_approval(task, gate, party)
    if cell is None:
        cell = TaskApproval(gate=gate, party=party)
        task.approvals.append(cell)

    previous = cell.status
    cell.status = status
    cell.updated_by = approver_id
    cell.updated_at = now or datetime.now(timezone.utc)

    logger.info(
        "Approval %s.%s %s → %s by %s", gate, party, previous, status, approver_id,
        extra={"task_id": getattr(task, "id", None), "user_id": approver_id,
               "event_type": "task.approval"},
    )
    return cell


def seed_approvals(task, parties=DEFAULT_APPROVAL_PARTIES) -> None:
    """Create pending cells for both gates of each default party."""
    for gate in APPROVAL_GATES:
        for party in parties:
            if get_approval(task, gate, party) is None:
                task.approvals.append(TaskApproval(gate=gate, party=party, status=PENDING))


def pending_cells(task, parties=None) -> list[tuple[str, str]]:
    """(gate, party) pairs whose cell exists and is pending, gate order first."""
    result = []
    for gate in APPROVAL_GATES:
        for party in APPROVAL_PARTIES:
            if parties is not None and party not in parties:
                continue
            if get_approval_status(task, gate, party) == PENDING:
                result.append((gate, party))
    return result
