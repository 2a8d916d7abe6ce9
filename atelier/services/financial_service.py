"""
Financial service — ledger entries and their per-party approvals.

Approval kinds (see ``APPROVAL_KINDS``):
    billing            admin_approved / client_approved booleans; both true
                       makes the record count towards vendor metrics
    additional_budget  pending | approved | rejected per party
    client_payment     pending | approved | rejected per party

The admin decides the admin column and a project client the client column;
each column is written independently.
"""

import logging

from atelier.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from atelier.models.audit import write_audit
from atelier.models.financial import (
    APPROVAL_KINDS,
    APPROVAL_STATUSES,
    FINANCIAL_STATUSES,
    FINANCIAL_TYPES,
    PAYER_ROLES,
    FinancialRecord,
)
from atelier.services.access_policy import get_financial_access
from atelier.services.store import get_store
from atelier.utils.helpers import parse_amount, parse_date, require_choice, require_fields

logger = logging.getLogger(__name__)


def _path(project) -> str:
    return f"projects/{project.id}/finances"


def list_records(user, project) -> list[dict]:
    access = get_financial_access(user, project)
    if not access.can_view:
        raise PermissionDenied(user.id, "view_financials")
    return [r.to_dict() for r in project.financial_records]


def get_record_for(user, project, record_id: str) -> FinancialRecord:
    if not get_financial_access(user, project).can_view:
        raise PermissionDenied(user.id, "view_financials")
    record = get_store().get(_path(project), record_id)
    if record is None:
        raise NotFoundError(resource="FinancialRecord", resource_id=record_id)
    return record


def add_record(user, project, data: dict) -> FinancialRecord:
    if not get_financial_access(user, project).can_add:
        raise PermissionDenied(user.id, "add_financial")
    require_fields(data, "amount")
    record_type = data.get("record_type") or "expense"
    require_choice(record_type, FINANCIAL_TYPES, "record_type")
    status = data.get("status") or "pending"
    require_choice(status, FINANCIAL_STATUSES, "status")
    if data.get("paid_by") is not None:
        require_choice(data["paid_by"], PAYER_ROLES, "paid_by")

    record = FinancialRecord(
        amount=parse_amount(data["amount"]),
        record_type=record_type,
        status=status,
        date=parse_date(data.get("date")),
        description=data.get("description") or "",
        category=data.get("category") or "",
        vendor_id=data.get("vendor_id"),
        paid_by=data.get("paid_by"),
        received_by_role=data.get("received_by_role"),
        payment_mode=data.get("payment_mode"),
        is_additional_budget=bool(data.get("is_additional_budget")),
        is_client_payment=bool(data.get("is_client_payment")),
        created_by=user.id,
    )
    if record.is_additional_budget:
        record.admin_approval_for_additional_budget = "pending"
        record.client_approval_for_additional_budget = "pending"
    if record.is_client_payment:
        record.admin_approval_for_payment = "pending"
        record.client_approval_for_payment = "pending"
    return get_store().add(_path(project), record)


def delete_record(user, project, record: FinancialRecord) -> None:
    if not get_financial_access(user, project).can_delete:
        raise PermissionDenied(user.id, "delete_financial")
    get_store().delete(_path(project), record.id)


def approve_record(user, project, record: FinancialRecord, kind: str, decision) -> FinancialRecord:
    """Write the caller's column for ``kind``.

    ``decision`` is a bool for billing and an approval status string otherwise.
    """
    require_choice(kind, APPROVAL_KINDS, "kind")
    access = get_financial_access(user, project)
    if access.can_approve_as_admin:
        party = "admin"
    elif access.can_approve_as_client:
        party = "client"
    else:
        raise PermissionDenied(user.id, "approve_financial")

    if kind == "billing":
        if not isinstance(decision, bool):
            raise ValidationError("billing decision must be true or false",
                                  details={"decision": decision})
        value = decision
    else:
        require_choice(decision, APPROVAL_STATUSES, "decision")
        flag = "is_additional_budget" if kind == "additional_budget" else "is_client_payment"
        if not getattr(record, flag):
            raise ValidationError(f"Record is not a {kind.replace('_', ' ')} entry",
                                  details={"kind": kind})
        value = decision

    column = APPROVAL_KINDS[kind][party]
    before = getattr(record, column)
    setattr(record, column, value)

    write_audit(entity_type="financial_record", entity_id=record.id, action="financial.approval",
                actor=user.id, project_id=project.id,
                diff={"kind": kind, "party": party, column: [before, value]})
    logger.info("Financial %s approval by %s: %s", kind, party, value,
                extra={"project_id": project.id, "user_id": user.id,
                       "event_type": "financial.approval"})
    return get_store().save(record)
