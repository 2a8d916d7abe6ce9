"""
Atelier ERP
Financial records — project ledger entries.

``admin_approved`` and ``client_approved`` are independent billing flags; a
record only counts towards vendor metrics when both are true.

Additional-budget requests and client-payment receipts carry their own
per-party approval cells (pending | approved | rejected).
"""

from atelier.models import _utcnow, _uuid, db

# ── Constants ────────────────────────────────────────────────────────────────

FINANCIAL_TYPES = {"income", "expense", "designer-charge"}

FINANCIAL_STATUSES = {"paid", "pending", "overdue", "hold"}

PAYER_ROLES = {"client", "vendor", "designer", "admin", "other"}

APPROVAL_STATUSES = {"pending", "approved", "rejected"}

# Approval kind → {party: column}.  "billing" columns are booleans, the rest
# hold an approval status string.
APPROVAL_KINDS = {
    "billing": {
        "admin": "admin_approved",
        "client": "client_approved",
    },
    "additional_budget": {
        "admin": "admin_approval_for_additional_budget",
        "client": "client_approval_for_additional_budget",
    },
    "client_payment": {
        "admin": "admin_approval_for_payment",
        "client": "client_approval_for_payment",
    },
}


class FinancialRecord(db.Model):
    __tablename__ = "financial_records"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(64), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    date = db.Column(db.Date, nullable=True)
    description = db.Column(db.String(500), default="")
    amount = db.Column(db.Float, nullable=False, default=0.0)
    record_type = db.Column(
        db.String(20), nullable=False, default="expense",
        comment="income (from client) | expense (to vendor) | designer-charge",
    )
    status = db.Column(db.String(20), default="pending")
    category = db.Column(db.String(100), default="")

    vendor_id = db.Column(db.String(64), nullable=True, index=True)
    paid_by = db.Column(db.String(20), nullable=True, comment="client | vendor | designer | admin | other")
    received_by_role = db.Column(db.String(30), nullable=True)
    payment_mode = db.Column(db.String(20), nullable=True)

    admin_approved = db.Column(db.Boolean, nullable=False, default=False)
    client_approved = db.Column(db.Boolean, nullable=False, default=False)

    is_additional_budget = db.Column(db.Boolean, nullable=False, default=False)
    admin_approval_for_additional_budget = db.Column(db.String(20), nullable=True)
    client_approval_for_additional_budget = db.Column(db.String(20), nullable=True)

    is_client_payment = db.Column(db.Boolean, nullable=False, default=False)
    admin_approval_for_payment = db.Column(db.String(20), nullable=True)
    client_approval_for_payment = db.Column(db.String(20), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "record_type IN ('income','expense','designer-charge')",
            name="ck_financial_record_type",
        ),
    )

    @property
    def is_fully_approved(self) -> bool:
        return bool(self.admin_approved and self.client_approved)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "date": self.date.isoformat() if self.date else None,
            "description": self.description,
            "amount": self.amount,
            "record_type": self.record_type,
            "status": self.status,
            "category": self.category,
            "vendor_id": self.vendor_id,
            "paid_by": self.paid_by,
            "received_by_role": self.received_by_role,
            "payment_mode": self.payment_mode,
            "admin_approved": bool(self.admin_approved),
            "client_approved": bool(self.client_approved),
            "is_additional_budget": bool(self.is_additional_budget),
            "admin_approval_for_additional_budget": self.admin_approval_for_additional_budget,
            "client_approval_for_additional_budget": self.client_approval_for_additional_budget,
            "is_client_payment": bool(self.is_client_payment),
            "admin_approval_for_payment": self.admin_approval_for_payment,
            "client_approval_for_payment": self.client_approval_for_payment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<FinancialRecord {self.id}: {self.record_type} {self.amount}>"
