"""
Atelier ERP
Audit domain model.

Models:
    - AuditLog: immutable, append-only trail for approval decisions, task
      status transitions and metrics runs.
"""

import json
from datetime import UTC, datetime

from atelier.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {
    "task", "document", "financial_record", "project", "vendor_metrics",
}

AUDIT_ACTIONS = {
    # Task lifecycle
    "task.approval",
    "task.complete",
    "task.advance",
    "task.status",
    "task.subtask",
    "task.dependencies",
    # Comment threads
    "task.comment",
    "task.comment_status",
    "task.comment_delete",
    "document.comment",
    "document.comment_status",
    "document.comment_delete",
    # Documents / money
    "document.decision",
    "financial.approval",
    # Team
    "project.team_add",
    "project.team_remove",
    # Jobs
    "vendor_metrics.sync",
    # Generic
    "create",
    "delete",
}


class AuditLog(db.Model):
    """
    Immutable audit trail.  One row per action; ``diff_json`` carries the
    old→new snapshot of the fields that changed.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_actor", "actor"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), nullable=True, index=True)
    project_id = db.Column(db.String(64), nullable=True)

    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(60), nullable=False)
    actor = db.Column(db.String(64), nullable=False, default="system")

    diff_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def diff(self) -> dict:
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "project_id": self.project_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────


def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor: str = "system",
    project_id: str | None = None,
    tenant_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Raises ValueError for an entity type or action outside
    ``AUDIT_ENTITY_TYPES`` / ``AUDIT_ACTIONS``.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type!r}")
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action!r}")
    if tenant_id is None:
        from flask import g, has_request_context
        if has_request_context():
            tenant_id = getattr(g, "jwt_tenant_id", None)

    log = AuditLog(
        tenant_id=tenant_id,
        project_id=project_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or "system",
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
