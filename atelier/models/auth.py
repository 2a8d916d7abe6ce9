"""
Atelier ERP
Identity models — Tenant and User.

Models:
    - Tenant: isolation boundary for one design firm
    - User:   a person acting in one of four roles (admin, designer, client, vendor)

Roaming designers and vendors list extra tenants in ``tenant_ids``; admins may
own several tenants (``Tenant.admin_id``) and switch the active one.

``User.project_metrics`` is a materialized cache written only by the vendor
metrics job: ``{project_id: {project_name, task_count, net_amount}}``.
"""

from atelier.models import _utcnow, _uuid, db

# ── Constants ────────────────────────────────────────────────────────────────

ROLE_ADMIN = "admin"
ROLE_DESIGNER = "designer"
ROLE_CLIENT = "client"
ROLE_VENDOR = "vendor"

ROLES = {ROLE_ADMIN, ROLE_DESIGNER, ROLE_CLIENT, ROLE_VENDOR}


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    admin_id = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Admin who created (owns) this tenant",
    )
    logo_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "admin_id": self.admin_id,
            "logo_url": self.logo_url,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Tenant {self.id}: {self.name}>"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    auth_uid = db.Column(
        db.String(128), nullable=True, unique=True,
        comment="Auth-provider uid once a placeholder profile has been claimed",
    )
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(32), nullable=True, index=True)
    role = db.Column(
        db.String(20), nullable=False,
        comment="admin | designer | client | vendor",
    )
    tenant_id = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Home tenant; healed to the user's own id when missing",
    )
    tenant_ids = db.Column(db.JSON, default=list, comment="Extra tenants for roaming designers/vendors")
    company = db.Column(db.String(200), nullable=True)
    specialty = db.Column(db.String(200), nullable=True)
    project_metrics = db.Column(db.JSON, nullable=True)
    metrics_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin','designer','client','vendor')",
            name="ck_users_role",
        ),
    )

    @property
    def tenant_scope(self) -> set[str]:
        """Home tenant plus any additional tenants the user may act in."""
        scope = {t for t in (self.tenant_ids or []) if t}
        if self.tenant_id:
            scope.add(self.tenant_id)
        return scope

    def to_dict(self, include_metrics=False):
        result = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "tenant_id": self.tenant_id,
            "tenant_ids": list(self.tenant_ids or []),
            "company": self.company,
            "specialty": self.specialty,
        }
        if include_metrics:
            result["project_metrics"] = self.project_metrics or {}
            result["metrics_synced_at"] = (
                self.metrics_synced_at.isoformat() if self.metrics_synced_at else None
            )
        return result

    def __repr__(self):
        return f"<User {self.id}: {self.role}>"
