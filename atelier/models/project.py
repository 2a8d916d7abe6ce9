"""
Atelier ERP
Project domain models.

Models:
    - Project:          one client engagement inside a tenant; owns every child below
    - ProjectMeeting:   meeting with an attendee list
    - ProjectDocument:  uploaded file with admin → client approval

Architecture:
    Tenant ──1:N──▶ Project ──1:N──▶ Task / ProjectDocument / ProjectMeeting / FinancialRecord

Role membership lives on the project as id lists (``client_ids``,
``team_members``, ``vendor_ids``); list fields are only ever replaced whole
(see ``Store.array_union``) so JSON change tracking picks them up.
"""

from atelier.models import _utcnow, _uuid, db

# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"discovery", "planning", "execution", "completed", "on_hold"}

PROJECT_TYPES = {"designing", "turnkey"}

DOCUMENT_APPROVAL_STATUSES = {"pending", "approved", "rejected"}

MEMBERSHIP_FIELDS = {"client_ids", "team_members", "vendor_ids", "hidden_vendor_ids"}


class Project(db.Model):
    """Interior-design engagement: budget, people and every child collection."""

    __tablename__ = "projects"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    tenant_id = db.Column(
        db.String(64),
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(30), nullable=False, default="discovery")
    project_type = db.Column(db.String(30), nullable=True, default="designing")
    category = db.Column(db.String(30), nullable=True, comment="commercial | residential")

    # ── People ──
    client_id = db.Column(db.String(64), nullable=True, index=True, comment="Primary client")
    client_ids = db.Column(db.JSON, default=list, comment="Additional clients")
    lead_designer_id = db.Column(db.String(64), nullable=True, index=True)
    team_members = db.Column(db.JSON, default=list, comment="Explicitly added member ids")
    vendor_ids = db.Column(db.JSON, default=list, comment="Vendors, unioned in on task assignment")
    hidden_vendor_ids = db.Column(db.JSON, default=list, comment="Vendors hidden from clients")

    # ── Money ──
    budget = db.Column(db.Float, nullable=False, default=0.0)
    initial_budget = db.Column(db.Float, nullable=True)
    designer_charge_percentage = db.Column(db.Float, nullable=True)

    start_date = db.Column(db.Date, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    tasks = db.relationship(
        "Task", backref="project", cascade="all, delete-orphan",
        order_by="Task.created_at",
    )
    documents = db.relationship(
        "ProjectDocument", backref="project", cascade="all, delete-orphan",
        order_by="ProjectDocument.uploaded_at",
    )
    meetings = db.relationship(
        "ProjectMeeting", backref="project", cascade="all, delete-orphan",
        order_by="ProjectMeeting.date",
    )
    financial_records = db.relationship(
        "FinancialRecord", backref="project", cascade="all, delete-orphan",
        order_by="FinancialRecord.created_at",
    )

    @property
    def all_client_ids(self) -> list[str]:
        ids = [self.client_id] if self.client_id else []
        ids.extend(c for c in (self.client_ids or []) if c and c not in ids)
        return ids

    def to_dict(self) -> dict:
        """Serialize core project fields for API responses."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "project_type": self.project_type,
            "category": self.category,
            "client_id": self.client_id,
            "client_ids": list(self.client_ids or []),
            "lead_designer_id": self.lead_designer_id,
            "team_members": list(self.team_members or []),
            "vendor_ids": list(self.vendor_ids or []),
            "budget": self.budget,
            "initial_budget": self.initial_budget,
            "designer_charge_percentage": self.designer_charge_percentage,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class ProjectMeeting(db.Model):
    __tablename__ = "project_meetings"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(64), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    date = db.Column(db.Date, nullable=True)
    meeting_type = db.Column(db.String(50), default="progress", comment="discovery | progress | site_visit | …")
    notes = db.Column(db.Text, default="")
    attendees = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
            "meeting_type": self.meeting_type,
            "notes": self.notes,
            "attendees": list(self.attendees or []),
        }

    def __repr__(self):
        return f"<ProjectMeeting {self.id}: {self.title[:40]}>"


class ProjectDocument(db.Model):
    """
    Uploaded file. Admin approval comes first; the client decides only once
    ``approval_status`` is ``approved``.
    """

    __tablename__ = "project_documents"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(64), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    doc_type = db.Column(db.String(20), default="other", comment="image | pdf | cad | other")
    url = db.Column(db.String(1000), default="")
    uploaded_by = db.Column(db.String(64), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    shared_with = db.Column(db.JSON, default=list, comment="Role names and/or user ids")

    approval_status = db.Column(db.String(20), nullable=False, default="pending")
    approval_decided_by = db.Column(db.String(64), nullable=True)
    approval_decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    client_approval_status = db.Column(db.String(20), nullable=True)
    client_decided_by = db.Column(db.String(64), nullable=True)
    client_decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    comments = db.relationship(
        "Comment", backref="document", cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    __table_args__ = (
        db.CheckConstraint(
            "approval_status IN ('pending','approved','rejected')",
            name="ck_document_approval_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "doc_type": self.doc_type,
            "url": self.url,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "shared_with": list(self.shared_with or []),
            "approval_status": self.approval_status,
            "approval_decided_by": self.approval_decided_by,
            "client_approval_status": self.client_approval_status,
            "client_decided_by": self.client_decided_by,
            "comments": [c.to_dict() for c in self.comments],
        }

    def __repr__(self):
        return f"<ProjectDocument {self.id}: {self.name[:40]}>"
