"""
Atelier ERP
Task domain models.

Models:
    - Task:          unit of project-plan work assigned to a designer or vendor
    - SubTask:       checklist item owned by a task
    - TaskApproval:  one (gate, party) cell of the task's approval ledger

Architecture:
    Project ──1:N──▶ Task ──1:N──▶ SubTask
                     Task ──1:N──▶ TaskApproval  (≤ 1 row per gate × party)
                     Task ──1:N──▶ Comment
    Task.dependencies: JSON list of sibling task ids (same project)

Lifecycle states:
    Task: todo → in_progress → review → done   (derived from subtasks + approvals)
          overdue | aborted | on_hold          (aborted / on_hold are frozen)

Approval ledger:
    gates   = start, completion
    parties = client, admin, designer (designer cell optional, never gating)
"""

from atelier.models import _utcnow, _uuid, db

# ── Constants ────────────────────────────────────────────────────────────────

STATUS_TODO = "todo"
STATUS_IN_PROGRESS = "in_progress"
STATUS_REVIEW = "review"
STATUS_DONE = "done"
STATUS_OVERDUE = "overdue"
STATUS_ABORTED = "aborted"
STATUS_ON_HOLD = "on_hold"

TASK_STATUSES = {
    STATUS_TODO, STATUS_IN_PROGRESS, STATUS_REVIEW, STATUS_DONE,
    STATUS_OVERDUE, STATUS_ABORTED, STATUS_ON_HOLD,
}

FROZEN_TASK_STATUSES = {STATUS_ABORTED, STATUS_ON_HOLD}

TASK_PRIORITIES = {"low", "medium", "high"}

APPROVAL_GATES = ("start", "completion")
APPROVAL_PARTIES = ("client", "admin", "designer")
APPROVAL_STATUSES = {"pending", "approved", "rejected"}

# Cells that must all be approved before a fully-ticked task may be done.
GATING_APPROVALS = (
    ("start", "client"),
    ("start", "admin"),
    ("completion", "client"),
    ("completion", "admin"),
)

# Parties seeded with a pending cell on task creation.
DEFAULT_APPROVAL_PARTIES = ("client", "admin")


# ── Lifecycle Transition Tables ──────────────────────────────────────────────

# "Complete" is a two-press gesture: the first press sends work to review,
# the second confirms it.  Frozen statuses have no entry.
COMPLETE_TRANSITIONS = {
    STATUS_TODO:        STATUS_REVIEW,
    STATUS_IN_PROGRESS: STATUS_REVIEW,
    STATUS_OVERDUE:     STATUS_REVIEW,
    STATUS_REVIEW:      STATUS_DONE,
    STATUS_DONE:        STATUS_DONE,
}

# Kanban quick action: one column to the right.
ADVANCE_TRANSITIONS = {
    STATUS_TODO:        STATUS_IN_PROGRESS,
    STATUS_IN_PROGRESS: STATUS_REVIEW,
    STATUS_OVERDUE:     STATUS_REVIEW,
    STATUS_REVIEW:      STATUS_DONE,
}


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(64), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(100), default="", comment="civil | electrical | painting | …")
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_TODO,
        comment="todo | in_progress | review | done | overdue | aborted | on_hold",
    )
    progress = db.Column(db.Integer, nullable=True, comment="Explicit 0-100 override")
    assignee_id = db.Column(db.String(64), nullable=True, index=True)
    priority = db.Column(db.String(10), default="medium")
    start_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    dependencies = db.Column(db.JSON, default=list, comment="Prerequisite task ids")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    subtasks = db.relationship(
        "SubTask", backref="task", cascade="all, delete-orphan",
        order_by="SubTask.position",
    )
    approvals = db.relationship(
        "TaskApproval", backref="task", cascade="all, delete-orphan",
    )
    comments = db.relationship(
        "Comment", backref="task", cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('todo','in_progress','review','done',"
            "'overdue','aborted','on_hold')",
            name="ck_task_status",
        ),
    )

    def approvals_dict(self) -> dict:
        """Nested ``{gate: {party: cell}}`` view of the ledger; absent cells omitted."""
        result = {gate: {} for gate in APPROVAL_GATES}
        for cell in self.approvals or []:
            result.setdefault(cell.gate, {})[cell.party] = cell.to_dict()
        return result

    def to_dict(self, include_children=True):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "progress": self.progress,
            "assignee_id": self.assignee_id,
            "priority": self.priority,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "dependencies": list(self.dependencies or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["subtasks"] = [s.to_dict() for s in self.subtasks]
            result["approvals"] = self.approvals_dict()
            result["comments"] = [c.to_dict() for c in self.comments]
        return result

    def __repr__(self):
        return f"<Task {self.id}: {self.status} {self.title[:40]}>"


class SubTask(db.Model):
    __tablename__ = "subtasks"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    task_id = db.Column(
        db.String(64), db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "is_completed": bool(self.is_completed),
        }

    def __repr__(self):
        return f"<SubTask {self.id}: {'x' if self.is_completed else ' '} {self.title[:40]}>"


class TaskApproval(db.Model):
    """
    One cell of the approval ledger.  Cells are written independently; the
    store's last write wins for concurrent writes to the same cell.
    """

    __tablename__ = "task_approvals"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.String(64), db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    gate = db.Column(db.String(20), nullable=False, comment="start | completion")
    party = db.Column(db.String(20), nullable=False, comment="client | admin | designer")
    status = db.Column(db.String(20), nullable=False, default="pending")
    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("task_id", "gate", "party", name="uq_task_approval_cell"),
        db.CheckConstraint(
            "status IN ('pending','approved','rejected')",
            name="ck_task_approval_status",
        ),
    )

    def to_dict(self):
        return {
            "status": self.status,
            "updated_by": self.updated_by,
            "timestamp": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<TaskApproval {self.task_id} {self.gate}.{self.party}={self.status}>"
