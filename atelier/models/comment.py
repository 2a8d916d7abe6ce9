"""
Atelier ERP
Comment domain model.

Models:
    - Comment: discussion note on a task or a project document, with a
      pending / done marker so open points can be worked off.

Architecture:
    Task            ──1:N──▶ Comment  (task_id set)
    ProjectDocument ──1:N──▶ Comment  (document_id set)
    Exactly one parent column is set per row.
"""

from atelier.models import _utcnow, _uuid, db

COMMENT_PENDING = "pending"
COMMENT_DONE = "done"
COMMENT_STATUSES = {COMMENT_PENDING, COMMENT_DONE}


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    task_id = db.Column(
        db.String(64), db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    document_id = db.Column(
        db.String(64), db.ForeignKey("project_documents.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    user_id = db.Column(db.String(64), nullable=False)
    # Kept on the row so the thread still reads when the profile is gone.
    user_name = db.Column(db.String(200), default="")
    text = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(10), nullable=False, default=COMMENT_PENDING)
    resolved_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint("status IN ('pending','done')", name="ck_comment_status"),
        db.CheckConstraint(
            "(task_id IS NULL) <> (document_id IS NULL)",
            name="ck_comment_single_parent",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "text": self.text,
            "status": self.status,
            "resolved_by": self.resolved_by,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Comment {self.id}: {self.status} by {self.user_id}>"
