"""
Comment service — discussion threads on tasks and project documents.

Posting needs ``can_comment`` on the parent.  Marking a comment done or
reopening it is open to the author and to holders of
``can_resolve_comments``.  Deleting is open to the author and admins.

Every write saves the parent, so listeners on the parent's collection see
the new thread.
"""

import logging

from atelier.core.exceptions import NotFoundError, PermissionDenied
from atelier.models import _uuid
from atelier.models.audit import write_audit
from atelier.models.auth import ROLE_ADMIN
from atelier.models.comment import COMMENT_DONE, COMMENT_STATUSES, Comment
from atelier.models.task import Task
from atelier.services.access_policy import get_document_access, get_task_access
from atelier.services.store import get_store
from atelier.utils.helpers import require_choice, require_fields

logger = logging.getLogger(__name__)


def _access(user, parent):
    if isinstance(parent, Task):
        return get_task_access(user, parent.project, parent)
    return get_document_access(user, parent.project, parent)


def _audit(user, parent, action: str, diff: dict) -> None:
    kind = "task" if isinstance(parent, Task) else "document"
    write_audit(entity_type=kind, entity_id=parent.id, action=f"{kind}.{action}",
                actor=user.id, project_id=parent.project_id, diff=diff)


def _find(parent, comment_id: str) -> Comment:
    for comment in parent.comments:
        if comment.id == comment_id:
            return comment
    raise NotFoundError(resource="Comment", resource_id=comment_id)


def list_comments(user, parent, status: str | None = None) -> list[dict]:
    if status is not None:
        require_choice(status, COMMENT_STATUSES, "status")
    return [c.to_dict() for c in parent.comments if status is None or c.status == status]


def add_comment(user, parent, data: dict) -> Comment:
    if not _access(user, parent).can_comment:
        raise PermissionDenied(user.id, "comment")
    text = str(data.get("text") or "").strip()
    require_fields({"text": text}, "text")
    comment = Comment(id=_uuid(), user_id=user.id, user_name=user.name, text=text)
    parent.comments.append(comment)
    _audit(user, parent, "comment", {"comment_id": comment.id})
    get_store().save(parent)
    logger.info("Comment added", extra={"project_id": parent.project_id, "user_id": user.id,
                                         "event_type": "comment.add"})
    return comment


def set_comment_status(user, parent, comment_id: str, status: str) -> Comment:
    """Mark a comment done, or reopen it as pending."""
    require_choice(status, COMMENT_STATUSES, "status")
    comment = _find(parent, comment_id)
    if comment.user_id != user.id and not _access(user, parent).can_resolve_comments:
        raise PermissionDenied(user.id, "resolve_comment")
    if comment.status == status:
        return comment
    before = comment.status
    comment.status = status
    comment.resolved_by = user.id if status == COMMENT_DONE else None
    _audit(user, parent, "comment_status",
           {"comment_id": comment.id, "status": [before, status]})
    get_store().save(parent)
    return comment


def delete_comment(user, parent, comment_id: str) -> None:
    comment = _find(parent, comment_id)
    if comment.user_id != user.id and user.role != ROLE_ADMIN:
        raise PermissionDenied(user.id, "delete_comment")
    parent.comments.remove(comment)
    _audit(user, parent, "comment_delete", {"comment_id": comment_id})
    get_store().save(parent)
