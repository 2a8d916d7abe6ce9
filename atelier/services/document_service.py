"""
Document service — upload, sharing and the two-step approval.

Approval order: the admin decides ``approval_status`` first; a project client
may decide ``client_approval_status`` only once the admin approved.
"""

import logging
from datetime import datetime, timezone

from atelier.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from atelier.models.audit import write_audit
from atelier.models.project import DOCUMENT_APPROVAL_STATUSES, ProjectDocument
from atelier.services.access_policy import get_document_access, get_project_access, visible_documents
from atelier.services.store import get_store
from atelier.utils.helpers import require_choice, require_fields

logger = logging.getLogger(__name__)

DOC_TYPES = {"image", "pdf", "cad", "other"}


def _path(project) -> str:
    return f"projects/{project.id}/documents"


def list_documents(user, project) -> list[dict]:
    return [
        {**d.to_dict(), "access": get_document_access(user, project, d).to_dict()}
        for d in visible_documents(user, project)
    ]


def get_document_for(user, project, document_id: str) -> ProjectDocument:
    document = get_store().get(_path(project), document_id)
    if document is None or not get_document_access(user, project, document).can_view:
        raise NotFoundError(resource="ProjectDocument", resource_id=document_id)
    return document


def upload_document(user, project, data: dict) -> ProjectDocument:
    if not get_project_access(user, project).can_upload_documents:
        raise PermissionDenied(user.id, "upload_documents")
    require_fields(data, "name")
    doc_type = data.get("doc_type") or "other"
    require_choice(doc_type, DOC_TYPES, "doc_type")

    document = ProjectDocument(
        name=data["name"],
        doc_type=doc_type,
        url=data.get("url") or "",
        uploaded_by=user.id,
        shared_with=[s for s in dict.fromkeys(data.get("shared_with") or []) if s],
    )
    return get_store().add(_path(project), document)


def share_document(user, project, document: ProjectDocument, targets) -> ProjectDocument:
    if not get_document_access(user, project, document).can_share:
        raise PermissionDenied(user.id, "share_document")
    if not targets:
        raise ValidationError("shared_with must not be empty", details={"shared_with": "required"})
    return get_store().array_union(_path(project), document.id, "shared_with", *targets)


def delete_document(user, project, document: ProjectDocument) -> None:
    if not get_document_access(user, project, document).can_delete:
        raise PermissionDenied(user.id, "delete_document")
    get_store().delete(_path(project), document.id)


def decide_document(user, project, document: ProjectDocument, party: str, decision: str) -> ProjectDocument:
    """Record the admin or client decision on a document."""
    require_choice(party, {"admin", "client"}, "party")
    require_choice(decision, DOCUMENT_APPROVAL_STATUSES, "decision")
    access = get_document_access(user, project, document)
    now = datetime.now(timezone.utc)

    if party == "admin":
        if not access.can_decide_as_admin:
            raise PermissionDenied(user.id, "decide_document_admin")
        before = document.approval_status
        document.approval_status = decision
        document.approval_decided_by = user.id
        document.approval_decided_at = now
        if decision == "approved" and document.client_approval_status is None:
            document.client_approval_status = "pending"
    else:
        if not access.can_decide_as_client:
            raise PermissionDenied(user.id, "decide_document_client",
                                   "admin approval is required first")
        before = document.client_approval_status
        document.client_approval_status = decision
        document.client_decided_by = user.id
        document.client_decided_at = now

    write_audit(entity_type="document", entity_id=document.id, action="document.decision",
                actor=user.id, project_id=project.id,
                diff={"party": party, "status": [before, decision]})
    logger.info("Document %s decision %s by %s", party, decision, user.id,
                extra={"project_id": project.id, "user_id": user.id,
                       "event_type": "document.decision"})
    return get_store().save(document)

