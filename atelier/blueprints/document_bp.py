"""
Document blueprint — project files and their admin → client approval.

Routes:
  GET    /projects/<pid>/documents                   – documents visible to the caller
  POST   /projects/<pid>/documents                   – upload (metadata only)
  POST   /projects/<pid>/documents/<did>/decision    – { party, decision }
  POST   /projects/<pid>/documents/<did>/share       – { shared_with: [...] }
  DELETE /projects/<pid>/documents/<did>             – delete
  GET    /projects/<pid>/documents/<did>/comments    – thread (?status=pending|done)
  POST   /projects/<pid>/documents/<did>/comments    – { text }
  PATCH  /projects/<pid>/documents/<did>/comments/<cid> – { status }
  DELETE /projects/<pid>/documents/<did>/comments/<cid> – author or admin
"""

from flask import Blueprint, g, jsonify, request

from atelier.blueprints import json_body
from atelier.middleware.project_access import require_project_capability
from atelier.services import comment_service, document_service
from atelier.services.access_policy import get_document_access

document_bp = Blueprint("documents", __name__, url_prefix="/api/v1/projects/<project_id>/documents")


def _document_response(document, status=200):
    payload = document.to_dict()
    payload["access"] = get_document_access(g.current_user, g.project, document).to_dict()
    return jsonify(payload), status


@document_bp.route("", methods=["GET"])
@require_project_capability()
def list_documents(project_id):
    return jsonify(document_service.list_documents(g.current_user, g.project))


@document_bp.route("", methods=["POST"])
@require_project_capability("can_upload_documents")
def upload_document(project_id):
    document = document_service.upload_document(g.current_user, g.project, json_body())
    return _document_response(document, 201)


@document_bp.route("/<document_id>/decision", methods=["POST"])
@require_project_capability()
def decide_document(project_id, document_id):
    data = json_body()
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    document = document_service.decide_document(
        g.current_user, g.project, document, data.get("party"), data.get("decision"),
    )
    return _document_response(document)


@document_bp.route("/<document_id>/share", methods=["POST"])
@require_project_capability()
def share_document(project_id, document_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    document = document_service.share_document(
        g.current_user, g.project, document, json_body().get("shared_with") or [],
    )
    return _document_response(document)


@document_bp.route("/<document_id>", methods=["DELETE"])
@require_project_capability()
def delete_document(project_id, document_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    document_service.delete_document(g.current_user, g.project, document)
    return jsonify({"deleted": True, "id": document_id})


@document_bp.route("/<document_id>/comments", methods=["GET"])
@require_project_capability()
def list_document_comments(project_id, document_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    return jsonify(comment_service.list_comments(g.current_user, document,
                                                 request.args.get("status")))


@document_bp.route("/<document_id>/comments", methods=["POST"])
@require_project_capability()
def add_document_comment(project_id, document_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    comment = comment_service.add_comment(g.current_user, document, json_body())
    return jsonify(comment.to_dict()), 201


@document_bp.route("/<document_id>/comments/<comment_id>", methods=["PATCH"])
@require_project_capability()
def set_document_comment_status(project_id, document_id, comment_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    comment = comment_service.set_comment_status(
        g.current_user, document, comment_id, json_body().get("status"),
    )
    return jsonify(comment.to_dict())


@document_bp.route("/<document_id>/comments/<comment_id>", methods=["DELETE"])
@require_project_capability()
def delete_document_comment(project_id, document_id, comment_id):
    document = document_service.get_document_for(g.current_user, g.project, document_id)
    comment_service.delete_comment(g.current_user, document, comment_id)
    return jsonify({"deleted": True, "id": comment_id})
