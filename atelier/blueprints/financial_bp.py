"""
Financial blueprint — project ledger and per-party approvals.

Routes:
  GET    /projects/<pid>/financials                  – ledger (admin, designer, client)
  POST   /projects/<pid>/financials                  – add entry (admin)
  POST   /projects/<pid>/financials/<rid>/approve    – { kind, decision }
  DELETE /projects/<pid>/financials/<rid>            – delete (admin)
"""

from flask import Blueprint, g, jsonify

from atelier.blueprints import json_body
from atelier.middleware.project_access import require_project_capability
from atelier.services import financial_service

financial_bp = Blueprint("financials", __name__, url_prefix="/api/v1/projects/<project_id>/financials")


@financial_bp.route("", methods=["GET"])
@require_project_capability("can_view_financials")
def list_records(project_id):
    return jsonify(financial_service.list_records(g.current_user, g.project))


@financial_bp.route("", methods=["POST"])
@require_project_capability("can_manage_financials")
def add_record(project_id):
    record = financial_service.add_record(g.current_user, g.project, json_body())
    return jsonify(record.to_dict()), 201


@financial_bp.route("/<record_id>/approve", methods=["POST"])
@require_project_capability("can_view_financials")
def approve_record(project_id, record_id):
    """Body: { kind: billing|additional_budget|client_payment, decision }"""
    data = json_body()
    record = financial_service.get_record_for(g.current_user, g.project, record_id)
    record = financial_service.approve_record(
        g.current_user, g.project, record, data.get("kind"), data.get("decision"),
    )
    return jsonify(record.to_dict())


@financial_bp.route("/<record_id>", methods=["DELETE"])
@require_project_capability("can_manage_financials")
def delete_record(project_id, record_id):
    record = financial_service.get_record_for(g.current_user, g.project, record_id)
    financial_service.delete_record(g.current_user, g.project, record)
    return jsonify({"deleted": True, "id": record_id})
