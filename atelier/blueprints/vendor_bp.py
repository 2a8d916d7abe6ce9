"""
Vendor blueprint — materialized vendor metrics.

Routes:
  POST   /vendors/metrics/sync          – run the recompute for the active tenant (admin)
  GET    /vendors/<vid>/metrics         – cached per-project summary
"""

import logging

from flask import Blueprint, current_app, g, jsonify

from atelier.blueprints import json_body
from atelier.core.exceptions import NotFoundError, PermissionDenied
from atelier.middleware.project_access import current_user
from atelier.models import db
from atelier.models.auth import ROLE_ADMIN, ROLE_VENDOR, User
from atelier.services.jobs import run_job

logger = logging.getLogger(__name__)

vendor_bp = Blueprint("vendors", __name__, url_prefix="/api/v1/vendors")


@vendor_bp.route("/metrics/sync", methods=["POST"])
def sync_metrics():
    """Body: { tenant_id } (optional; defaults to the active tenant)"""
    user = current_user()
    if user.role != ROLE_ADMIN:
        raise PermissionDenied(user.id, "sync_vendor_metrics")
    tenant_id = json_body().get("tenant_id") or g.jwt_tenant_id
    if tenant_id not in user.tenant_scope:
        raise PermissionDenied(user.id, "sync_vendor_metrics", f"tenant {tenant_id} not in scope")

    result = run_job(current_app._get_current_object(), "vendor_metrics_sync", tenant_id=tenant_id)
    return jsonify(result), 200 if result["status"] == "success" else 500


@vendor_bp.route("/<vendor_id>/metrics", methods=["GET"])
def vendor_metrics(vendor_id):
    user = current_user()
    if user.role != ROLE_ADMIN and user.id != vendor_id:
        raise PermissionDenied(user.id, "view_vendor_metrics")

    vendor = db.session.get(User, vendor_id)
    if vendor is None or vendor.role != ROLE_VENDOR:
        raise NotFoundError(resource="Vendor", resource_id=vendor_id)

    payload = vendor.to_dict(include_metrics=True)
    # Cache is only as fresh as the last sync run
    payload["stale_possible"] = True
    return jsonify(payload)
