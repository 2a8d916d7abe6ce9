"""
Auth blueprint.

Routes:
  POST   /auth/login           – identity token → access token (fail-closed)
  GET    /auth/me              – current profile
  GET    /auth/tenants         – tenants the user may act in
  POST   /auth/switch-tenant   – new token scoped to another tenant
  POST   /auth/logout          – detach the user's store listeners
"""

from flask import Blueprint, g, jsonify

from atelier.blueprints import json_body
from atelier.middleware.project_access import current_user
from atelier.services import auth_service
from atelier.utils.errors import E, api_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { identity_token }"""
    token = json_body().get("identity_token")
    if not token:
        return api_error(E.VALIDATION_REQUIRED, "identity_token is required")
    return jsonify(auth_service.login(token))


@auth_bp.route("/me", methods=["GET"])
def me():
    user = current_user()
    return jsonify({**user.to_dict(), "active_tenant_id": g.jwt_tenant_id})


@auth_bp.route("/tenants", methods=["GET"])
def tenants():
    user = current_user()
    return jsonify({
        "active_tenant_id": g.jwt_tenant_id,
        "tenants": auth_service.available_tenants(user),
    })


@auth_bp.route("/switch-tenant", methods=["POST"])
def switch_tenant():
    """Body: { tenant_id }"""
    tenant_id = json_body().get("tenant_id")
    if not tenant_id:
        return api_error(E.VALIDATION_REQUIRED, "tenant_id is required")
    return jsonify(auth_service.switch_tenant(current_user(), tenant_id))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    detached = auth_service.logout(g.jwt_user_id)
    return jsonify({"status": "logged_out", "listeners_detached": detached})
