"""
Tenant context middleware — resolves the active tenant for JWT requests.

  1. g.jwt_tenant_id is already set by jwt_auth middleware
  2. this hook verifies the tenant exists and is active
  3. g.tenant holds the Tenant row for downstream code

Chain order:
  jwt_auth.py  →  tenant_context.py  →  route handler
"""

import logging

from flask import g, request

from atelier.models import db
from atelier.models.auth import Tenant
from atelier.utils.errors import E, api_error

logger = logging.getLogger(__name__)

TENANT_SKIP_PREFIXES = (
    "/api/v1/auth/",
    "/api/v1/health",
)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant = None

        if not request.path.startswith("/api/v1/"):
            return None
        for prefix in TENANT_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        tenant_id = getattr(g, "jwt_tenant_id", None)
        if tenant_id is None:
            return None

        tenant = db.session.get(Tenant, tenant_id)
        if tenant is None:
            # Healed tenant ids (user.id) have no Tenant row; scope still applies.
            logger.debug("Active tenant %s has no tenant record", tenant_id,
                         extra={"tenant_id": tenant_id})
            return None

        if not tenant.is_active:
            logger.warning("Request against inactive tenant %s", tenant_id,
                           extra={"tenant_id": tenant_id, "event_type": "tenant.inactive"})
            return api_error(E.FORBIDDEN, "Tenant is inactive")

        g.tenant = tenant
        return None
