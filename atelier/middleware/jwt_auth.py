"""
JWT auth middleware — parses the Bearer access token, sets g.jwt_*.

    g.jwt_user_id    token "sub"
    g.jwt_tenant_id  active tenant
    g.jwt_role       role at issue time (the profile row stays authoritative)

Protected routes without a valid token get 401.  Auth and health endpoints
skip the check.
"""

import logging

import jwt as pyjwt
from flask import g, request

from atelier.services.token_service import decode_access_token
from atelier.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_tenant_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return api_error(E.UNAUTHENTICATED, "Authentication required")

        try:
            payload = decode_access_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHENTICATED, "Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected access token: %s", exc)
            return api_error(E.UNAUTHENTICATED, "Invalid token")

        g.jwt_user_id = payload.get("sub")
        g.jwt_tenant_id = payload.get("tenant_id")
        g.jwt_role = payload.get("role")
        return None
