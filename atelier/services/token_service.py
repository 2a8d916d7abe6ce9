"""
Token service — identity-token verification and access-token issue.

Identity token (from the external auth provider, verified here):
{
    "sub": <provider uid>,
    "phone_number": "+91…",        optional
    "exp": <expires_at>
}

Access token (issued by this service):
{
    "sub": <user_id>,
    "tenant_id": <active tenant>,
    "role": "admin" | "designer" | "client" | "vendor",
    "type": "access",
    "iat", "exp", "jti"
}

Algorithm: HS256 for both.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Access tokens
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: str, tenant_id: str | None, role: str) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if tenant_id is not None:
        payload["tenant_id"] = tenant_id
    return {
        "access_token": jwt.encode(payload, _get_secret(), algorithm=ALGORITHM),
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
    }


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises jwt exceptions (ExpiredSignatureError, InvalidTokenError) on failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload


# ═══════════════════════════════════════════════════════════════
# Identity tokens
# ═══════════════════════════════════════════════════════════════
def decode_identity_token(token: str) -> dict:
    """Verify a provider identity token; returns ``{"uid", "phone_number"}``."""
    payload = jwt.decode(
        token, current_app.config["IDENTITY_TOKEN_SECRET"], algorithms=[ALGORITHM],
        options={"require": ["sub"]},
    )
    return {"uid": payload["sub"], "phone_number": payload.get("phone_number")}


def generate_identity_token(uid: str, phone_number: str | None = None,
                            expires_in: int = 300) -> str:
    """Mint an identity token (local development and tests)."""
    now = datetime.now(timezone.utc)
    payload = {"sub": uid, "iat": now, "exp": now + timedelta(seconds=expires_in)}
    if phone_number:
        payload["phone_number"] = phone_number
    return jwt.encode(payload, current_app.config["IDENTITY_TOKEN_SECRET"], algorithm=ALGORITHM)
