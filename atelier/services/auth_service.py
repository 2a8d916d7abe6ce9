"""
Auth service — login gating, tenant healing, tenant switching, logout.

Login is fail-closed: an identity without a profile is denied.  Lookup order:
    1. users.id == uid
    2. users.auth_uid == uid               (previously claimed placeholder)
    3. unclaimed placeholder with the identity's phone number → claimed
A profile with no tenant_id is healed to tenant_id = user.id.
"""

import logging
import re

import jwt as pyjwt

from atelier.core.exceptions import AuthenticationError, LoginDenied, PermissionDenied
from atelier.models import db
from atelier.models.auth import ROLE_ADMIN, Tenant, User
from atelier.services.store import get_store
from atelier.services.token_service import decode_identity_token, generate_access_token

logger = logging.getLogger(__name__)


def _phone_key(phone: str | None) -> str:
    """Last ten digits; tolerates +91 / 0 prefixes and spacing."""
    digits = re.sub(r"\D", "", phone or "")
    return digits[-10:]


def claim_phone_profile(uid: str, phone_number: str) -> User | None:
    key = _phone_key(phone_number)
    if not key:
        return None
    candidates = User.query.filter(User.auth_uid.is_(None), User.phone.isnot(None)).all()
    for user in candidates:
        if _phone_key(user.phone) == key:
            user.auth_uid = uid
            db.session.commit()
            logger.info("Placeholder profile %s claimed by phone login", user.id,
                        extra={"user_id": user.id, "event_type": "auth.claim"})
            return user
    return None


def heal_tenant(user: User) -> User:
    """Give a tenant-less profile its own id as tenant (and a Tenant row)."""
    if not user.tenant_id:
        user.tenant_id = user.id
        if db.session.get(Tenant, user.id) is None:
            db.session.add(Tenant(
                id=user.id,
                name=user.company or user.name,
                admin_id=user.id if user.role == ROLE_ADMIN else None,
            ))
        db.session.commit()
        logger.info("Healed missing tenant for user %s", user.id,
                    extra={"user_id": user.id, "tenant_id": user.id})
    return user


def resolve_login_profile(uid: str, phone_number: str | None = None) -> User:
    user = db.session.get(User, uid) or User.query.filter_by(auth_uid=uid).first()
    if user is None and phone_number:
        user = claim_phone_profile(uid, phone_number)
    if user is None:
        logger.warning("Login denied for %s: no profile", uid,
                       extra={"event_type": "auth.denied"})
        raise LoginDenied(uid)
    return heal_tenant(user)


def login(identity_token: str) -> dict:
    """Verify a provider identity token and issue an access token."""
    try:
        identity = decode_identity_token(identity_token)
    except pyjwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid identity token: {exc}") from exc

    user = resolve_login_profile(identity["uid"], identity.get("phone_number"))
    token = generate_access_token(user.id, user.tenant_id, user.role)
    logger.info("User %s logged in", user.id,
                extra={"user_id": user.id, "tenant_id": user.tenant_id,
                       "event_type": "auth.login"})
    return {**token, "user": user.to_dict(), "tenant_id": user.tenant_id}


def available_tenants(user: User) -> list[dict]:
    """Home tenant first, then extra and (for admins) owned tenants."""
    ordered = [user.tenant_id] if user.tenant_id else []
    ordered += sorted(t for t in user.tenant_scope if t not in ordered)
    if user.role == ROLE_ADMIN:
        owned = Tenant.query.filter_by(admin_id=user.id).order_by(Tenant.name).all()
        ordered += [t.id for t in owned if t.id not in ordered]

    rows = {t.id: t for t in Tenant.query.filter(Tenant.id.in_(ordered)).all()} if ordered else {}
    result = []
    for tenant_id in ordered:
        tenant = rows.get(tenant_id)
        if tenant is not None and not tenant.is_active:
            continue
        result.append(tenant.to_dict() if tenant else {"id": tenant_id, "name": tenant_id})
    return result


def switch_tenant(user: User, tenant_id: str) -> dict:
    allowed = {t["id"] for t in available_tenants(user)}
    if tenant_id not in allowed:
        raise PermissionDenied(user.id, "switch_tenant", f"tenant {tenant_id} not available")

    if tenant_id not in user.tenant_scope:
        # Owned by this admin but not yet in scope
        get_store().array_union("users", user.id, "tenant_ids", tenant_id)

    logger.info("User %s switched to tenant %s", user.id, tenant_id,
                extra={"user_id": user.id, "tenant_id": tenant_id,
                       "event_type": "auth.switch_tenant"})
    return {**generate_access_token(user.id, tenant_id, user.role), "tenant_id": tenant_id}


def logout(user_id: str) -> int:
    """Tear down every store listener owned by the user."""
    return get_store().detach_owner(user_id)
