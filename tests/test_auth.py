"""
Auth tests — fail-closed login, profile claiming, tenant healing and switching.

Tests cover:
  - Login by id, by claimed auth uid, by phone placeholder
  - Identity without a profile is denied (403 ERR_LOGIN_DENIED), bad token 401
  - Tenant healing for profiles without a tenant
  - Tenant listing and switching (owned tenants unioned into scope)
  - Logout detaches store listeners
  - JWT middleware: missing / invalid bearer token
"""

from atelier.models import db
from atelier.models.auth import Tenant, User
from atelier.services import auth_service
from atelier.services.store import get_store
from atelier.services.token_service import decode_access_token, generate_identity_token


def _login(client, uid, phone=None):
    return client.post("/api/v1/auth/login",
                       json={"identity_token": generate_identity_token(uid, phone)})


# ═════════════════════════════════════════════════════════════════════════
# LOGIN
# ═════════════════════════════════════════════════════════════════════════

class TestLogin:
    def test_login_by_profile_id(self, client, admin):
        res = _login(client, admin.id)
        assert res.status_code == 200
        data = res.get_json()
        assert data["token_type"] == "Bearer"
        assert data["user"]["role"] == "admin"
        payload = decode_access_token(data["access_token"])
        assert payload["sub"] == admin.id
        assert payload["tenant_id"] == admin.tenant_id

    def test_unknown_identity_denied(self, client, tenant):
        res = _login(client, "stranger-uid")
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_LOGIN_DENIED"

    def test_invalid_identity_token(self, client):
        res = client.post("/api/v1/auth/login", json={"identity_token": "not-a-jwt"})
        assert res.status_code == 401

    def test_missing_identity_token(self, client):
        assert client.post("/api/v1/auth/login", json={}).status_code == 400

    def test_phone_placeholder_claimed(self, client, make_user):
        placeholder = make_user("vendor-ph", "vendor", phone="+91 98765 43210")
        res = _login(client, "provider-uid-7", phone="9876543210")
        assert res.status_code == 200
        assert res.get_json()["user"]["id"] == placeholder.id
        assert db.session.get(User, placeholder.id).auth_uid == "provider-uid-7"

        again = _login(client, "provider-uid-7")
        assert again.get_json()["user"]["id"] == placeholder.id

    def test_phone_mismatch_denied(self, client, make_user):
        make_user("vendor-ph", "vendor", phone="+91 98765 43210")
        assert _login(client, "uid-x", phone="9000000000").status_code == 403

    def test_tenant_healed(self, make_user):
        orphan = make_user("designer-orphan", "designer", tenant_id=None)
        user = auth_service.resolve_login_profile(orphan.id)
        assert user.tenant_id == orphan.id
        assert db.session.get(Tenant, orphan.id) is not None


# ═════════════════════════════════════════════════════════════════════════
# TENANTS & LOGOUT
# ═════════════════════════════════════════════════════════════════════════

class TestTenants:
    def test_owned_tenant_listed_and_switchable(self, client, admin, auth_headers):
        db.session.add(Tenant(id="tenant-annex", name="Annex Studio", admin_id=admin.id))
        db.session.commit()

        res = client.get("/api/v1/auth/tenants", headers=auth_headers(admin))
        ids = [t["id"] for t in res.get_json()["tenants"]]
        assert ids == [admin.tenant_id, "tenant-annex"]

        res = client.post("/api/v1/auth/switch-tenant", json={"tenant_id": "tenant-annex"},
                          headers=auth_headers(admin))
        assert res.status_code == 200
        assert decode_access_token(res.get_json()["access_token"])["tenant_id"] == "tenant-annex"
        assert "tenant-annex" in db.session.get(User, admin.id).tenant_ids

    def test_switch_to_foreign_tenant_denied(self, client, designer, auth_headers):
        db.session.add(Tenant(id="tenant-foreign", name="Foreign"))
        db.session.commit()
        res = client.post("/api/v1/auth/switch-tenant", json={"tenant_id": "tenant-foreign"},
                          headers=auth_headers(designer))
        assert res.status_code == 403

    def test_inactive_tenant_not_offered(self, make_user):
        db.session.add(Tenant(id="tenant-closed", name="Closed", is_active=False))
        db.session.commit()
        roaming = make_user("vendor-r", "vendor", tenant_id=None, tenant_ids=["tenant-closed"])
        assert auth_service.available_tenants(roaming) == []

    def test_logout_detaches_listeners(self, client, client_user, project, auth_headers):
        store = get_store()
        store.subscribe("projects", lambda docs: None, owner=client_user.id)
        store.subscribe(f"projects/{project.id}/tasks", lambda docs: None, owner=client_user.id)
        res = client.post("/api/v1/auth/logout", headers=auth_headers(client_user))
        assert res.get_json()["listeners_detached"] == 2
        assert store.listener_count() == 0


class TestMiddleware:
    def test_missing_token(self, client):
        res = client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token(self, client):
        res = client.get("/api/v1/projects", headers={"Authorization": "Bearer nope"})
        assert res.status_code == 401

    def test_health_is_public(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200
        live = client.get("/api/v1/health/live")
        assert live.status_code == 200
        assert live.get_json()["checks"]["database"]["status"] == "ok"

    def test_inactive_tenant_rejected(self, client, admin, tenant, auth_headers):
        tenant.is_active = False
        db.session.commit()
        assert client.get("/api/v1/projects", headers=auth_headers(admin)).status_code == 403
