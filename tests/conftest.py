"""
Shared pytest fixtures for the Atelier ERP test suite.

Provides:
    - app: Flask application (session-scoped)
    - session: per-test app context with a fresh schema (autouse)
    - client: Flask test client
    - tenant / admin / designer / client_user / vendor: seeded identities
    - project: a project in ``tenant`` wired to the identities above
    - make_user / make_project / make_task / make_record / make_document: factories
    - auth_headers: Bearer header for any user
"""

import pytest

from atelier import create_app
from atelier.models import db as _db
from atelier.models.auth import Tenant, User
from atelier.models.financial import FinancialRecord
from atelier.models.project import Project, ProjectDocument, ProjectMeeting
from atelier.models.task import SubTask, Task
from atelier.services.approval_ledger import seed_approvals, set_approval
from atelier.services.token_service import generate_access_token

TENANT_ID = "tenant-studio"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()
        app.extensions["store"]._subscriptions.clear()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    def _make(user_id, role, tenant_id=TENANT_ID, **kwargs):
        user = User(id=user_id, name=kwargs.pop("name", user_id.title()),
                    role=role, tenant_id=tenant_id, tenant_ids=kwargs.pop("tenant_ids", []),
                    **kwargs)
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_project():
    def _make(tenant_id=TENANT_ID, **kwargs):
        project = Project(
            tenant_id=tenant_id,
            name=kwargs.pop("name", "Sea View Apartment"),
            client_ids=kwargs.pop("client_ids", []),
            team_members=kwargs.pop("team_members", []),
            vendor_ids=kwargs.pop("vendor_ids", []),
            hidden_vendor_ids=kwargs.pop("hidden_vendor_ids", []),
            **kwargs,
        )
        _db.session.add(project)
        _db.session.commit()
        return project
    return _make


@pytest.fixture()
def make_task():
    def _make(project, title="False ceiling", status="todo", subtasks=(), approvals=None,
              seed=True, **kwargs):
        task = Task(project_id=project.id, title=title, status=status,
                    dependencies=kwargs.pop("dependencies", []), **kwargs)
        for i, (sub_title, done) in enumerate(subtasks):
            task.subtasks.append(SubTask(title=sub_title, is_completed=done, position=i))
        if seed:
            seed_approvals(task)
        for (gate, party), status_value in (approvals or {}).items():
            set_approval(task, gate, party, status_value, "seed")
        _db.session.add(task)
        _db.session.commit()
        return task
    return _make


@pytest.fixture()
def make_record():
    def _make(project, amount, **kwargs):
        record = FinancialRecord(project_id=project.id, amount=amount,
                                 record_type=kwargs.pop("record_type", "expense"), **kwargs)
        _db.session.add(record)
        _db.session.commit()
        return record
    return _make


@pytest.fixture()
def make_document():
    def _make(project, name="Kitchen layout.pdf", **kwargs):
        doc = ProjectDocument(project_id=project.id, name=name,
                              doc_type=kwargs.pop("doc_type", "pdf"),
                              shared_with=kwargs.pop("shared_with", []), **kwargs)
        _db.session.add(doc)
        _db.session.commit()
        return doc
    return _make


@pytest.fixture()
def make_meeting():
    def _make(project, title="Site visit", attendees=()):
        meeting = ProjectMeeting(project_id=project.id, title=title, attendees=list(attendees))
        _db.session.add(meeting)
        _db.session.commit()
        return meeting
    return _make


# ── Seeded identities ────────────────────────────────────────────────────


@pytest.fixture()
def tenant():
    t = Tenant(id=TENANT_ID, name="Studio Interiors", admin_id="admin-1")
    _db.session.add(t)
    _db.session.commit()
    return t


@pytest.fixture()
def admin(tenant, make_user):
    return make_user("admin-1", "admin")


@pytest.fixture()
def designer(tenant, make_user):
    return make_user("designer-1", "designer")


@pytest.fixture()
def client_user(tenant, make_user):
    return make_user("client-1", "client")


@pytest.fixture()
def vendor(tenant, make_user):
    return make_user("vendor-1", "vendor", company="Carpentry Works")


@pytest.fixture()
def project(tenant, admin, designer, client_user, vendor, make_project):
    return make_project(
        client_id=client_user.id,
        lead_designer_id=designer.id,
        vendor_ids=[vendor.id],
    )


@pytest.fixture()
def auth_headers():
    def _headers(user, tenant_id=None):
        token = generate_access_token(user.id, tenant_id or user.tenant_id, user.role)
        return {"Authorization": f"Bearer {token['access_token']}"}
    return _headers
