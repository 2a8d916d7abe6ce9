"""
Atelier ERP
Flask Application Factory.

Usage:
    from atelier import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from atelier.config import config
from atelier.middleware.jwt_auth import init_jwt_middleware
from atelier.middleware.logging_config import configure_logging
from atelier.middleware.rate_limiter import init_rate_limits
from atelier.middleware.tenant_context import init_tenant_context
from atelier.middleware.timing import init_request_timing
from atelier.models import db
from atelier.services.store import Store
from atelier.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-blueprint limits only
)
store = Store()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, or "development".
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    store.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware chain: timing → jwt → tenant ──────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)
    init_tenant_context(app)

    # ── Import all models so create_all / Alembic see them ───────────────
    from atelier.models import audit as _audit_models        # noqa: F401
    from atelier.models import auth as _auth_models          # noqa: F401
    from atelier.models import comment as _comment_models    # noqa: F401
    from atelier.models import financial as _financial_models  # noqa: F401
    from atelier.models import project as _project_models    # noqa: F401
    from atelier.models import task as _task_models          # noqa: F401

    # ── Jobs register themselves on import ───────────────────────────────
    from atelier.services import vendor_metrics as _vendor_metrics_job  # noqa: F401

    with app.app_context():
        if not app.config.get("TESTING"):
            os.makedirs(app.instance_path, exist_ok=True)
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from atelier.blueprints import register_blueprints
    register_blueprints(app)

    init_rate_limits(app, limiter)
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("sync-vendor-metrics")
    @click.option("--tenant-id", default=None, help="Limit the recompute to one tenant.")
    def sync_vendor_metrics_cmd(tenant_id):
        """Recompute every vendor's materialized project metrics."""
        from atelier.services.jobs import run_job
        result = run_job(app, "vendor_metrics_sync", tenant_id=tenant_id)
        click.echo(f"{result['status']}: {result.get('result') or result.get('error')}")

    return app
