"""
Atelier ERP
Blueprint registry.
"""

from flask import request


def json_body() -> dict:
    """Request JSON object, or an empty dict for missing / non-object bodies."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def register_blueprints(app):
    from atelier.blueprints.auth_bp import auth_bp
    from atelier.blueprints.document_bp import document_bp
    from atelier.blueprints.financial_bp import financial_bp
    from atelier.blueprints.health_bp import health_bp
    from atelier.blueprints.project_bp import project_bp
    from atelier.blueprints.task_bp import task_bp
    from atelier.blueprints.vendor_bp import vendor_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(document_bp)
    app.register_blueprint(financial_bp)
    app.register_blueprint(vendor_bp)
