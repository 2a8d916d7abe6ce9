"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
    flask --app wsgi sync-vendor-metrics --tenant-id <tenant>
"""

from atelier import create_app

app = create_app()
