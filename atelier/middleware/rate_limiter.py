"""
Rate limiting configuration.

The Limiter instance is created in atelier/__init__.py with no default
limits; this module applies limits per blueprint.

    auth:        20/minute  (login / tenant switch)
    vendors:     10/minute  (metrics recompute is a full scan)
    write APIs:  120/minute
    health:      exempt

Rate limiting is disabled in testing mode.
"""

import logging

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    "auth": "20/minute",
    "vendors": "10/minute",
    "projects": "120/minute",
    "tasks": "120/minute",
    "documents": "120/minute",
    "financials": "120/minute",
}


def init_rate_limits(app, limiter):
    """Apply per-blueprint limits; no-op under TESTING."""
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name, limit in RATE_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: %s", RATE_LIMITS)
