"""
Request timing middleware.

Every response carries X-Request-ID and X-Request-Duration-Ms. The access
line is logged at DEBUG, promoted to WARNING for slow requests and ERROR
for 5xx responses.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

SLOW_THRESHOLD_MS = 1000


def _level_for(status_code: int, duration_ms: float) -> tuple[int, str]:
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING, "Slow request"
    if status_code >= 500:
        return logging.ERROR, "Server error"
    return logging.DEBUG, "Request"


def _request_scope() -> dict:
    """Identity and resource ids the access line is tagged with."""
    view_args = request.view_args or {}
    return {
        "tenant_id": getattr(g, "jwt_tenant_id", None),
        "user_id": getattr(g, "jwt_user_id", None),
        "project_id": view_args.get("project_id"),
        "task_id": view_args.get("task_id"),
    }


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _stamp_request():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _emit_timing(response):
        started = getattr(g, "request_start", None)
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.get("request_id", "")
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"
        if request.path in _QUIET_PATHS:
            return response

        level, label = _level_for(response.status_code, elapsed)
        logger.log(
            level, "%s: %s %s %d (%.0fms)", label,
            request.method, request.path, response.status_code, elapsed,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
                "request_id": g.get("request_id", ""),
                **_request_scope(),
            },
        )
        return response
