"""
Atelier ERP
Job registry.

Batch jobs (currently the vendor metrics recompute) register themselves by
name and run inside an app context, either from the CLI, from an admin API
call, or from an external scheduler invoking the CLI.

Usage:
    @register_job("vendor_metrics_sync")
    def vendor_metrics_job(app, tenant_id=None):
        ...

    run_job(app, "vendor_metrics_sync", tenant_id="t-1")
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function under ``name``."""
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    return dict(_job_registry)


def run_job(app: Flask, job_name: str, **kwargs) -> dict:
    """
    Execute a registered job inside an app context.

    Returns:
        Dict with status, duration_ms and result or error.  A failing job
        is logged and reported, never re-raised.
    """
    fn = _job_registry.get(job_name)
    if not fn:
        return {"job": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

    start = time.monotonic()
    result = None
    error = None
    status = "success"

    try:
        with app.app_context():
            result = fn(app, **kwargs)
    except Exception as exc:
        status = "failed"
        error = str(exc)
        logger.exception("Job %s failed: %s", job_name, exc)

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info("Job %s finished: %s in %dms", job_name, status, duration_ms,
                extra={"event_type": f"job.{job_name}", "duration_ms": duration_ms})

    payload = {"job": job_name, "status": status, "duration_ms": duration_ms}
    if error:
        payload["error"] = error
    else:
        payload["result"] = result
    return payload
