"""
Vendor metrics aggregator.

Full recompute, no incremental deltas.  For every project in scope and every
distinct task assignee:

    task_count  = tasks assigned to the vendor in that project (any status)
    net_amount  = paid to vendor − paid by vendor, over financial records
                  with admin_approved and client_approved both true and
                  vendor_id == the vendor

A record whose ``paid_by`` is "vendor" counts as paid by the vendor; any
other payer counts as paid to the vendor.

The resulting ``{project_id: {...}}`` map replaces the vendor's
``User.project_metrics`` wholesale.  A tenant-scoped run replaces only the
entries for that tenant's projects and keeps the rest.  The cache is
refreshed only when the job runs, so readers must tolerate a staleness
window.  Vendors without a profile are logged and skipped; the run continues.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from atelier.models import db
from atelier.models.audit import write_audit
from atelier.models.auth import User
from atelier.models.project import Project
from atelier.services.jobs import register_job

logger = logging.getLogger(__name__)


def _net_amount(project, vendor_id: str) -> float:
    paid_to = 0.0
    paid_by = 0.0
    for record in project.financial_records or []:
        if not (record.admin_approved and record.client_approved):
            continue
        if record.vendor_id != vendor_id:
            continue
        if record.paid_by == "vendor":
            paid_by += record.amount or 0.0
        else:
            paid_to += record.amount or 0.0
    return paid_to - paid_by


def compute_vendor_metrics(projects) -> dict[str, dict[str, dict]]:
    """Pure recompute: ``{vendor_id: {project_id: summary}}``.

    Project iteration order does not affect the result.
    """
    metrics: dict[str, dict[str, dict]] = {}
    for project in projects or []:
        tasks = project.tasks or []
        vendor_ids = {t.assignee_id for t in tasks if t.assignee_id}
        for vendor_id in sorted(vendor_ids):
            metrics.setdefault(vendor_id, {})[project.id] = {
                "project_name": project.name,
                "task_count": sum(1 for t in tasks if t.assignee_id == vendor_id),
                "net_amount": _net_amount(project, vendor_id),
            }
    return metrics


def _merge_outside_scope(existing, fresh: dict, scoped_ids: set) -> dict:
    kept = {pid: m for pid, m in (existing or {}).items() if pid not in scoped_ids}
    return {**kept, **fresh}


def sync_all_vendor_metrics(tenant_id: str | None = None) -> dict:
    """Recompute and persist every vendor's ``project_metrics``.

    Returns a summary ``{"projects", "vendors_updated", "vendors_skipped",
    "skipped_vendor_ids"}``.
    """
    query = Project.query
    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)
    projects = query.all()

    metrics = compute_vendor_metrics(projects)
    scoped_ids = {p.id for p in projects}
    logger.info("Vendor metrics recomputed for %d project(s), %d vendor(s)",
                len(projects), len(metrics),
                extra={"tenant_id": tenant_id, "event_type": "vendor_metrics.sync"})

    now = datetime.now(timezone.utc)
    updated, skipped = [], []
    for vendor_id, project_metrics in metrics.items():
        user = db.session.get(User, vendor_id)
        if user is None:
            logger.warning("Skipping metrics for vendor %s: profile not found", vendor_id,
                           extra={"vendor_id": vendor_id})
            skipped.append(vendor_id)
            continue
        try:
            with db.session.begin_nested():
                if tenant_id:
                    project_metrics = _merge_outside_scope(user.project_metrics, project_metrics,
                                                           scoped_ids)
                user.project_metrics = project_metrics
                user.metrics_synced_at = now
        except SQLAlchemyError as exc:
            logger.warning("Skipping metrics for vendor %s: %s", vendor_id, exc,
                           extra={"vendor_id": vendor_id})
            skipped.append(vendor_id)
            continue
        updated.append(vendor_id)

    write_audit(
        entity_type="vendor_metrics",
        entity_id=tenant_id or "*",
        action="vendor_metrics.sync",
        tenant_id=tenant_id,
        diff={"vendors_updated": len(updated), "vendors_skipped": skipped},
    )
    db.session.commit()

    return {
        "projects": len(projects),
        "vendors_updated": len(updated),
        "vendors_skipped": len(skipped),
        "skipped_vendor_ids": skipped,
    }


@register_job("vendor_metrics_sync")
def vendor_metrics_job(app, tenant_id: str | None = None) -> dict:
    """Recompute the materialized vendor project metrics."""
    return sync_all_vendor_metrics(tenant_id=tenant_id)
