"""
Atelier ERP
Document-store facade over the SQLAlchemy session.

Collections are addressed by path:

    projects
    projects/<project_id>/tasks
    projects/<project_id>/documents
    projects/<project_id>/meetings
    projects/<project_id>/finances
    users

Architecture:
    - point get / require / add / update / delete by id; each write commits
      on its own, so two related writes (a task and the project's vendor
      list) are independent and may be observed in either order
    - array_union / array_remove replace list-valued fields whole
    - subscribe() delivers the full collection on attach and after every
      committed write to that path; Subscription.unsubscribe() and
      Store.detach_owner() end listener lifecycles explicitly

Permission-denied errors raised by a listener that is being torn down are
expected (logout races) and are logged at DEBUG instead of surfacing.

Usage:
    store = get_store()
    sub = store.subscribe(f"projects/{pid}/tasks", on_snapshot, owner=user.id)
    store.array_union("projects", pid, "team_members", user_id)
    store.detach_owner(user.id)
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from flask import Flask, current_app

from atelier.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from atelier.models import db
from atelier.models.auth import User
from atelier.models.financial import FinancialRecord
from atelier.models.project import MEMBERSHIP_FIELDS, Project, ProjectDocument, ProjectMeeting
from atelier.models.task import Task

logger = logging.getLogger(__name__)

# Child collection name → model.  All child models carry ``project_id``.
_CHILD_COLLECTIONS = {
    "tasks": Task,
    "documents": ProjectDocument,
    "meetings": ProjectMeeting,
    "finances": FinancialRecord,
}

# List-valued fields that array_union / array_remove may touch, per model.
_ARRAY_FIELDS = {
    Project: MEMBERSHIP_FIELDS | {"client_ids"},
    Task: {"dependencies"},
    ProjectDocument: {"shared_with"},
    ProjectMeeting: {"attendees"},
    User: {"tenant_ids"},
}


def parse_path(path: str) -> tuple[type, str | None]:
    """Return ``(model, project_id)`` for a collection path."""
    parts = [p for p in (path or "").strip("/").split("/") if p]
    if parts == ["projects"]:
        return Project, None
    if parts == ["users"]:
        return User, None
    if len(parts) == 3 and parts[0] == "projects" and parts[2] in _CHILD_COLLECTIONS:
        return _CHILD_COLLECTIONS[parts[2]], parts[1]
    raise ValidationError(f"Unknown collection path: {path!r}", details={"path": path})


def collection_path_for(instance) -> str:
    if isinstance(instance, Project):
        return "projects"
    if isinstance(instance, User):
        return "users"
    for name, model in _CHILD_COLLECTIONS.items():
        if isinstance(instance, model):
            return f"projects/{instance.project_id}/{name}"
    raise ValidationError(f"{type(instance).__name__} is not stored in a collection")


class Subscription:
    """One listener on one collection path."""

    def __init__(self, store: Store, path: str, on_snapshot: Callable,
                 on_error: Callable | None = None, owner: str | None = None):
        self.store = store
        self.path = path
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.owner = owner
        self.active = True
        self.closing = False

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.closing = True
        self.store._remove(self)
        self.active = False

    def __repr__(self):
        state = "active" if self.active else "closed"
        return f"<Subscription {self.path} owner={self.owner} {state}>"


class Store:
    """Session-backed store with collection listeners."""

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def init_app(self, app: Flask) -> None:
        app.extensions["store"] = self

    # ── reads ────────────────────────────────────────────────────────────

    def snapshot(self, path: str) -> list:
        model, project_id = parse_path(path)
        query = model.query
        if project_id is not None:
            query = query.filter_by(project_id=project_id)
        return query.all()

    def get(self, path: str, doc_id: str):
        model, project_id = parse_path(path)
        instance = db.session.get(model, doc_id)
        if instance is None:
            return None
        if project_id is not None and instance.project_id != project_id:
            return None
        return instance

    def require(self, path: str, doc_id: str):
        instance = self.get(path, doc_id)
        if instance is None:
            raise NotFoundError(resource=parse_path(path)[0].__name__, resource_id=doc_id)
        return instance

    # ── writes ───────────────────────────────────────────────────────────

    def add(self, path: str, instance):
        model, project_id = parse_path(path)
        if not isinstance(instance, model):
            raise ValidationError(
                f"{type(instance).__name__} cannot be stored under {path!r}",
            )
        if project_id is not None:
            instance.project_id = project_id
        db.session.add(instance)
        self._commit(path)
        return instance

    def update(self, path: str, doc_id: str, **fields):
        instance = self.require(path, doc_id)
        for key, value in fields.items():
            if not hasattr(type(instance), key):
                raise ValidationError(f"Unknown field {key!r}", details={key: "unknown"})
            setattr(instance, key, value)
        self._commit(path)
        return instance

    def save(self, instance):
        """Commit pending changes on ``instance`` (and its children) as one write."""
        path = collection_path_for(instance)
        db.session.add(instance)
        self._commit(path)
        return instance

    def delete(self, path: str, doc_id: str) -> None:
        instance = self.require(path, doc_id)
        db.session.delete(instance)
        self._commit(path)

    def array_union(self, path: str, doc_id: str, field: str, *values):
        """Append each value not already present, replacing the list whole."""
        instance = self.require(path, doc_id)
        current = self._array(instance, field)
        merged = current + [v for v in dict.fromkeys(values) if v and v not in current]
        if merged != current:
            setattr(instance, field, merged)
            self._commit(path)
        return instance

    def array_remove(self, path: str, doc_id: str, field: str, *values):
        instance = self.require(path, doc_id)
        current = self._array(instance, field)
        kept = [v for v in current if v not in values]
        if kept != current:
            setattr(instance, field, kept)
            self._commit(path)
        return instance

    def _array(self, instance, field: str) -> list:
        if field not in _ARRAY_FIELDS.get(type(instance), set()):
            raise ValidationError(
                f"{field!r} is not a list field of {type(instance).__name__}",
                details={field: "not an array field"},
            )
        return list(getattr(instance, field) or [])

    def _commit(self, path: str) -> None:
        db.session.commit()
        self.notify(path)

    # ── listeners ────────────────────────────────────────────────────────

    def subscribe(self, path: str, on_snapshot: Callable, on_error: Callable | None = None,
                  owner: str | None = None) -> Subscription:
        parse_path(path)
        sub = Subscription(self, path, on_snapshot, on_error, owner)
        with self._lock:
            self._subscriptions.setdefault(path, []).append(sub)
        logger.debug("Listener attached to %s (owner=%s)", path, owner)
        self._deliver(sub, self.snapshot(path))
        return sub

    def notify(self, path: str) -> None:
        with self._lock:
            subs = list(self._subscriptions.get(path, []))
        if not subs:
            return
        docs = self.snapshot(path)
        for sub in subs:
            self._deliver(sub, docs)

    def detach_owner(self, owner: str) -> int:
        """Tear down every listener owned by ``owner`` (logout)."""
        with self._lock:
            owned = [s for subs in self._subscriptions.values() for s in subs if s.owner == owner]
        for sub in owned:
            sub.unsubscribe()
        if owned:
            logger.info("Detached %d listener(s) for %s", len(owned), owner,
                        extra={"user_id": owner})
        return len(owned)

    def listener_count(self, path: str | None = None) -> int:
        with self._lock:
            if path is not None:
                return len(self._subscriptions.get(path, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def report_error(self, sub: Subscription, exc: Exception) -> None:
        """Route a listener failure; teardown permission errors are swallowed."""
        if isinstance(exc, PermissionDenied) and (sub.closing or not sub.active):
            logger.debug("Suppressed permission error during teardown of %s: %s", sub.path, exc)
            return
        if sub.on_error is not None:
            sub.on_error(exc)
        else:
            logger.error("Listener on %s failed: %s", sub.path, exc, exc_info=exc)

    def _deliver(self, sub: Subscription, docs: list) -> None:
        if not sub.active:
            return
        try:
            sub.on_snapshot(docs)
        except Exception as exc:
            self.report_error(sub, exc)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.path, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscriptions.pop(sub.path, None)


def get_store() -> Store:
    return current_app.extensions["store"]
