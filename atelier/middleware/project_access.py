"""
Project access decorator — capability check for project-scoped routes.

Usage:
    @bp.route("/projects/<project_id>/financials", methods=["POST"])
    @require_project_capability("can_manage_financials")
    def add_financial(project_id):
        project = g.project          # loaded and checked
        user = g.current_user

The capability name is any field of ``ProjectAccess``.  A project the user
cannot view is reported as 404 so hidden projects are indistinguishable from
missing ones; a visible project lacking the capability is 403.
"""

import functools
import logging

from flask import g, request

from atelier.core.exceptions import NotFoundError, PermissionDenied
from atelier.models import db
from atelier.models.auth import User
from atelier.models.project import Project
from atelier.services.access_policy import get_project_access

logger = logging.getLogger(__name__)


def current_user() -> User:
    """The profile behind the request's access token."""
    user_id = getattr(g, "jwt_user_id", None)
    user = db.session.get(User, user_id) if user_id else None
    if user is None:
        raise PermissionDenied(user_id, "authenticate", "profile not found")
    g.current_user = user
    return user


def require_project_capability(capability: str = "can_view_project",
                               param_name: str = "project_id"):
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            project_id = kwargs.get(param_name) or (request.view_args or {}).get(param_name)
            project = db.session.get(Project, project_id) if project_id else None

            access = get_project_access(user, project)
            if project is None or not access.can_view_project:
                raise NotFoundError(resource="Project", resource_id=project_id)
            if not getattr(access, capability, False):
                logger.warning(
                    "User %s denied %s on project %s", user.id, capability, project_id,
                    extra={"user_id": user.id, "project_id": project_id,
                           "event_type": "access.denied"},
                )
                raise PermissionDenied(user.id, capability)

            g.project = project
            g.project_access = access
            return f(*args, **kwargs)
        return decorated
    return decorator
