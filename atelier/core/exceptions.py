"""
Platform-wide exception hierarchy.

Services raise these; the app factory registers one JSON error handler per
type so every blueprint gets the same HTTP status codes.

Pure derivation functions (progress, blocking, status, capabilities,
pending actions) never raise for data-shape problems; they degrade to safe
defaults.  These exceptions belong to I/O-adjacent operations.

Usage:
    from atelier.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Task", resource_id=task_id)
    raise ValidationError("gate must be start or completion", details={"gate": gate})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for both genuinely missing records and cross-tenant lookups, so a
    caller cannot tell a hidden resource from an absent one.

    Maps to HTTP 404.
    """

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        tenant_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.  Maps to HTTP 409."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class PermissionDenied(Exception):
    """Raised when a user's capability set lacks the action.  Maps to HTTP 403."""

    def __init__(self, user_id: str | None, action: str, reason: str | None = None) -> None:
        msg = f"User {user_id} does not have permission for '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.user_id = user_id
        self.action = action
        self.reason = reason


class LoginDenied(PermissionDenied):
    """Raised when an authenticated identity has no usable profile."""

    def __init__(self, uid: str, reason: str = "no profile") -> None:
        super().__init__(uid, "login", reason)


class TransitionError(Exception):
    """Raised when a task lifecycle action is invalid for the current status.

    Maps to HTTP 409.
    """

    def __init__(self, task_id: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' task {task_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.task_id = task_id
        self.action = action
        self.current_status = current
        self.reason = reason


class TaskBlockedError(TransitionError):
    """Raised when a task cannot move because prerequisites are not done."""

    def __init__(self, task_id: str, action: str, current: str, blocking_task_ids: list[str]):
        super().__init__(
            task_id, action, current,
            f"Blocked by {len(blocking_task_ids)} unfinished dependency task(s)",
        )
        self.blocking_task_ids = blocking_task_ids


class AuthenticationError(Exception):
    """Raised when a presented credential cannot be verified.  Maps to HTTP 401."""
