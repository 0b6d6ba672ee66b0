"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them
once and get consistent HTTP status codes everywhere:

    NotFoundError      → 404
    UnauthorizedError  → 403
    InvalidStateError  → 409
    ValidationError    → 422

Usage:
    from app.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Task", resource_id=task_id)
    raise InvalidStateError("timer already running", current_state="running")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for both genuinely missing records and cross-tenant lookups
    (e.g. a status id belonging to another startup): a 404 does not
    confirm that the resource exists elsewhere.

    Args:
        resource: Human-readable entity name (e.g. "Task", "TaskStatus").
        resource_id: The PK that was looked up. Included in logs.
        tenant_id: Optional — the scope that was enforced.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class UnauthorizedError(Exception):
    """Raised when the caller fails a delegated authorization check.

    Args:
        user_id: The caller that was checked.
        action: Short verb for the attempted operation (e.g. "delete task").
        reason: Optional human-readable detail for the response body.
    """

    def __init__(self, user_id: int | None, action: str, reason: str | None = None) -> None:
        self.user_id = user_id
        self.action = action
        msg = f"Not authorized to {action}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidStateError(Exception):
    """Raised when an operation is not allowed in the entity's current state.

    Typical cases: starting a timer that is already running, closing a
    timer that is idle, accepting a freelance task someone else holds.
    The caller can re-read the state and retry.

    Args:
        message: Human-readable explanation.
        current_state: Optional machine-readable state at rejection time.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        self.current_state = current_state
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)
