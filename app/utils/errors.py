"""Standardised API error responses.

Every error body has the same shape::

    {"error": "<human message>", "code": "ERR_...", "details": {...}?}

Usage
-----
    from app.utils.errors import api_error, domain_error, E

    return api_error(E.VALIDATION_REQUIRED, "tenant_id is required")
    return domain_error(exc)   # NotFoundError, UnauthorizedError, ...
"""

from __future__ import annotations

from flask import jsonify

from app.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes returned in the ``code`` field."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # 400, missing request field
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"     # 422, business-rule failure
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"           # 401, no usable bearer token
    FORBIDDEN = "ERR_FORBIDDEN"                       # 403, membership / role check
    NOT_FOUND = "ERR_NOT_FOUND"                       # 404, also cross-startup ids
    CONFLICT_STATE = "ERR_CONFLICT_STATE"             # 409, timer / claim state
    INTERNAL = "ERR_INTERNAL"                         # 500


_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.INTERNAL: 500,
}

# Domain exception → error code; checked in order
_EXCEPTION_CODES: tuple[tuple[type[Exception], str], ...] = (
    (NotFoundError, E.NOT_FOUND),
    (UnauthorizedError, E.FORBIDDEN),
    (InvalidStateError, E.CONFLICT_STATE),
    (ValidationError, E.VALIDATION_INVALID),
)


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return ``(jsonify(body), http_status)`` for a Flask view.

    ``status`` overrides the code's default HTTP status; unknown codes
    fall back to 400. ``details`` is omitted from the body when empty.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def domain_error(exc: Exception):
    """Translate a service-layer exception into an API error response.

    Raises:
        TypeError: ``exc`` is not one of the domain exceptions.
    """
    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            break
    else:
        raise TypeError(f"No API error mapping for {type(exc).__name__}")

    details = None
    if isinstance(exc, ValidationError):
        details = exc.details
    elif isinstance(exc, InvalidStateError) and exc.current_state:
        details = {"current_state": exc.current_state}
    return api_error(code, str(exc), details=details)
