"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_user_id.

The middleware never rejects a request on its own. It only resolves the
caller; endpoints that need an identity check g.jwt_user_id and answer 401
when it is None.
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token, user_id_from_payload
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None

        # Skip non-API routes and probes
        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = user_id_from_payload(payload)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Rejected access token on %s: %s", path, exc)


def require_jwt_user(fn):
    """Decorator: answer 401 unless the JWT middleware resolved a caller."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "jwt_user_id", None) is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return fn(*args, **kwargs)

    return wrapper
