"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Limits are keyed by the authenticated caller when the JWT middleware
resolved one, else by remote address, so users behind one NAT do not
share a bucket.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def _caller_rate_limit_key():
    """Dynamic rate limit key: JWT user id if available, else remote IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is not None:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per caller):
        - Timer endpoints:  TIMER_RATE_LIMIT (default 30/minute)
        - Task endpoints:   TASK_RATE_LIMIT  (default 120/minute)
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    timer_limit = app.config.get("TIMER_RATE_LIMIT", "30/minute")
    task_limit = app.config.get("TASK_RATE_LIMIT", "120/minute")

    bp = app.blueprints.get("task_timer")
    if bp:
        limiter.limit(timer_limit, key_func=_caller_rate_limit_key)(bp)

    bp = app.blueprints.get("tasks")
    if bp:
        limiter.limit(task_limit, key_func=_caller_rate_limit_key)(bp)

    # Health probes are exempt
    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: timer=%s tasks=%s", timer_limit, task_limit)
