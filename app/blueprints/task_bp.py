"""
Startup Task Engine
Task Blueprint — HTTP surface for tasks, statuses, timers and the freelance board.

Endpoints:
    Statuses & tasks:
        GET    /api/v1/tasks/statuses/<tenant_id>       — Status catalog (seeds defaults)
        GET    /api/v1/tasks/startup/<tenant_id>        — All tasks of a startup
        GET    /api/v1/tasks/mine                       — Tasks assigned to the caller
        POST   /api/v1/tasks                            — Create task
        GET    /api/v1/tasks/<id>                       — Detail
        PUT    /api/v1/tasks/<id>                       — Partial update
        PATCH  /api/v1/tasks/<id>/status                — Change status (Done → rewards)
        DELETE /api/v1/tasks/<id>                       — Delete (creator / owner)

    Freelance marketplace:
        GET    /api/v1/tasks/freelance                  — Open freelance tasks
        GET    /api/v1/tasks/freelance/my               — Tasks the caller has claimed
        POST   /api/v1/tasks/freelance/<id>/accept      — Claim
        POST   /api/v1/tasks/freelance/<id>/cancel      — Release

    Timer (task_timer_bp):
        POST   /api/v1/tasks/<id>/timer/start           — Open a work session
        POST   /api/v1/tasks/<id>/timer/pause           — Close session (log it)
        POST   /api/v1/tasks/<id>/timer/stop            — Close session (log it)
        GET    /api/v1/tasks/<id>/time-logs             — Closed sessions, newest first

Every endpoint requires a Bearer JWT; the caller id comes from g.jwt_user_id.
Business rules live in the services; this module only parses and maps errors.
"""

import logging

from flask import Blueprint, g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.middleware.jwt_auth import require_jwt_user
from app.services import freelance_service, task_service, timer_service
from app.utils.errors import E, api_error, domain_error

logger = logging.getLogger(__name__)

task_bp = Blueprint("tasks", __name__, url_prefix="/api/v1/tasks")
task_timer_bp = Blueprint("task_timer", __name__, url_prefix="/api/v1/tasks")


# ═════════════════════════════════════════════════════════════════════════
# Error handlers
# ═════════════════════════════════════════════════════════════════════════


def _register_error_handlers(bp: Blueprint) -> None:
    @bp.errorhandler(NotFoundError)
    @bp.errorhandler(InvalidStateError)
    @bp.errorhandler(ValidationError)
    def _handle_domain_error(error: Exception):
        return domain_error(error)

    @bp.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        logger.info("Forbidden user_id=%s action=%s", error.user_id, error.action)
        return domain_error(error)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ═════════════════════════════════════════════════════════════════════════
# Statuses & tasks  (/api/v1/tasks)
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("/statuses/<int:tenant_id>", methods=["GET"])
@require_jwt_user
def list_statuses(tenant_id):
    return jsonify(task_service.list_statuses(tenant_id, g.jwt_user_id))


@task_bp.route("/startup/<int:tenant_id>", methods=["GET"])
@require_jwt_user
def list_startup_tasks(tenant_id):
    return jsonify(task_service.list_tenant_tasks(tenant_id, g.jwt_user_id))


@task_bp.route("/mine", methods=["GET"])
@require_jwt_user
def list_my_tasks():
    return jsonify(task_service.list_user_tasks(g.jwt_user_id))


@task_bp.route("", methods=["POST"])
@require_jwt_user
def create_task():
    """Create a task. Body: tenant_id, title, description, priority,
    due_date, status_id, assignee_ids, is_freelance, estimated_hours,
    hourly_rate, base_points."""
    data = _json_body()
    tenant_id = data.get("tenant_id")
    if tenant_id is None:
        return api_error(E.VALIDATION_REQUIRED, "tenant_id is required", details={"tenant_id": "required"})
    try:
        tenant_id = int(tenant_id)
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "tenant_id must be an integer", details={"tenant_id": "invalid"})

    task = task_service.create_task(tenant_id, g.jwt_user_id, data, data.get("assignee_ids"))
    return jsonify(task), 201


@task_bp.route("/<task_id>", methods=["GET"])
@require_jwt_user
def get_task(task_id):
    return jsonify(task_service.get_task(task_id, g.jwt_user_id))


@task_bp.route("/<task_id>", methods=["PUT"])
@require_jwt_user
def update_task(task_id):
    return jsonify(task_service.update_task(task_id, g.jwt_user_id, _json_body()))


@task_bp.route("/<task_id>/status", methods=["PATCH"])
@require_jwt_user
def change_status(task_id):
    data = _json_body()
    status_id = data.get("status_id")
    if not status_id:
        return api_error(E.VALIDATION_REQUIRED, "status_id is required", details={"status_id": "required"})
    return jsonify(task_service.change_status(task_id, g.jwt_user_id, status_id))


@task_bp.route("/<task_id>", methods=["DELETE"])
@require_jwt_user
def delete_task(task_id):
    task_service.delete_task(task_id, g.jwt_user_id)
    return jsonify({"message": "Task deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Freelance marketplace  (/api/v1/tasks/freelance)
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("/freelance", methods=["GET"])
@require_jwt_user
def list_open_freelance():
    return jsonify(freelance_service.list_open_freelance_tasks())


@task_bp.route("/freelance/my", methods=["GET"])
@require_jwt_user
def list_my_freelance():
    return jsonify(freelance_service.list_my_freelance_tasks(g.jwt_user_id))


@task_bp.route("/freelance/<task_id>/accept", methods=["POST"])
@require_jwt_user
def accept_freelance(task_id):
    task = freelance_service.accept_freelance_task(task_id, g.jwt_user_id)
    return jsonify({"message": "Task accepted successfully", "task": task})


@task_bp.route("/freelance/<task_id>/cancel", methods=["POST"])
@require_jwt_user
def cancel_freelance(task_id):
    task = freelance_service.cancel_freelance_task(task_id, g.jwt_user_id)
    return jsonify({"message": "Task cancelled successfully", "task": task})


# ═════════════════════════════════════════════════════════════════════════
# Timer  (/api/v1/tasks/<id>/timer, /api/v1/tasks/<id>/time-logs)
# ═════════════════════════════════════════════════════════════════════════


@task_timer_bp.route("/<task_id>/timer/start", methods=["POST"])
@require_jwt_user
def start_timer(task_id):
    return jsonify(timer_service.start_timer(task_id, g.jwt_user_id))


@task_timer_bp.route("/<task_id>/timer/pause", methods=["POST"])
@require_jwt_user
def pause_timer(task_id):
    note = _json_body().get("note")
    return jsonify(timer_service.pause_timer(task_id, g.jwt_user_id, note=note))


@task_timer_bp.route("/<task_id>/timer/stop", methods=["POST"])
@require_jwt_user
def stop_timer(task_id):
    note = _json_body().get("note")
    return jsonify(timer_service.stop_timer(task_id, g.jwt_user_id, note=note))


@task_timer_bp.route("/<task_id>/time-logs", methods=["GET"])
@require_jwt_user
def list_time_logs(task_id):
    return jsonify(timer_service.get_time_logs(task_id, g.jwt_user_id))


for _bp in (task_bp, task_timer_bp):
    _register_error_handlers(_bp)
