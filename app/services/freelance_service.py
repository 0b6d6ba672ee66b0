"""Freelance marketplace — tasks a startup posts for outside contributors.

A freelance task has no assignee set; instead exactly one freelancer may
claim it (freelancer_id). Its reward is priced at creation time:

    base_points   = base_points given, else round(estimated_hours * hourly_rate)
    urgency_level = calculate_urgency_level(estimated_hours, due_date)
    total_points  = round(base_points * URGENCY_MULTIPLIERS[urgency_level])

Urgency is re-evaluated whenever the marketplace lists tasks, since it
drifts as the due date approaches.

Rules:
  - Claiming is a compare-and-swap on ``freelancer_id IS NULL`` so two
    freelancers cannot both accept the same task.
  - db.session.commit() happens at the end of each public operation.
"""

import logging
import math

from sqlalchemy import select, update

from app.core.exceptions import InvalidStateError, UnauthorizedError, ValidationError
from app.models import db
from app.models.task import Task
from app.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)

URGENCY_MULTIPLIERS = {
    "CRITICAL": 2.0,
    "HIGH": 1.5,
    "MEDIUM": 1.2,
    "LOW": 1.0,
}

_SECONDS_PER_DAY = 24 * 60 * 60


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _non_negative_number(data: dict, field: str) -> float:
    raw = data.get(field)
    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from exc
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: "invalid"})
    return value


def calculate_urgency_level(estimated_hours, due_date, now=None) -> str:
    """Classify how pressing a freelance task is.

    No due date → MEDIUM. Overdue → CRITICAL. Otherwise the score is the
    share of remaining days the estimate eats up:
    ``hours / max(days_left, 1) * 100`` with >80 CRITICAL, >50 HIGH,
    >30 MEDIUM, else LOW.
    """
    if not due_date:
        return "MEDIUM"
    now = now or utcnow()
    diff_days = math.ceil((as_utc(due_date) - as_utc(now)).total_seconds() / _SECONDS_PER_DAY)
    if diff_days < 0:
        return "CRITICAL"

    score = (float(estimated_hours or 0) / max(diff_days, 1)) * 100
    if score > 80:
        return "CRITICAL"
    if score > 50:
        return "HIGH"
    if score > 30:
        return "MEDIUM"
    return "LOW"


def apply_freelance_pricing(task: Task, data: dict, now=None) -> None:
    """Fill the freelance columns of a new task from request data.

    Non-freelance tasks get neutral values (no points, multiplier 1.0).
    ``task.due_date`` must already be set.
    """
    task.is_freelance = data.get("is_freelance") is True
    task.freelancer_id = None
    if not task.is_freelance:
        task.estimated_hours = 0
        task.hourly_rate = 0
        task.urgency_level = "MEDIUM"
        task.base_points = 0
        task.points_multiplier = 1.0
        task.total_points = 0
        return

    hours = _non_negative_number(data, "estimated_hours")
    rate = _non_negative_number(data, "hourly_rate")
    given_base = _non_negative_number(data, "base_points")

    urgency = calculate_urgency_level(hours or 1, task.due_date, now) if task.due_date else "MEDIUM"
    base_points = _round_half_up(given_base) if given_base else _round_half_up(hours * rate)
    total_points = _round_half_up(base_points * URGENCY_MULTIPLIERS[urgency])

    task.estimated_hours = hours
    task.hourly_rate = rate
    task.urgency_level = urgency
    task.base_points = base_points
    task.total_points = total_points
    task.points_multiplier = total_points / base_points if base_points > 0 else 1.0


def _refresh_urgency(tasks: list[Task], now) -> int:
    """Re-evaluate urgency in place; returns how many rows changed."""
    changed = 0
    for task in tasks:
        if not task.due_date:
            continue
        level = calculate_urgency_level(task.estimated_hours or 1, task.due_date, now)
        if level != task.urgency_level:
            task.urgency_level = level
            changed += 1
    return changed


def _list_freelance(where, now=None) -> list[dict]:
    tasks = db.session.execute(
        select(Task).where(Task.is_freelance.is_(True), *where).order_by(Task.created_at)
    ).unique().scalars().all()
    changed = _refresh_urgency(tasks, now or utcnow())
    if changed:
        db.session.commit()
        logger.info("Freelance urgency refreshed for %d task(s)", changed)
    return [t.to_dict(include_assignees=False) for t in tasks]


def list_open_freelance_tasks(now=None) -> list[dict]:
    """Freelance tasks nobody has claimed yet."""
    return _list_freelance([Task.freelancer_id.is_(None)], now)


def list_my_freelance_tasks(user_id: int, now=None) -> list[dict]:
    return _list_freelance([Task.freelancer_id == user_id], now)


def accept_freelance_task(task_id: str, user_id: int) -> dict:
    """Claim an open freelance task for ``user_id``.

    Raises:
        NotFoundError: Unknown task.
        InvalidStateError: Not a freelance task, or already claimed.
    """
    from app.services.task_service import get_task_or_404

    task = get_task_or_404(task_id)
    if not task.is_freelance:
        raise InvalidStateError("This is not a freelance task", current_state="not_freelance")

    result = db.session.execute(
        update(Task)
        .where(Task.id == task.id, Task.freelancer_id.is_(None))
        .values(freelancer_id=user_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise InvalidStateError(
            "This task has already been accepted by someone else", current_state="claimed",
        )

    db.session.commit()
    db.session.refresh(task)
    logger.info("Freelance task accepted task_id=%s user_id=%s", task.id, user_id)
    return task.to_dict(include_assignees=False)


def cancel_freelance_task(task_id: str, user_id: int) -> dict:
    """Release a claimed freelance task back to the marketplace.

    Raises:
        NotFoundError: Unknown task.
        InvalidStateError: Not a freelance task.
        UnauthorizedError: The task is not claimed by ``user_id``.
    """
    from app.services.task_service import get_task_or_404

    task = get_task_or_404(task_id)
    if not task.is_freelance:
        raise InvalidStateError("This is not a freelance task", current_state="not_freelance")
    if task.freelancer_id != user_id:
        raise UnauthorizedError(user_id, "cancel this task", "you can only cancel tasks assigned to you")

    result = db.session.execute(
        update(Task)
        .where(Task.id == task.id, Task.freelancer_id == user_id)
        .values(freelancer_id=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise UnauthorizedError(user_id, "cancel this task", "you can only cancel tasks assigned to you")

    db.session.commit()
    db.session.refresh(task)
    logger.info("Freelance task released task_id=%s user_id=%s", task.id, user_id)
    return task.to_dict(include_assignees=False)
