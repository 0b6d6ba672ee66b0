"""Task service — the façade external callers use for task CRUD and status.

Operations:
- list_statuses        (any startup member; seeds defaults)
- create_task          (startup member; title required)
- get_task             (startup member)
- list_tenant_tasks    (startup member)
- list_user_tasks      (tasks the user is assigned to)
- update_task          (startup member; partial update, assignee replace)
- change_status        (startup member; non-Done → Done credits assignees)
- delete_task          (creator or startup owner; cascades links + logs)

Timer operations live in app.services.timer_service and freelance
marketplace operations in app.services.freelance_service.

Rules:
  - Authorization is always delegated to membership_service.
  - Any startup member may edit, reassign or move a task.
  - db.session.commit() happens at the end of each public operation.
"""

import logging

from sqlalchemy import delete, select, update

from app.core.exceptions import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from app.models import db
from app.models.auth import Tenant
from app.models.task import TASK_PRIORITIES, Task, TaskAssignee, TimeTrackingLog
from app.services import completion_rewarder, membership_service, status_catalog
from app.services.freelance_service import apply_freelance_pricing
from app.utils.helpers import parse_datetime, utcnow

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("title", "description")


# ── Internal helpers ─────────────────────────────────────────────────────────


def get_task_or_404(task_id: str) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _require_member(user_id: int, tenant_id: int, action: str) -> None:
    if not membership_service.is_tenant_member(user_id, tenant_id):
        raise UnauthorizedError(user_id, action, "not a member of this startup")


def _normalize_priority(value) -> str:
    if value is None:
        value = "medium"
    if not isinstance(value, str):
        raise ValidationError("priority must be a string", details={"priority": "invalid"})
    priority = value.strip().lower()
    if priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"priority must be one of: {', '.join(sorted(TASK_PRIORITIES))}",
            details={"priority": "invalid"},
        )
    return priority


def _clean_text(value, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    return value.strip()


def _parse_due_date(value):
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"due_date": "invalid"}) from exc


def _normalize_assignee_ids(assignee_ids) -> list[int]:
    """De-duplicate while keeping first-seen order."""
    if assignee_ids is None:
        return []
    if not isinstance(assignee_ids, (list, tuple, set)):
        raise ValidationError("assignee_ids must be a list", details={"assignee_ids": "invalid"})
    seen = []
    for raw in assignee_ids:
        try:
            uid = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Invalid assignee id: {raw!r}", details={"assignee_ids": "invalid"},
            ) from exc
        if uid not in seen:
            seen.append(uid)
    return seen


def _replace_assignees(task: Task, assignee_ids: list[int]) -> None:
    """Delete-then-recreate: the new list is the whole set, never a merge."""
    db.session.execute(delete(TaskAssignee).where(TaskAssignee.task_id == task.id))
    db.session.flush()
    db.session.expire(task, ["assignee_links"])
    for uid in assignee_ids:
        db.session.add(TaskAssignee(task_id=task.id, user_id=uid))
    db.session.flush()
    db.session.expire(task, ["assignee_links"])


# ── Statuses ─────────────────────────────────────────────────────────────────


def list_statuses(tenant_id: int, caller_id: int) -> list[dict]:
    _require_member(caller_id, tenant_id, "view task statuses")
    statuses = status_catalog.get_statuses(tenant_id)
    db.session.commit()
    return [s.to_dict() for s in statuses]


# ── CRUD ─────────────────────────────────────────────────────────────────────


def create_task(tenant_id: int, creator_id: int, data: dict, assignee_ids=None) -> dict:
    """Create a task on a startup's board.

    Args:
        tenant_id: Owning startup.
        creator_id: Calling user; must be a member of the startup.
        data: title (required), description, priority, due_date, status_id,
              plus freelance fields (is_freelance, estimated_hours,
              hourly_rate, base_points).
        assignee_ids: User ids, trusted as pre-validated by the caller.
                      Ignored for freelance tasks.

    Returns:
        Serialized task.

    Raises:
        NotFoundError: Unknown startup or status.
        UnauthorizedError: Creator is not a member.
        ValidationError: Missing title, bad priority or due date.
    """
    if db.session.get(Tenant, tenant_id) is None:
        raise NotFoundError(resource="Tenant", resource_id=tenant_id)
    _require_member(creator_id, tenant_id, "create tasks for this startup")

    title = _clean_text(data.get("title"), "title")
    if not title:
        raise ValidationError("Task title is required", details={"title": "required"})

    priority = _normalize_priority(data.get("priority"))
    due_date = _parse_due_date(data.get("due_date"))

    status_id = data.get("status_id")
    if status_id:
        status_catalog.ensure_defaults(tenant_id)
        status = status_catalog.resolve(tenant_id, status_id)
    else:
        status = status_catalog.first_status(tenant_id)

    task = Task(
        tenant_id=tenant_id,
        title=title,
        description=_clean_text(data.get("description"), "description"),
        priority=priority,
        due_date=due_date,
        status_id=status.id,
        created_by=creator_id,
        is_timer_running=False,
        timer_started_at=None,
        total_time_spent=0,
    )
    apply_freelance_pricing(task, data, now=utcnow())
    db.session.add(task)
    db.session.flush()

    if not task.is_freelance:
        for uid in _normalize_assignee_ids(assignee_ids):
            db.session.add(TaskAssignee(task_id=task.id, user_id=uid))

    db.session.commit()
    logger.info(
        "Task created task_id=%s tenant_id=%s status=%s assignees=%s",
        task.id, tenant_id, status.name, task.assignee_ids,
    )
    return task.to_dict()


def get_task(task_id: str, caller_id: int) -> dict:
    task = get_task_or_404(task_id)
    _require_member(caller_id, task.tenant_id, "view this task")
    return task.to_dict()


def list_tenant_tasks(tenant_id: int, caller_id: int) -> list[dict]:
    _require_member(caller_id, tenant_id, "access this startup")
    status_catalog.ensure_defaults(tenant_id)
    db.session.commit()
    tasks = Task.query_for_tenant(tenant_id).order_by(Task.created_at, Task.id).all()
    return [t.to_dict() for t in tasks]


def list_user_tasks(user_id: int) -> list[dict]:
    """Tasks assigned to ``user_id`` across all startups, soonest due first."""
    tasks = db.session.execute(
        select(Task)
        .join(TaskAssignee, TaskAssignee.task_id == Task.id)
        .where(TaskAssignee.user_id == user_id)
        .order_by(Task.due_date.is_(None), Task.due_date, Task.created_at)
    ).unique().scalars().all()
    return [t.to_dict() for t in tasks]


def update_task(task_id: str, caller_id: int, data: dict) -> dict:
    """Partial update: only keys present in ``data`` are changed.

    - ``due_date: null`` clears the due date.
    - ``assignee_ids`` replaces the whole assignee set.
    - ``status_id`` is applied through change_status so that a move into
      "Done" credits assignees exactly as the status endpoint does.

    Raises:
        NotFoundError, UnauthorizedError, ValidationError, InvalidStateError
    """
    task = get_task_or_404(task_id)
    _require_member(caller_id, task.tenant_id, "update this task")

    # Validate everything before touching the row
    changes = {}
    for field in _TEXT_FIELDS:
        if field in data:
            changes[field] = _clean_text(data[field], field)
    if "title" in changes and not changes["title"]:
        raise ValidationError("Task title cannot be empty", details={"title": "required"})
    if "priority" in data:
        changes["priority"] = _normalize_priority(data["priority"])
    if "due_date" in data:
        changes["due_date"] = _parse_due_date(data["due_date"])
    new_assignees = None
    if "assignee_ids" in data:
        new_assignees = _normalize_assignee_ids(data["assignee_ids"])
    new_status_id = data.get("status_id")
    if new_status_id:
        status_catalog.resolve(task.tenant_id, new_status_id)

    for field, value in changes.items():
        setattr(task, field, value)
    if new_assignees is not None:
        _replace_assignees(task, new_assignees)
    task.updated_at = utcnow()
    db.session.flush()

    if new_status_id and new_status_id != task.status_id:
        # change_status commits
        return change_status(task_id, caller_id, new_status_id)["task"]

    db.session.commit()
    logger.info("Task updated task_id=%s fields=%s", task.id, sorted(data))
    return task.to_dict()


def change_status(task_id: str, caller_id: int, new_status_id: str) -> dict:
    """Move a task to another status of its startup.

    Any status may move to any other; the only special edge is
    non-Done → Done, which credits the current assignees once.
    Done → Done is a no-op for rewards.

    Returns:
        {"task": dict, "previous_status": str, "new_status": str,
         "completed": bool, "rewards": [...]}

    Raises:
        NotFoundError: Unknown task, or status id not in the task's startup.
        UnauthorizedError: Caller is not a member.
        InvalidStateError: The status changed since this request read it.
    """
    task = get_task_or_404(task_id)
    _require_member(caller_id, task.tenant_id, "update this task")
    if not new_status_id:
        raise ValidationError("status_id is required", details={"status_id": "required"})

    old_status = status_catalog.resolve(task.tenant_id, task.status_id)
    new_status = status_catalog.resolve(task.tenant_id, new_status_id)
    is_completing = (not status_catalog.is_terminal(old_status)) and status_catalog.is_terminal(new_status)

    # Conditional on the status this request read; a concurrent move wins
    result = db.session.execute(
        update(Task)
        .where(Task.id == task.id, Task.status_id == old_status.id)
        .values(status_id=new_status.id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        logger.info("Status change lost race task_id=%s user_id=%s", task_id, caller_id)
        raise InvalidStateError("task status changed concurrently", current_state="changed")
    db.session.refresh(task)

    rewards = []
    if is_completing:
        rewards = completion_rewarder.reward_completion(task)

    db.session.commit()
    logger.info(
        "Task status changed task_id=%s %s -> %s by user_id=%s",
        task.id, old_status.name, new_status.name, caller_id,
    )
    return {
        "task": task.to_dict(),
        "previous_status": old_status.name,
        "new_status": new_status.name,
        "completed": is_completing,
        "rewards": rewards,
    }


def delete_task(task_id: str, caller_id: int) -> None:
    """Delete a task with its assignee links and time logs.

    Raises:
        NotFoundError: Unknown task.
        UnauthorizedError: Caller is neither creator nor startup owner.
    """
    task = get_task_or_404(task_id)
    if not membership_service.is_creator_or_tenant_owner(task.id, caller_id):
        raise UnauthorizedError(caller_id, "delete this task", "only the creator or startup owner may delete")

    db.session.execute(delete(TaskAssignee).where(TaskAssignee.task_id == task.id))
    db.session.execute(delete(TimeTrackingLog).where(TimeTrackingLog.task_id == task.id))
    db.session.expire(task, ["assignee_links"])
    db.session.delete(task)
    db.session.commit()
    logger.info("Task deleted task_id=%s by user_id=%s", task_id, caller_id)
