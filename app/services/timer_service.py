"""Task work-timer engine.

State machine per task, two states:

    Idle     is_timer_running = False, timer_started_at = None
    Running  is_timer_running = True,  timer_started_at = <start>

    start_timer   Idle    → Running
    pause_timer   Running → Idle   (closes the session into a log row)
    stop_timer    Running → Idle   (identical to pause_timer)

There is no "paused but not yet logged" state: pausing logs the session,
and resuming later opens a brand new session and log row. pause and stop
are kept as separate entry points for API compatibility; both call
close_session(), and ``mode`` only appears in the log line.

Concurrency:
  Every transition is a compare-and-swap UPDATE guarded by
  (id, is_timer_running, timer_version). If another request changed the
  timer between our read and our write, zero rows match and the call
  fails with InvalidStateError instead of overwriting a start time or
  losing a session. total_time_spent is incremented in SQL.

Transaction policy: each public operation commits on success and rolls
back before raising InvalidStateError from a lost race.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from app.core.exceptions import InvalidStateError, UnauthorizedError
from app.models import db
from app.models.task import Task, TimeTrackingLog
from app.services import membership_service
from app.services.task_service import get_task_or_404
from app.utils.helpers import as_utc

logger = logging.getLogger(__name__)

CLOSE_MODES = ("pause", "stop")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _session_duration(started_at: datetime, ended_at: datetime) -> int:
    """Whole seconds between two instants, floored, never negative."""
    seconds = int((ended_at - as_utc(started_at)).total_seconds())
    return max(seconds, 0)


# ── Start ────────────────────────────────────────────────────────────────────


def start_timer(task_id: str, caller_id: int) -> dict:
    """Open a work session on the task.

    Only an assignee or the task's creator may run its timer.

    Returns:
        Serialized task in the Running state.

    Raises:
        NotFoundError: Unknown task.
        UnauthorizedError: Caller is neither assignee nor creator.
        InvalidStateError: A session is already open.
    """
    task = get_task_or_404(task_id)
    if task.created_by != caller_id and not membership_service.is_assignee(task.id, caller_id):
        raise UnauthorizedError(caller_id, "track time for this task", "assignees or the creator only")

    if task.is_timer_running:
        raise InvalidStateError("timer already running", current_state="running")

    now = _utcnow()
    result = db.session.execute(
        update(Task)
        .where(
            Task.id == task.id,
            Task.is_timer_running.is_(False),
            Task.timer_version == task.timer_version,
        )
        .values(
            is_timer_running=True,
            timer_started_at=now,
            timer_version=Task.timer_version + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        logger.info("Timer start lost race task_id=%s user_id=%s", task.id, caller_id)
        raise InvalidStateError("timer already running", current_state="running")

    db.session.commit()
    db.session.refresh(task)
    logger.info("Timer started task_id=%s user_id=%s", task.id, caller_id)
    return task.to_dict()


# ── Close (pause / stop) ─────────────────────────────────────────────────────


def close_session(task_id: str, caller_id: int, note: str | None = None, mode: str = "stop") -> dict:
    """Close the open session into a TimeTrackingLog and return to Idle.

    Any member of the task's startup may close the session; the log row
    records the closing user.

    Returns:
        {"task": dict, "time_log": dict}

    Raises:
        NotFoundError: Unknown task.
        UnauthorizedError: Caller is not a startup member.
        InvalidStateError: No session is open. No log row is written.
    """
    if mode not in CLOSE_MODES:
        raise ValueError(f"mode must be one of {CLOSE_MODES}, got {mode!r}")

    task = get_task_or_404(task_id)
    if not membership_service.is_tenant_member(caller_id, task.tenant_id):
        raise UnauthorizedError(caller_id, f"{mode} the timer for this task", "not a member of this startup")

    if not task.is_timer_running or task.timer_started_at is None:
        raise InvalidStateError("timer not running", current_state="idle")

    started_at = as_utc(task.timer_started_at)
    now = _utcnow()
    duration = _session_duration(started_at, now)

    result = db.session.execute(
        update(Task)
        .where(
            Task.id == task.id,
            Task.is_timer_running.is_(True),
            Task.timer_version == task.timer_version,
        )
        .values(
            is_timer_running=False,
            timer_started_at=None,
            timer_version=Task.timer_version + 1,
            total_time_spent=Task.total_time_spent + duration,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        logger.info("Timer %s lost race task_id=%s user_id=%s", mode, task.id, caller_id)
        raise InvalidStateError("timer not running", current_state="changed")

    log = TimeTrackingLog(
        task_id=task.id,
        user_id=caller_id,
        start_time=started_at,
        end_time=now,
        duration=duration,
        note=note or "",
    )
    db.session.add(log)
    db.session.commit()
    db.session.refresh(task)

    logger.info(
        "Timer %s task_id=%s user_id=%s duration=%ss total=%ss",
        mode, task.id, caller_id, duration, task.total_time_spent,
    )
    return {"task": task.to_dict(), "time_log": log.to_dict()}


def pause_timer(task_id: str, caller_id: int, note: str | None = None) -> dict:
    return close_session(task_id, caller_id, note=note, mode="pause")


def stop_timer(task_id: str, caller_id: int, note: str | None = None) -> dict:
    return close_session(task_id, caller_id, note=note, mode="stop")


# ── Logs ─────────────────────────────────────────────────────────────────────


def get_time_logs(task_id: str, caller_id: int) -> list[dict]:
    """Closed sessions for a task, most recent first.

    Readable by any assignee, the creator, or any startup member.
    """
    task = get_task_or_404(task_id)
    allowed = (
        task.created_by == caller_id
        or membership_service.is_assignee(task.id, caller_id)
        or membership_service.is_tenant_member(caller_id, task.tenant_id)
    )
    if not allowed:
        raise UnauthorizedError(caller_id, "view time logs for this task")

    logs = db.session.execute(
        select(TimeTrackingLog)
        .where(TimeTrackingLog.task_id == task.id)
        .order_by(TimeTrackingLog.start_time.desc(), TimeTrackingLog.created_at.desc())
    ).scalars().all()
    return [log.to_dict() for log in logs]
