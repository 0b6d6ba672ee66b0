"""Per-startup task status catalog.

Statuses are data, not an enum: each startup owns its own rows in
``task_statuses`` and may rename or add columns to its board. The single
name "Done" keeps its reward semantics wherever it appears.

A startup with no statuses is seeded lazily with
``["To Do", "In Progress", "Done"]`` on first access. Seeding is
idempotent: the "already has >= 1 status" guard makes repeat calls
no-ops, and the unique (tenant_id, name) constraint turns a racing
double seed into an IntegrityError that is rolled back and re-read.

Usage:
    from app.services import status_catalog

    statuses = status_catalog.get_statuses(tenant_id)
    status = status_catalog.resolve(tenant_id, status_id)
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.models import db
from app.models.task import DEFAULT_TASK_STATUSES, DONE_STATUS_NAME, TaskStatus
from app.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


def _status_count(tenant_id: int) -> int:
    return db.session.execute(
        select(func.count(TaskStatus.id)).where(TaskStatus.tenant_id == tenant_id)
    ).scalar_one()


def ensure_defaults(tenant_id: int) -> bool:
    """Seed the default statuses for a startup that has none.

    Safe to call on every read path. Runs inside a savepoint so a lost
    seeding race does not discard the caller's pending work.

    Returns:
        True if this call created the defaults, False otherwise.
    """
    if _status_count(tenant_id) > 0:
        return False

    try:
        with db.session.begin_nested():
            for position, name in enumerate(DEFAULT_TASK_STATUSES):
                db.session.add(TaskStatus(tenant_id=tenant_id, name=name, position=position))
    except IntegrityError:
        logger.info("Default statuses for tenant_id=%s seeded concurrently", tenant_id)
        return False

    logger.info("Seeded default task statuses tenant_id=%s", tenant_id)
    return True


def get_statuses(tenant_id: int) -> list[TaskStatus]:
    """Return the startup's statuses in board order, seeding defaults first."""
    ensure_defaults(tenant_id)
    return list(
        db.session.execute(
            select(TaskStatus)
            .where(TaskStatus.tenant_id == tenant_id)
            .order_by(TaskStatus.position, TaskStatus.created_at)
        ).scalars()
    )


def first_status(tenant_id: int) -> TaskStatus:
    """Initial status for new tasks when the caller supplies none."""
    return get_statuses(tenant_id)[0]


def resolve(tenant_id: int, status_id: str) -> TaskStatus:
    """Look up a status inside one startup.

    Raises:
        NotFoundError: If the id is unknown or belongs to another startup.
    """
    return get_scoped(TaskStatus, status_id, tenant_id=tenant_id)


def is_terminal(status: TaskStatus | None) -> bool:
    """Exact, case-sensitive comparison against "Done"."""
    return status is not None and status.name == DONE_STATUS_NAME
