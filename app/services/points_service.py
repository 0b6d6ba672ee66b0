"""Points ledger — the user subsystem's credit API.

credit_points() is the only writer of PointsTransaction and of the
User.points / User.level counters.

Rules:
  - User.points is incremented in SQL (``points = points + :amount``),
    never read-modify-written from a possibly stale ORM object.
  - level = points // 100 + 1, recomputed after every transaction and
    written only when it changes.
  - flush() only; the calling service owns the commit.
"""

import logging

from sqlalchemy import select, update

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.auth import User
from app.models.points import PointsTransaction

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 100


def compute_level(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


def credit_points(user_id: int, amount: int, reason: str, meta: dict | None = None) -> dict:
    """Append a transaction and apply it to the user's counters.

    Args:
        user_id: Credited user.
        amount: Signed number of points.
        reason: Short human-readable reason ("Completed a task").
        meta: Opaque JSON context stored on the transaction.

    Returns:
        {"user_id", "points", "level", "level_changed", "transaction_id"}

    Raises:
        NotFoundError: If the user does not exist.
    """
    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(points=User.points + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(resource="User", resource_id=user_id)

    points = db.session.execute(
        select(User.points).where(User.id == user_id)
    ).scalar_one()
    new_level = compute_level(points)

    # Only writes when the level actually moved
    level_result = db.session.execute(
        update(User)
        .where(User.id == user_id, User.level != new_level)
        .values(level=new_level)
        .execution_options(synchronize_session=False)
    )
    level_changed = level_result.rowcount > 0

    txn = PointsTransaction(
        user_id=user_id,
        amount=amount,
        reason=reason,
        meta=meta or {},
    )
    db.session.add(txn)
    db.session.flush()

    # Bring any loaded User instance in line with the SQL-side counters
    user = db.session.get(User, user_id)
    if user is not None:
        db.session.refresh(user)

    logger.info(
        "Points credited user_id=%s amount=%s points=%s level=%s%s",
        user_id, amount, points, new_level, " (level up)" if level_changed else "",
    )
    return {
        "user_id": user_id,
        "points": points,
        "level": new_level,
        "level_changed": level_changed,
        "transaction_id": txn.id,
    }
