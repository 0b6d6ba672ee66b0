"""Completion rewards — credits assignees when a task enters "Done".

Called by task_service.change_status only after it has detected a
non-Done → Done edge; this module does not re-check the edge.

Best-effort fan-out:
  Each assignee is credited inside its own savepoint. If crediting one
  user fails (missing user, ledger error) that savepoint is rolled back,
  a warning is logged, and the loop moves on. The status change itself
  is never failed by a reward.
"""

import logging

from app.models import db
from app.models.task import Task
from app.services import points_service

logger = logging.getLogger(__name__)

TASK_COMPLETION_POINTS = 2
TASK_COMPLETION_REASON = "Completed a task"


def _reward_meta(task: Task) -> dict:
    return {
        "task_id": task.id,
        "task_title": task.title,
        "tenant_id": task.tenant_id,
        "tenant_name": task.tenant.name if task.tenant else None,
    }


def reward_completion(task: Task) -> list[dict]:
    """Credit every current assignee of ``task`` with completion points.

    Assignees are read at the moment of completion; later reassignment
    does not move points retroactively.

    Returns:
        One entry per assignee:
        {"user_id", "awarded": bool, "points"?, "level"?, "error"?}
    """
    meta = _reward_meta(task)
    results = []

    for user_id in task.assignee_ids:
        try:
            with db.session.begin_nested():
                credit = points_service.credit_points(
                    user_id,
                    TASK_COMPLETION_POINTS,
                    TASK_COMPLETION_REASON,
                    meta,
                )
        except Exception as exc:
            logger.warning(
                "Completion reward failed task_id=%s user_id=%s, continuing",
                task.id, user_id, exc_info=True,
            )
            results.append({"user_id": user_id, "awarded": False, "error": str(exc)})
            continue

        results.append({
            "user_id": user_id,
            "awarded": True,
            "points": credit["points"],
            "level": credit["level"],
        })

    awarded = sum(1 for r in results if r["awarded"])
    logger.info(
        "Task completed task_id=%s tenant_id=%s rewarded=%d/%d",
        task.id, task.tenant_id, awarded, len(results),
    )
    return results
