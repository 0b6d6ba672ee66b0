"""Tests for completion rewards and the points ledger.

Coverage:
  1. Two assignees, To Do → Done: each gets +2 points and a transaction
  2. Done → Done does not award again
  3. Leaving Done and coming back awards again
  4. A failing credit for one assignee does not block the other or the move
  5. Levels follow points // 100 + 1
"""

from unittest.mock import patch

from app.models import db
from app.models.points import PointsTransaction
from app.models.task import Task
from app.services import completion_rewarder, points_service, status_catalog, task_service


def _status_id(tenant_id, name):
    return next(s.id for s in status_catalog.get_statuses(tenant_id) if s.name == name)


def _points(user):
    db.session.refresh(user)
    return user.points


class TestCompletionAward:
    def test_each_assignee_credited_once(self, startup, make_task):
        task = make_task(title="Ship MVP", assignees=[startup.owner, startup.member])
        done = _status_id(startup.tenant.id, "Done")

        result = task_service.change_status(task["id"], startup.member.id, done)

        assert result["completed"] is True
        assert all(r["awarded"] for r in result["rewards"])
        assert _points(startup.owner) == 2
        assert _points(startup.member) == 2

        txns = PointsTransaction.query.order_by(PointsTransaction.user_id).all()
        assert [t.user_id for t in txns] == sorted([startup.owner.id, startup.member.id])
        assert all(t.amount == 2 for t in txns)
        assert all(t.reason == "Completed a task" for t in txns)
        assert txns[0].meta == {
            "task_id": task["id"],
            "task_title": "Ship MVP",
            "tenant_id": startup.tenant.id,
            "tenant_name": "Acme Labs",
        }

    def test_done_to_done_is_not_rewarded(self, startup, make_task):
        task = make_task(assignees=[startup.member])
        done = _status_id(startup.tenant.id, "Done")

        task_service.change_status(task["id"], startup.owner.id, done)
        second = task_service.change_status(task["id"], startup.owner.id, done)

        assert second["completed"] is False
        assert second["rewards"] == []
        assert _points(startup.member) == 2
        assert PointsTransaction.query.count() == 1

    def test_reentering_done_rewards_again(self, startup, make_task):
        task = make_task(assignees=[startup.member])
        tid = startup.tenant.id

        task_service.change_status(task["id"], startup.owner.id, _status_id(tid, "Done"))
        task_service.change_status(task["id"], startup.owner.id, _status_id(tid, "In Progress"))
        task_service.change_status(task["id"], startup.owner.id, _status_id(tid, "Done"))

        assert _points(startup.member) == 4
        assert PointsTransaction.query.count() == 2

    def test_no_assignees_no_rewards(self, startup, make_task):
        task = make_task()
        result = task_service.change_status(task["id"], startup.owner.id, _status_id(startup.tenant.id, "Done"))
        assert result["completed"] is True
        assert result["rewards"] == []

    def test_failed_credit_is_isolated(self, startup, make_task, caplog):
        task = make_task(assignees=[startup.owner, startup.member])
        real_credit = points_service.credit_points
        broken_user = startup.owner.id

        def flaky_credit(user_id, amount, reason, meta=None):
            if user_id == broken_user:
                raise RuntimeError("ledger unavailable")
            return real_credit(user_id, amount, reason, meta)

        with patch("app.services.points_service.credit_points", side_effect=flaky_credit):
            result = task_service.change_status(
                task["id"], startup.member.id, _status_id(startup.tenant.id, "Done"),
            )

        by_user = {r["user_id"]: r for r in result["rewards"]}
        assert by_user[broken_user]["awarded"] is False
        assert "ledger unavailable" in by_user[broken_user]["error"]
        assert by_user[startup.member.id]["awarded"] is True
        assert result["task"]["status"]["name"] == "Done"
        assert _points(startup.owner) == 0
        assert _points(startup.member) == 2
        assert any("Completion reward failed" in r.getMessage() for r in caplog.records)

    def test_missing_user_is_skipped(self, startup, make_task):
        task = make_task(assignees=[startup.member])
        row = task_service.get_task_or_404(task["id"])
        with patch.object(Task, "assignee_ids", new=[startup.member.id, 424242]):
            results = completion_rewarder.reward_completion(row)
        db.session.commit()

        assert [r["awarded"] for r in results] == [True, False]
        assert _points(startup.member) == 2


class TestLevels:
    def test_level_boundaries(self):
        assert points_service.compute_level(0) == 1
        assert points_service.compute_level(99) == 1
        assert points_service.compute_level(100) == 2
        assert points_service.compute_level(250) == 3

    def test_crossing_a_level(self, make_user):
        user = make_user(points=99)
        credit = points_service.credit_points(user.id, 2, "Completed a task")
        db.session.commit()

        assert credit["points"] == 101
        assert credit["level"] == 2
        assert credit["level_changed"] is True
        db.session.refresh(user)
        assert user.level == 2

    def test_level_unchanged(self, make_user):
        user = make_user(points=10)
        credit = points_service.credit_points(user.id, 2, "Completed a task")
        assert credit["level_changed"] is False
        assert credit["level"] == 1
