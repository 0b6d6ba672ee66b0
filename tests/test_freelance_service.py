"""Tests for the freelance marketplace.

Coverage:
  1. Urgency classification thresholds
  2. Pricing on create (base from hours × rate, multiplier by urgency)
  3. Freelance tasks never store assignees
  4. Accept: not-freelance and already-taken rejections
  5. Cancel: only the holding freelancer may release
  6. Listings
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from app.core.exceptions import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from app.models import db
from app.models.task import Task, TaskAssignee
from app.services import freelance_service as fs

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestUrgency:
    def test_no_due_date_is_medium(self):
        assert fs.calculate_urgency_level(40, None, NOW) == "MEDIUM"

    def test_overdue_is_critical(self):
        assert fs.calculate_urgency_level(1, NOW - timedelta(days=2), NOW) == "CRITICAL"

    @pytest.mark.parametrize("hours,days,expected", [
        (9, 10, "CRITICAL"),   # 90
        (6, 10, "HIGH"),       # 60
        (4, 10, "MEDIUM"),     # 40
        (2, 10, "LOW"),        # 20
        (1, 0, "CRITICAL"),    # due now: days clamp to 1 → 100
    ])
    def test_score_thresholds(self, hours, days, expected):
        assert fs.calculate_urgency_level(hours, NOW + timedelta(days=days), NOW) == expected

    def test_naive_due_date_treated_as_utc(self):
        naive = (NOW + timedelta(days=10)).replace(tzinfo=None)
        assert fs.calculate_urgency_level(2, naive, NOW) == "LOW"


class TestPricingOnCreate:
    def test_regular_task_has_neutral_pricing(self, make_task):
        task = make_task()
        assert task["is_freelance"] is False
        assert task["total_points"] == 0
        assert task["points_multiplier"] == 1.0

    def test_points_from_hours_and_rate(self, make_task):
        # No due date → MEDIUM → ×1.2
        task = make_task(is_freelance=True, estimated_hours=5, hourly_rate=10)
        assert task["is_freelance"] is True
        assert task["urgency_level"] == "MEDIUM"
        assert task["base_points"] == 50
        assert task["total_points"] == 60
        assert task["points_multiplier"] == pytest.approx(1.2)

    def test_explicit_base_points_win(self, make_task):
        task = make_task(is_freelance=True, estimated_hours=5, hourly_rate=10, base_points=20)
        assert task["base_points"] == 20
        assert task["total_points"] == 24

    def test_overdue_task_doubles(self, make_task):
        task = make_task(is_freelance=True, base_points=10, due_date="2020-01-01")
        assert task["urgency_level"] == "CRITICAL"
        assert task["total_points"] == 20

    def test_assignees_ignored(self, startup, make_task):
        task = make_task(is_freelance=True, assignees=[startup.member])
        assert task["assignees"] == []
        assert TaskAssignee.query.filter_by(task_id=task["id"]).count() == 0

    def test_negative_rate_rejected(self, make_task):
        with pytest.raises(ValidationError):
            make_task(is_freelance=True, hourly_rate=-5)


class TestAcceptAndCancel:
    def test_accept_claims_task(self, startup, make_task):
        task = make_task(is_freelance=True, base_points=10)
        claimed = fs.accept_freelance_task(task["id"], startup.outsider.id)
        assert claimed["freelancer_id"] == startup.outsider.id

    def test_second_accept_rejected(self, startup, make_task):
        task = make_task(is_freelance=True, base_points=10)
        fs.accept_freelance_task(task["id"], startup.outsider.id)

        with pytest.raises(InvalidStateError):
            fs.accept_freelance_task(task["id"], startup.member.id)

    def test_accept_regular_task_rejected(self, startup, make_task):
        task = make_task()
        with pytest.raises(InvalidStateError):
            fs.accept_freelance_task(task["id"], startup.outsider.id)

    def test_accept_unknown_task(self, startup):
        with pytest.raises(NotFoundError):
            fs.accept_freelance_task("missing", startup.outsider.id)

    def test_cancel_releases(self, startup, make_task):
        task = make_task(is_freelance=True, base_points=10)
        fs.accept_freelance_task(task["id"], startup.outsider.id)

        released = fs.cancel_freelance_task(task["id"], startup.outsider.id)
        assert released["freelancer_id"] is None

    def test_only_holder_may_cancel(self, startup, make_task):
        task = make_task(is_freelance=True, base_points=10)
        fs.accept_freelance_task(task["id"], startup.outsider.id)

        with pytest.raises(UnauthorizedError):
            fs.cancel_freelance_task(task["id"], startup.member.id)

    def test_stale_holder_cannot_release_new_claim(self, startup, make_task):
        task = make_task(is_freelance=True, base_points=10)
        fs.accept_freelance_task(task["id"], startup.outsider.id)
        row = db.session.get(Task, task["id"])
        assert row.freelancer_id == startup.outsider.id

        # The claim moved to someone else; this session keeps its stale copy
        db.session.execute(
            update(Task)
            .where(Task.id == task["id"])
            .values(freelancer_id=startup.member.id)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(UnauthorizedError):
            fs.cancel_freelance_task(task["id"], startup.outsider.id)


class TestListings:
    def test_open_and_mine(self, startup, make_task):
        open_task = make_task(title="Logo", is_freelance=True, base_points=5)
        taken = make_task(title="Copy", is_freelance=True, base_points=5)
        make_task(title="Internal")
        fs.accept_freelance_task(taken["id"], startup.outsider.id)

        assert [t["id"] for t in fs.list_open_freelance_tasks()] == [open_task["id"]]
        assert [t["id"] for t in fs.list_my_freelance_tasks(startup.outsider.id)] == [taken["id"]]

    def test_listing_refreshes_urgency(self, make_task):
        due = (NOW + timedelta(days=10)).isoformat()
        task = make_task(is_freelance=True, estimated_hours=2, base_points=5, due_date=due)

        listed = fs.list_open_freelance_tasks(now=NOW + timedelta(days=12))
        assert [t["urgency_level"] for t in listed if t["id"] == task["id"]] == ["CRITICAL"]
