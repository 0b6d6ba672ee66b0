"""
Task Engine Models

Four tables:
  TaskStatus       — per-startup named statuses ("To Do", "In Progress", "Done")
  Task             — aggregate root: fields, status, timer state, total time
  TaskAssignee     — task ↔ user link (set semantics, unique per pair)
  TimeTrackingLog  — append-only closed work sessions

Timer state lives on Task itself:
  is_timer_running == (timer_started_at is not None)
  timer_version is bumped on every start/close and guards the
  compare-and-swap updates in app.services.timer_service.
"""

import uuid
from datetime import datetime, timezone

from app.models import db
from app.models.base import TenantModel


__all__ = [
    "DEFAULT_TASK_STATUSES",
    "DONE_STATUS_NAME",
    "TASK_PRIORITIES",
    "TaskStatus",
    "Task",
    "TaskAssignee",
    "TimeTrackingLog",
]


# ── Constants ────────────────────────────────────────────────────────────────

DEFAULT_TASK_STATUSES = ("To Do", "In Progress", "Done")

# Entering this status from any other one credits the assignees.
DONE_STATUS_NAME = "Done"

TASK_PRIORITIES = {"low", "medium", "high"}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# TaskStatus
# ═════════════════════════════════════════════════════════════════════════════

class TaskStatus(TenantModel):
    """Named column of a startup's task board."""

    __tablename__ = "task_statuses"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_task_status_tenant_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @property
    def is_terminal(self):
        return self.name == DONE_STATUS_NAME

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "position": self.position,
            "is_terminal": self.is_terminal,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Task
# ═════════════════════════════════════════════════════════════════════════════

class Task(TenantModel):
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_tenant_status", "tenant_id", "status_id"),
        db.CheckConstraint("total_time_spent >= 0", name="ck_tasks_total_time_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    priority = db.Column(db.String(10), nullable=False, default="medium",
                         comment="low | medium | high")
    due_date = db.Column(db.DateTime, nullable=True)
    status_id = db.Column(
        db.String(36),
        db.ForeignKey("task_statuses.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    # ── Timer ──
    is_timer_running = db.Column(db.Boolean, nullable=False, default=False)
    timer_started_at = db.Column(db.DateTime, nullable=True)
    timer_version = db.Column(db.Integer, nullable=False, default=0)
    total_time_spent = db.Column(db.Integer, nullable=False, default=0,
                                 comment="Seconds, sum of closed session durations")

    # ── Freelance marketplace ──
    is_freelance = db.Column(db.Boolean, nullable=False, default=False)
    freelancer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    estimated_hours = db.Column(db.Float, nullable=False, default=0)
    hourly_rate = db.Column(db.Float, nullable=False, default=0)
    urgency_level = db.Column(db.String(10), nullable=False, default="MEDIUM",
                              comment="LOW | MEDIUM | HIGH | CRITICAL")
    base_points = db.Column(db.Integer, nullable=False, default=0)
    points_multiplier = db.Column(db.Float, nullable=False, default=1.0)
    total_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    status = db.relationship("TaskStatus", lazy="joined")
    tenant = db.relationship("Tenant")
    creator = db.relationship("User", foreign_keys=[created_by])
    freelancer = db.relationship("User", foreign_keys=[freelancer_id])
    assignee_links = db.relationship(
        "TaskAssignee", back_populates="task", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    time_logs = db.relationship(
        "TimeTrackingLog", back_populates="task", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def assignee_ids(self):
        return sorted(link.user_id for link in self.assignee_links)

    def to_dict(self, include_assignees=True):
        d = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "description": self.description or "",
            "priority": self.priority,
            "due_date": _iso(self.due_date),
            "status_id": self.status_id,
            "status": self.status.to_dict() if self.status else None,
            "created_by": self.created_by,
            "creator": self.creator.to_summary() if self.creator else None,
            "is_timer_running": bool(self.is_timer_running),
            "timer_started_at": _iso(self.timer_started_at),
            "total_time_spent": self.total_time_spent or 0,
            "is_freelance": bool(self.is_freelance),
            "freelancer_id": self.freelancer_id,
            "estimated_hours": self.estimated_hours or 0,
            "hourly_rate": self.hourly_rate or 0,
            "urgency_level": self.urgency_level,
            "base_points": self.base_points or 0,
            "points_multiplier": self.points_multiplier,
            "total_points": self.total_points or 0,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_assignees:
            d["assignees"] = [
                link.user.to_summary() if link.user else {"id": link.user_id}
                for link in sorted(self.assignee_links, key=lambda a: a.user_id)
            ]
        return d


# ═════════════════════════════════════════════════════════════════════════════
# TaskAssignee
# ═════════════════════════════════════════════════════════════════════════════

class TaskAssignee(db.Model):
    __tablename__ = "task_assignees"
    __table_args__ = (
        db.UniqueConstraint("task_id", "user_id", name="uq_task_assignee"),
        db.Index("ix_task_assignees_user_id", "user_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(
        db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=_utcnow)

    task = db.relationship("Task", back_populates="assignee_links")
    user = db.relationship("User")


# ═════════════════════════════════════════════════════════════════════════════
# TimeTrackingLog
# ═════════════════════════════════════════════════════════════════════════════

class TimeTrackingLog(db.Model):
    """One closed work session. Rows are never updated after insert."""

    __tablename__ = "time_tracking_logs"
    __table_args__ = (
        db.Index("ix_time_logs_task_start", "task_id", "start_time"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(
        db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False, default=0, comment="Seconds")
    note = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=_utcnow)

    task = db.relationship("Task", back_populates="time_logs")
    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration": self.duration,
            "note": self.note or "",
            "created_at": _iso(self.created_at),
        }
