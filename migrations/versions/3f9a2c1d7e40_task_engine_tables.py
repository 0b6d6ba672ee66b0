"""task_engine_tables

Creates the task engine schema:
  - users / tenants / tenant_members  — identity tables (normally owned by the
                                         user and startup services; created here
                                         only when missing)
  - task_statuses       — per-startup board columns
  - tasks               — tasks with timer state and freelance pricing
  - task_assignees      — task ↔ user links
  - time_tracking_logs  — closed work sessions
  - points_transactions — points ledger

Tables are created conditionally (IF NOT EXISTS semantics) so the revision
can run against a database that already received them via db.create_all().

Revision ID: 3f9a2c1d7e40
Revises:
Create Date: 2026-10-19 09:12:41.518302
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '3f9a2c1d7e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Identity ──────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "tenant_members" not in existing:
        op.create_table(
            "tenant_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "user_id", name="uq_tenant_member"),
        )
        op.create_index("ix_tenant_members_user_id", "tenant_members", ["user_id"])

    # ── Task statuses ─────────────────────────────────────────────────────
    if "task_statuses" not in existing:
        op.create_table(
            "task_statuses",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "name", name="uq_task_status_tenant_name"),
        )
        op.create_index("ix_task_statuses_tenant_id", "task_statuses", ["tenant_id"])

    # ── Tasks ─────────────────────────────────────────────────────────────
    if "tasks" not in existing:
        op.create_table(
            "tasks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=False,
                      server_default="medium", comment="low | medium | high"),
            sa.Column("due_date", sa.DateTime(), nullable=True),
            sa.Column("status_id", sa.String(length=36), nullable=False),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("is_timer_running", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("timer_started_at", sa.DateTime(), nullable=True),
            sa.Column("timer_version", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_time_spent", sa.Integer(), nullable=False, server_default="0",
                      comment="Seconds, sum of closed session durations"),
            sa.Column("is_freelance", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("freelancer_id", sa.Integer(), nullable=True),
            sa.Column("estimated_hours", sa.Float(), nullable=False, server_default="0"),
            sa.Column("hourly_rate", sa.Float(), nullable=False, server_default="0"),
            sa.Column("urgency_level", sa.String(length=10), nullable=False,
                      server_default="MEDIUM", comment="LOW | MEDIUM | HIGH | CRITICAL"),
            sa.Column("base_points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("points_multiplier", sa.Float(), nullable=False, server_default="1.0"),
            sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint("total_time_spent >= 0", name="ck_tasks_total_time_non_negative"),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["status_id"], ["task_statuses.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["freelancer_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_tenant_id", "tasks", ["tenant_id"])
        op.create_index("ix_tasks_tenant_status", "tasks", ["tenant_id", "status_id"])

    if "task_assignees" not in existing:
        op.create_table(
            "task_assignees",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("task_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("task_id", "user_id", name="uq_task_assignee"),
        )
        op.create_index("ix_task_assignees_user_id", "task_assignees", ["user_id"])

    if "time_tracking_logs" not in existing:
        op.create_table(
            "time_tracking_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("task_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("start_time", sa.DateTime(), nullable=False),
            sa.Column("end_time", sa.DateTime(), nullable=False),
            sa.Column("duration", sa.Integer(), nullable=False, server_default="0",
                      comment="Seconds"),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_time_logs_task_start", "time_tracking_logs", ["task_id", "start_time"])

    # ── Points ledger ─────────────────────────────────────────────────────
    if "points_transactions" not in existing:
        op.create_table(
            "points_transactions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("reason", sa.String(length=255), nullable=False),
            sa.Column("meta", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_points_transactions_user_id", "points_transactions", ["user_id"])


def downgrade():
    # Identity tables are left in place; other services own them.
    op.drop_index("ix_points_transactions_user_id", table_name="points_transactions")
    op.drop_table("points_transactions")
    op.drop_index("ix_time_logs_task_start", table_name="time_tracking_logs")
    op.drop_table("time_tracking_logs")
    op.drop_index("ix_task_assignees_user_id", table_name="task_assignees")
    op.drop_table("task_assignees")
    op.drop_index("ix_tasks_tenant_status", table_name="tasks")
    op.drop_index("ix_tasks_tenant_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_task_statuses_tenant_id", table_name="task_statuses")
    op.drop_table("task_statuses")
