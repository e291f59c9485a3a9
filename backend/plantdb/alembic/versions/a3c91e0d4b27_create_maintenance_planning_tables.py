"""
Create users, master data, maintenance planning and email log tables.

Revision ID: a3c91e0d4b27
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a3c91e0d4b27"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "lines",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
    )

    op.create_table(
        "machines",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("type", sa.String(length=128), nullable=True),
        sa.Column(
            "line_id",
            sa.String(length=36),
            sa.ForeignKey("lines.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("maintenance_frequency", sa.String(length=64), nullable=True),
        sa.Column("pm_plan_year", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_machines_code", "machines", ["code"])
    op.create_index("ix_machines_line_id", "machines", ["line_id"])

    op.create_table(
        "maintenance_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "machine_id",
            sa.String(length=36),
            sa.ForeignKey("machines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("machine_code", sa.String(length=64), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("shift", sa.String(length=1), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="scheduled"),
        sa.Column("maintenance_frequency", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("email_recipients", sa.Text(), nullable=True),
        sa.Column("email_template", sa.Text(), nullable=True),
        sa.Column("checksheet_path", sa.String(length=512), nullable=True),
        sa.Column("checksheet_filename", sa.String(length=255), nullable=True),
        sa.Column("completion_remark", sa.Text(), nullable=True),
        sa.Column("completion_attachment_path", sa.String(length=512), nullable=True),
        sa.Column("completion_attachment_filename", sa.String(length=255), nullable=True),
        sa.Column("previous_scheduled_date", sa.Date(), nullable=True),
        sa.Column(
            "pre_notification_sent",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("shift IN ('A', 'B', 'C', 'G')", name="ck_maint_sched_shift"),
    )
    op.create_index("ix_maintenance_schedules_machine_id", "maintenance_schedules", ["machine_id"])
    op.create_index("ix_maint_sched_status_date", "maintenance_schedules", ["status", "scheduled_date"])
    op.create_index("ix_maint_sched_machine_date", "maintenance_schedules", ["machine_id", "scheduled_date"])

    op.create_table(
        "maintenance_schedule_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "schedule_id",
            sa.String(length=36),
            sa.ForeignKey("maintenance_schedules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous_scheduled_date", sa.Date(), nullable=True),
        sa.Column("new_scheduled_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "changed_by_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_maintenance_schedule_history_schedule_id",
        "maintenance_schedule_history",
        ["schedule_id"],
    )
    op.create_index(
        "ix_maint_sched_hist_schedule_prev",
        "maintenance_schedule_history",
        ["schedule_id", "previous_scheduled_date"],
    )

    month_columns = [
        sa.Column(name, sa.String(length=1), nullable=True)
        for name in ("jan", "feb", "mar", "apr", "may", "jun",
                     "jul", "aug", "sep", "oct", "nov", "dec")
    ]
    op.create_table(
        "maintenance_yearly_plans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "machine_id",
            sa.String(length=36),
            sa.ForeignKey("machines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("plan_year", sa.Integer(), nullable=False),
        sa.Column("frequency", sa.String(length=64), nullable=True),
        *month_columns,
        *_timestamps(),
        sa.UniqueConstraint("machine_id", "plan_year", name="uq_yearly_plan_machine_year"),
    )
    op.create_index("ix_maintenance_yearly_plans_machine_id", "maintenance_yearly_plans", ["machine_id"])
    op.create_index("ix_maintenance_yearly_plans_plan_year", "maintenance_yearly_plans", ["plan_year"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("template_key", sa.String(length=128), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "QUEUED",
                "SENT",
                "FAILED",
                "SKIPPED_NO_PROVIDER",
                name="email_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("context_json", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=96), nullable=True),
    )
    op.create_index("ix_email_logs_id", "email_logs", ["id"])
    op.create_index("ix_email_logs_created_at", "email_logs", ["created_at"])
    op.create_index("ix_email_logs_recipient", "email_logs", ["recipient"])
    op.create_index("ix_email_logs_template_key", "email_logs", ["template_key"])
    op.create_index("ix_email_logs_status", "email_logs", ["status"])
    op.create_index("ix_email_logs_correlation_id", "email_logs", ["correlation_id"])
    op.create_index("ix_email_logs_status_created", "email_logs", ["status", "created_at"])
    op.create_index("ix_email_logs_template_created", "email_logs", ["template_key", "created_at"])


def downgrade() -> None:
    op.drop_table("email_logs")
    op.drop_table("maintenance_yearly_plans")
    op.drop_table("maintenance_schedule_history")
    op.drop_table("maintenance_schedules")
    op.drop_table("machines")
    op.drop_table("lines")
    op.drop_table("users")
