# backend/plantdb/apps/maintenance_plans/models.py
#
# ORM models for preventive-maintenance planning:
# - MaintenanceSchedule        : one planned or completed PM occurrence.
# - MaintenanceScheduleHistory : append-only log of reschedules.
# - MaintenanceYearlyPlan      : per machine / year grid of shift codes.
#
# Status and shift are stored as plain strings with check constraints rather
# than native enums, so new values only need a migration on the constraint.

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7
from ..accounts.models import User
from ..master_data.models import Machine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class Shift(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    G = "G"  # general shift


SHIFT_CODES = frozenset(s.value for s in Shift)

MONTH_COLUMNS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)


class MaintenanceSchedule(Base):
    """
    One planned preventive-maintenance occurrence for a machine.

    `pre_notification_sent` is a latch: the reminder scanner flips it to
    True once, and only a reschedule sets it back to False.
    """

    __tablename__ = "maintenance_schedules"
    __table_args__ = (
        CheckConstraint("shift IN ('A', 'B', 'C', 'G')", name="ck_maint_sched_shift"),
        Index("ix_maint_sched_status_date", "status", "scheduled_date"),
        Index("ix_maint_sched_machine_date", "machine_id", "scheduled_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    machine_id = Column(
        String(36),
        ForeignKey("machines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    machine_code = Column(String(64), nullable=True)

    scheduled_date = Column(Date, nullable=False)
    shift = Column(String(1), nullable=False)
    status = Column(
        String(32),
        nullable=False,
        default=ScheduleStatus.SCHEDULED.value,
    )
    maintenance_frequency = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    email_recipients = Column(Text, nullable=True)
    email_template = Column(Text, nullable=True)

    checksheet_path = Column(String(512), nullable=True)
    checksheet_filename = Column(String(255), nullable=True)

    completion_remark = Column(Text, nullable=True)
    completion_attachment_path = Column(String(512), nullable=True)
    completion_attachment_filename = Column(String(255), nullable=True)

    previous_scheduled_date = Column(Date, nullable=True)
    pre_notification_sent = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    machine = relationship(Machine, lazy="joined")
    history = relationship(
        "MaintenanceScheduleHistory",
        back_populates="schedule",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<MaintenanceSchedule id={self.id} machine_id={self.machine_id} "
            f"date={self.scheduled_date} status={self.status}>"
        )


class MaintenanceScheduleHistory(Base):
    """Immutable record of one reschedule."""

    __tablename__ = "maintenance_schedule_history"
    __table_args__ = (
        Index(
            "ix_maint_sched_hist_schedule_prev",
            "schedule_id",
            "previous_scheduled_date",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    schedule_id = Column(
        String(36),
        ForeignKey("maintenance_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_scheduled_date = Column(Date, nullable=True)
    new_scheduled_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    changed_by_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    schedule = relationship("MaintenanceSchedule", back_populates="history")
    changed_by = relationship(User, lazy="joined")


class MaintenanceYearlyPlan(Base):
    """
    Yearly PM grid row: one shift code (or nothing) per month for a machine.
    """

    __tablename__ = "maintenance_yearly_plans"
    __table_args__ = (
        UniqueConstraint("machine_id", "plan_year", name="uq_yearly_plan_machine_year"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    machine_id = Column(
        String(36),
        ForeignKey("machines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_year = Column(Integer, nullable=False, index=True)
    frequency = Column(String(64), nullable=True)

    jan = Column(String(1), nullable=True)
    feb = Column(String(1), nullable=True)
    mar = Column(String(1), nullable=True)
    apr = Column(String(1), nullable=True)
    may = Column(String(1), nullable=True)
    jun = Column(String(1), nullable=True)
    jul = Column(String(1), nullable=True)
    aug = Column(String(1), nullable=True)
    sep = Column(String(1), nullable=True)
    oct = Column(String(1), nullable=True)
    nov = Column(String(1), nullable=True)
    dec = Column(String(1), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    machine = relationship(Machine, lazy="joined")
