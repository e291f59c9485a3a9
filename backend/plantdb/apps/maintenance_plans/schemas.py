# backend/plantdb/apps/maintenance_plans/schemas.py
#
# Request / response schemas for maintenance plans. JSON uses camelCase
# (`machineId`, `scheduledDate`, ...); Python code uses snake_case.

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class ScheduleHistoryRead(_CamelModel):
    id: str
    previous_scheduled_date: Optional[date] = None
    new_scheduled_date: date
    reason: Optional[str] = None
    changed_by_id: Optional[str] = None
    changed_by_name: Optional[str] = None
    created_at: datetime


class MaintenanceScheduleCreate(_CamelModel):
    machine_id: str
    scheduled_date: date
    shift: str
    machine_code: Optional[str] = None
    maintenance_frequency: Optional[str] = None
    notes: Optional[str] = None
    email_recipients: Optional[str] = None
    email_template: Optional[str] = None


class MaintenanceScheduleUpdate(_CamelModel):
    """
    Partial update. Only fields present in the request body are applied;
    a changed `scheduledDate` must come with `notes` giving the reason.
    """

    scheduled_date: Optional[date] = None
    shift: Optional[str] = None
    status: Optional[str] = None
    machine_code: Optional[str] = None
    maintenance_frequency: Optional[str] = None
    notes: Optional[str] = None
    email_recipients: Optional[str] = None
    email_template: Optional[str] = None


class MaintenanceScheduleRead(_CamelModel):
    id: str
    machine_id: str
    machine_name: Optional[str] = None
    machine_code: Optional[str] = None
    machine_type: Optional[str] = None
    line_id: Optional[str] = None
    line_name: Optional[str] = None
    pm_plan_year: Optional[str] = None

    scheduled_date: date
    shift: str
    status: str
    maintenance_frequency: Optional[str] = None
    notes: Optional[str] = None
    email_recipients: Optional[str] = None
    email_template: Optional[str] = None

    checksheet_path: Optional[str] = None
    checksheet_filename: Optional[str] = None
    completion_remark: Optional[str] = None
    completion_attachment_path: Optional[str] = None
    completion_attachment_filename: Optional[str] = None

    previous_scheduled_date: Optional[date] = None
    pre_notification_sent: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    history: List[ScheduleHistoryRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Yearly plan grid
# ---------------------------------------------------------------------------


class YearlyPlanRow(_CamelModel):
    machine_id: str
    frequency: Optional[str] = None
    jan: Optional[str] = None
    feb: Optional[str] = None
    mar: Optional[str] = None
    apr: Optional[str] = None
    may: Optional[str] = None
    jun: Optional[str] = None
    jul: Optional[str] = None
    aug: Optional[str] = None
    sep: Optional[str] = None
    oct: Optional[str] = None
    nov: Optional[str] = None
    dec: Optional[str] = None


class YearlyPlanUpsert(_CamelModel):
    year: int
    plans: List[YearlyPlanRow] = Field(default_factory=list)


class YearlyPlanRead(YearlyPlanRow):
    id: str
    plan_year: int
    machine_name: Optional[str] = None
    machine_code: Optional[str] = None
    line_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class YearlyPlanUpsertResult(_CamelModel):
    year: int
    saved: int
    deleted: int
    plans: List[YearlyPlanRead] = Field(default_factory=list)
