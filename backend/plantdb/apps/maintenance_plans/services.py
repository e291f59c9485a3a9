# backend/plantdb/apps/maintenance_plans/services.py
#
# Business logic for maintenance schedules and yearly plans.
#
# Conventions:
# - Plain schedule writes flush only; the router commits.
# - Operations that store a file commit here, so a failed commit can
#   delete the file that was just written.
# - Errors are raised as HTTPException with the status the API returns.

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from ..master_data.models import Machine
from . import history, models, scheduler, schemas, storage
from .plan_year import is_month_allowed

logger = logging.getLogger(__name__)

_MIN_PLAN_YEAR = 2000
_MAX_PLAN_YEAR = 2100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="scheduledDate must be a calendar date.",
    )


def _validate_shift(shift: Optional[str]) -> str:
    code = (shift or "").strip().upper()
    if code not in models.SHIFT_CODES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Shift must be one of A, B, C or G.",
        )
    return code


def _check_plan_month(machine: Machine, scheduled_date: date) -> None:
    if not is_month_allowed(machine.pm_plan_year, scheduled_date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"{scheduled_date.strftime('%B')} is outside the PM plan months "
                f"for this machine ({machine.pm_plan_year})."
            ),
        )


def _get_machine(db: Session, machine_id: str) -> Machine:
    machine = db.get(Machine, machine_id) if machine_id else None
    if machine is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Machine not found")
    return machine


def _file_label(schedule: models.MaintenanceSchedule) -> Optional[str]:
    machine = schedule.machine
    return schedule.machine_code or (machine.code if machine else None) or (
        machine.name if machine else None
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_schedule(db: Session, schedule_id: str) -> models.MaintenanceSchedule:
    schedule = db.get(models.MaintenanceSchedule, schedule_id)
    if schedule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Maintenance plan not found")
    return schedule


def list_schedules(
    db: Session,
    *,
    machine_id: Optional[str] = None,
    status_filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[models.MaintenanceSchedule]:
    S = models.MaintenanceSchedule
    query = db.query(S)
    if machine_id:
        query = query.filter(S.machine_id == machine_id)
    if status_filter:
        query = query.filter(S.status == status_filter.strip().lower())
    if date_from:
        query = query.filter(S.scheduled_date >= date_from)
    if date_to:
        query = query.filter(S.scheduled_date <= date_to)
    return query.order_by(S.scheduled_date.asc(), S.created_at.asc()).all()


def to_schedule_read(
    schedule: models.MaintenanceSchedule,
    entries: Iterable[models.MaintenanceScheduleHistory] = (),
) -> schemas.MaintenanceScheduleRead:
    machine = schedule.machine
    line = machine.line if machine is not None else None
    return schemas.MaintenanceScheduleRead(
        id=schedule.id,
        machine_id=schedule.machine_id,
        machine_name=machine.name if machine else None,
        machine_code=schedule.machine_code or (machine.code if machine else None),
        machine_type=machine.type if machine else None,
        line_id=line.id if line else None,
        line_name=line.name if line else None,
        pm_plan_year=machine.pm_plan_year if machine else None,
        scheduled_date=schedule.scheduled_date,
        shift=schedule.shift,
        status=schedule.status,
        maintenance_frequency=schedule.maintenance_frequency,
        notes=schedule.notes,
        email_recipients=schedule.email_recipients,
        email_template=schedule.email_template,
        checksheet_path=schedule.checksheet_path,
        checksheet_filename=schedule.checksheet_filename,
        completion_remark=schedule.completion_remark,
        completion_attachment_path=schedule.completion_attachment_path,
        completion_attachment_filename=schedule.completion_attachment_filename,
        previous_scheduled_date=schedule.previous_scheduled_date,
        pre_notification_sent=bool(schedule.pre_notification_sent),
        completed_at=schedule.completed_at,
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
        history=[
            schemas.ScheduleHistoryRead(
                id=e.id,
                previous_scheduled_date=e.previous_scheduled_date,
                new_scheduled_date=e.new_scheduled_date,
                reason=e.reason,
                changed_by_id=e.changed_by_id,
                changed_by_name=e.changed_by.name if e.changed_by else None,
                created_at=e.created_at,
            )
            for e in entries
        ],
    )


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------


def create_schedule(
    db: Session,
    *,
    machine_id: str,
    scheduled_date: date,
    shift: str,
    machine_code: Optional[str] = None,
    maintenance_frequency: Optional[str] = None,
    notes: Optional[str] = None,
    email_recipients: Optional[str] = None,
    email_template: Optional[str] = None,
) -> models.MaintenanceSchedule:
    shift_code = _validate_shift(shift)
    machine = _get_machine(db, machine_id)
    day = _as_date(scheduled_date)
    _check_plan_month(machine, day)

    schedule = models.MaintenanceSchedule(
        machine_id=machine.id,
        machine_code=_clean(machine_code),
        scheduled_date=day,
        shift=shift_code,
        status=models.ScheduleStatus.SCHEDULED.value,
        maintenance_frequency=_clean(maintenance_frequency) or machine.maintenance_frequency,
        notes=_clean(notes),
        email_recipients=_clean(email_recipients),
        email_template=email_template if email_template and email_template.strip() else None,
        pre_notification_sent=False,
    )
    db.add(schedule)
    db.flush()
    logger.info(
        "Maintenance plan created",
        extra={"schedule_id": schedule.id, "machine_id": machine.id, "scheduled_date": day.isoformat()},
    )
    return schedule


def update_schedule(
    db: Session,
    schedule_id: str,
    changes: Dict[str, Any],
    *,
    actor_id: Optional[str] = None,
) -> models.MaintenanceSchedule:
    """
    Apply a partial update. `changes` holds only the fields the client sent.

    A date change and its history entry are flushed together; nothing is
    written if validation fails.
    """
    schedule = get_schedule(db, schedule_id)

    new_date: Optional[date] = None
    if "scheduled_date" in changes:
        if changes["scheduled_date"] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="scheduledDate cannot be cleared.",
            )
        candidate = _as_date(changes["scheduled_date"])
        if candidate != schedule.scheduled_date:
            new_date = candidate

    reason = _clean(changes.get("notes"))
    if new_date is not None and not reason:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A note explaining the reschedule is required when changing the date.",
        )

    shift_code = _validate_shift(changes["shift"]) if "shift" in changes else None

    new_status: Optional[str] = None
    if "status" in changes:
        new_status = (changes["status"] or "").strip().lower()
        if not new_status:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Status cannot be blank.")
        if new_status == models.ScheduleStatus.COMPLETED.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Use the complete endpoint to mark a plan as completed.",
            )

    if new_date is not None and schedule.machine is not None:
        _check_plan_month(schedule.machine, new_date)

    if new_date is not None:
        old_date = schedule.scheduled_date
        schedule.previous_scheduled_date = old_date
        schedule.scheduled_date = new_date
        schedule.pre_notification_sent = False
        history.record_change(
            db,
            schedule_id=schedule.id,
            previous_date=old_date,
            new_date=new_date,
            reason=reason,
            actor_id=actor_id,
        )
        logger.info(
            "Maintenance plan rescheduled",
            extra={
                "schedule_id": schedule.id,
                "previous_date": old_date.isoformat() if old_date else None,
                "new_date": new_date.isoformat(),
                "actor_id": actor_id,
            },
        )

    if shift_code is not None:
        schedule.shift = shift_code
    if new_status is not None:
        schedule.status = new_status
        schedule.completed_at = None

    if "notes" in changes:
        schedule.notes = reason
    if "machine_code" in changes:
        schedule.machine_code = _clean(changes["machine_code"])
    if "maintenance_frequency" in changes:
        schedule.maintenance_frequency = _clean(changes["maintenance_frequency"])
    if "email_recipients" in changes:
        schedule.email_recipients = _clean(changes["email_recipients"])
    if "email_template" in changes:
        template = changes["email_template"]
        schedule.email_template = template if template and template.strip() else None

    schedule.updated_at = _utcnow()
    db.add(schedule)
    db.flush()
    return schedule


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def _require_upload(upload: Optional[UploadFile], detail: str) -> UploadFile:
    if upload is None or not (upload.filename or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    return upload


def _commit_or_discard(db: Session, store: storage.ScheduleFileStore, reference: str, action: str) -> None:
    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        store.discard(reference)
        logger.exception("Failed to save %s; removed stored file", action, extra={"reference": reference})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save {action}.",
        ) from exc


def complete_schedule(
    db: Session,
    schedule_id: str,
    *,
    remark: Optional[str],
    upload: Optional[UploadFile],
    store: storage.ScheduleFileStore,
) -> models.MaintenanceSchedule:
    schedule = get_schedule(db, schedule_id)
    if schedule.status == models.ScheduleStatus.COMPLETED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Maintenance plan is already completed.",
        )
    remark = _clean(remark)
    if not remark:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A completion remark is required.")
    upload = _require_upload(upload, "A completion attachment is required.")

    reference = store.save(kind=storage.COMPLETIONS, label=_file_label(schedule), upload=upload)
    previous_reference = schedule.completion_attachment_path

    schedule.status = models.ScheduleStatus.COMPLETED.value
    schedule.completed_at = _utcnow()
    schedule.completion_remark = remark
    schedule.completion_attachment_path = reference
    schedule.completion_attachment_filename = upload.filename
    schedule.updated_at = _utcnow()
    db.add(schedule)
    _commit_or_discard(db, store, reference, "completion")

    if previous_reference and previous_reference != reference:
        store.discard(previous_reference)

    logger.info("Maintenance plan completed", extra={"schedule_id": schedule.id})

    try:
        scheduler.send_completion_notification(db, schedule.id)
    except Exception:
        db.rollback()
        logger.exception("Completion notification failed", extra={"schedule_id": schedule.id})

    return schedule


def attach_checksheet(
    db: Session,
    schedule_id: str,
    *,
    upload: Optional[UploadFile],
    store: storage.ScheduleFileStore,
) -> models.MaintenanceSchedule:
    schedule = get_schedule(db, schedule_id)
    upload = _require_upload(upload, "A checksheet file is required.")

    reference = store.save(kind=storage.CHECKSHEETS, label=_file_label(schedule), upload=upload)
    previous_reference = schedule.checksheet_path

    schedule.checksheet_path = reference
    schedule.checksheet_filename = upload.filename
    schedule.updated_at = _utcnow()
    db.add(schedule)
    _commit_or_discard(db, store, reference, "checksheet")

    if previous_reference and previous_reference != reference:
        store.discard(previous_reference)
    return schedule


def remove_checksheet(
    db: Session,
    schedule_id: str,
    *,
    store: storage.ScheduleFileStore,
) -> models.MaintenanceSchedule:
    """
    Clear the checksheet reference, then delete the file. An already-missing
    file still clears the reference; any other delete failure restores the
    reference and is raised as a 500.
    """
    schedule = get_schedule(db, schedule_id)
    reference = schedule.checksheet_path
    if not reference:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No checksheet uploaded")

    store.resolve(reference)
    filename = schedule.checksheet_filename

    schedule.checksheet_path = None
    schedule.checksheet_filename = None
    schedule.updated_at = _utcnow()
    db.add(schedule)
    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Failed to clear checksheet", extra={"schedule_id": schedule_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove checksheet.",
        ) from exc

    try:
        store.delete(reference)
    except HTTPException:
        schedule.checksheet_path = reference
        schedule.checksheet_filename = filename
        schedule.updated_at = _utcnow()
        db.add(schedule)
        db.commit()
        raise
    return schedule


# ---------------------------------------------------------------------------
# Yearly plans
# ---------------------------------------------------------------------------


def _validate_year(year: int) -> int:
    if year is None or not (_MIN_PLAN_YEAR <= int(year) <= _MAX_PLAN_YEAR):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Year must be between {_MIN_PLAN_YEAR} and {_MAX_PLAN_YEAR}.",
        )
    return int(year)


def sanitize_shift_cell(value: Optional[str]) -> Optional[str]:
    code = (value or "").strip().upper()
    return code if code in models.SHIFT_CODES else None


def list_yearly_plans(db: Session, year: int) -> List[models.MaintenanceYearlyPlan]:
    year = _validate_year(year)
    P = models.MaintenanceYearlyPlan
    return (
        db.query(P)
        .filter(P.plan_year == year)
        .join(Machine, Machine.id == P.machine_id)
        .order_by(Machine.name.asc())
        .all()
    )


def upsert_yearly_plans(
    db: Session,
    year: int,
    rows: Iterable[schemas.YearlyPlanRow],
) -> Tuple[int, int]:
    """
    Rewrite each machine's grid row for `year`. A row with no frequency and
    no shift in any month is deleted instead of stored. Returns
    (saved, deleted). Flushes only.
    """
    year = _validate_year(year)
    P = models.MaintenanceYearlyPlan

    # Later rows for the same machine win.
    by_machine: Dict[str, schemas.YearlyPlanRow] = {}
    for row in rows:
        by_machine[row.machine_id] = row

    saved = deleted = 0
    for machine_id, row in by_machine.items():
        _get_machine(db, machine_id)
        months = {col: sanitize_shift_cell(getattr(row, col)) for col in models.MONTH_COLUMNS}
        frequency = _clean(row.frequency)
        existing = (
            db.query(P)
            .filter(P.machine_id == machine_id, P.plan_year == year)
            .one_or_none()
        )

        if frequency is None and not any(months.values()):
            if existing is not None:
                db.delete(existing)
                deleted += 1
            continue

        plan = existing or P(machine_id=machine_id, plan_year=year)
        plan.frequency = frequency
        for col, value in months.items():
            setattr(plan, col, value)
        plan.updated_at = _utcnow()
        db.add(plan)
        saved += 1

    db.flush()
    logger.info(
        "Yearly maintenance plans saved",
        extra={"year": year, "saved": saved, "deleted": deleted},
    )
    return saved, deleted


def to_yearly_plan_read(plan: models.MaintenanceYearlyPlan) -> schemas.YearlyPlanRead:
    machine = plan.machine
    line = machine.line if machine is not None else None
    return schemas.YearlyPlanRead(
        id=plan.id,
        machine_id=plan.machine_id,
        plan_year=plan.plan_year,
        frequency=plan.frequency,
        machine_name=machine.name if machine else None,
        machine_code=machine.code if machine else None,
        line_name=line.name if line else None,
        updated_at=plan.updated_at,
        **{col: getattr(plan, col) for col in models.MONTH_COLUMNS},
    )
