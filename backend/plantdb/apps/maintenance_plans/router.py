# backend/plantdb/apps/maintenance_plans/router.py

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ...security import get_current_active_user, require_roles
from ..accounts import models as account_models
from . import history, services, storage
from .schemas import (
    MaintenanceScheduleCreate,
    MaintenanceScheduleRead,
    MaintenanceScheduleUpdate,
    YearlyPlanRead,
    YearlyPlanUpsert,
    YearlyPlanUpsertResult,
)

SCHEDULE_WRITE_ROLES = ["ADMIN", "SUPERVISOR", "ENGINEER"]
YEARLY_PLAN_WRITE_ROLES = ["ADMIN", "SUPERVISOR"]

router = APIRouter(
    prefix="/maintenance-plans",
    tags=["maintenance_plans"],
)

yearly_router = APIRouter(
    prefix="/yearly-maintenance-plans",
    tags=["maintenance_plans"],
)


def _read(db: Session, schedule) -> MaintenanceScheduleRead:
    entries = history.list_for(db, [schedule.id]).get(schedule.id, [])
    return services.to_schedule_read(schedule, entries)


def _download(reference: Optional[str], filename: Optional[str], store: storage.ScheduleFileStore):
    path = store.open_path(reference)
    return FileResponse(
        path=str(path),
        media_type="application/octet-stream",
        filename=filename or path.name,
    )


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@router.get("", response_model=List[MaintenanceScheduleRead])
def list_maintenance_plans(
    machine_id: Optional[str] = Query(None, alias="machineId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
) -> List[MaintenanceScheduleRead]:
    schedules = services.list_schedules(
        db,
        machine_id=machine_id,
        status_filter=status_filter,
        date_from=date_from,
        date_to=date_to,
    )
    entries = history.list_for(db, [s.id for s in schedules])
    return [services.to_schedule_read(s, entries.get(s.id, [])) for s in schedules]


@router.post("", response_model=MaintenanceScheduleRead, status_code=status.HTTP_201_CREATED)
def create_maintenance_plan(
    payload: MaintenanceScheduleCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*SCHEDULE_WRITE_ROLES)),
) -> MaintenanceScheduleRead:
    schedule = services.create_schedule(
        db,
        machine_id=payload.machine_id,
        scheduled_date=payload.scheduled_date,
        shift=payload.shift,
        machine_code=payload.machine_code,
        maintenance_frequency=payload.maintenance_frequency,
        notes=payload.notes,
        email_recipients=payload.email_recipients,
        email_template=payload.email_template,
    )
    db.commit()
    db.refresh(schedule)
    return services.to_schedule_read(schedule)


@router.get("/{schedule_id}", response_model=MaintenanceScheduleRead)
def get_maintenance_plan(
    schedule_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
) -> MaintenanceScheduleRead:
    return _read(db, services.get_schedule(db, schedule_id))


@router.put("/{schedule_id}", response_model=MaintenanceScheduleRead)
def update_maintenance_plan(
    schedule_id: str,
    payload: MaintenanceScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*SCHEDULE_WRITE_ROLES)),
) -> MaintenanceScheduleRead:
    schedule = services.update_schedule(
        db,
        schedule_id,
        payload.model_dump(exclude_unset=True),
        actor_id=current_user.id,
    )
    db.commit()
    db.refresh(schedule)
    return _read(db, schedule)


@router.post("/{schedule_id}/complete", response_model=MaintenanceScheduleRead)
def complete_maintenance_plan(
    schedule_id: str,
    remark: Optional[str] = Form(None),
    attachment: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    store: storage.ScheduleFileStore = Depends(storage.get_file_store),
    current_user: account_models.User = Depends(require_roles(*SCHEDULE_WRITE_ROLES)),
) -> MaintenanceScheduleRead:
    schedule = services.complete_schedule(
        db,
        schedule_id,
        remark=remark,
        upload=attachment,
        store=store,
    )
    return _read(db, schedule)


@router.post("/{schedule_id}/checksheet", response_model=MaintenanceScheduleRead)
def upload_checksheet(
    schedule_id: str,
    checksheet: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    store: storage.ScheduleFileStore = Depends(storage.get_file_store),
    current_user: account_models.User = Depends(require_roles(*SCHEDULE_WRITE_ROLES)),
) -> MaintenanceScheduleRead:
    schedule = services.attach_checksheet(db, schedule_id, upload=checksheet, store=store)
    return _read(db, schedule)


@router.get("/{schedule_id}/checksheet", response_class=FileResponse)
def download_checksheet(
    schedule_id: str,
    db: Session = Depends(get_read_db),
    store: storage.ScheduleFileStore = Depends(storage.get_file_store),
    current_user: account_models.User = Depends(get_current_active_user),
):
    schedule = services.get_schedule(db, schedule_id)
    return _download(schedule.checksheet_path, schedule.checksheet_filename, store)


@router.delete("/{schedule_id}/checksheet", response_model=MaintenanceScheduleRead)
def delete_checksheet(
    schedule_id: str,
    db: Session = Depends(get_db),
    store: storage.ScheduleFileStore = Depends(storage.get_file_store),
    current_user: account_models.User = Depends(require_roles(*SCHEDULE_WRITE_ROLES)),
) -> MaintenanceScheduleRead:
    schedule = services.remove_checksheet(db, schedule_id, store=store)
    return _read(db, schedule)


@router.get("/{schedule_id}/completion-attachment", response_class=FileResponse)
def download_completion_attachment(
    schedule_id: str,
    db: Session = Depends(get_read_db),
    store: storage.ScheduleFileStore = Depends(storage.get_file_store),
    current_user: account_models.User = Depends(get_current_active_user),
):
    schedule = services.get_schedule(db, schedule_id)
    return _download(
        schedule.completion_attachment_path,
        schedule.completion_attachment_filename,
        store,
    )


# ---------------------------------------------------------------------------
# Yearly plan grid
# ---------------------------------------------------------------------------


@yearly_router.get("", response_model=List[YearlyPlanRead])
def list_yearly_plans(
    year: int = Query(...),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
) -> List[YearlyPlanRead]:
    return [services.to_yearly_plan_read(p) for p in services.list_yearly_plans(db, year)]


@yearly_router.post("", response_model=YearlyPlanUpsertResult)
def save_yearly_plans(
    payload: YearlyPlanUpsert,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*YEARLY_PLAN_WRITE_ROLES)),
) -> YearlyPlanUpsertResult:
    saved, deleted = services.upsert_yearly_plans(db, payload.year, payload.plans)
    db.commit()
    plans = services.list_yearly_plans(db, payload.year)
    return YearlyPlanUpsertResult(
        year=payload.year,
        saved=saved,
        deleted=deleted,
        plans=[services.to_yearly_plan_read(p) for p in plans],
    )
