# backend/plantdb/apps/maintenance_plans/scheduler.py
"""
Maintenance email notifications and the hourly reminder loop.

Reminder rule: a `scheduled` row whose `pre_notification_sent` latch is
still False gets one reminder when its date is exactly tomorrow. The latch
is set whether or not delivery worked. Rows missed while the process was
down are not back-filled.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ...database import WriteSessionLocal
from ..notifications import service as notification_service
from ..notifications import templates
from . import models

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_INTERVAL_SEC = 3600
MIN_REMINDER_INTERVAL_SEC = 1


def _interval_from_env(raw: Optional[str]) -> int:
    """Parse MAINTENANCE_REMINDER_INTERVAL_SEC; unusable values fall back to hourly."""
    try:
        value = int((raw or "").strip())
    except ValueError:
        return DEFAULT_REMINDER_INTERVAL_SEC
    if value < MIN_REMINDER_INTERVAL_SEC:
        logger.warning(
            "Ignoring non-positive reminder interval",
            extra={"interval": value, "fallback": DEFAULT_REMINDER_INTERVAL_SEC},
        )
        return DEFAULT_REMINDER_INTERVAL_SEC
    return value


REMINDER_INTERVAL_SEC = _interval_from_env(os.getenv("MAINTENANCE_REMINDER_INTERVAL_SEC"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fields_for(schedule: models.MaintenanceSchedule, *, completed_date=None) -> Dict[str, str]:
    machine = schedule.machine
    line = machine.line if machine is not None else None
    return templates.build_schedule_fields(
        machine_name=machine.name if machine is not None else None,
        machine_code=schedule.machine_code or (machine.code if machine is not None else None),
        line_name=line.name if line is not None else None,
        scheduled_date=schedule.scheduled_date,
        maintenance_frequency=schedule.maintenance_frequency
        or (machine.maintenance_frequency if machine is not None else None),
        notes=schedule.notes,
        completed_date=completed_date,
    )


def _send(
    db: Session,
    schedule: models.MaintenanceSchedule,
    *,
    template_key: str,
    default_template: str,
    subject: str,
    fields: Dict[str, str],
    suffix: str,
) -> list:
    html = templates.render_template(schedule.email_template, default_template, fields)
    return notification_service.send_to_recipients(
        db,
        template_key=template_key,
        recipients=notification_service.resolve_recipients(schedule.email_recipients),
        subject=subject,
        html=html,
        text=templates.html_to_text(html),
        correlation_id=f"maintenance:{schedule.id}:{suffix}",
        context={"schedule_id": schedule.id, "fields": fields},
    )


def send_reminder(db: Session, schedule: models.MaintenanceSchedule) -> list:
    fields = _fields_for(schedule)
    return _send(
        db,
        schedule,
        template_key=templates.REMINDER_TEMPLATE_KEY,
        default_template=templates.DEFAULT_REMINDER_TEMPLATE,
        subject=templates.reminder_subject(fields),
        fields=fields,
        suffix="reminder",
    )


def send_completion_notification(db: Session, schedule_id: str) -> list:
    """
    Render and send the completion notice for one schedule. Returns the
    email log rows written (empty when there was nobody to send to).
    """
    schedule = db.get(models.MaintenanceSchedule, schedule_id)
    if schedule is None:
        logger.warning("Completion notice for unknown schedule", extra={"schedule_id": schedule_id})
        return []
    fields = _fields_for(schedule, completed_date=schedule.completed_at or _utcnow())
    logs = _send(
        db,
        schedule,
        template_key=templates.COMPLETION_TEMPLATE_KEY,
        default_template=templates.DEFAULT_COMPLETION_TEMPLATE,
        subject=templates.completion_subject(fields),
        fields=fields,
        suffix="completion",
    )
    db.commit()
    return logs


def send_upcoming_reminders(db: Session, today: Optional[date] = None) -> Dict[str, int]:
    """
    One reminder scan. Each schedule is committed on its own so a failure
    on one row never blocks the others.
    """
    today = today or date.today()
    target = today + timedelta(days=1)
    S = models.MaintenanceSchedule

    due: List[models.MaintenanceSchedule] = (
        db.query(S)
        .filter(
            S.status == models.ScheduleStatus.SCHEDULED.value,
            S.pre_notification_sent.is_(False),
            S.scheduled_date == target,
        )
        .order_by(S.scheduled_date.asc(), S.created_at.asc())
        .all()
    )

    summary = {"due": len(due), "notified": 0, "emails": 0, "failed": 0}
    for schedule in due:
        schedule_id = schedule.id
        try:
            logs = send_reminder(db, schedule)
            summary["emails"] += len(logs)
        except Exception:
            db.rollback()
            logger.exception("Reminder send failed", extra={"schedule_id": schedule_id})

        try:
            schedule.pre_notification_sent = True
            schedule.updated_at = _utcnow()
            db.commit()
            summary["notified"] += 1
        except Exception:
            db.rollback()
            summary["failed"] += 1
            logger.exception("Could not mark reminder as sent", extra={"schedule_id": schedule_id})

    if due:
        logger.info("Maintenance reminder scan finished", extra={"today": today.isoformat(), **summary})
    return summary


class ReminderScheduler:
    """
    Runs `send_upcoming_reminders` on a daemon thread: once right away,
    then every `interval_seconds` until the process exits. `start` only
    ever launches one thread per instance.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = WriteSessionLocal,
        interval_seconds: int = REMINDER_INTERVAL_SEC,
        today: Callable[[], date] = date.today,
    ):
        self.session_factory = session_factory
        self.interval_seconds = max(MIN_REMINDER_INTERVAL_SEC, int(interval_seconds))
        self.today = today
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._thread is not None

    def start(self) -> bool:
        with self._lock:
            if self._thread is not None:
                return False
            self._thread = threading.Thread(
                target=self._run_forever,
                name="maintenance-reminders",
                daemon=True,
            )
            self._thread.start()
        logger.info("Maintenance reminder scheduler started", extra={"interval": self.interval_seconds})
        return True

    def run_once(self) -> Optional[Dict[str, int]]:
        db = self.session_factory()
        try:
            return send_upcoming_reminders(db, self.today())
        except Exception:
            db.rollback()
            logger.exception("Maintenance reminder scan failed")
            return None
        finally:
            db.close()

    def _run_forever(self) -> None:
        while True:
            self.run_once()
            time.sleep(self.interval_seconds)


_scheduler = ReminderScheduler()


def start_maintenance_scheduler() -> bool:
    """Start the process-wide reminder loop; later calls are no-ops."""
    return _scheduler.start()
