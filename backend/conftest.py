from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["MAINTENANCE_SCHEDULER_ENABLED"] = "false"

from plantdb.database import Base  # noqa: E402
from plantdb.apps.accounts import models as account_models  # noqa: E402
from plantdb.apps.master_data import models as master_models  # noqa: E402
from plantdb.apps.maintenance_plans import models as plan_models  # noqa: E402
from plantdb.apps.maintenance_plans.storage import ScheduleFileStore  # noqa: E402
from plantdb.apps.notifications import models as notification_models  # noqa: E402

_MAIL_ENV = (
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASS",
    "SMTP_FROM",
    "NOTIFICATIONS_EMAIL_PROVIDER",
    "EMAIL_PROVIDER",
    "MAINTENANCE_NOTIFY_RECIPIENTS",
    "MAINTENANCE_NOTIFY_HOD_EMAIL",
    "MAINTENANCE_NOTIFY_MANAGER_EMAIL",
    "MAINTENANCE_NOTIFY_SUPERVISOR_EMAIL",
)


@pytest.fixture(autouse=True)
def _isolate_mail_env(monkeypatch):
    for name in _MAIL_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            master_models.Line.__table__,
            master_models.Machine.__table__,
            plan_models.MaintenanceSchedule.__table__,
            plan_models.MaintenanceScheduleHistory.__table__,
            plan_models.MaintenanceYearlyPlan.__table__,
            notification_models.EmailLog.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def file_store(tmp_path):
    return ScheduleFileStore(tmp_path / "uploads", max_bytes=0)


@pytest.fixture()
def engineer(db_session):
    user = account_models.User(
        username="eng1",
        name="Asha Engineer",
        email="eng1@example.com",
        role=account_models.AccountRole.ENGINEER,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def machine(db_session):
    line = master_models.Line(name="Line 2")
    db_session.add(line)
    db_session.flush()
    cnc = master_models.Machine(
        name="CNC Lathe",
        code="CNC-01",
        type="Lathe",
        line_id=line.id,
        maintenance_frequency="Quarterly",
        pm_plan_year="Feb-May-Aug-Nov",
    )
    db_session.add(cnc)
    db_session.commit()
    return cnc


@pytest.fixture()
def make_schedule(db_session, machine):
    def _make(scheduled_date: date = date(2025, 5, 12), **overrides):
        values = dict(
            machine_id=machine.id,
            scheduled_date=scheduled_date,
            shift="A",
            status=plan_models.ScheduleStatus.SCHEDULED.value,
            maintenance_frequency="Quarterly",
            pre_notification_sent=False,
        )
        values.update(overrides)
        schedule = plan_models.MaintenanceSchedule(**values)
        db_session.add(schedule)
        db_session.commit()
        return schedule

    return _make
