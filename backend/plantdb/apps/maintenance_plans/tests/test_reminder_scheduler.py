from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone

import pytest

from plantdb.apps.maintenance_plans import scheduler, services
from plantdb.apps.notifications import models as notification_models
from plantdb.apps.notifications import providers as notification_providers

TODAY = date(2025, 5, 11)


class RecordingProvider(notification_providers.EmailProvider):
    def __init__(self):
        self.sent = []

    def send(self, **kwargs):
        self.sent.append(kwargs)


@pytest.fixture()
def provider(monkeypatch):
    recorder = RecordingProvider()
    monkeypatch.setattr(notification_providers, "get_email_provider", lambda: (recorder, True))
    return recorder


def test_scan_sends_reminder_for_tomorrow_and_flips_latch(db_session, make_schedule, provider):
    schedule = make_schedule(date(2025, 5, 12), email_recipients="a@example.com, b@example.com")

    summary = scheduler.send_upcoming_reminders(db_session, TODAY)

    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is True
    assert summary["due"] == 1
    assert summary["notified"] == 1
    assert [m["recipient"] for m in provider.sent] == ["a@example.com", "b@example.com"]
    assert provider.sent[0]["subject"] == "Maintenance Reminder: CNC Lathe (CNC-01)"
    assert "scheduled maintenance on 2025-05-12" in provider.sent[0]["context"]["html"]


def test_second_scan_does_not_resend(db_session, make_schedule, provider):
    make_schedule(date(2025, 5, 12), email_recipients="a@example.com")

    scheduler.send_upcoming_reminders(db_session, TODAY)
    second = scheduler.send_upcoming_reminders(db_session, TODAY)

    assert second["due"] == 0
    assert len(provider.sent) == 1


@pytest.mark.parametrize("scheduled", [date(2025, 5, 11), date(2025, 5, 10), date(2025, 5, 13), date(2025, 8, 4)])
def test_scan_leaves_other_dates_untouched(db_session, make_schedule, provider, scheduled):
    schedule = make_schedule(scheduled, email_recipients="a@example.com")

    scheduler.send_upcoming_reminders(db_session, TODAY)

    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is False
    assert provider.sent == []


def test_scan_skips_completed_schedules(db_session, make_schedule, provider):
    schedule = make_schedule(date(2025, 5, 12), status="completed", email_recipients="a@example.com")

    scheduler.send_upcoming_reminders(db_session, TODAY)

    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is False
    assert provider.sent == []


def test_latch_is_set_when_no_recipients_resolve(db_session, make_schedule, provider, caplog):
    schedule = make_schedule(date(2025, 5, 12))

    with caplog.at_level(logging.WARNING):
        summary = scheduler.send_upcoming_reminders(db_session, TODAY)

    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is True
    assert summary["emails"] == 0
    assert provider.sent == []
    assert "No recipients resolved" in caplog.text


def test_latch_is_set_when_delivery_fails(db_session, make_schedule, monkeypatch):
    class FailingProvider(notification_providers.EmailProvider):
        def send(self, **kwargs):
            raise RuntimeError("connection refused")

    monkeypatch.setattr(notification_providers, "get_email_provider", lambda: (FailingProvider(), True))
    schedule = make_schedule(date(2025, 5, 12), email_recipients="a@example.com")

    scheduler.send_upcoming_reminders(db_session, TODAY)

    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is True
    log = db_session.query(notification_models.EmailLog).one()
    assert log.status == notification_models.EmailStatus.FAILED
    assert log.error == "connection refused"


def test_default_recipients_come_from_env(db_session, make_schedule, provider, monkeypatch):
    monkeypatch.setenv("MAINTENANCE_NOTIFY_HOD_EMAIL", "hod@example.com")
    monkeypatch.setenv("MAINTENANCE_NOTIFY_SUPERVISOR_EMAIL", "sup@example.com")
    make_schedule(date(2025, 5, 12))

    scheduler.send_upcoming_reminders(db_session, TODAY)

    assert [m["recipient"] for m in provider.sent] == ["hod@example.com", "sup@example.com"]


def test_rescheduled_plan_gets_a_new_reminder(db_session, make_schedule, provider):
    schedule = make_schedule(date(2025, 5, 12), email_recipients="a@example.com")
    scheduler.send_upcoming_reminders(db_session, TODAY)

    services.update_schedule(
        db_session,
        schedule.id,
        {"scheduled_date": date(2025, 5, 20), "notes": "Operator on leave"},
    )
    db_session.commit()
    assert schedule.pre_notification_sent is False

    scheduler.send_upcoming_reminders(db_session, date(2025, 5, 19))
    db_session.refresh(schedule)
    assert schedule.pre_notification_sent is True
    assert len(provider.sent) == 2


def test_completion_notification_uses_custom_template(db_session, make_schedule, provider):
    schedule = make_schedule(
        date(2025, 5, 12),
        status="completed",
        email_recipients="a@example.com",
        email_template="Done: {{machineName}}{{machineCodeFormatted}}\non {{completedDate}}",
    )
    schedule.completed_at = datetime(2025, 5, 12, 16, 0, tzinfo=timezone.utc)
    db_session.commit()

    logs = scheduler.send_completion_notification(db_session, schedule.id)

    assert len(logs) == 1
    assert provider.sent[0]["context"]["html"] == "Done: CNC Lathe (Code: CNC-01)<br/>on 2025-05-12"
    assert provider.sent[0]["subject"] == "Maintenance Completed: CNC Lathe (CNC-01)"


def test_completion_notification_for_unknown_schedule_is_noop(db_session, provider):
    assert scheduler.send_completion_notification(db_session, "missing") == []
    assert provider.sent == []


# ---------------------------------------------------------------------------
# Background loop
# ---------------------------------------------------------------------------


class _CountingScheduler(scheduler.ReminderScheduler):
    def __init__(self):
        super().__init__(session_factory=lambda: None, interval_seconds=3600)
        self.runs = 0
        self.ran = threading.Event()

    def run_once(self):
        self.runs += 1
        self.ran.set()
        return {}


def test_start_only_launches_one_loop():
    loop = _CountingScheduler()

    assert loop.start() is True
    assert loop.start() is False
    assert loop.ran.wait(timeout=5)
    assert loop.runs == 1
    assert loop.started


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 3600), ("", 3600), ("900", 900), ("0", 3600), ("-5", 3600), ("hourly", 3600)],
)
def test_interval_from_env_falls_back_to_hourly(raw, expected):
    assert scheduler._interval_from_env(raw) == expected


def test_loop_interval_is_never_below_one_second():
    loop = scheduler.ReminderScheduler(session_factory=lambda: None, interval_seconds=0)
    assert loop.interval_seconds == 1


def test_tick_failure_is_logged_and_swallowed(caplog):
    class BrokenSession:
        closed = False
        rolled_back = False

        def query(self, *args, **kwargs):
            raise RuntimeError("db offline")

        def rollback(self):
            self.rolled_back = True

        def close(self):
            self.closed = True

    session = BrokenSession()
    loop = scheduler.ReminderScheduler(session_factory=lambda: session, today=lambda: TODAY)

    with caplog.at_level(logging.ERROR):
        assert loop.run_once() is None

    assert session.rolled_back
    assert session.closed
    assert "Maintenance reminder scan failed" in caplog.text
