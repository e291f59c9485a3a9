from __future__ import annotations

import pytest

from plantdb.apps.notifications import models as notification_models
from plantdb.apps.notifications import providers as notification_providers
from plantdb.apps.notifications import service as notification_service


def test_send_email_no_provider_marks_skipped(db_session, monkeypatch):
    monkeypatch.setattr(
        notification_providers,
        "get_email_provider",
        lambda: (notification_providers.NoopProvider(), False),
    )

    log = notification_service.send_email(
        "maintenance_reminder",
        "notify@example.com",
        "Reminder",
        {"schedule_id": "1", "html": "Hello"},
        correlation_id="maintenance:1:reminder",
        db=db_session,
    )
    db_session.commit()

    assert log.status == notification_models.EmailStatus.SKIPPED_NO_PROVIDER
    assert log.error
    assert log.sent_at is None


def test_send_email_provider_success(db_session, monkeypatch):
    class FakeProvider(notification_providers.EmailProvider):
        def send(self, **kwargs):
            return None

    monkeypatch.setattr(
        notification_providers,
        "get_email_provider",
        lambda: (FakeProvider(), True),
    )

    log = notification_service.send_email(
        "maintenance_reminder",
        "notify@example.com",
        "Reminder",
        {"schedule_id": "1"},
        correlation_id="maintenance:1:reminder",
        db=db_session,
    )
    db_session.commit()

    assert log.status == notification_models.EmailStatus.SENT
    assert log.sent_at is not None
    assert log.error is None


def test_send_email_provider_failure_best_effort(db_session, monkeypatch):
    class FailingProvider(notification_providers.EmailProvider):
        def send(self, **kwargs):
            raise RuntimeError("boom")

    monkeypatch.setattr(
        notification_providers,
        "get_email_provider",
        lambda: (FailingProvider(), True),
    )

    log = notification_service.send_email(
        "maintenance_completion",
        "notify@example.com",
        "Completed",
        {"schedule_id": "1"},
        correlation_id="maintenance:1:completion",
        db=db_session,
    )
    db_session.commit()

    assert log.status == notification_models.EmailStatus.FAILED
    assert log.error == "boom"


def test_send_email_provider_failure_critical_raises(db_session, monkeypatch):
    class FailingProvider(notification_providers.EmailProvider):
        def send(self, **kwargs):
            raise RuntimeError("boom")

    monkeypatch.setattr(
        notification_providers,
        "get_email_provider",
        lambda: (FailingProvider(), True),
    )

    with pytest.raises(RuntimeError):
        notification_service.send_email(
            "maintenance_completion",
            "notify@example.com",
            "Completed",
            {"schedule_id": "1"},
            correlation_id="maintenance:1:completion",
            critical=True,
            db=db_session,
        )


def test_send_to_recipients_writes_one_log_per_recipient(db_session):
    logs = notification_service.send_to_recipients(
        db_session,
        template_key="maintenance_reminder",
        recipients=["a@example.com", "b@example.com"],
        subject="Maintenance Reminder: Press (P-1)",
        html="Hello<br/>there",
        text="Hello\nthere",
        correlation_id="maintenance:9:reminder",
    )
    db_session.commit()

    assert [log.recipient for log in logs] == ["a@example.com", "b@example.com"]
    assert all(log.status == notification_models.EmailStatus.SKIPPED_NO_PROVIDER for log in logs)
    assert logs[0].context_json["html"] == "Hello<br/>there"


def test_send_to_recipients_without_recipients_skips(db_session):
    logs = notification_service.send_to_recipients(
        db_session,
        template_key="maintenance_reminder",
        recipients=[],
        subject="s",
        html="h",
        text="t",
        correlation_id=None,
    )
    assert logs == []
    assert db_session.query(notification_models.EmailLog).count() == 0


# ---------------------------------------------------------------------------
# Recipients
# ---------------------------------------------------------------------------


def test_parse_recipients_splits_and_trims():
    raw = " a@example.com ;b@example.com,\n c@example.com ,, a@example.com "
    assert notification_service.parse_recipients(raw) == [
        "a@example.com",
        "b@example.com",
        "c@example.com",
    ]
    assert notification_service.parse_recipients(None) == []


def test_resolve_recipients_prefers_schedule_list(monkeypatch):
    monkeypatch.setenv("MAINTENANCE_NOTIFY_RECIPIENTS", "team@example.com")
    assert notification_service.resolve_recipients("own@example.com") == ["own@example.com"]
    assert notification_service.resolve_recipients("  ") == ["team@example.com"]


def test_default_recipients_fall_back_to_role_addresses(monkeypatch):
    monkeypatch.setenv("MAINTENANCE_NOTIFY_MANAGER_EMAIL", "manager@example.com")
    assert notification_service.default_recipients() == ["manager@example.com"]


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def test_provider_defaults_to_noop_without_smtp_settings():
    provider, configured = notification_providers.get_email_provider()
    assert isinstance(provider, notification_providers.NoopProvider)
    assert configured is False


def test_provider_uses_smtp_when_fully_configured(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("SMTP_USER", "plant@example.com")
    monkeypatch.setenv("SMTP_PASS", "secret")

    provider, configured = notification_providers.get_email_provider()

    assert configured is True
    assert isinstance(provider, notification_providers.SmtpProvider)
    assert provider.port == 465
    assert provider.sender == "plant@example.com"


def test_provider_partial_smtp_settings_fall_back_to_noop(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")

    provider, configured = notification_providers.get_email_provider()
    assert isinstance(provider, notification_providers.NoopProvider)
    assert configured is False


def test_provider_rejects_unknown_name(monkeypatch):
    monkeypatch.setenv("NOTIFICATIONS_EMAIL_PROVIDER", "carrier-pigeon")
    with pytest.raises(ValueError):
        notification_providers.get_email_provider()


def test_smtp_provider_uses_starttls_on_submission_port(monkeypatch):
    events = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            events.append(("connect", host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def ehlo(self):
            events.append(("ehlo",))

        def has_extn(self, name):
            return name == "starttls"

        def starttls(self):
            events.append(("starttls",))

        def login(self, user, password):
            events.append(("login", user))

        def send_message(self, msg):
            events.append(("send", msg["To"], msg["From"], msg["Subject"]))

    monkeypatch.setattr(notification_providers.smtplib, "SMTP", FakeSMTP)

    provider = notification_providers.SmtpProvider(
        host="smtp.example.com",
        port=587,
        username="plant@example.com",
        password="secret",
        sender="Maintenance <pm@example.com>",
    )
    provider.send(
        template_key="maintenance_reminder",
        recipient="hod@example.com",
        subject="Maintenance Reminder: Press (P-1)",
        context={"html": "Hello<br/>there", "text": "Hello\nthere"},
        correlation_id="maintenance:1:reminder",
    )

    assert ("starttls",) in events
    assert events[-1] == (
        "send",
        "hod@example.com",
        "Maintenance <pm@example.com>",
        "Maintenance Reminder: Press (P-1)",
    )
