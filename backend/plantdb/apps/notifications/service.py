from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from plantdb.database import WriteSessionLocal

from . import models, providers

logger = logging.getLogger(__name__)

_RECIPIENT_SPLIT_RE = re.compile(r"[,;\n]")

# Process-wide fallbacks when a schedule carries no recipients of its own.
_DEFAULT_RECIPIENT_ENV = "MAINTENANCE_NOTIFY_RECIPIENTS"
_ROLE_RECIPIENT_ENVS = (
    "MAINTENANCE_NOTIFY_HOD_EMAIL",
    "MAINTENANCE_NOTIFY_MANAGER_EMAIL",
    "MAINTENANCE_NOTIFY_SUPERVISOR_EMAIL",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_recipients(value: Optional[str]) -> List[str]:
    """Split a comma / semicolon / newline separated list, dropping blanks."""
    if not value:
        return []
    seen = []
    for part in _RECIPIENT_SPLIT_RE.split(value):
        email = part.strip()
        if email and email not in seen:
            seen.append(email)
    return seen


def default_recipients() -> List[str]:
    configured = parse_recipients(os.getenv(_DEFAULT_RECIPIENT_ENV))
    if configured:
        return configured
    return parse_recipients(",".join(os.getenv(name) or "" for name in _ROLE_RECIPIENT_ENVS))


def resolve_recipients(schedule_recipients: Optional[str]) -> List[str]:
    return parse_recipients(schedule_recipients) or default_recipients()


def send_email(
    template_key: str,
    recipient: str,
    subject: str,
    context: dict,
    correlation_id: Optional[str],
    critical: bool = False,
    *,
    db: Optional[Session] = None,
) -> models.EmailLog:
    owns_session = db is None
    db = db or WriteSessionLocal()
    log = models.EmailLog(
        recipient=recipient,
        subject=subject,
        template_key=template_key,
        status=models.EmailStatus.QUEUED,
        context_json=context or {},
        correlation_id=correlation_id,
    )
    try:
        db.add(log)
        db.flush()

        provider, configured = providers.get_email_provider()
        if not configured:
            provider.send(
                template_key=template_key,
                recipient=recipient,
                subject=subject,
                context=context or {},
                correlation_id=correlation_id,
            )
            log.status = models.EmailStatus.SKIPPED_NO_PROVIDER
            log.error = "No provider configured"
            db.add(log)
            if owns_session:
                db.commit()
            return log

        try:
            provider.send(
                template_key=template_key,
                recipient=recipient,
                subject=subject,
                context=context or {},
                correlation_id=correlation_id,
            )
            log.status = models.EmailStatus.SENT
            log.sent_at = _utcnow()
        except Exception as exc:
            logger.warning(
                "Email delivery failed",
                extra={
                    "template_key": template_key,
                    "recipient": recipient,
                    "correlation_id": correlation_id,
                    "error": str(exc),
                },
            )
            log.status = models.EmailStatus.FAILED
            log.error = str(exc)
            if critical:
                db.add(log)
                if owns_session:
                    db.commit()
                raise
        db.add(log)
        if owns_session:
            db.commit()
        return log
    finally:
        if owns_session:
            db.close()


def send_to_recipients(
    db: Session,
    *,
    template_key: str,
    recipients: List[str],
    subject: str,
    html: str,
    text: str,
    correlation_id: Optional[str],
    context: Optional[dict] = None,
) -> List[models.EmailLog]:
    """
    Send one message per recipient, logging each attempt. No recipients
    means the send is skipped with a warning.
    """
    if not recipients:
        logger.warning(
            "No recipients resolved; skipping email",
            extra={"template_key": template_key, "correlation_id": correlation_id},
        )
        return []

    payload = dict(context or {})
    payload.update({"html": html, "text": text})
    return [
        send_email(
            template_key,
            recipient,
            subject,
            payload,
            correlation_id,
            db=db,
        )
        for recipient in recipients
    ]
