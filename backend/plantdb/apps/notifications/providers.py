from __future__ import annotations

import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class EmailProvider:
    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        raise NotImplementedError


class NoopProvider(EmailProvider):
    """Logs the would-be message instead of delivering it."""

    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        logger.info(
            "Email transport not configured; mock send",
            extra={
                "template_key": template_key,
                "recipient": recipient,
                "subject": subject,
                "correlation_id": correlation_id,
            },
        )
        logger.debug("Mock email body for %s: %s", recipient, context.get("html"))


class SmtpProvider(EmailProvider):
    """
    Plain smtplib transport. Port 465 uses implicit TLS; any other port
    upgrades with STARTTLS when the server offers it.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: Optional[str] = None,
        timeout: float = 20.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout

    def _build_message(self, *, recipient: str, subject: str, context: dict) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = recipient
        msg.set_content(context.get("text") or "")
        if context.get("html"):
            msg.add_alternative(context["html"], subtype="html")
        return msg

    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        msg = self._build_message(recipient=recipient, subject=subject, context=context)
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as server:
                server.login(self.username, self.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
                server.login(self.username, self.password)
                server.send_message(msg)
        logger.info(
            "Email sent",
            extra={
                "template_key": template_key,
                "recipient": recipient,
                "correlation_id": correlation_id,
            },
        )


def _smtp_settings() -> Optional[dict]:
    host = (os.getenv("SMTP_HOST") or "").strip()
    port = (os.getenv("SMTP_PORT") or "").strip()
    user = (os.getenv("SMTP_USER") or "").strip()
    password = os.getenv("SMTP_PASS") or ""
    if not (host and port and user and password):
        return None
    try:
        port_number = int(port)
    except ValueError:
        logger.warning("Ignoring SMTP settings with non-numeric SMTP_PORT=%r", port)
        return None
    return {
        "host": host,
        "port": port_number,
        "username": user,
        "password": password,
        "sender": (os.getenv("SMTP_FROM") or "").strip() or user,
    }


def get_email_provider() -> Tuple[EmailProvider, bool]:
    provider_name = (
        os.getenv("NOTIFICATIONS_EMAIL_PROVIDER")
        or os.getenv("EMAIL_PROVIDER")
        or ""
    ).strip().lower()
    if provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name and provider_name != "smtp":
        raise ValueError(f"Unsupported email provider: {provider_name}")

    settings = _smtp_settings()
    if settings is None:
        if provider_name == "smtp":
            logger.warning("NOTIFICATIONS_EMAIL_PROVIDER=smtp but SMTP_* settings are incomplete")
        return NoopProvider(), False
    return SmtpProvider(**settings), True
