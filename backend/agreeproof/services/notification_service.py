"""Email notifications for agreement events."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Mapping, Protocol

from fastapi import BackgroundTasks
from jinja2 import Environment, FileSystemLoader, select_autoescape

from agreeproof.core.config import get_settings

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
_ENV = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)

SUBJECTS: dict[str, str] = {
    "agreement_confirmed": "Agreement Confirmed - AgreeProof",
    "payment_received": "Payment Received - Agreement Marked as Paid - AgreeProof",
    "agreement_reminder": "Reminder: Agreement Payment Due Soon - AgreeProof",
    "agreement_overdue": "Payment Overdue - AgreeProof",
    "welcome": "Welcome to AgreeProof",
}


class Notifier(Protocol):
    """Accepts a notification request; delivery failures never reach the caller."""

    def notify(
        self, recipient: str, template: str, data: Mapping[str, Any]
    ) -> None: ...


def render_notification(template: str, data: Mapping[str, Any]) -> tuple[str, str]:
    """Return ``(subject, html_body)`` for a named template."""
    if template not in SUBJECTS:
        raise KeyError(f"Unknown email template: {template}")
    html = _ENV.get_template(f"{template}.html").render(**data)
    return SUBJECTS[template], html


def _deliver_email(to_email: str, subject: str, html_body: str) -> bool:
    """Send an email immediately.

    Returns False when SMTP is not configured. Raises on transport errors.
    """
    settings = get_settings()
    if not settings.smtp_enabled:
        logger.info("SMTP configuration missing; skipping email to %s", to_email)
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = to_email
    message["From"] = (
        settings.smtp_from or settings.smtp_username or "no-reply@agreeproof.local"
    )
    message.set_content("This message contains HTML content.")
    message.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
        if settings.smtp_username and settings.smtp_password:
            try:
                server.starttls()
            except smtplib.SMTPException:
                logger.debug("SMTP server does not support STARTTLS")
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(message)
    return True


def deliver_notification(
    recipient: str, template: str, data: Mapping[str, Any]
) -> bool:
    """Render and send one notification, logging instead of raising."""
    if not recipient:
        logger.debug("No recipient for %s notification; skipping", template)
        return False
    try:
        subject, html = render_notification(template, data)
        sent = _deliver_email(recipient, subject, html)
    except Exception:
        logger.exception("Failed to send %s email to %s", template, recipient)
        return False
    if sent:
        logger.info("Sent %s email to %s", template, recipient)
    return sent


class BackgroundEmailNotifier:
    """Queues delivery on FastAPI background tasks, after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self.background_tasks = background_tasks

    def notify(self, recipient: str, template: str, data: Mapping[str, Any]) -> None:
        if not get_settings().smtp_enabled:
            logger.debug("SMTP disabled; skipping %s email to %s", template, recipient)
            return
        self.background_tasks.add_task(
            deliver_notification, recipient, template, dict(data)
        )


class InlineEmailNotifier:
    """Delivers immediately; used by the scheduled sweeps.

    ``deliver`` runs the SMTP exchange on a worker thread and reports whether
    the email went out, so sweeps can count real deliveries.
    """

    def __init__(self) -> None:
        self.sent = 0
        self.failed = 0

    def _record(self, delivered: bool) -> bool:
        if delivered:
            self.sent += 1
        elif get_settings().smtp_enabled:
            self.failed += 1
        return delivered

    def notify(self, recipient: str, template: str, data: Mapping[str, Any]) -> None:
        self._record(deliver_notification(recipient, template, data))

    async def deliver(
        self, recipient: str, template: str, data: Mapping[str, Any]
    ) -> bool:
        delivered = await asyncio.to_thread(
            deliver_notification, recipient, template, dict(data)
        )
        return self._record(delivered)


def check_email_health() -> dict[str, Any]:
    """Probe the SMTP server and report whether it accepts connections."""
    settings = get_settings()
    if not settings.smtp_enabled:
        return {"configured": False, "healthy": False}
    try:
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=10
        ) as server:
            code, _ = server.noop()
    except (OSError, smtplib.SMTPException) as exc:
        logger.warning("SMTP health check failed: %s", exc)
        return {"configured": True, "healthy": False, "error": str(exc)}
    return {"configured": True, "healthy": code == 250}


__all__ = [
    "BackgroundEmailNotifier",
    "InlineEmailNotifier",
    "Notifier",
    "SUBJECTS",
    "check_email_health",
    "deliver_notification",
    "render_notification",
]
