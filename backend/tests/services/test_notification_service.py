from __future__ import annotations

from typing import Any

import pytest
from fastapi import BackgroundTasks

from agreeproof.core.config import get_settings
from agreeproof.services import notification_service
from agreeproof.services.notification_service import (
    BackgroundEmailNotifier,
    InlineEmailNotifier,
    check_email_health,
    deliver_notification,
    render_notification,
)

DETAILS = {
    "agreement_id": "AGP-20260301-ABC123",
    "title": "Laptop <loan>",
    "content": "Bilal returns the laptop.",
    "party_a_name": "Asha",
    "party_b_name": "Bilal",
    "amount": "1500.00",
    "currency": "INR",
    "due_date": "2026-03-20",
    "payment_type": "UPI",
    "view_link": "https://agreeproof.test/agreement/AGP-20260301-ABC123",
}


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host
        self.port = port
        self.messages: list[Any] = []
        self.logged_in: tuple[str, str] | None = None
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def starttls(self) -> None:
        return None

    def login(self, username: str, password: str) -> None:
        self.logged_in = (username, password)

    def send_message(self, message: Any) -> None:
        self.messages.append(message)

    def noop(self) -> tuple[int, bytes]:
        return 250, b"OK"


@pytest.fixture()
def smtp_configured(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "app-password")
    monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)
    FakeSMTP.instances = []
    get_settings.cache_clear()
    yield FakeSMTP
    get_settings.cache_clear()


@pytest.fixture()
def smtp_missing(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.delenv("SMTP_PORT", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.parametrize(
    ("template", "extra", "expected"),
    [
        ("agreement_confirmed", {"confirmed_at": "2026-03-01"}, "Agreement Confirmed"),
        ("payment_received", {"payment_notes": "Paid via UPI"}, "Paid via UPI"),
        ("agreement_reminder", {"days_remaining": 1}, "1 day"),
        ("agreement_overdue", {}, "overdue"),
    ],
)
def test_render_agreement_templates(
    template: str, extra: dict[str, Any], expected: str
) -> None:
    subject, html = render_notification(template, {**DETAILS, **extra})

    assert subject == notification_service.SUBJECTS[template]
    assert "AGP-20260301-ABC123" in html
    assert expected.lower() in html.lower()
    assert DETAILS["view_link"] in html
    assert "Laptop &lt;loan&gt;" in html


def test_render_welcome_template() -> None:
    subject, html = render_notification(
        "welcome", {"name": "Asha", "dashboard_link": "https://agreeproof.test/d"}
    )

    assert subject == "Welcome to AgreeProof"
    assert "Asha" in html
    assert "https://agreeproof.test/d" in html


def test_render_unknown_template_raises() -> None:
    with pytest.raises(KeyError):
        render_notification("does_not_exist", DETAILS)


def test_delivery_skipped_without_smtp(smtp_missing) -> None:
    sent = deliver_notification("bilal@example.com", "agreement_overdue", DETAILS)
    assert sent is False

    tasks = BackgroundTasks()
    BackgroundEmailNotifier(tasks).notify(
        "bilal@example.com", "agreement_overdue", DETAILS
    )
    assert tasks.tasks == []
    assert check_email_health() == {"configured": False, "healthy": False}


def test_delivery_sends_html_email(smtp_configured) -> None:
    sent = deliver_notification(
        "bilal@example.com", "agreement_reminder", {**DETAILS, "days_remaining": 2}
    )

    assert sent is True
    server = smtp_configured.instances[-1]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.logged_in == ("mailer@example.com", "app-password")
    message = server.messages[0]
    assert message["To"] == "bilal@example.com"
    assert message["Subject"] == notification_service.SUBJECTS["agreement_reminder"]


def test_background_notifier_queues_delivery(smtp_configured) -> None:
    tasks = BackgroundTasks()

    BackgroundEmailNotifier(tasks).notify(
        "bilal@example.com", "agreement_confirmed", DETAILS
    )

    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].func is deliver_notification


def test_inline_notifier_counts_failures(smtp_configured, monkeypatch) -> None:
    notifier = InlineEmailNotifier()
    notifier.notify("bilal@example.com", "agreement_overdue", DETAILS)

    def _refuse(*args: Any, **kwargs: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr(notification_service.smtplib, "SMTP", _refuse)
    notifier.notify("bilal@example.com", "agreement_overdue", DETAILS)

    assert (notifier.sent, notifier.failed) == (1, 1)


def test_email_health_reports_smtp_status(smtp_configured) -> None:
    assert check_email_health() == {"configured": True, "healthy": True}
