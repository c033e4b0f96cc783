import asyncio
import time
import uuid
from datetime import timedelta

import pytest

from agreeproof.core.config import get_settings
from agreeproof.models import AgreementStatus
from agreeproof.schemas.agreement import AgreementCreate
from agreeproof.services import notification_service, reminder_service
from agreeproof.services.notification_service import InlineEmailNotifier

pytestmark = pytest.mark.asyncio

FRONTEND = "https://agreeproof.test"


class FailingNotifier:
    def notify(self, recipient, template, data):
        raise RuntimeError("smtp unavailable")


def make_payload(due_in: timedelta, clock, **overrides) -> AgreementCreate:
    data = {
        "title": "Rent share",
        "content": "Bilal pays half of the March rent.",
        "partyA": {"name": "Asha", "contact": "asha@example.com"},
        "partyB": {"name": "Bilal", "contact": "bilal@example.com"},
        "amount": "12000",
        "dueDate": (clock.now + due_in).isoformat(),
    }
    data.update(overrides)
    return AgreementCreate.model_validate(data)


async def test_reminder_sent_once_per_interval(lifecycle, store, notifier, clock):
    agreement = await lifecycle.create(make_payload(timedelta(days=2), clock))

    summary = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now, frontend_url=FRONTEND
    )
    assert summary == {"examined": 1, "processed": 1, "failed": 0}
    recipient, template, data = notifier.sent[-1]
    assert (recipient, template) == ("bilal@example.com", "agreement_reminder")
    assert data["days_remaining"] == 2
    assert data["view_link"] == f"{FRONTEND}/agreement/{agreement.agreement_id}"

    repeat = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now + timedelta(hours=2), frontend_url=FRONTEND
    )
    assert repeat["processed"] == 0
    assert len(notifier.sent) == 1

    next_day = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now + timedelta(days=1), frontend_url=FRONTEND
    )
    assert next_day["processed"] == 1
    assert notifier.sent[-1][2]["days_remaining"] == 1


async def test_reminders_respect_window_and_settings(lifecycle, store, notifier, clock):
    await lifecycle.create(make_payload(timedelta(days=10), clock))
    await lifecycle.create(
        make_payload(
            timedelta(days=1),
            clock,
            title="Muted",
            reminderSettings={"enabled": False},
        )
    )
    await lifecycle.create(
        make_payload(
            timedelta(days=6),
            clock,
            title="Early bird",
            reminderSettings={"daysBefore": 7, "frequency": "weekly"},
        )
    )

    summary = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now, frontend_url=FRONTEND
    )

    assert summary["processed"] == 1
    assert notifier.sent[0][2]["title"] == "Early bird"


async def test_confirmed_agreements_still_get_reminders(
    lifecycle, store, notifier, clock
):
    agreement = await lifecycle.create(make_payload(timedelta(days=1), clock))
    await lifecycle.confirm(agreement.agreement_id)

    summary = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now, frontend_url=FRONTEND
    )

    assert summary["processed"] == 1
    assert notifier.templates()[-1] == "agreement_reminder"


async def test_failed_delivery_is_counted(lifecycle, store, clock):
    await lifecycle.create(make_payload(timedelta(days=1), clock))

    summary = await reminder_service.send_due_reminders(
        store, FailingNotifier(), now=clock.now, frontend_url=FRONTEND
    )

    assert summary == {"examined": 1, "processed": 0, "failed": 1}


class SlowSMTP:
    delay = 0.2

    def __init__(self, host, port, timeout):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None

    def starttls(self):
        return None

    def login(self, username, password):
        return None

    def send_message(self, message):
        time.sleep(self.delay)


@pytest.fixture()
def smtp_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


async def test_sweep_email_delivery_keeps_event_loop_responsive(
    lifecycle, store, clock, smtp_env
):
    smtp_env.setattr(notification_service.smtplib, "SMTP", SlowSMTP)
    for title in ("Rent", "Laptop", "Bike"):
        await lifecycle.create(make_payload(timedelta(days=1), clock, title=title))
    ticks = 0

    async def heartbeat():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    beat = asyncio.create_task(heartbeat())
    try:
        notifier = InlineEmailNotifier()
        summary = await reminder_service.mark_overdue(
            store, notifier, now=clock.now + timedelta(days=2), frontend_url=FRONTEND
        )
    finally:
        beat.cancel()

    assert summary == {"examined": 3, "processed": 3, "failed": 0}
    assert notifier.sent == 3
    assert ticks >= 10


async def test_undelivered_reminder_is_reported_as_failed(
    lifecycle, store, clock, smtp_env
):
    def _refuse(*args, **kwargs):
        raise OSError("connection refused")

    smtp_env.setattr(notification_service.smtplib, "SMTP", _refuse)
    await lifecycle.create(make_payload(timedelta(days=2), clock))
    notifier = InlineEmailNotifier()

    summary = await reminder_service.send_due_reminders(
        store, notifier, now=clock.now, frontend_url=FRONTEND
    )

    assert summary == {"examined": 1, "processed": 0, "failed": 1}
    assert (notifier.sent, notifier.failed) == (0, 1)


async def test_mark_overdue_moves_unpaid_agreements(lifecycle, store, notifier, clock):
    unpaid = await lifecycle.create(make_payload(timedelta(days=1), clock))
    confirmed = await lifecycle.create(
        make_payload(timedelta(days=1), clock, title="Confirmed loan")
    )
    await lifecycle.confirm(confirmed.agreement_id)
    later = await lifecycle.create(
        make_payload(timedelta(days=5), clock, title="Later loan")
    )

    summary = await reminder_service.mark_overdue(
        store, notifier, now=clock.now + timedelta(days=2), frontend_url=FRONTEND
    )

    assert summary == {"examined": 2, "processed": 2, "failed": 0}
    assert (await store.get(unpaid.agreement_id)).status == AgreementStatus.OVERDUE
    assert (await store.get(confirmed.agreement_id)).status == AgreementStatus.OVERDUE
    assert (await store.get(later.agreement_id)).status == AgreementStatus.PENDING
    assert notifier.templates().count("agreement_overdue") == 2

    again = await reminder_service.mark_overdue(
        store, notifier, now=clock.now + timedelta(days=2), frontend_url=FRONTEND
    )
    assert again["processed"] == 0


async def test_paid_and_cancelled_agreements_are_never_overdue(
    lifecycle, store, notifier, clock
):
    owner_id = uuid.uuid4()
    paid = await lifecycle.create(
        make_payload(timedelta(days=1), clock), owner_id=owner_id
    )
    cancelled = await lifecycle.create(
        make_payload(timedelta(days=1), clock, title="Called off"), owner_id=owner_id
    )
    await lifecycle.mark_paid(paid.agreement_id, owner_id)
    await lifecycle.cancel(cancelled.agreement_id, owner_id)

    summary = await reminder_service.mark_overdue(
        store, notifier, now=clock.now + timedelta(days=3), frontend_url=FRONTEND
    )

    assert summary["processed"] == 0
    assert (await store.get(paid.agreement_id)).status == AgreementStatus.PAID
    assert (await store.get(cancelled.agreement_id)).status == AgreementStatus.CANCELLED


async def test_overdue_agreement_can_still_be_paid(lifecycle, store, notifier, clock):
    owner_id = uuid.uuid4()
    agreement = await lifecycle.create(
        make_payload(timedelta(days=1), clock), owner_id=owner_id
    )
    await reminder_service.mark_overdue(
        store, notifier, now=clock.now + timedelta(days=2), frontend_url=FRONTEND
    )

    paid = await lifecycle.mark_paid(agreement.agreement_id, owner_id)

    assert paid.status == AgreementStatus.PAID


async def test_collect_statistics_counts_every_status(lifecycle, store, clock):
    first = await lifecycle.create(make_payload(timedelta(days=3), clock))
    await lifecycle.create(make_payload(timedelta(days=3), clock, title="Second"))
    await lifecycle.confirm(first.agreement_id)

    stats = await reminder_service.collect_statistics(store)

    assert stats["total"] == 2
    assert stats["PENDING"] == 1
    assert stats["CONFIRMED"] == 1
    assert stats["PAID"] == 0
