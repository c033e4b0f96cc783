"""Scheduled sweeps: payment reminders, overdue marking and statistics."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from math import ceil
from typing import Any, TypedDict

from agreeproof.core.config import get_settings
from agreeproof.models import Agreement, AgreementStatus, ReminderFrequency
from agreeproof.services.agreement_service import (
    as_utc,
    notification_data,
    notify_best_effort,
)
from agreeproof.services.agreement_store import AgreementStore
from agreeproof.services.notification_service import (
    Notifier,
    check_email_health as probe_smtp,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({AgreementStatus.PENDING, AgreementStatus.CONFIRMED})

REMINDER_INTERVALS = {
    ReminderFrequency.DAILY: timedelta(days=1),
    ReminderFrequency.WEEKLY: timedelta(days=7),
    ReminderFrequency.MONTHLY: timedelta(days=30),
}

# Widest reminder window a record can ask for (``days_before`` is capped at 30).
MAX_REMINDER_WINDOW = timedelta(days=30)


class SweepSummary(TypedDict):
    examined: int
    processed: int
    failed: int


def _summary() -> SweepSummary:
    return {"examined": 0, "processed": 0, "failed": 0}


async def dispatch_notification(
    notifier: Notifier | None, recipient: str, template: str, data: dict[str, Any]
) -> bool:
    """Send one sweep notification and report whether it was delivered.

    Notifiers exposing an awaitable ``deliver`` are awaited; others are only
    handed the request through ``notify``.
    """
    deliver = getattr(notifier, "deliver", None)
    if deliver is None:
        return notify_best_effort(notifier, recipient, template, data)
    try:
        return await deliver(recipient, template, data)
    except Exception:
        logger.exception(
            "Failed to deliver %s notification for %s",
            template,
            data.get("agreement_id"),
        )
        return False


def reminder_due(agreement: Agreement, now: datetime) -> bool:
    """Whether ``agreement`` should receive a reminder at ``now``."""
    due_date = as_utc(agreement.due_date)
    if due_date is None or not agreement.reminder_enabled or due_date <= now:
        return False
    if due_date - now > timedelta(days=agreement.reminder_days_before):
        return False
    last_sent = as_utc(agreement.last_reminder_sent_at)
    if last_sent is None:
        return True
    interval = REMINDER_INTERVALS.get(agreement.reminder_frequency, timedelta(days=1))
    return now - last_sent >= interval


async def send_due_reminders(
    store: AgreementStore,
    notifier: Notifier | None,
    *,
    now: datetime | None = None,
    frontend_url: str | None = None,
) -> SweepSummary:
    """Email partyB about payments falling due within each record's window."""
    now = as_utc(now) or datetime.now(UTC)
    frontend_url = frontend_url or get_settings().frontend_url
    summary = _summary()
    candidates = await store.find_due(
        statuses=ACTIVE_STATUSES,
        due_after=now,
        due_before=now + MAX_REMINDER_WINDOW,
    )
    for agreement in candidates:
        if not reminder_due(agreement, now):
            continue
        summary["examined"] += 1
        try:
            # Claim the reminder slot first so concurrent sweeps skip this record.
            claimed = await store.transition(
                agreement.agreement_id,
                expected_statuses=ACTIVE_STATUSES,
                changes={"last_reminder_sent_at": now},
                match={"last_reminder_sent_at": agreement.last_reminder_sent_at},
            )
            if claimed is None:
                logger.debug(
                    "Reminder for %s already handled elsewhere", agreement.agreement_id
                )
                continue
            days_remaining = max(
                ceil((as_utc(claimed.due_date) - now) / timedelta(days=1)), 0
            )
            data = notification_data(
                claimed, frontend_url=frontend_url, days_remaining=days_remaining
            )
            if await dispatch_notification(
                notifier, claimed.party_b_contact, "agreement_reminder", data
            ):
                summary["processed"] += 1
            else:
                summary["failed"] += 1
        except Exception:
            summary["failed"] += 1
            logger.exception("Reminder failed for agreement %s", agreement.agreement_id)
    logger.info(
        "Reminder sweep finished: %(examined)s examined, %(processed)s sent, "
        "%(failed)s failed",
        summary,
    )
    return summary


async def mark_overdue(
    store: AgreementStore,
    notifier: Notifier | None,
    *,
    now: datetime | None = None,
    frontend_url: str | None = None,
) -> SweepSummary:
    """Move unpaid agreements past their due date to OVERDUE."""
    now = as_utc(now) or datetime.now(UTC)
    frontend_url = frontend_url or get_settings().frontend_url
    summary = _summary()
    candidates = await store.find_due(statuses=ACTIVE_STATUSES, due_before=now)
    for agreement in candidates:
        summary["examined"] += 1
        try:
            updated = await store.transition(
                agreement.agreement_id,
                expected_statuses=ACTIVE_STATUSES,
                changes={"status": AgreementStatus.OVERDUE},
            )
            if updated is None:
                logger.debug(
                    "Agreement %s changed state before overdue marking",
                    agreement.agreement_id,
                )
                continue
            summary["processed"] += 1
            logger.info("Agreement %s marked overdue", agreement.agreement_id)
            delivered = await dispatch_notification(
                notifier,
                updated.party_b_contact,
                "agreement_overdue",
                notification_data(updated, frontend_url=frontend_url),
            )
            if not delivered:
                logger.warning(
                    "Overdue notice for %s was not delivered", agreement.agreement_id
                )
        except Exception:
            summary["failed"] += 1
            logger.exception(
                "Overdue check failed for agreement %s", agreement.agreement_id
            )
    logger.info(
        "Overdue sweep finished: %(examined)s examined, %(processed)s marked, "
        "%(failed)s failed",
        summary,
    )
    return summary


async def collect_statistics(store: AgreementStore) -> dict[str, Any]:
    """Count agreements per status across all owners."""
    counts = await store.count_by_status()
    stats: dict[str, Any] = {
        status.value: counts.get(status, 0) for status in AgreementStatus
    }
    stats["total"] = sum(counts.values())
    logger.info("Agreement statistics: %s", stats)
    return stats


async def check_email_health() -> dict[str, Any]:
    """Report SMTP reachability without blocking the event loop."""
    result = await asyncio.to_thread(probe_smtp)
    if result["configured"] and not result["healthy"]:
        logger.warning("Email service unhealthy: %s", result.get("error"))
    else:
        logger.info("Email service health: %s", result)
    return result


__all__ = [
    "ACTIVE_STATUSES",
    "REMINDER_INTERVALS",
    "SweepSummary",
    "check_email_health",
    "collect_statistics",
    "dispatch_notification",
    "mark_overdue",
    "reminder_due",
    "send_due_reminders",
]
