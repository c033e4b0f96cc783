"""arq worker running the scheduled agreement sweeps.

Start with ``arq agreeproof.worker.WorkerSettings``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from arq.connections import RedisSettings
from arq.cron import cron

from agreeproof.core.config import get_settings
from agreeproof.core.errors import NotFound
from agreeproof.db.session import dispose_all_engines, get_sessionmaker
from agreeproof.services import reminder_service
from agreeproof.services.agreement_store import SqlAlchemyAgreementStore
from agreeproof.services.notification_service import InlineEmailNotifier

logger = logging.getLogger(__name__)

JobFunc = Callable[[dict[str, Any]], Awaitable[Any]]


def get_redis_settings() -> RedisSettings:
    redis_url = get_settings().redis_url
    if redis_url:
        return RedisSettings.from_dsn(redis_url)
    return RedisSettings()


def _sessionmaker(ctx: dict[str, Any]):
    return ctx.get("sessionmaker") or get_sessionmaker()


async def send_reminders_task(ctx: dict[str, Any]) -> dict[str, int]:
    """Daily reminder emails for payments falling due."""
    async with _sessionmaker(ctx)() as session:
        return await reminder_service.send_due_reminders(
            SqlAlchemyAgreementStore(session), InlineEmailNotifier()
        )


async def mark_overdue_task(ctx: dict[str, Any]) -> dict[str, int]:
    """Daily overdue marking."""
    async with _sessionmaker(ctx)() as session:
        return await reminder_service.mark_overdue(
            SqlAlchemyAgreementStore(session), InlineEmailNotifier()
        )


async def collect_statistics_task(ctx: dict[str, Any]) -> dict[str, Any]:
    async with _sessionmaker(ctx)() as session:
        return await reminder_service.collect_statistics(
            SqlAlchemyAgreementStore(session)
        )


async def email_health_task(ctx: dict[str, Any]) -> dict[str, Any]:
    return await reminder_service.check_email_health()


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    description: str
    schedule: str
    func: JobFunc


def _build_registry() -> dict[str, ScheduledJob]:
    settings = get_settings()
    jobs = [
        ScheduledJob(
            "send_reminders",
            "Send payment reminders for agreements due soon",
            f"daily at {settings.reminder_cron_hour:02d}:00 UTC",
            send_reminders_task,
        ),
        ScheduledJob(
            "mark_overdue",
            "Mark unpaid agreements past their due date as overdue",
            f"daily at {settings.overdue_cron_hour:02d}:00 UTC",
            mark_overdue_task,
        ),
        ScheduledJob(
            "collect_statistics",
            "Log agreement counts per status",
            f"weekly on day {settings.stats_cron_weekday} at "
            f"{settings.stats_cron_hour:02d}:00 UTC",
            collect_statistics_task,
        ),
        ScheduledJob(
            "email_health",
            "Check SMTP connectivity",
            f"every {settings.email_health_cron_hours} hours",
            email_health_task,
        ),
    ]
    return {job.name: job for job in jobs}


JOB_REGISTRY = _build_registry()


async def run_job(name: str, ctx: dict[str, Any] | None = None) -> Any:
    """Run a registered job immediately, outside the cron schedule."""
    job = JOB_REGISTRY.get(name)
    if job is None:
        raise NotFound(f"Unknown job: {name}")
    logger.info("Running job %s on demand", name)
    return await job.func(ctx or {})


def _cron_jobs() -> list:
    settings = get_settings()
    every = max(settings.email_health_cron_hours, 1)
    return [
        cron(send_reminders_task, hour=settings.reminder_cron_hour, minute=0),
        cron(mark_overdue_task, hour=settings.overdue_cron_hour, minute=0),
        cron(
            collect_statistics_task,
            weekday=settings.stats_cron_weekday,
            hour=settings.stats_cron_hour,
            minute=0,
        ),
        cron(email_health_task, hour=set(range(0, 24, every)), minute=0),
    ]


async def startup(ctx: dict[str, Any]) -> None:
    ctx["sessionmaker"] = get_sessionmaker()
    logger.info("Agreement worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    await dispose_all_engines()
    logger.info("Agreement worker stopped")


class WorkerSettings:
    """arq worker settings."""

    functions = [job.func for job in JOB_REGISTRY.values()]
    cron_jobs = _cron_jobs()
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    max_tries = 3
    job_timeout = 600
