"""Tests for the scheduled job endpoints and worker wiring."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from agreeproof import worker

pytestmark = pytest.mark.asyncio


async def _authenticate(client: AsyncClient, email: str, password: str) -> str:
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


async def test_jobs_require_admin(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    token = await _authenticate(
        client, app_context["owner_email"], app_context["owner_password"]
    )

    listing = await client.get(
        "/api/v1/jobs", headers={"Authorization": f"Bearer {token}"}
    )
    anonymous = await client.post("/api/v1/jobs/mark_overdue/run")

    assert listing.status_code == 403
    assert anonymous.status_code == 401


async def test_admin_lists_and_runs_jobs(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    token = await _authenticate(
        client, app_context["admin_email"], app_context["admin_password"]
    )
    headers = {"Authorization": f"Bearer {token}"}
    await client.post(
        "/api/v1/agreements",
        json={
            "title": "Desk sale",
            "content": "Asha sells a desk to Bilal.",
            "partyA": {"name": "Asha", "contact": "asha@example.com"},
            "partyB": {"name": "Bilal", "contact": "bilal@example.com"},
        },
    )

    listing = await client.get("/api/v1/jobs", headers=headers)
    assert listing.status_code == 200
    assert {job["name"] for job in listing.json()["data"]} == {
        "send_reminders",
        "mark_overdue",
        "collect_statistics",
        "email_health",
    }

    stats = await client.post("/api/v1/jobs/collect_statistics/run", headers=headers)
    assert stats.status_code == 200
    assert stats.json()["data"]["result"]["total"] == 1
    assert stats.json()["data"]["result"]["PENDING"] == 1

    overdue = await client.post("/api/v1/jobs/mark_overdue/run", headers=headers)
    assert overdue.json()["data"]["result"] == {
        "examined": 0,
        "processed": 0,
        "failed": 0,
    }

    unknown = await client.post("/api/v1/jobs/rebuild_index/run", headers=headers)
    assert unknown.status_code == 404


async def test_worker_settings_register_every_job() -> None:
    assert set(worker.WorkerSettings.functions) == {
        job.func for job in worker.JOB_REGISTRY.values()
    }
    assert len(worker.WorkerSettings.cron_jobs) == len(worker.JOB_REGISTRY)
