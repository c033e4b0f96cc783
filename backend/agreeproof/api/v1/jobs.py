"""Administrative endpoints for scheduled jobs."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from agreeproof.api.deps import AdminUser
from agreeproof.schemas.common import ApiResponse, envelope
from agreeproof.worker import JOB_REGISTRY, run_job

router = APIRouter()


@router.get(
    "", response_model=ApiResponse[list[dict[str, str]]], summary="List scheduled jobs"
)
async def list_jobs(current_user: AdminUser) -> dict[str, Any]:
    jobs = [
        {"name": job.name, "description": job.description, "schedule": job.schedule}
        for job in JOB_REGISTRY.values()
    ]
    return envelope("Scheduled jobs retrieved successfully", jobs)


@router.post(
    "/{name}/run",
    response_model=ApiResponse[dict[str, Any]],
    summary="Run a scheduled job now",
)
async def trigger_job(name: str, current_user: AdminUser) -> dict[str, Any]:
    result = await run_job(name)
    return envelope(f"Job {name} completed", {"job": name, "result": result})
