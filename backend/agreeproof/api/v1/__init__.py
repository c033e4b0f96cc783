"""Versioned API router."""

from fastapi import APIRouter

from . import agreements, auth, health, jobs

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(agreements.router, prefix="/agreements", tags=["agreements"])
router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])

__all__ = ["router"]
