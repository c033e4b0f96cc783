"""Health check endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from agreeproof.core.config import get_settings
from agreeproof.schemas.common import ApiResponse, envelope

router = APIRouter()


@router.get("", response_model=ApiResponse[dict[str, Any]], summary="Service health")
async def healthcheck() -> dict[str, Any]:
    """Return application health metadata."""
    settings = get_settings()
    return envelope(
        "AgreeProof API is running",
        {
            "status": "ok",
            "service": settings.app_name,
            "timestamp": datetime.now(UTC).isoformat(),
            "environment": settings.app_env,
        },
    )
