"""Redis-backed rate limit dependencies that degrade to no-ops without Redis."""

from __future__ import annotations

import re

from fastapi import Depends, Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from agreeproof.core.config import get_settings

_RATE_PATTERN = re.compile(r"^\s*(\d+)\s*/\s*(\d+)?\s*([a-z]+)\s*$")

_SECONDS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


def parse_rate(value: str, *, fallback: tuple[int, int]) -> tuple[int, int]:
    """Parse ``"100/15 minutes"`` or ``"10/minute"`` into ``(times, seconds)``."""
    match = _RATE_PATTERN.match(value.lower())
    if match is None:
        return fallback
    count, multiplier, unit = match.groups()
    if unit not in _SECONDS:
        return fallback
    return int(count), int(multiplier or 1) * _SECONDS[unit]


def rate_dependency(limit: tuple[int, int]):
    async def _dependency(request: Request, response: Response) -> None:
        if FastAPILimiter.redis is None:
            return None
        limiter = RateLimiter(times=limit[0], seconds=limit[1])
        await limiter(request, response)

    return Depends(_dependency)


_settings = get_settings()

DEFAULT_LIMIT = parse_rate(_settings.rate_limit_default, fallback=(100, 900))
AGREEMENT_LIMIT = parse_rate(_settings.rate_limit_agreements, fallback=(20, 900))
AUTH_LIMIT = parse_rate(_settings.rate_limit_auth, fallback=(5, 900))

DEFAULT_RATE_DEP = rate_dependency(DEFAULT_LIMIT)
AGREEMENT_RATE_DEP = rate_dependency(AGREEMENT_LIMIT)
AUTH_RATE_DEP = rate_dependency(AUTH_LIMIT)

__all__ = [
    "AGREEMENT_RATE_DEP",
    "AUTH_RATE_DEP",
    "DEFAULT_RATE_DEP",
    "parse_rate",
    "rate_dependency",
]
