"""Database session and engine helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agreeproof.core.config import get_settings

logger = logging.getLogger(__name__)

_engines: dict[str, AsyncEngine] = {}
_sessionmakers: dict[str, async_sessionmaker[AsyncSession]] = {}


def _database_url(override: str | None = None) -> str:
    return override or get_settings().database_url


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Return (and cache) the async engine for a database URL."""
    url = _database_url(database_url)
    engine = _engines.get(url)
    if engine is None:
        engine = create_async_engine(url, echo=False, pool_pre_ping=True)
        _engines[url] = engine
    return engine


def get_sessionmaker(
    database_url: str | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Return (and cache) an async sessionmaker bound to the cached engine."""
    url = _database_url(database_url)
    sessionmaker = _sessionmakers.get(url)
    if sessionmaker is None:
        sessionmaker = async_sessionmaker(
            get_engine(url), expire_on_commit=False, class_=AsyncSession
        )
        _sessionmakers[url] = sessionmaker
    return sessionmaker


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield an async database session using the configured engine."""
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        yield session


async def dispose_engine(database_url: str | None = None) -> None:
    """Dispose the cached engine/sessionmaker for the given database URL."""
    url = _database_url(database_url)
    _sessionmakers.pop(url, None)
    engine = _engines.pop(url, None)
    if engine is not None:
        await engine.dispose()


async def dispose_all_engines() -> None:
    """Dispose every cached engine, used on application and worker shutdown."""
    for url in list(_engines):
        try:
            await dispose_engine(url)
        except Exception:  # pragma: no cover - shutdown is best effort
            logger.exception("Failed to dispose database engine")
