"""Test fixtures for the AgreeProof backend."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from agreeproof.core.config import get_settings
from agreeproof.core.security import get_password_hash
from agreeproof.db.base import Base
from agreeproof.db.session import dispose_engine, get_sessionmaker
from agreeproof.main import app
from agreeproof.models import User
from agreeproof.services.agreement_service import AgreementLifecycle
from agreeproof.services.agreement_store import InMemoryAgreementStore


class RecordingNotifier:
    """Notifier double that keeps every request in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def notify(self, recipient: str, template: str, data: Mapping[str, Any]) -> None:
        self.sent.append((recipient, template, dict(data)))

    def templates(self) -> list[str]:
        return [template for _, template, _ in self.sent]


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture()
def store() -> InMemoryAgreementStore:
    return InMemoryAgreementStore()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def lifecycle(
    store: InMemoryAgreementStore, notifier: RecordingNotifier, clock: FrozenClock
) -> AgreementLifecycle:
    return AgreementLifecycle(
        store, notifier, frontend_url="https://agreeproof.test", clock=clock
    )


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def app_context(
    reset_database: None, db_url: str
) -> AsyncIterator[dict[str, Any]]:
    """Yield an async client plus seeded owner, second user and admin accounts."""
    sessionmaker = get_sessionmaker(db_url)
    owner_password = "Owner1Pass"
    other_password = "Other1Pass"
    admin_password = "Admin1Pass"

    async with sessionmaker() as session:
        owner = User(
            name="Olivia Owner",
            email="owner@example.com",
            hashed_password=get_password_hash(owner_password),
        )
        other = User(
            name="Oscar Other",
            email="other@example.com",
            hashed_password=get_password_hash(other_password),
        )
        admin = User(
            name="Ada Admin",
            email="admin@example.com",
            hashed_password=get_password_hash(admin_password),
            is_admin=True,
        )
        session.add_all([owner, other, admin])
        await session.commit()

        context: dict[str, Any] = {
            "owner_id": owner.id,
            "owner_email": owner.email,
            "owner_password": owner_password,
            "other_email": other.email,
            "other_password": other_password,
            "admin_email": admin.email,
            "admin_password": admin_password,
            "sessionmaker": sessionmaker,
        }

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context

