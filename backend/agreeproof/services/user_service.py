"""User data access helpers."""
from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agreeproof.core.errors import Conflict
from agreeproof.core.security import get_password_hash
from agreeproof.models.user import User
from agreeproof.schemas.auth import ProfileUpdate


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Return a user by email address."""
    result = await session.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Return a user by ID."""
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    is_admin: bool = False,
) -> User:
    """Persist a new user with a hashed password."""
    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        hashed_password=get_password_hash(password),
        is_admin=is_admin,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise Conflict("User already exists with this email") from exc
    await session.refresh(user)
    return user


async def update_profile(
    session: AsyncSession, user: User, payload: ProfileUpdate
) -> User:
    """Update mutable profile fields on a user."""
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)
    await session.commit()
    await session.refresh(user)
    return user


async def set_password(session: AsyncSession, user: User, password: str) -> None:
    user.hashed_password = get_password_hash(password)
    await session.commit()
