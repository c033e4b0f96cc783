"""Authentication service helpers: registration, login and token refresh."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from agreeproof.core.errors import AuthExpired, AuthInvalid, Conflict
from agreeproof.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    verify_password,
)
from agreeproof.models.user import User
from agreeproof.schemas.auth import LoginRequest, PasswordChange, RegisterRequest
from agreeproof.services import user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedTokens:
    user: User
    token: str
    refresh_token: str


def issue_tokens(user: User) -> IssuedTokens:
    """Generate an access/refresh token pair for a user."""
    subject = str(user.id)
    return IssuedTokens(
        user=user,
        token=create_access_token(subject, email=user.email),
        refresh_token=create_refresh_token(subject),
    )


async def authenticate_user(
    session: AsyncSession, email: str, password: str
) -> User | None:
    """Validate credentials and return the user if they match."""
    user = await user_service.get_user_by_email(session, email=email)
    if user is None:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def register(session: AsyncSession, payload: RegisterRequest) -> IssuedTokens:
    if await user_service.get_user_by_email(session, payload.email) is not None:
        raise Conflict("User already exists with this email")
    user = await user_service.create_user(
        session, name=payload.name, email=payload.email, password=payload.password
    )
    logger.info("Registered user %s", user.id)
    return issue_tokens(user)


async def login(session: AsyncSession, payload: LoginRequest) -> IssuedTokens:
    user = await authenticate_user(session, payload.email, payload.password)
    if user is None:
        raise AuthInvalid("Invalid email or password")
    if not user.is_active:
        raise AuthInvalid("Account is deactivated")
    user.last_login_at = datetime.now(UTC)
    await session.commit()
    await session.refresh(user)
    return issue_tokens(user)


async def refresh(session: AsyncSession, refresh_token: str) -> IssuedTokens:
    """Exchange a refresh token for a new token pair."""
    try:
        claims = decode_refresh_token(refresh_token)
    except ExpiredSignatureError as exc:
        raise AuthExpired("Refresh token expired") from exc
    except JWTError as exc:
        raise AuthInvalid("Invalid refresh token") from exc

    if claims.get("type") != REFRESH_TOKEN_TYPE:
        raise AuthInvalid("Invalid refresh token")
    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except (ValueError, TypeError) as exc:
        raise AuthInvalid("Invalid refresh token") from exc

    user = await user_service.get_user(session, user_id)
    if user is None or not user.is_active:
        raise AuthInvalid("Invalid refresh token")
    return issue_tokens(user)


async def change_password(
    session: AsyncSession, user: User, payload: PasswordChange
) -> None:
    if not verify_password(payload.current_password, user.hashed_password):
        raise AuthInvalid("Current password is incorrect")
    await user_service.set_password(session, user, payload.new_password)
    logger.info("Password changed for user %s", user.id)
