"""Common API dependencies."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from agreeproof.core.config import get_settings
from agreeproof.core.errors import AuthExpired, AuthInvalid, Forbidden
from agreeproof.core.security import ACCESS_TOKEN_TYPE, decode_access_token
from agreeproof.db.session import get_session
from agreeproof.models.user import User
from agreeproof.services import user_service
from agreeproof.services.agreement_service import AgreementLifecycle
from agreeproof.services.agreement_store import SqlAlchemyAgreementStore
from agreeproof.services.notification_service import BackgroundEmailNotifier

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_v1_prefix}/auth/token", auto_error=False
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


def _request_token(request: Request, header_token: str | None) -> str | None:
    if header_token:
        return header_token
    return request.cookies.get(get_settings().auth_cookie_name) or None


async def _user_from_token(session: AsyncSession, token: str) -> User:
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError as exc:
        raise AuthExpired() from exc
    except JWTError as exc:
        raise AuthInvalid() from exc

    if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        raise AuthInvalid()
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except (ValueError, TypeError) as exc:
        raise AuthInvalid() from exc

    user = await user_service.get_user(session, user_id)
    if user is None:
        raise AuthInvalid("User not found")
    if not user.is_active:
        raise AuthInvalid("Account is deactivated")
    return user


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Authenticate the request via bearer header or auth cookie."""
    raw_token = _request_token(request, token)
    if raw_token is None:
        raise AuthInvalid("Access denied. No token provided.")
    return await _user_from_token(session, raw_token)


async def get_optional_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User | None:
    """Return the caller when a valid token is present, otherwise ``None``."""
    raw_token = _request_token(request, token)
    if raw_token is None:
        return None
    try:
        return await _user_from_token(session, raw_token)
    except AuthInvalid:
        return None


async def get_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_admin:
        raise Forbidden("Administrator access required")
    return current_user


async def get_agreement_lifecycle(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    background_tasks: BackgroundTasks,
) -> AgreementLifecycle:
    """Wire the lifecycle to the request's session and background tasks."""
    return AgreementLifecycle(
        SqlAlchemyAgreementStore(session),
        BackgroundEmailNotifier(background_tasks),
        frontend_url=get_settings().frontend_url,
    )


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
Lifecycle = Annotated[AgreementLifecycle, Depends(get_agreement_lifecycle)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
