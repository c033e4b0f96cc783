"""Authentication endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from agreeproof.api.deps import CurrentUser, DbSession
from agreeproof.api.rate_limit import AUTH_RATE_DEP, DEFAULT_RATE_DEP
from agreeproof.core.config import get_settings
from agreeproof.core.errors import AuthInvalid
from agreeproof.schemas.auth import (
    AuthResult,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    Token,
    TokenPair,
    UserRead,
)
from agreeproof.schemas.common import ApiResponse, envelope
from agreeproof.services import auth_service, user_service
from agreeproof.services.auth_service import IssuedTokens
from agreeproof.services.notification_service import BackgroundEmailNotifier

router = APIRouter()


def _set_auth_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="strict",
    )


def _auth_result(issued: IssuedTokens) -> AuthResult:
    return AuthResult(
        user=UserRead.model_validate(issued.user),
        token=issued.token,
        refresh_token=issued.refresh_token,
    )


@router.post(
    "/register",
    response_model=ApiResponse[AuthResult],
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    dependencies=[AUTH_RATE_DEP],
)
async def register(
    payload: RegisterRequest,
    session: DbSession,
    response: Response,
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    issued = await auth_service.register(session, payload)
    _set_auth_cookie(response, issued.token)
    BackgroundEmailNotifier(background_tasks).notify(
        issued.user.email,
        "welcome",
        {
            "name": issued.user.name,
            "dashboard_link": f"{get_settings().frontend_url.rstrip('/')}/dashboard",
        },
    )
    return envelope("User registered successfully", _auth_result(issued))


@router.post(
    "/login",
    response_model=ApiResponse[AuthResult],
    summary="Log in with email and password",
    dependencies=[AUTH_RATE_DEP],
)
async def login(
    payload: LoginRequest, session: DbSession, response: Response
) -> dict[str, Any]:
    issued = await auth_service.login(session, payload)
    _set_auth_cookie(response, issued.token)
    return envelope("Login successful", _auth_result(issued))


@router.post(
    "/token",
    response_model=Token,
    summary="Obtain access token (OAuth2 password form)",
    dependencies=[AUTH_RATE_DEP],
)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: DbSession,
) -> Token:
    """Validate credentials and issue a bearer token."""
    user = await auth_service.authenticate_user(
        session, email=form_data.username, password=form_data.password
    )
    if user is None or not user.is_active:
        raise AuthInvalid("Incorrect email or password")
    return Token(access_token=auth_service.issue_tokens(user).token)


@router.post(
    "/refresh-token",
    response_model=ApiResponse[TokenPair],
    summary="Exchange a refresh token for a new token pair",
    dependencies=[DEFAULT_RATE_DEP],
)
async def refresh_token(
    payload: RefreshTokenRequest, session: DbSession, response: Response
) -> dict[str, Any]:
    issued = await auth_service.refresh(session, payload.refresh_token)
    _set_auth_cookie(response, issued.token)
    return envelope(
        "Token refreshed successfully",
        TokenPair(token=issued.token, refresh_token=issued.refresh_token),
    )


@router.get("/me", response_model=ApiResponse[UserRead], summary="Current profile")
async def read_me(current_user: CurrentUser) -> dict[str, Any]:
    return envelope(
        "Profile retrieved successfully", UserRead.model_validate(current_user)
    )


@router.put(
    "/profile", response_model=ApiResponse[UserRead], summary="Update profile"
)
async def update_profile(
    payload: ProfileUpdate, current_user: CurrentUser, session: DbSession
) -> dict[str, Any]:
    user = await user_service.update_profile(session, current_user, payload)
    return envelope("Profile updated successfully", UserRead.model_validate(user))


@router.post(
    "/change-password",
    response_model=ApiResponse[None],
    summary="Change password",
    dependencies=[AUTH_RATE_DEP],
)
async def change_password(
    payload: PasswordChange, current_user: CurrentUser, session: DbSession
) -> dict[str, Any]:
    await auth_service.change_password(session, current_user, payload)
    return envelope("Password changed successfully")


@router.post("/logout", response_model=ApiResponse[None], summary="Log out")
async def logout(response: Response) -> dict[str, Any]:
    response.delete_cookie(get_settings().auth_cookie_name)
    return envelope("Logout successful")

