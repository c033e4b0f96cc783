"""Authentication and account schemas."""
from __future__ import annotations

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from agreeproof.models import ReminderFrequency
from agreeproof.schemas.common import CamelModel

_NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")


def _validate_password_strength(value: str) -> str:
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one number")
    return value


class Token(BaseModel):
    """Response body for OAuth2 password-form logins."""

    access_token: str
    token_type: str = "bearer"


class TokenPair(CamelModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"


class RegisterRequest(CamelModel):
    """Self-service registration payload."""

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        name = value.strip()
        if len(name) < 2 or not _NAME_PATTERN.match(name):
            raise ValueError("Name can only contain letters and spaces")
        return name

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _validate_password_strength(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class UserRead(CamelModel):
    """Serialized account profile."""

    id: uuid.UUID
    name: str
    email: str
    is_active: bool
    is_admin: bool
    email_verified: bool
    agreement_count: int
    email_notifications: bool
    reminder_frequency: ReminderFrequency
    last_login_at: datetime | None = None
    created_at: datetime


class AuthResult(TokenPair):
    user: UserRead


class ProfileUpdate(CamelModel):
    """Mutable profile fields."""

    name: str | None = Field(default=None, min_length=2, max_length=50)
    email_notifications: bool | None = None
    reminder_frequency: ReminderFrequency | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return value
        name = value.strip()
        if len(name) < 2 or not _NAME_PATTERN.match(name):
            raise ValueError("Name can only contain letters and spaces")
        return name


class PasswordChange(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value: str) -> str:
        return _validate_password_strength(value)


__all__ = [
    "AuthResult",
    "LoginRequest",
    "PasswordChange",
    "ProfileUpdate",
    "RefreshTokenRequest",
    "RegisterRequest",
    "Token",
    "TokenPair",
    "UserRead",
]
