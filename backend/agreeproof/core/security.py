"""Security utilities for hashing and JWT handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import jwt

from agreeproof.core.config import get_settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its hash using bcrypt."""
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except (ValueError, TypeError):  # guard against malformed hashes
        return False


def get_password_hash(password: str) -> str:
    """Hash a password for storage using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def _encode(claims: dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    payload = dict(claims)
    payload["exp"] = datetime.now(UTC) + expires_delta
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str, expires_delta: timedelta | None = None, **extra: Any
) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    claims: dict[str, Any] = {"sub": subject, "type": ACCESS_TOKEN_TYPE}
    claims.update(extra)
    return _encode(claims, settings.jwt_secret_key, expires_delta)


def create_refresh_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT refresh token signed with the refresh secret."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.refresh_token_expire_minutes)
    claims = {"sub": subject, "type": REFRESH_TOKEN_TYPE}
    return _encode(claims, settings.jwt_refresh_secret_key, expires_delta)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a JWT token, raising JWTError on failure."""
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
    )


def decode_refresh_token(token: str) -> dict[str, Any]:
    """Decode a refresh token, raising JWTError on failure."""
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_refresh_secret_key, algorithms=[settings.jwt_algorithm]
    )
