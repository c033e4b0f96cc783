"""Integration tests for registration, login and token handling."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from agreeproof.core.security import create_access_token, create_refresh_token
from agreeproof.models import User

pytestmark = pytest.mark.asyncio


async def _register(client: AsyncClient, **overrides: Any):
    payload = {
        "name": "Priya Shah",
        "email": "Priya.Shah@Example.com",
        "password": "Secret12",
    }
    payload.update(overrides)
    return await client.post("/api/v1/auth/register", json=payload)


async def test_register_returns_tokens_and_sets_cookie(
    app_context: dict[str, Any],
) -> None:
    client: AsyncClient = app_context["client"]

    response = await _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["data"]["token"]
    assert body["data"]["refreshToken"]
    assert body["data"]["user"]["email"] == "priya.shah@example.com"
    assert body["data"]["user"]["agreementCount"] == 0
    assert "password" not in str(body["data"]["user"]).lower()
    assert response.cookies.get("token") == body["data"]["token"]

    me = await client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["name"] == "Priya Shah"


async def test_register_rejects_duplicates_and_weak_passwords(
    app_context: dict[str, Any],
) -> None:
    client: AsyncClient = app_context["client"]

    duplicate = await _register(client, email=app_context["owner_email"].upper())
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"

    weak = await _register(client, email="weak@example.com", password="alllower1")
    assert weak.status_code == 400
    assert weak.json()["code"] == "VALIDATION_ERROR"
    assert weak.json()["errors"][0]["field"] == "password"

    bad_name = await _register(client, email="digits@example.com", name="R2D2")
    assert bad_name.status_code == 400


async def test_login_and_bad_credentials(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    ok = await client.post(
        "/api/v1/auth/login",
        json={
            "email": app_context["owner_email"],
            "password": app_context["owner_password"],
        },
    )
    assert ok.status_code == 200
    assert ok.json()["message"] == "Login successful"
    assert ok.json()["data"]["user"]["lastLoginAt"]

    wrong = await client.post(
        "/api/v1/auth/login",
        json={"email": app_context["owner_email"], "password": "Wrong1Pass"},
    )
    assert wrong.status_code == 401
    assert wrong.json()["code"] == "AUTH_INVALID"
    assert wrong.headers["WWW-Authenticate"] == "Bearer"

    form = await client.post(
        "/api/v1/auth/token",
        data={"username": app_context["owner_email"], "password": "Wrong1Pass"},
    )
    assert form.status_code == 401


async def test_deactivated_account_cannot_log_in(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    async with app_context["sessionmaker"]() as session:
        await session.execute(
            update(User)
            .where(User.email == app_context["owner_email"])
            .values(is_active=False)
        )
        await session.commit()

    response = await client.post(
        "/api/v1/auth/login",
        json={
            "email": app_context["owner_email"],
            "password": app_context["owner_password"],
        },
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Account is deactivated"


async def test_refresh_token_flow(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    login = await client.post(
        "/api/v1/auth/login",
        json={
            "email": app_context["owner_email"],
            "password": app_context["owner_password"],
        },
    )
    tokens = login.json()["data"]
    client.cookies.clear()

    refreshed = await client.post(
        "/api/v1/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]}
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["message"] == "Token refreshed successfully"
    new_token = refreshed.json()["data"]["token"]
    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {new_token}"}
    )
    assert me.status_code == 200

    swapped = await client.post(
        "/api/v1/auth/refresh-token", json={"refreshToken": tokens["token"]}
    )
    assert swapped.status_code == 401
    assert swapped.json()["code"] == "AUTH_INVALID"

    expired = create_refresh_token(
        str(app_context["owner_id"]), expires_delta=timedelta(minutes=-1)
    )
    expired_resp = await client.post(
        "/api/v1/auth/refresh-token", json={"refreshToken": expired}
    )
    assert expired_resp.status_code == 401
    assert expired_resp.json()["code"] == "AUTH_EXPIRED"


async def test_expired_and_refresh_tokens_rejected_for_api_access(
    app_context: dict[str, Any],
) -> None:
    client: AsyncClient = app_context["client"]
    subject = str(app_context["owner_id"])

    expired = create_access_token(subject, expires_delta=timedelta(minutes=-1))
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_EXPIRED"

    refresh = create_refresh_token(subject)
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh}"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_INVALID"


async def test_profile_password_and_logout(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    login = await client.post(
        "/api/v1/auth/login",
        json={
            "email": app_context["owner_email"],
            "password": app_context["owner_password"],
        },
    )
    headers = {"Authorization": f"Bearer {login.json()['data']['token']}"}

    profile = await client.put(
        "/api/v1/auth/profile",
        json={"name": "Olivia Owens", "reminderFrequency": "weekly"},
        headers=headers,
    )
    assert profile.status_code == 200
    assert profile.json()["data"]["name"] == "Olivia Owens"
    assert profile.json()["data"]["reminderFrequency"] == "weekly"

    wrong_current = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "Nope1Nope", "newPassword": "Fresh1Pass"},
        headers=headers,
    )
    assert wrong_current.status_code == 401

    changed = await client.post(
        "/api/v1/auth/change-password",
        json={
            "currentPassword": app_context["owner_password"],
            "newPassword": "Fresh1Pass",
        },
        headers=headers,
    )
    assert changed.status_code == 200

    relogin = await client.post(
        "/api/v1/auth/token",
        data={"username": app_context["owner_email"], "password": "Fresh1Pass"},
    )
    assert relogin.status_code == 200
    assert relogin.json()["token_type"] == "bearer"

    logout = await client.post("/api/v1/auth/logout")
    assert logout.status_code == 200
    assert logout.json()["message"] == "Logout successful"
    assert client.cookies.get("token") is None
