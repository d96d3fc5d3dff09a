"""Integration tests for registration, login and password reset."""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import bearer, login, register
from crudhub.database import AsyncSessionLocal
from crudhub.models import Task, User
from crudhub.security import create_access_token
from crudhub.seed import DEMO_EMAIL, DEMO_PASSWORD


@pytest.mark.asyncio
async def test_register_hashes_password_and_allows_login(client: AsyncClient) -> None:
    """The stored password is a hash and the plaintext still logs in."""

    user, token = await register(client, email="Ada@Example.com")
    assert user["email"] == "ada@example.com"
    assert user["role"] == "user"
    assert user["fullName"] == "Ada Lovelace"
    assert user["lastLogin"] is not None
    assert "password" not in user
    assert token

    async with AsyncSessionLocal() as session:
        stored = await session.scalar(select(User).where(User.email == "ada@example.com"))
    assert stored.password != "secret123"
    assert stored.check_password("secret123")

    logged_in, _ = await login(client, "ada@example.com", "secret123")
    assert logged_in["id"] == user["id"]


@pytest.mark.asyncio
async def test_seeded_admin_can_log_in(client: AsyncClient) -> None:
    response = await client.post(
        "/api/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"]
    assert body["data"]["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_failed_logins_are_indistinguishable(client: AsyncClient, admin) -> None:
    """Unknown email, wrong password and a deactivated account get the same answer."""

    user, _ = await register(client)
    _, admin_token = admin
    await client.put(
        f"/api/users/{user['id']}", json={"isActive": False}, headers=bearer(admin_token)
    )

    attempts = [
        {"email": "nobody@example.com", "password": "secret123"},
        {"email": DEMO_EMAIL, "password": "wrong-password"},
        {"email": "ada@example.com", "password": "secret123"},
    ]
    responses = [await client.post("/api/auth/login", json=body) for body in attempts]

    assert {r.status_code for r in responses} == {401}
    assert all(r.json() == {"success": False, "message": "Invalid email or password"} for r in responses)


@pytest.mark.asyncio
async def test_register_lists_every_violation(client: AsyncClient) -> None:
    response = await client.post(
        "/api/auth/register",
        json={
            "firstName": "A",
            "lastName": "Lovelace",
            "email": "not-an-email",
            "password": "123",
            "role": "owner",
        },
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"firstName", "email", "password", "role"} <= fields


@pytest.mark.asyncio
async def test_register_rejects_duplicate_email(client: AsyncClient) -> None:
    await register(client)
    response = await client.post(
        "/api/auth/register",
        json={
            "firstName": "Other",
            "lastName": "Person",
            "email": "ADA@example.com",
            "password": "secret123",
        },
    )
    assert response.status_code == 400
    assert response.json()["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_me_and_logout(client: AsyncClient, member) -> None:
    user, token = member
    response = await client.get("/api/auth/me", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == user["email"]

    response = await client.post("/api/auth/logout", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logged out successfully"}


@pytest.mark.asyncio
async def test_protected_route_without_token(client: AsyncClient) -> None:
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Access token is required"}


@pytest.mark.asyncio
async def test_bad_tokens_are_rejected_without_side_effects(client: AsyncClient, member) -> None:
    user, _ = member
    expired = create_access_token(user["id"], expires_minutes=-5)
    task = {
        "title": "Sneaky",
        "description": "Should never be stored",
        "assignedTo": user["id"],
        "dueDate": "2030-01-01T00:00:00Z",
    }

    missing = await client.post("/api/tasks", json=task)
    expired_response = await client.post("/api/tasks", json=task, headers=bearer(expired))
    garbage = await client.post("/api/tasks", json=task, headers=bearer("not-a-jwt"))

    assert missing.status_code == 401
    assert expired_response.status_code == 401
    assert expired_response.json()["message"] == "Token has expired"
    assert garbage.status_code == 401
    assert garbage.json()["message"] == "Invalid token"

    async with AsyncSessionLocal() as session:
        assert await session.scalar(select(func.count()).select_from(Task)) == 0


@pytest.mark.asyncio
async def test_deactivated_account_token_is_refused(client: AsyncClient, admin, member) -> None:
    user, token = member
    _, admin_token = admin
    await client.put(
        f"/api/users/{user['id']}", json={"isActive": False}, headers=bearer(admin_token)
    )

    response = await client.get("/api/auth/me", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "User account is deactivated"


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, member) -> None:
    response = await client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
    assert response.status_code == 200
    reset_token = response.json()["data"]["resetToken"]

    response = await client.post(
        "/api/auth/reset-password", json={"token": reset_token, "password": "brand-new"}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password reset successful"

    await login(client, "ada@example.com", "brand-new")
    stale = await client.post(
        "/api/auth/login", json={"email": "ada@example.com", "password": "secret123"}
    )
    assert stale.status_code == 401


@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_unknown_email(client: AsyncClient, member) -> None:
    known = await client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
    unknown = await client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]
    assert "data" not in unknown.json()


@pytest.mark.asyncio
async def test_reset_rejects_access_tokens(client: AsyncClient, member) -> None:
    """Only tokens carrying the password-reset marker can change a password."""

    _, access_token = member
    response = await client.post(
        "/api/auth/reset-password", json={"token": access_token, "password": "brand-new"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"


@pytest.mark.asyncio
async def test_reset_token_is_not_an_access_token(client: AsyncClient, member) -> None:
    """A password-reset token must not open authenticated routes."""

    user, _ = member
    response = await client.post("/api/auth/forgot-password", json={"email": user["email"]})
    reset_token = response.json()["data"]["resetToken"]

    response = await client.get("/api/auth/me", headers=bearer(reset_token))
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid token"}

    response = await client.get("/api/tasks", headers=bearer(reset_token))
    assert response.status_code == 401
