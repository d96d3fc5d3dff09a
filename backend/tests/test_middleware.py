"""Tests for rate limiting, security headers, CORS and the system routes."""
import jwt
import pytest
from httpx import AsyncClient

from conftest import bearer
from crudhub.errors import RateLimitExceededError
from crudhub.main import rate_limiter
from crudhub.middleware import RateLimiter
from crudhub.security import ALGORITHM, create_access_token, decode_token


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_rate_limiter_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert await limiter.hit("1.2.3.4") == 1
    assert await limiter.hit("1.2.3.4") == 0
    with pytest.raises(RateLimitExceededError):
        await limiter.hit("1.2.3.4")
    assert await limiter.hit("5.6.7.8") == 1

    clock.now = 60
    assert await limiter.hit("1.2.3.4") == 1


@pytest.mark.asyncio
async def test_rate_limiter_forgets_expired_clients() -> None:
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)

    for number in range(10):
        await limiter.hit(f"10.0.0.{number}")
    assert len(limiter) == 10

    clock.now = 30
    await limiter.hit("10.0.1.1")
    assert len(limiter) == 11

    clock.now = 61
    await limiter.hit("10.0.1.2")
    assert len(limiter) == 2


@pytest.mark.asyncio
async def test_api_requests_are_rate_limited(client: AsyncClient) -> None:
    original = rate_limiter.max_requests
    rate_limiter.max_requests = 2
    try:
        first = await client.get("/api")
        assert first.headers["RateLimit-Remaining"] == "1"
        await client.get("/api")
        response = await client.get("/api")
        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "message": "Too many requests from this IP, please try again later.",
        }

        health = await client.get("/health")
        assert health.status_code == 200
    finally:
        rate_limiter.max_requests = original


@pytest.mark.asyncio
async def test_health_check_has_security_headers(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["message"] == "Server is running"
    assert "timestamp" in body
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"


@pytest.mark.asyncio
async def test_cors_preflight_allows_frontend(client: AsyncClient) -> None:
    response = await client.options(
        "/api/tasks",
        headers={
            "Origin": "http://localhost:4200",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:4200"
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.asyncio
async def test_unknown_route(client: AsyncClient) -> None:
    response = await client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route not found"}


@pytest.mark.asyncio
async def test_api_index_identifies_caller(client: AsyncClient, member) -> None:
    response = await client.get("/api")
    data = response.json()["data"]
    assert data["name"] == "CrudHub API"
    assert "/api/tasks" in data["resources"]
    assert data["user"] is None

    user, token = member
    response = await client.get("/api", headers=bearer(token))
    assert response.json()["data"]["user"]["email"] == user["email"]


def test_access_token_round_trip() -> None:
    claims = decode_token(create_access_token(7))
    assert claims["userId"] == 7
    assert claims["exp"] > claims["iat"]

    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(create_access_token(7, expires_minutes=-1))

    forged = jwt.encode({"userId": 7}, "another-secret", algorithm=ALGORITHM)
    with pytest.raises(jwt.InvalidTokenError):
        decode_token(forged)
