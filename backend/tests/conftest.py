"""Test fixtures for the backend."""
import os
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_crudhub.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100000")
os.environ.setdefault("EXPOSE_RESET_TOKEN", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from crudhub import models  # noqa: E402
from crudhub.database import AsyncSessionLocal, engine  # noqa: E402
from crudhub.main import app, rate_limiter  # noqa: E402
from crudhub.seed import DEMO_EMAIL, DEMO_PASSWORD, seed_demo_user  # noqa: E402


test_db_path = Path("test_crudhub.db")


@pytest.fixture(scope="session", autouse=True)
def remove_database_file():
    """Delete the SQLite file once the whole run is over."""

    yield
    if test_db_path.exists():
        test_db_path.unlink()


@pytest_asyncio.fixture(autouse=True)
async def prepare_database():
    """Create a fresh schema with the demo admin for every test."""

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)
        await conn.run_sync(models.Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        await seed_demo_user(session)
    await rate_limiter.reset()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client() -> AsyncClient:
    """Provide an HTTP client for integration tests."""

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, **overrides) -> tuple[dict, str]:
    """Register an account and return ``(user, token)``."""

    payload = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "password": "secret123",
    }
    payload.update(overrides)
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"], data["token"]


async def login(client: AsyncClient, email: str, password: str) -> tuple[dict, str]:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    return data["user"], data["token"]


@pytest_asyncio.fixture
async def admin(client: AsyncClient) -> tuple[dict, str]:
    """The seeded demo administrator and a token for it."""

    return await login(client, DEMO_EMAIL, DEMO_PASSWORD)


@pytest_asyncio.fixture
async def member(client: AsyncClient) -> tuple[dict, str]:
    """A freshly registered regular user and a token for it."""

    return await register(client)
