"""Database session management for the FastAPI backend."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from .config import get_settings

settings = get_settings()
engine_options: dict = {}
if settings.database_url.startswith("sqlite+"):
    # aiosqlite connections are bound to the loop that opened them
    engine_options = {"connect_args": {"check_same_thread": False}, "poolclass": NullPool}
engine = create_async_engine(settings.database_url, future=True, echo=False, **engine_options)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async SQLAlchemy session per request."""

    async with AsyncSessionLocal() as session:
        yield session
