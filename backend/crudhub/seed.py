"""Demo data created on startup."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "password123"


async def seed_demo_user(session: AsyncSession) -> bool:
    """Create the demo administrator if it does not exist yet. Returns True when created."""

    result = await session.execute(select(User).where(User.email == DEMO_EMAIL))
    if result.scalar_one_or_none() is not None:
        return False

    session.add(
        User(
            first_name="Demo",
            last_name="Admin",
            email=DEMO_EMAIL,
            password=DEMO_PASSWORD,
            role="admin",
            is_active=True,
        )
    )
    await session.commit()
    logger.info("Seeded demo user: %s", DEMO_EMAIL)
    return True
