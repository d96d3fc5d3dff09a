"""FastAPI application entry point."""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import models
from .auth import router as auth_router
from .config import get_settings
from .database import AsyncSessionLocal, engine
from .dependencies import get_optional_user
from .errors import register_error_handlers
from .logging_config import configure_logging
from .middleware import RateLimiter, install_middleware
from .models import User
from .routers.products import router as products_router
from .routers.settings import router as settings_router
from .routers.tasks import router as tasks_router
from .routers.users import router as users_router
from .schemas import ApiIndex, Envelope, HealthRead, UserSummary
from .seed import seed_demo_user

__version__ = "1.0.0"

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

rate_limiter = RateLimiter(
    max_requests=settings.rate_limit_max_requests,
    window_seconds=settings.rate_limit_window_seconds,
)

app = FastAPI(title="CrudHub API", version=__version__)
register_error_handlers(app)
install_middleware(app, rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
)
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(tasks_router)
app.include_router(products_router)
app.include_router(settings_router)


@app.on_event("startup")
async def on_startup() -> None:
    """Ensure database tables exist and the demo account is present."""

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await seed_demo_user(session)
    logger.info("CrudHub API ready on port %s (frontend %s)", settings.port, settings.frontend_url)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await engine.dispose()


@app.get("/health", response_model=HealthRead, tags=["system"])
async def healthcheck() -> HealthRead:
    """Simple readiness probe for uptime checks."""

    return HealthRead(
        status="OK",
        message="Server is running",
        timestamp=datetime.now(timezone.utc),
    )


@app.get("/api", response_model=Envelope[ApiIndex], tags=["system"])
async def api_index(current_user: Optional[User] = Depends(get_optional_user)) -> Envelope[ApiIndex]:
    """Describe the API; identifies the caller when a valid token is sent."""

    return Envelope(
        data=ApiIndex(
            name=app.title,
            version=__version__,
            resources=["/api/auth", "/api/users", "/api/tasks", "/api/products", "/api/settings"],
            user=UserSummary.model_validate(current_user) if current_user else None,
        )
    )
