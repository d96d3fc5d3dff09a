"""Application settings and configuration helpers."""
from functools import lru_cache
import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime configuration loaded from environment variables."""

    database_url: str = Field(
        default="sqlite+aiosqlite:///./crudhub.db", alias="DATABASE_URL"
    )
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    access_token_expires_minutes: int = Field(
        default=60 * 24 * 7, alias="ACCESS_TOKEN_EXPIRES_MINUTES"
    )
    reset_token_expires_minutes: int = Field(default=60)
    port: int = Field(default=3000, alias="PORT")
    frontend_url: str = Field(default="http://localhost:4200", alias="FRONTEND_URL")
    environment: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    rate_limit_window_seconds: int = Field(default=15 * 60, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_max_requests: int = Field(default=100, alias="RATE_LIMIT_MAX_REQUESTS")
    expose_reset_token: bool = Field(default=False, alias="EXPOSE_RESET_TOKEN")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def _default(name: str):
    return Settings.model_fields[name].default


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings(
        database_url=os.getenv("DATABASE_URL", _default("database_url")),
        secret_key=os.getenv("SECRET_KEY", _default("secret_key")),
        access_token_expires_minutes=int(
            os.getenv("ACCESS_TOKEN_EXPIRES_MINUTES", _default("access_token_expires_minutes"))
        ),
        port=int(os.getenv("PORT", _default("port"))),
        frontend_url=os.getenv("FRONTEND_URL", _default("frontend_url")),
        environment=os.getenv("APP_ENV", _default("environment")),
        log_level=os.getenv("LOG_LEVEL", _default("log_level")),
        rate_limit_window_seconds=int(
            os.getenv("RATE_LIMIT_WINDOW_SECONDS", _default("rate_limit_window_seconds"))
        ),
        rate_limit_max_requests=int(
            os.getenv("RATE_LIMIT_MAX_REQUESTS", _default("rate_limit_max_requests"))
        ),
        expose_reset_token=os.getenv("EXPOSE_RESET_TOKEN", "false").strip().lower() in _TRUTHY,
    )
