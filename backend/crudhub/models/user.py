"""User account model."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from ..security import hash_password, verify_password
from .base import Base, TimestampMixin

ROLES = ("user", "admin", "manager")


def default_preferences() -> dict[str, Any]:
    return {
        "theme": "light",
        "notifications": {"email": True, "push": True, "sms": False},
        "language": "en",
    }


class User(TimestampMixin, Base):
    """Application user. The password column only ever holds a hash."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(50))
    last_name: Mapped[str] = mapped_column(String(50))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password: Mapped[str] = mapped_column(String)
    role: Mapped[str] = mapped_column(String(20), default="user", index=True)
    avatar: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    preferences: Mapped[dict] = mapped_column(JSON, default=default_preferences)

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    @validates("password")
    def _hash_password(self, key: str, value: str) -> str:
        # Assignment always takes plaintext; stored hashes are only ever loaded
        return hash_password(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password)
