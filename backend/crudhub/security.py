"""Password hashing and JWT helpers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from .config import get_settings

ALGORITHM = "HS256"
PASSWORD_RESET = "password-reset"

# Use PBKDF2-SHA256 instead of bcrypt to avoid bcrypt backend issues
password_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return password_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plain password against the stored hash."""
    if not password_hash:
        return False
    return password_context.verify(password, password_hash)


def compute_expiry(minutes: int) -> datetime:
    """Return an absolute expiration timestamp for tokens."""

    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def _encode(claims: Dict[str, Any], minutes: int) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": int(compute_expiry(minutes).timestamp()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    """Sign a bearer token identifying ``user_id``."""

    if expires_minutes is None:
        expires_minutes = get_settings().access_token_expires_minutes
    return _encode({"userId": user_id}, expires_minutes)


def create_reset_token(user_id: int) -> str:
    """Sign a short-lived, single-purpose password reset token."""

    return _encode(
        {"userId": user_id, "type": PASSWORD_RESET},
        get_settings().reset_token_expires_minutes,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a token.

    Raises ``jwt.ExpiredSignatureError`` or ``jwt.InvalidTokenError``.
    """

    return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
