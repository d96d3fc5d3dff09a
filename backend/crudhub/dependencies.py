"""Reusable FastAPI dependencies: sessions, authentication and role guards."""
from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session
from .errors import AuthenticationError, AuthorizationError
from .models import User
from .security import PASSWORD_RESET, decode_token

# Use simple Bearer auth instead of OAuth2 password flow
bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an AsyncSession."""
    async for session in get_session():
        yield session


async def _load_user(session: AsyncSession, token: str) -> User:
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token has expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    user_id = payload.get("userId")
    # Reset tokens are single-purpose and never authenticate a request
    if not isinstance(user_id, int) or payload.get("type") == PASSWORD_RESET:
        raise AuthenticationError("Invalid token")

    user = await session.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Return the authenticated user from a JWT access token
    taken from the Authorization: Bearer <token> header.
    """

    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Access token is required")

    user = await _load_user(session, credentials.credentials)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Like ``get_current_user`` but never fails; anonymous callers get ``None``."""

    if credentials is None or not credentials.credentials:
        return None
    try:
        user = await _load_user(session, credentials.credentials)
    except AuthenticationError:
        return None
    request.state.user = user
    return user


def require_role(*roles: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only users holding one of ``roles``."""

    allowed = frozenset(roles)

    async def guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError("Insufficient permissions")
        return current_user

    return guard


require_admin = require_role("admin")
require_admin_or_manager = require_role("admin", "manager")
