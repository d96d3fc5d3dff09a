"""Authentication routes: registration, login, password reset and identity."""
import logging
from typing import Any

import jwt
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .dependencies import get_current_user, get_db_session
from .errors import AuthenticationError, ConflictError, ValidationFailedError
from .models import User
from .models.base import utcnow
from .schemas import (
    AuthPayload,
    CurrentUserPayload,
    Envelope,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenPayload,
    UserRead,
)
from .security import PASSWORD_RESET, create_access_token, create_reset_token, decode_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"
RESET_REQUESTED = "If an account with that email exists, a password reset link has been sent"
INVALID_RESET_TOKEN = "Invalid or expired reset token"


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


def deliver_reset_token(user: User, token: str) -> None:
    """Hand a reset token to the out-of-band delivery channel."""

    # TODO: send the reset link by email once an outbound mail service is configured
    logger.info("Password reset token issued for user %s", user.id)


@router.post("/register", response_model=Envelope[AuthPayload], status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)
) -> Envelope[AuthPayload]:
    """Create an account and sign the caller in."""

    if await find_user_by_email(session, payload.email) is not None:
        raise ConflictError("User with this email already exists")

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        last_login=utcnow(),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info("Registered user %s with role %s", user.id, user.role)
    return Envelope(
        message="User registered successfully",
        data=AuthPayload(user=UserRead.model_validate(user), token=create_access_token(user.id)),
    )


@router.post("/login", response_model=Envelope[AuthPayload])
async def login(
    payload: LoginRequest, session: AsyncSession = Depends(get_db_session)
) -> Envelope[AuthPayload]:
    """Authenticate a user and return a JWT access token."""

    user = await find_user_by_email(session, payload.email)
    # Unknown email, inactive account and wrong password all look the same
    if user is None or not user.check_password(payload.password) or not user.is_active:
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.last_login = utcnow()
    await session.commit()
    await session.refresh(user)

    return Envelope(
        message="Login successful",
        data=AuthPayload(user=UserRead.model_validate(user), token=create_access_token(user.id)),
    )


@router.post("/forgot-password", response_model=Envelope[ResetTokenPayload])
async def forgot_password(
    payload: ForgotPasswordRequest, session: AsyncSession = Depends(get_db_session)
) -> Envelope[ResetTokenPayload]:
    """Issue a one-hour reset token without revealing whether the email exists."""

    user = await find_user_by_email(session, payload.email)
    if user is None:
        return Envelope(message=RESET_REQUESTED)

    token = create_reset_token(user.id)
    deliver_reset_token(user, token)
    data = ResetTokenPayload(reset_token=token) if get_settings().expose_reset_token else None
    return Envelope(message=RESET_REQUESTED, data=data)


@router.post("/reset-password", response_model=Envelope[Any])
async def reset_password(
    payload: ResetPasswordRequest, session: AsyncSession = Depends(get_db_session)
) -> Envelope[Any]:
    """Set a new password using a token from ``/forgot-password``."""

    try:
        claims = decode_token(payload.token)
    except jwt.PyJWTError as exc:
        raise ValidationFailedError(INVALID_RESET_TOKEN) from exc

    user_id = claims.get("userId")
    if claims.get("type") != PASSWORD_RESET or not isinstance(user_id, int):
        raise ValidationFailedError(INVALID_RESET_TOKEN)

    user = await session.get(User, user_id)
    if user is None:
        raise ValidationFailedError(INVALID_RESET_TOKEN)

    user.password = payload.password
    await session.commit()
    logger.info("Password reset for user %s", user.id)
    return Envelope(message="Password reset successful")


@router.get("/me", response_model=Envelope[CurrentUserPayload])
async def me(current_user: User = Depends(get_current_user)) -> Envelope[CurrentUserPayload]:
    return Envelope(data=CurrentUserPayload(user=UserRead.model_validate(current_user)))


@router.post("/logout", response_model=Envelope[Any])
async def logout(current_user: User = Depends(get_current_user)) -> Envelope[Any]:
    """Tokens are stateless; the client discards its copy."""

    return Envelope(message="Logged out successfully")
