"""Per-user settings: preferences, profile and password."""
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_current_user, get_db_session
from ..errors import ValidationFailedError
from ..models import User
from ..schemas import Envelope, PasswordChange, Preferences, ProfileUpdate, UserRead, UserRecord
from .users import user_record

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=Envelope[Preferences])
async def get_preferences(current_user: User = Depends(get_current_user)) -> Envelope[Preferences]:
    return Envelope(data=Preferences.model_validate(current_user.preferences or {}))


@router.put("", response_model=Envelope[Preferences])
async def update_preferences(
    payload: Preferences,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[Preferences]:
    """Replace the caller's preferences."""

    current_user.preferences = payload.model_dump()
    await session.commit()
    return Envelope(data=payload)


@router.put("/profile", response_model=Envelope[UserRead])
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[UserRead]:
    changes = payload.model_dump(exclude_unset=True)
    record = UserRecord.model_validate({**user_record(current_user), **changes})
    for field in changes:
        setattr(current_user, field, getattr(record, field))

    await session.commit()
    await session.refresh(current_user)
    return Envelope(data=UserRead.model_validate(current_user))


@router.put("/password", response_model=Envelope[Any])
async def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[Any]:
    """Store a new password once the current one has been re-verified."""

    if not current_user.check_password(payload.current_password):
        raise ValidationFailedError("Current password is incorrect")

    current_user.password = payload.new_password
    await session.commit()
    return Envelope(message="Password updated successfully")
