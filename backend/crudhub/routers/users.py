"""User management endpoints."""
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_current_user, get_db_session, require_admin
from ..errors import AuthorizationError, ConflictError, NotFoundError, parse_identifier
from ..models import User
from ..schemas import Envelope, UserCreate, UserRead, UserRecord, UserUpdate

router = APIRouter(prefix="/api/users", tags=["users"])

ADMIN_ONLY_FIELDS = {"role", "is_active"}


async def get_user_or_404(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, parse_identifier(user_id))
    if user is None:
        raise NotFoundError("User not found")
    return user


def user_record(user: User) -> dict[str, Any]:
    return {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "role": user.role,
        "avatar": user.avatar,
        "phone": user.phone,
        "is_active": user.is_active,
        "preferences": user.preferences,
    }


@router.get("", response_model=Envelope[list[UserRead]])
async def list_users(
    active: Optional[bool] = None,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[list[UserRead]]:
    """Return every account (admin only), optionally filtered by active flag."""

    query = select(User).order_by(User.id)
    if active is not None:
        query = query.where(User.is_active == active)
    result = await session.execute(query)
    return Envelope(data=[UserRead.model_validate(user) for user in result.scalars().all()])


@router.post("", response_model=Envelope[UserRead], status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[UserRead]:
    """Create an account on behalf of someone else (admin only)."""

    existing = await session.execute(select(User).where(User.email == payload.email.lower()))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")

    fields = payload.model_dump()
    fields["preferences"] = payload.preferences.model_dump()
    user = User(**fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return Envelope(message="User created successfully", data=UserRead.model_validate(user))


@router.get("/{user_id}", response_model=Envelope[UserRead])
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[UserRead]:
    user = await get_user_or_404(session, user_id)
    return Envelope(data=UserRead.model_validate(user))


@router.put("/{user_id}", response_model=Envelope[UserRead])
async def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[UserRead]:
    """Update a profile. Users may edit themselves; role and status need an admin."""

    user = await get_user_or_404(session, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if current_user.role != "admin":
        if user.id != current_user.id or ADMIN_ONLY_FIELDS & changes.keys():
            raise AuthorizationError("Insufficient permissions")

    record = UserRecord.model_validate({**user_record(user), **changes})
    for field in changes:
        value = getattr(record, field)
        if field == "preferences":
            value = record.preferences.model_dump()
        setattr(user, field, value)

    await session.commit()
    await session.refresh(user)
    return Envelope(data=UserRead.model_validate(user))


@router.delete("/{user_id}", response_model=Envelope[Any])
async def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[Any]:
    """Remove an account (admin only)."""

    user = await get_user_or_404(session, user_id)
    await session.delete(user)
    await session.commit()
    return Envelope(message="User deleted successfully")
