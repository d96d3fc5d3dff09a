"""Task endpoints."""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_current_user, get_db_session, require_admin_or_manager
from ..errors import NotFoundError, ValidationFailedError, parse_identifier
from ..models import Task, TaskComment, User
from ..models.base import to_utc, utcnow
from ..schemas import (
    CommentCreate,
    Envelope,
    ProgressUpdate,
    TaskCreate,
    TaskRead,
    TaskRecord,
    TaskUpdate,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


async def load_task(session: AsyncSession, task_id: int) -> Optional[Task]:
    """Fetch a task with assignee, creator and comments expanded."""

    result = await session.execute(
        select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_task_or_404(session: AsyncSession, task_id: str) -> Task:
    task = await load_task(session, parse_identifier(task_id))
    if task is None:
        raise NotFoundError("Task not found")
    return task


async def ensure_assignee(session: AsyncSession, user_id: int) -> None:
    if await session.get(User, user_id) is None:
        raise ValidationFailedError(
            "Validation failed",
            errors=[{"field": "assignedTo", "message": "Assigned user not found"}],
        )


def task_record(task: Task) -> dict[str, Any]:
    return {
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "assigned_to": task.assigned_to_id,
        "due_date": task.due_date,
        "estimated_hours": task.estimated_hours,
        "actual_hours": task.actual_hours,
        "tags": task.tags,
        "attachments": task.attachments,
        "category": task.category,
        "is_public": task.is_public,
        "progress": task.progress,
    }


def task_columns(record: TaskRecord, fields: Optional[set[str]] = None) -> dict[str, Any]:
    """Translate a validated record into column values."""

    values = record.model_dump(include=fields)
    if "assigned_to" in values:
        values["assigned_to_id"] = values.pop("assigned_to")
    if "due_date" in values:
        values["due_date"] = to_utc(record.due_date)
    if "attachments" in values:
        values["attachments"] = [
            attachment.model_dump(by_alias=True, mode="json") for attachment in record.attachments
        ]
    return values


@router.get("", response_model=Envelope[list[TaskRead]])
async def list_tasks(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = None,
    assigned_to: Optional[int] = Query(default=None, alias="assignedTo"),
    overdue: bool = False,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[list[TaskRead]]:
    query = select(Task).order_by(Task.due_date, Task.id)
    if status_filter:
        query = query.where(Task.status == status_filter)
    if priority:
        query = query.where(Task.priority == priority)
    if assigned_to is not None:
        query = query.where(Task.assigned_to_id == assigned_to)
    if overdue:
        query = query.where(Task.due_date < utcnow(), Task.status != "completed")
    result = await session.execute(query)
    return Envelope(data=[TaskRead.model_validate(task) for task in result.scalars().all()])


@router.get("/{task_id}", response_model=Envelope[TaskRead])
async def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[TaskRead]:
    task = await get_task_or_404(session, task_id)
    return Envelope(data=TaskRead.model_validate(task))


@router.post("", response_model=Envelope[TaskRead], status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[TaskRead]:
    """Create a task; the caller is recorded as its creator."""

    await ensure_assignee(session, payload.assigned_to)
    task = Task(**task_columns(payload), created_by_id=current_user.id)
    session.add(task)
    await session.commit()

    created = await load_task(session, task.id)
    return Envelope(message="Task created successfully", data=TaskRead.model_validate(created))


@router.put("/{task_id}", response_model=Envelope[TaskRead])
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[TaskRead]:
    """Apply a partial update and re-validate the whole task."""

    task = await get_task_or_404(session, task_id)
    changes = payload.model_dump(exclude_unset=True)
    record = TaskRecord.model_validate({**task_record(task), **changes})
    if "assigned_to" in changes:
        await ensure_assignee(session, record.assigned_to)

    for column, value in task_columns(record, set(changes)).items():
        setattr(task, column, value)
    await session.commit()

    updated = await load_task(session, task.id)
    return Envelope(data=TaskRead.model_validate(updated))


@router.put("/{task_id}/progress", response_model=Envelope[TaskRead])
async def update_progress(
    task_id: str,
    payload: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[TaskRead]:
    """Set progress (clamped to 0..100) and move the status along with it."""

    task = await get_task_or_404(session, task_id)
    task.set_progress(payload.progress)
    await session.commit()

    updated = await load_task(session, task.id)
    return Envelope(data=TaskRead.model_validate(updated))


@router.post(
    "/{task_id}/comments",
    response_model=Envelope[TaskRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    task_id: str,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[TaskRead]:
    task = await get_task_or_404(session, task_id)
    task.comments.append(TaskComment(user=current_user, content=payload.content))
    await session.commit()

    updated = await load_task(session, task.id)
    return Envelope(message="Comment added", data=TaskRead.model_validate(updated))


@router.delete("/{task_id}", response_model=Envelope[Any])
async def delete_task(
    task_id: str,
    current_user: User = Depends(require_admin_or_manager),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[Any]:
    task = await get_task_or_404(session, task_id)
    await session.delete(task)
    await session.commit()
    return Envelope(message="Task deleted successfully")
