"""Task and task comment models."""
from __future__ import annotations

import math
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, ensure_utc, utcnow
from .user import User

TASK_STATUSES = ("pending", "in-progress", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_CATEGORIES = ("development", "design", "testing", "documentation", "meeting", "other")

DEFAULT_COLOR = "#6c757d"
STATUS_COLORS = {
    "pending": "#ffc107",
    "in-progress": "#17a2b8",
    "completed": "#28a745",
    "cancelled": "#dc3545",
}
PRIORITY_COLORS = {
    "low": "#28a745",
    "medium": "#ffc107",
    "high": "#fd7e14",
    "urgent": "#dc3545",
}


class TaskComment(Base):
    """Free-text note left on a task by a user."""

    __tablename__ = "task_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id", ondelete="CASCADE"), index=True)
    # Weak reference: removing the author keeps the comment
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    content: Mapped[str] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User | None] = relationship(
        primaryjoin="foreign(TaskComment.user_id) == User.id", lazy="selectin"
    )


class Task(TimestampMixin, Base):
    """Unit of work assigned to a user."""

    __tablename__ = "tasks"

    __table_args__ = (
        Index("ix_tasks_assigned_status", "assigned_to_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(String(1000))
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    # User references are weak: deleting a user leaves its tasks in place
    assigned_to_id: Mapped[int] = mapped_column(Integer)
    created_by_id: Mapped[int] = mapped_column(Integer, index=True)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_hours: Mapped[float] = mapped_column(Float, default=0)
    actual_hours: Mapped[float] = mapped_column(Float, default=0)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    attachments: Mapped[list] = mapped_column(JSON, default=list)
    category: Mapped[str] = mapped_column(String(20), default="other")
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    progress: Mapped[int] = mapped_column(Integer, default=0)

    assigned_to: Mapped[User | None] = relationship(
        primaryjoin="foreign(Task.assigned_to_id) == User.id", lazy="selectin"
    )
    created_by: Mapped[User | None] = relationship(
        primaryjoin="foreign(Task.created_by_id) == User.id", lazy="selectin"
    )
    comments: Mapped[list[TaskComment]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=TaskComment.id,
    )

    @property
    def status_color(self) -> str:
        return STATUS_COLORS.get(self.status, DEFAULT_COLOR)

    @property
    def priority_color(self) -> str:
        return PRIORITY_COLORS.get(self.priority, DEFAULT_COLOR)

    @property
    def is_overdue(self) -> bool:
        due = ensure_utc(self.due_date)
        return due is not None and due < utcnow() and self.status != "completed"

    @property
    def days_remaining(self) -> int | None:
        due = ensure_utc(self.due_date)
        if due is None:
            return None
        return math.ceil((due - utcnow()).total_seconds() / 86400)

    def set_progress(self, progress: int) -> None:
        self.progress = max(0, min(100, progress))
        if self.progress == 100:
            self.status = "completed"
        elif self.progress > 0:
            self.status = "in-progress"

    def normalize(self) -> None:
        """Apply the progress/status/completion rules before persisting."""

        progress = max(0, min(100, self.progress or 0))
        if progress != self.progress:
            self.progress = progress
        status = self.status or "pending"
        if progress == 100:
            status = "completed"
        elif progress > 0 and status == "pending":
            status = "in-progress"
        if status != self.status:
            self.status = status

        if self.status == "completed":
            if self.completed_at is None:
                self.completed_at = utcnow()
        elif self.completed_at is not None:
            self.completed_at = None


@event.listens_for(Task, "before_insert")
@event.listens_for(Task, "before_update")
def _normalize_task(mapper, connection, target: Task) -> None:
    target.normalize()
