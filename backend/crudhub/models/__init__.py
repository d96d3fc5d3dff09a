"""SQLAlchemy models exposed by the backend."""
from .base import Base
from .product import Product
from .task import Task, TaskComment
from .user import User

__all__ = ["Base", "Product", "Task", "TaskComment", "User"]
