"""Pydantic schemas used across the backend API."""
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    model_serializer,
)
from pydantic.alias_generators import to_camel

T = TypeVar("T")

Role = Literal["user", "admin", "manager"]
TaskStatus = Literal["pending", "in-progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskCategory = Literal["development", "design", "testing", "documentation", "meeting", "other"]
Theme = Literal["light", "dark"]

Tag = Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\+?[1-9]\d{0,15}$")]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    """One violated constraint in a request body."""

    field: str
    message: str


class Envelope(BaseModel, Generic[T]):
    """Uniform JSON wrapper for every API response."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    errors: Optional[list[FieldError]] = None

    @model_serializer(mode="wrap")
    def _drop_empty(self, handler) -> dict[str, Any]:
        return {key: value for key, value in handler(self).items() if value is not None}


class HealthRead(BaseModel):
    status: str
    message: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Users & auth
# ---------------------------------------------------------------------------


class Notifications(CamelModel):
    email: bool = True
    push: bool = True
    sms: bool = False


class Preferences(CamelModel):
    """Per-user UI preferences."""

    theme: Theme = "light"
    notifications: Notifications = Field(default_factory=Notifications)
    language: str = "en"


class UserSummary(CamelModel):
    """Reference expansion for users attached to other records."""

    id: int
    first_name: str
    last_name: str
    email: str


class UserRead(CamelModel):
    """Public representation of a user (never includes the password)."""

    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    role: Role
    avatar: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    preferences: Preferences
    created_at: datetime
    updated_at: datetime


class RegisterRequest(CamelModel):
    """Payload for self-service registration."""

    first_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
    last_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = "user"


class LoginRequest(CamelModel):
    """Credentials supplied during login."""

    email: EmailStr
    password: str = Field(min_length=1)


class AuthPayload(BaseModel):
    user: UserRead
    token: str


class CurrentUserPayload(BaseModel):
    user: UserRead


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


class ResetTokenPayload(CamelModel):
    reset_token: str


class UserRecord(CamelModel):
    """Full set of constraints a stored user must satisfy."""

    first_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    last_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    email: EmailStr
    role: Role = "user"
    avatar: Optional[str] = None
    phone: Optional[Phone] = None
    is_active: bool = True
    preferences: Preferences = Field(default_factory=Preferences)


class UserCreate(UserRecord):
    """Account created by an administrator."""

    password: str = Field(min_length=6)


class UserUpdate(CamelModel):
    """Partial user update; the merged record is re-validated as ``UserRecord``."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    avatar: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None
    preferences: Optional[dict[str, Any]] = None


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None


class PasswordChange(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class Attachment(CamelModel):
    filename: str
    original_name: Optional[str] = None
    path: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    uploaded_at: datetime = Field(default_factory=_utcnow)


class TaskRecord(CamelModel):
    """Full set of constraints a stored task must satisfy."""

    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    description: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    assigned_to: int
    due_date: datetime
    estimated_hours: float = Field(default=0, ge=0)
    actual_hours: float = Field(default=0, ge=0)
    tags: list[Tag] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    category: TaskCategory = "other"
    is_public: bool = False
    progress: int = Field(default=0, ge=0, le=100)


class TaskCreate(TaskRecord):
    """Task payload for creation; the creator comes from the token."""


class TaskUpdate(CamelModel):
    """Partial task update; the merged record is re-validated as ``TaskRecord``."""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    tags: Optional[list[str]] = None
    attachments: Optional[list[dict[str, Any]]] = None
    category: Optional[str] = None
    is_public: Optional[bool] = None
    progress: Optional[int] = None


class CommentCreate(CamelModel):
    content: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class ProgressUpdate(CamelModel):
    progress: int


class CommentRead(CamelModel):
    id: int
    user: Optional[UserSummary] = None
    content: str
    created_at: datetime


class TaskRead(CamelModel):
    """Task representation returned by the API, references expanded."""

    id: int
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[UserSummary] = None
    created_by: Optional[UserSummary] = None
    due_date: datetime
    completed_at: Optional[datetime] = None
    estimated_hours: float
    actual_hours: float
    tags: list[str]
    attachments: list[Attachment]
    comments: list[CommentRead]
    category: TaskCategory
    is_public: bool
    progress: int
    status_color: str
    priority_color: str
    is_overdue: bool
    days_remaining: Optional[int] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductImage(CamelModel):
    url: str = Field(min_length=1)
    alt: Optional[str] = None
    is_primary: bool = False
    order: int = 0


class Specification(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    value: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Ratings(CamelModel):
    average: float = Field(default=0, ge=0, le=5)
    count: int = Field(default=0, ge=0)


class ProductRecord(CamelModel):
    """Full set of constraints a stored product must satisfy."""

    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    description: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]
    short_description: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]] = None
    sku: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]
    price: float = Field(ge=0)
    compare_price: Optional[float] = Field(default=None, ge=0)
    cost_price: float = Field(default=0, ge=0)
    stock: int = Field(ge=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    category: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    subcategory: Optional[str] = None
    tags: list[Tag] = Field(default_factory=list)
    images: list[ProductImage] = Field(default_factory=list)
    specifications: list[Specification] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    brand: Optional[str] = None
    vendor: Optional[str] = None
    warranty: Optional[str] = None
    ratings: Ratings = Field(default_factory=Ratings)


class ProductCreate(ProductRecord):
    """Product payload for creation; the creator comes from the token."""


class ProductUpdate(CamelModel):
    """Partial product update; the merged record is re-validated as ``ProductRecord``."""

    name: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    compare_price: Optional[float] = None
    cost_price: Optional[float] = None
    stock: Optional[int] = None
    low_stock_threshold: Optional[int] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    tags: Optional[list[str]] = None
    images: Optional[list[dict[str, Any]]] = None
    specifications: Optional[list[dict[str, Any]]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    brand: Optional[str] = None
    vendor: Optional[str] = None
    warranty: Optional[str] = None
    ratings: Optional[dict[str, Any]] = None


class StockAdjustment(CamelModel):
    quantity: int


class ProductRead(CamelModel):
    """Product representation returned by the API, derived fields included."""

    id: int
    name: str
    description: str
    short_description: Optional[str] = None
    sku: str
    price: float
    compare_price: Optional[float] = None
    cost_price: float
    stock: int
    low_stock_threshold: int
    category: str
    subcategory: Optional[str] = None
    tags: list[str]
    images: list[ProductImage]
    specifications: list[Specification]
    is_active: bool
    is_featured: bool
    brand: Optional[str] = None
    vendor: Optional[str] = None
    warranty: Optional[str] = None
    ratings: Ratings
    created_by: Optional[UserSummary] = None
    discount_percentage: int
    profit_margin: int
    stock_status: str
    primary_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ApiIndex(BaseModel):
    name: str
    version: str
    resources: list[str]
    user: Optional[UserSummary] = None
