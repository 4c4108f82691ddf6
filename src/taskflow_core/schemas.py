"""Pydantic schemas for request/response validation.

Field names are snake_case in Python and camelCase on the wire
(`due_date` <-> `dueDate`). Every response is wrapped in an envelope with a
`success` flag.
"""
from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .models import UserRole, TaskStatus, TaskPriority
from .lifecycle import (
    TITLE_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    CATEGORY_MAX_LENGTH,
)

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]{2,}$"
PASSWORD_MIN_LENGTH = 6
# bcrypt only considers the first 72 bytes
PASSWORD_MAX_BYTES = 72


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_password(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password cannot be longer than {PASSWORD_MAX_BYTES} bytes")
    return value


# ============================================================================
# User Schemas
# ============================================================================

class UserSummary(CamelModel):
    """Displayable identity of a user referenced by a task or comment."""

    id: UUID
    email: str
    role: Optional[UserRole] = None


class UserResponse(CamelModel):
    """Schema for user responses. Never includes the password hash."""

    id: UUID
    email: str
    role: UserRole
    created_at: Optional[datetime] = None


class UserCreate(CamelModel):
    """Schema for registering or creating a user."""

    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    role: Optional[UserRole] = None

    @field_validator("password")
    @classmethod
    def check_password_length(cls, value: str) -> str:
        return _check_password(value)


class UserUpdate(CamelModel):
    """Schema for updating a user. Role changes are admin-only."""

    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    role: Optional[UserRole] = None


class LoginRequest(CamelModel):
    """Schema for login."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    """Token plus the authenticated user."""

    success: bool = True
    token: str
    user: UserResponse


class UserEnvelope(CamelModel):
    success: bool = True
    user: UserResponse


class UserListResponse(CamelModel):
    """Schema for paginated user list."""

    success: bool = True
    count: int
    total: int
    total_pages: int
    current_page: int
    users: list[UserResponse]


# ============================================================================
# Task Schemas
# ============================================================================

TagsInput = Union[str, list[str], None]


class TaskCreate(CamelModel):
    """Schema for creating a new task.

    `tags` accepts a comma-separated string ("ui, backend") or a list.
    """

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    assigned_to: list[UUID] = Field(default_factory=list, description="User IDs to assign (at least one)")
    category: Optional[str] = Field(None, max_length=CATEGORY_MAX_LENGTH)
    tags: TagsInput = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)


class TaskUpdate(CamelModel):
    """Schema for updating an existing task. Omitted fields are left unchanged."""

    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[list[UUID]] = None
    category: Optional[str] = Field(None, max_length=CATEGORY_MAX_LENGTH)
    tags: TagsInput = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)


class CommentCreate(CamelModel):
    # Length is checked on the trimmed text by lifecycle.validate_comment_text
    text: str


class CommentResponse(CamelModel):
    id: UUID
    user: Optional[UserSummary] = None
    text: str
    created_at: datetime


class DocumentResponse(CamelModel):
    id: UUID
    filename: str
    path: str
    mimetype: str
    size: int
    uploaded_at: datetime


class TaskResponse(CamelModel):
    """Schema for full task response."""

    id: UUID
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    due_date: datetime
    assigned_to: list[UserSummary]
    created_by: Optional[UserSummary] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    is_overdue: bool = Field(False, description="True if due_date is in the past and status is not completed")
    comments: list[CommentResponse] = Field(default_factory=list)
    documents: list[DocumentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class TaskEnvelope(CamelModel):
    success: bool = True
    task: TaskResponse


class TaskListResponse(CamelModel):
    """Schema for paginated task list."""

    success: bool = True
    count: int
    total: int
    total_pages: int
    current_page: int
    tasks: list[TaskResponse]


class CommentEnvelope(CamelModel):
    success: bool = True
    comment: CommentResponse


class CommentListResponse(CamelModel):
    success: bool = True
    comments: list[CommentResponse]


class DocumentEnvelope(CamelModel):
    success: bool = True
    document: DocumentResponse


class DocumentListResponse(CamelModel):
    success: bool = True
    documents: list[DocumentResponse]


# ============================================================================
# Analytics Schemas
# ============================================================================

class StatusDistribution(CamelModel):
    pending: int = 0
    in_progress: int = 0
    completed: int = 0


class PriorityDistribution(CamelModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class CategoryCount(CamelModel):
    category: str
    count: int


class AnalyticsResponse(CamelModel):
    """Aggregate task statistics over the actor's visibility scope."""

    total_tasks: int
    completed_tasks: int
    overdue_tasks: int
    completion_rate: int
    status_distribution: StatusDistribution
    priority_distribution: PriorityDistribution
    top_categories: list[CategoryCount]


class AnalyticsEnvelope(CamelModel):
    success: bool = True
    analytics: AnalyticsResponse


# ============================================================================
# Generic envelopes
# ============================================================================

class MessageResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    error: Optional[str] = None
