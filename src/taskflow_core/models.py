"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    Table,
    Uuid,
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship, declarative_base

# Base class for all models
Base = declarative_base()


class UserRole(str, enum.Enum):
    """User role enum."""

    USER = "user"
    ADMIN = "admin"


class TaskStatus(str, enum.Enum):
    """Task lifecycle status enum."""

    PENDING = "pending"  # Not yet started
    IN_PROGRESS = "in-progress"  # Currently being worked on
    COMPLETED = "completed"  # Finished


class TaskPriority(str, enum.Enum):
    """Task priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Association table for task assignees (many-to-many)
task_assignees = Table(
    'task_assignees',
    Base.metadata,
    Column('task_id', Uuid, ForeignKey('tasks.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Uuid, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True, index=True),
    Column('assigned_at', DateTime, nullable=False, default=datetime.utcnow),
)


class User(Base):
    """
    User account.

    Authenticates with email and password; the password is stored only as a
    bcrypt hash. Role decides whether the user administers other accounts
    and sees every task.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=UserRole.USER,
        index=True,
    )

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    created_tasks = relationship("Task", back_populates="creator", foreign_keys="Task.created_by")
    comments = relationship("TaskComment", back_populates="author")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value if self.role else None})>"


class Task(Base):
    """Unit of work owned by its creator and shared with its assignees.

    `completed_at` and `updated_at` are derived fields maintained by
    `lifecycle.apply_lifecycle`, which runs before every persist.
    """

    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Core task fields
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    # Use values_callable to serialize enum values (lowercase) instead of names (UPPERCASE)
    status = Column(Enum(TaskStatus, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskStatus.PENDING, index=True)
    priority = Column(Enum(TaskPriority, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskPriority.MEDIUM, index=True)
    category = Column(String(50), nullable=False, default="", index=True)
    due_date = Column(DateTime, nullable=False, index=True)

    # Effort tracking
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)

    # Audit fields
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    creator = relationship("User", back_populates="created_tasks", foreign_keys=[created_by])

    # Many-to-many relationship with users via task_assignees
    assignees = relationship(
        "User",
        secondary=task_assignees,
        order_by="User.email",
        backref="assigned_tasks",
    )

    # One row per tag; `tags` exposes their names as a plain list
    tag_rows = relationship(
        "TaskTag",
        order_by="TaskTag.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    tags = association_proxy("tag_rows", "name", creator=lambda name: TaskTag(name=name))

    comments = relationship(
        "TaskComment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskComment.created_at",
    )
    documents = relationship(
        "TaskDocument",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskDocument.uploaded_at",
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("estimated_hours IS NULL OR estimated_hours >= 0", name="non_negative_estimated_hours"),
        CheckConstraint("actual_hours IS NULL OR actual_hours >= 0", name="non_negative_actual_hours"),
    )

    @property
    def assignee_ids(self) -> set:
        return {user.id for user in self.assignees}

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title[:30]}>"


class TaskTag(Base):
    """One tag of a task, kept in the order the tags were given."""

    __tablename__ = "task_tags"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String(30), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<TaskTag {self.task_id}: {self.name}>"


class TaskComment(Base):
    """Comment appended to a task. Comments are never edited or deleted."""

    __tablename__ = "task_comments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    text = Column(String(500), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    task = relationship("Task", back_populates="comments")
    author = relationship("User", back_populates="comments")

    def __repr__(self) -> str:
        return f"<TaskComment {self.task_id}: {self.text[:30]}>"


class TaskDocument(Base):
    """PDF attached to a task.

    Only metadata lives in the database; the file itself is stored under the
    configured upload directory (see `storage.py`).
    """

    __tablename__ = "task_documents"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    path = Column(String(1024), nullable=False)
    mimetype = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    task = relationship("Task", back_populates="documents")

    def __repr__(self) -> str:
        return f"<TaskDocument {self.filename} ({self.size} bytes)>"
