"""CRUD operations for users, tasks, comments and documents.

Authorization is the caller's job (see permissions.py); these functions
enforce data invariants: unique emails, non-empty assignee sets, derived task
timestamps, the per-task document cap and file/record consistency.
"""
import logging
from datetime import datetime, timezone
from typing import BinaryIO, Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas, storage
from .lifecycle import (
    TaskValidationError,
    apply_lifecycle,
    parse_tags,
    validate_comment_text,
    validate_task_fields,
    validate_transition,
)
from .security import hash_password

logger = logging.getLogger("taskflow-core.crud")


class DuplicateEmailError(ValueError):
    """Raised when an email is already registered."""

    def __init__(self, email: str):
        super().__init__("User already exists")
        self.email = email


class UserDeletionError(ValueError):
    """Raised when deleting a user would leave a task without assignees."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store datetimes as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ============================================================================
# User CRUD Operations
# ============================================================================

def get_user_by_id(
    db: Session,
    user_id: UUID,
) -> Optional[models.User]:
    """
    Get a user by ID.

    Args:
        db: Database session
        user_id: User UUID

    Returns:
        User if found, None otherwise
    """
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(
    db: Session,
    email: str,
) -> Optional[models.User]:
    """
    Get a user by email address.

    Args:
        db: Database session
        email: Email address (case-insensitive)

    Returns:
        User if found, None otherwise
    """
    return db.query(models.User).filter(models.User.email == normalize_email(email)).first()


def create_user(
    db: Session,
    email: str,
    password: str,
    role: Optional[models.UserRole] = None,
    bcrypt_rounds: int = 12,
) -> models.User:
    """
    Create a user.

    Raises:
        DuplicateEmailError: If the email is already registered
    """
    email = normalize_email(email)
    if get_user_by_email(db, email):
        raise DuplicateEmailError(email)

    user = models.User(
        email=email,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role=role or models.UserRole.USER,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.email} ({user.role.value})")
    return user


def list_users(
    db: Session,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[models.User], int]:
    """
    List users with pagination.

    Args:
        db: Database session
        skip: Number of records to skip
        limit: Maximum number of records to return

    Returns:
        Tuple of (users list, total count)
    """
    query = db.query(models.User)
    total = query.count()
    users = query.order_by(models.User.email).offset(skip).limit(limit).all()
    return users, total


def update_user(
    db: Session,
    user: models.User,
    email: Optional[str] = None,
    role: Optional[models.UserRole] = None,
) -> models.User:
    """
    Update a user's email and/or role. Role authorization is the caller's job.

    Raises:
        DuplicateEmailError: If the new email belongs to another user
    """
    if email is not None:
        email = normalize_email(email)
        if email != user.email:
            existing = get_user_by_email(db, email)
            if existing and existing.id != user.id:
                raise DuplicateEmailError(email)
            user.email = email

    if role is not None and role != user.role:
        logger.info(f"Changing role of {user.email}: {user.role.value} → {role.value}")
        user.role = role

    db.commit()
    db.refresh(user)
    logger.info(f"Updated user {user.email}")
    return user


def delete_user(db: Session, user: models.User) -> None:
    """
    Delete a user.

    Their assignments are removed; tasks they created and comments they wrote
    remain with the author reference cleared.

    Raises:
        UserDeletionError: If the user is the only assignee of any task
    """
    sole_assignments = [task for task in user.assigned_tasks if len(task.assignees) == 1]
    if sole_assignments:
        raise UserDeletionError(
            f"User is the only assignee of {len(sole_assignments)} task(s); reassign them first"
        )

    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {user.email}")


# ============================================================================
# Task CRUD Operations
# ============================================================================

def _resolve_assignees(db: Session, assignee_ids: Iterable[UUID]) -> list[models.User]:
    """
    Load assignee users, preserving order and dropping duplicates.

    Raises:
        TaskValidationError: If the list is empty or references unknown users
    """
    unique_ids = list(dict.fromkeys(assignee_ids))
    if not unique_ids:
        raise TaskValidationError("Please assign this task to at least one user", field="assignedTo")

    users = db.query(models.User).filter(models.User.id.in_(unique_ids)).all()
    found = {user.id for user in users}
    missing = [str(uid) for uid in unique_ids if uid not in found]
    if missing:
        raise TaskValidationError(f"Assignee not found: {', '.join(missing)}", field="assignedTo")
    return users


def get_task(
    db: Session,
    task_id: UUID,
) -> Optional[models.Task]:
    """
    Get a task by ID with creator, assignees, comments and documents loaded.

    Args:
        db: Database session
        task_id: Task UUID

    Returns:
        Task or None if not found
    """
    return (
        db.query(models.Task)
        .options(
            joinedload(models.Task.creator),
            selectinload(models.Task.assignees),
            selectinload(models.Task.tag_rows),
            selectinload(models.Task.comments).joinedload(models.TaskComment.author),
            selectinload(models.Task.documents),
        )
        .filter(models.Task.id == task_id)
        .first()
    )


def create_task(
    db: Session,
    task_data: schemas.TaskCreate,
    creator: models.User,
    now: Optional[datetime] = None,
) -> models.Task:
    """
    Create a new task owned by `creator`.

    Args:
        db: Database session
        task_data: Task creation data
        creator: Authenticated user creating the task
        now: Creation time (defaults to utcnow)

    Returns:
        Created Task object

    Raises:
        TaskValidationError: If fields are invalid or assignees are unknown
    """
    tags = parse_tags(task_data.tags)
    category = (task_data.category or "").strip()
    validate_task_fields(
        title=task_data.title,
        description=task_data.description,
        due_date=task_data.due_date,
        assignee_ids=task_data.assigned_to,
        category=category,
        tags=tags,
        estimated_hours=task_data.estimated_hours,
        actual_hours=task_data.actual_hours,
        creating=True,
    )
    assignees = _resolve_assignees(db, task_data.assigned_to)

    now = now or datetime.utcnow()
    task = models.Task(
        title=task_data.title.strip(),
        description=task_data.description,
        status=task_data.status,
        priority=task_data.priority,
        category=category,
        tags=tags,
        due_date=_naive_utc(task_data.due_date),
        estimated_hours=task_data.estimated_hours,
        actual_hours=task_data.actual_hours,
        created_by=creator.id,
        created_at=now,
    )
    task.assignees = assignees
    apply_lifecycle(task, now)

    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Created task {task.id}: {task.title}")
    return task


def update_task(
    db: Session,
    task: models.Task,
    task_update: schemas.TaskUpdate,
    now: Optional[datetime] = None,
) -> models.Task:
    """
    Update a task. Fields omitted from the update (None) are left unchanged.

    Args:
        db: Database session
        task: Task to update
        task_update: Update data
        now: Mutation time (defaults to utcnow)

    Returns:
        Updated Task

    Raises:
        TaskValidationError: If fields are invalid, or assignedTo is empty or unknown
    """
    tags = parse_tags(task_update.tags) if task_update.tags is not None else None
    category = task_update.category.strip() if task_update.category is not None else None
    validate_task_fields(
        title=task_update.title,
        description=task_update.description,
        due_date=task_update.due_date,
        assignee_ids=task_update.assigned_to,
        category=category,
        tags=tags,
        estimated_hours=task_update.estimated_hours,
        actual_hours=task_update.actual_hours,
    )

    if task_update.assigned_to is not None:
        task.assignees = _resolve_assignees(db, task_update.assigned_to)

    if task_update.title is not None:
        task.title = task_update.title.strip()

    if task_update.description is not None:
        task.description = task_update.description

    if task_update.status is not None:
        validate_transition(task.status, task_update.status)
        if task_update.status != task.status:
            logger.info(f"Task {task.id} status: {task.status.value} → {task_update.status.value}")
            task.status = task_update.status

    if task_update.priority is not None:
        task.priority = task_update.priority

    if task_update.due_date is not None:
        task.due_date = _naive_utc(task_update.due_date)

    if category is not None:
        task.category = category

    if tags is not None:
        task.tags = tags

    if task_update.estimated_hours is not None:
        task.estimated_hours = task_update.estimated_hours

    if task_update.actual_hours is not None:
        task.actual_hours = task_update.actual_hours

    apply_lifecycle(task, now)
    db.commit()
    db.refresh(task)
    logger.info(f"Updated task {task.id}")
    return task


def delete_task(db: Session, task: models.Task, upload_dir: str) -> None:
    """
    Delete a task with its comments, document records and stored files.

    Files are removed only after the record deletion is committed.
    """
    task_id = task.id
    db.delete(task)
    db.commit()
    storage.remove_task_directory(upload_dir, task_id)
    logger.info(f"Deleted task {task_id}")


# ============================================================================
# Comment Operations
# ============================================================================

def add_comment(
    db: Session,
    task: models.Task,
    author: models.User,
    text: str,
    now: Optional[datetime] = None,
) -> models.TaskComment:
    """
    Append a comment to a task.

    Raises:
        TaskValidationError: If the text is empty or too long
    """
    now = now or datetime.utcnow()
    comment = models.TaskComment(
        user_id=author.id,
        text=validate_comment_text(text),
        created_at=now,
    )
    task.comments.append(comment)
    apply_lifecycle(task, now)
    db.commit()
    db.refresh(comment)
    logger.info(f"Added comment {comment.id} to task {task.id}")
    return comment


# ============================================================================
# Document Operations
# ============================================================================

def get_document(task: models.Task, document_id: UUID) -> Optional[models.TaskDocument]:
    """Find one of a task's documents by ID."""
    for document in task.documents:
        if document.id == document_id:
            return document
    return None


def add_document(
    db: Session,
    task: models.Task,
    filename: Optional[str],
    content_type: Optional[str],
    stream: BinaryIO,
    upload_dir: str,
    max_documents: int = 3,
    max_bytes: int = 10 * 1024 * 1024,
) -> models.TaskDocument:
    """
    Store an uploaded PDF and attach it to a task.

    The file is written first and the record committed second; if the commit
    fails the written file is removed again before the error propagates.

    Raises:
        DocumentLimitError: If the task already holds max_documents documents
        InvalidDocumentError: If no file was sent, it is not a PDF, or it is too large
        DocumentStorageError: If the file cannot be written
    """
    if len(task.documents) >= max_documents:
        raise storage.DocumentLimitError(max_documents)
    storage.validate_upload(filename, content_type)

    stored = storage.save_document(upload_dir, task.id, filename, stream, max_bytes)
    try:
        document = models.TaskDocument(
            filename=stored.filename,
            path=stored.path,
            mimetype=content_type,
            size=stored.size,
            uploaded_at=datetime.utcnow(),
        )
        task.documents.append(document)
        apply_lifecycle(task)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.discard_document(upload_dir, stored.path)
        logger.error(f"Failed to record document for task {task.id}; removed {stored.path}")
        raise

    db.refresh(document)
    logger.info(f"Attached document {document.id} ({document.filename}) to task {task.id}")
    return document


def delete_document(
    db: Session,
    task: models.Task,
    document: models.TaskDocument,
    upload_dir: str,
) -> None:
    """
    Delete a document record and its file together.

    The file is moved aside, the record deletion committed, then the moved
    file unlinked. If the commit fails the file is moved back; if the file
    cannot be moved the record is kept.

    Raises:
        DocumentStorageError: If the file exists but cannot be removed
    """
    staged = storage.stage_removal(upload_dir, document.path)
    try:
        task.documents.remove(document)
        apply_lifecycle(task)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.restore_staged(staged)
        logger.error(f"Failed to delete document record {document.id}; file restored")
        raise

    storage.finalize_removal(staged)
    logger.info(f"Deleted document {document.id} from task {task.id}")
