"""Task and task comment endpoints."""
import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from taskflow_core import crud, schemas, models
from taskflow_core.api.dependencies import get_current_user
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.permissions import TaskAction, require_access
from taskflow_core.task_query import TaskQueryParams, get_task_page

logger = logging.getLogger("taskflow-core.tasks")

router = APIRouter(tags=["tasks"])


def _user_summary(user: Optional[models.User]) -> Optional[schemas.UserSummary]:
    if user is None:
        return None
    return schemas.UserSummary(id=user.id, email=user.email, role=user.role)


def _comment_to_response(comment: models.TaskComment) -> schemas.CommentResponse:
    """Convert TaskComment model to CommentResponse schema."""
    return schemas.CommentResponse(
        id=comment.id,
        user=_user_summary(comment.author),
        text=comment.text,
        created_at=comment.created_at,
    )


def _task_to_response(task: models.Task, now: Optional[datetime] = None) -> schemas.TaskResponse:
    """Convert Task model to TaskResponse schema."""
    now = now or datetime.utcnow()
    is_overdue = (
        task.due_date is not None
        and task.due_date < now
        and task.status != models.TaskStatus.COMPLETED
    )
    return schemas.TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        category=task.category or "",
        tags=list(task.tags or []),
        due_date=task.due_date,
        assigned_to=[_user_summary(user) for user in task.assignees],
        created_by=_user_summary(task.creator),
        estimated_hours=task.estimated_hours,
        actual_hours=task.actual_hours,
        is_overdue=is_overdue,
        comments=[_comment_to_response(c) for c in task.comments],
        documents=[schemas.DocumentResponse.model_validate(d) for d in task.documents],
        created_at=task.created_at,
        updated_at=task.updated_at,
        completed_at=task.completed_at,
    )


def get_task_or_404(db: Session, task_id: UUID) -> models.Task:
    """Load a task or raise 404."""
    task = crud.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("", response_model=schemas.TaskListResponse)
def list_tasks(
    page: int = Query(1, description="Page number (starts at 1)"),
    limit: Optional[int] = Query(None, description="Items per page"),
    status: Optional[models.TaskStatus] = Query(None, description="Filter by status"),
    priority: Optional[models.TaskPriority] = Query(None, description="Filter by priority"),
    category: Optional[str] = Query(None, description="Case-insensitive category substring"),
    search: Optional[str] = Query(None, description="Search title, description, category and tags"),
    due_date: Optional[date] = Query(None, alias="dueDate", description="Tasks due on this day"),
    sort_by: str = Query("createdAt", alias="sortBy", description="Sort field"),
    sort_order: str = Query("desc", alias="sortOrder", description="asc or desc"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    List tasks visible to the current user with filtering, sorting and pagination.

    Admins see every task; other users see tasks they created or are assigned to.

    - **page**: Page number (starts at 1)
    - **limit**: Number of items per page
    - **status**, **priority**: Exact filters
    - **category**: Case-insensitive substring
    - **search**: Case-insensitive substring over title, description, category and tags
    - **dueDate**: Tasks due on this calendar day
    - **sortBy**: createdAt, updatedAt, dueDate, completedAt, title, status, priority, category
    - **sortOrder**: asc or desc
    """
    params = TaskQueryParams(
        page=page,
        limit=limit if limit is not None else settings.default_page_size,
        status=status,
        priority=priority,
        category=category,
        search=search,
        due_date=due_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = get_task_page(db, current_user, params, max_page_size=settings.max_page_size)

    now = datetime.utcnow()
    return schemas.TaskListResponse(
        count=len(result.tasks),
        total=result.total,
        total_pages=result.total_pages,
        current_page=result.page,
        tasks=[_task_to_response(t, now) for t in result.tasks],
    )


@router.post("", response_model=schemas.TaskEnvelope, status_code=201)
def create_task(
    task_data: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a new task. The current user becomes its creator.

    - **title**: Task title (max 100 characters)
    - **description**: Task description (max 1000 characters)
    - **dueDate**: Due date (required)
    - **assignedTo**: User IDs to assign (at least one)
    - **status**, **priority**: Defaults pending and medium
    - **category**, **tags**: Optional labels; tags may be a comma-separated string
    """
    task = crud.create_task(db, task_data, current_user)
    return schemas.TaskEnvelope(task=_task_to_response(get_task_or_404(db, task.id)))


@router.get("/{task_id}", response_model=schemas.TaskEnvelope)
def get_task(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a task with its assignees, comments and documents."""
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.READ)
    return schemas.TaskEnvelope(task=_task_to_response(task))


@router.put("/{task_id}", response_model=schemas.TaskEnvelope)
def update_task(
    task_id: UUID,
    task_update: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update a task. Only the creator or an admin may update.

    Omitted fields are left unchanged. Moving to completed stamps completedAt;
    moving away from completed clears it.
    """
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.UPDATE)

    crud.update_task(db, task, task_update)
    return schemas.TaskEnvelope(task=_task_to_response(get_task_or_404(db, task_id)))


@router.delete("/{task_id}", response_model=schemas.MessageResponse)
def delete_task(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Delete a task with its comments and documents. Only the creator or an admin may delete.
    """
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.DELETE)

    crud.delete_task(db, task, settings.upload_dir)
    return schemas.MessageResponse(message="Task removed")


# Task Comments endpoints

@router.get("/{task_id}/comments", response_model=schemas.CommentListResponse)
def list_comments(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List a task's comments, oldest first."""
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.READ_COMMENTS)
    return schemas.CommentListResponse(comments=[_comment_to_response(c) for c in task.comments])


@router.post("/{task_id}/comments", response_model=schemas.CommentEnvelope, status_code=201)
def add_comment(
    task_id: UUID,
    comment_data: schemas.CommentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Add a comment to a task. The creator, any assignee or an admin may comment.

    - **text**: Comment text (1-500 characters)
    """
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.ADD_COMMENT)

    comment = crud.add_comment(db, task, current_user, comment_data.text)
    return schemas.CommentEnvelope(comment=_comment_to_response(comment))
