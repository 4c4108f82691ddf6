"""Task list queries: visibility scope, filters, sorting and pagination."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from math import ceil
from typing import Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from . import models
from .lifecycle import TaskValidationError
from .permissions import visible_tasks_clause

logger = logging.getLogger("taskflow-core.task_query")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

PRIORITY_ORDER = [
    models.TaskPriority.LOW,
    models.TaskPriority.MEDIUM,
    models.TaskPriority.HIGH,
]
STATUS_ORDER = [
    models.TaskStatus.PENDING,
    models.TaskStatus.IN_PROGRESS,
    models.TaskStatus.COMPLETED,
]

# Wire name → sortable column expression
SORT_FIELDS = {
    "createdAt": models.Task.created_at,
    "updatedAt": models.Task.updated_at,
    "dueDate": models.Task.due_date,
    "completedAt": models.Task.completed_at,
    "title": models.Task.title,
    "category": models.Task.category,
    # Rank-based ordering instead of alphabetical
    "priority": case({p.value: i for i, p in enumerate(PRIORITY_ORDER)}, value=models.Task.priority),
    "status": case({s.value: i for i, s in enumerate(STATUS_ORDER)}, value=models.Task.status),
}
SORT_ORDERS = ("asc", "desc")


@dataclass
class TaskQueryParams:
    """Filter, sort and pagination parameters for listing tasks."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    status: Optional[models.TaskStatus] = None
    priority: Optional[models.TaskPriority] = None
    category: Optional[str] = None
    search: Optional[str] = None
    due_date: Optional[date] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    def validate(self, max_page_size: int = MAX_PAGE_SIZE) -> None:
        """
        Check pagination and sort parameters.

        Raises:
            TaskValidationError: If a parameter is out of range or unknown
        """
        if self.page < 1:
            raise TaskValidationError("page must be at least 1", field="page")
        if self.limit < 1 or self.limit > max_page_size:
            raise TaskValidationError(f"limit must be between 1 and {max_page_size}", field="limit")
        if self.sort_by not in SORT_FIELDS:
            raise TaskValidationError(
                f"Cannot sort by '{self.sort_by}'. Sortable fields: {', '.join(SORT_FIELDS)}",
                field="sortBy",
            )
        if self.sort_order not in SORT_ORDERS:
            raise TaskValidationError("sortOrder must be 'asc' or 'desc'", field="sortOrder")


@dataclass
class TaskPage:
    """One page of tasks plus the totals needed for pagination."""

    tasks: list[models.Task]
    total: int
    total_pages: int
    page: int


def _like_pattern(term: str) -> str:
    """Build a LIKE pattern that matches `term` literally as a substring."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _local_midnight_as_utc(day: date) -> datetime:
    local = datetime.combine(day, time.min).astimezone()
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return [local midnight, next local midnight) of `day` as naive UTC.

    Due dates are stored as naive UTC, while the day a caller asks for is a
    calendar day in the server's local time zone.
    """
    return _local_midnight_as_utc(day), _local_midnight_as_utc(day + timedelta(days=1))


def build_task_query(db: Session, actor: models.User, params: TaskQueryParams) -> Query:
    """
    Build the filtered (unsorted, unpaginated) task query for an actor.

    Args:
        db: Database session
        actor: Authenticated user; non-admins only see tasks they created or are assigned to
        params: Filter parameters

    Returns:
        SQLAlchemy query over Task
    """
    query = db.query(models.Task)

    scope = visible_tasks_clause(actor)
    if scope is not None:
        query = query.filter(scope)

    if params.status:
        query = query.filter(models.Task.status == params.status)

    if params.priority:
        query = query.filter(models.Task.priority == params.priority)

    if params.category:
        query = query.filter(models.Task.category.ilike(_like_pattern(params.category), escape="\\"))

    if params.search:
        pattern = _like_pattern(params.search)
        query = query.filter(
            or_(
                models.Task.title.ilike(pattern, escape="\\"),
                models.Task.description.ilike(pattern, escape="\\"),
                models.Task.category.ilike(pattern, escape="\\"),
                models.Task.tag_rows.any(models.TaskTag.name.ilike(pattern, escape="\\")),
            )
        )

    if params.due_date:
        start, end = day_bounds(params.due_date)
        query = query.filter(models.Task.due_date >= start, models.Task.due_date < end)

    return query


def get_task_page(
    db: Session,
    actor: models.User,
    params: TaskQueryParams,
    max_page_size: int = MAX_PAGE_SIZE,
) -> TaskPage:
    """
    Get one page of tasks visible to the actor.

    Creator, assignees and comment authors are eager-loaded so the page can
    be rendered without further queries.

    Returns:
        TaskPage with tasks, total match count and total page count

    Raises:
        TaskValidationError: If pagination or sort parameters are invalid
    """
    params.validate(max_page_size)
    query = build_task_query(db, actor, params)

    # Get total count before pagination
    total = query.count()

    sort_column = SORT_FIELDS[params.sort_by]
    primary = sort_column.asc() if params.sort_order == "asc" else sort_column.desc()
    query = query.order_by(primary, models.Task.id.asc())

    tasks = (
        query.options(
            joinedload(models.Task.creator),
            selectinload(models.Task.assignees),
            selectinload(models.Task.tag_rows),
            selectinload(models.Task.comments).joinedload(models.TaskComment.author),
            selectinload(models.Task.documents),
        )
        .offset((params.page - 1) * params.limit)
        .limit(params.limit)
        .all()
    )

    logger.debug(f"Task page {params.page} for user {actor.id}: {len(tasks)} of {total}")
    return TaskPage(
        tasks=tasks,
        total=total,
        total_pages=ceil(total / params.limit),
        page=params.page,
    )
