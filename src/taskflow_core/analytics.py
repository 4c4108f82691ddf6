"""Summary statistics over the tasks visible to an actor."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas
from .permissions import visible_tasks_clause

logger = logging.getLogger("taskflow-core.analytics")

TOP_CATEGORY_LIMIT = 5


def completion_rate(completed: int, total: int) -> int:
    """Percentage of completed tasks, rounded half up; 0 when there are no tasks."""
    if total <= 0:
        return 0
    # Integer arithmetic for round-half-up of completed * 100 / total
    return (completed * 200 + total) // (2 * total)


def compute_analytics(
    db: Session,
    actor: models.User,
    now: Optional[datetime] = None,
) -> schemas.AnalyticsResponse:
    """
    Aggregate task counters for the actor's visibility scope.

    Args:
        db: Database session
        actor: Authenticated user (admins see every task)
        now: Reference time for overdue detection (defaults to utcnow)

    Returns:
        AnalyticsResponse with totals, distributions and top categories
    """
    now = now or datetime.utcnow()
    scope = visible_tasks_clause(actor)

    def scoped(query):
        return query.filter(scope) if scope is not None else query

    total = scoped(db.query(func.count(models.Task.id))).scalar() or 0
    completed = scoped(
        db.query(func.count(models.Task.id)).filter(models.Task.status == models.TaskStatus.COMPLETED)
    ).scalar() or 0
    overdue = scoped(
        db.query(func.count(models.Task.id)).filter(
            models.Task.due_date < now,
            models.Task.status != models.TaskStatus.COMPLETED,
        )
    ).scalar() or 0

    status_counts = dict(
        scoped(db.query(models.Task.status, func.count(models.Task.id)))
        .group_by(models.Task.status)
        .all()
    )
    priority_counts = dict(
        scoped(db.query(models.Task.priority, func.count(models.Task.id)))
        .group_by(models.Task.priority)
        .all()
    )

    count_column = func.count(models.Task.id).label("count")
    top_categories = (
        scoped(db.query(models.Task.category, count_column))
        .filter(models.Task.category.isnot(None), models.Task.category != "")
        .group_by(models.Task.category)
        # Category name breaks ties so the result is deterministic
        .order_by(count_column.desc(), models.Task.category.asc())
        .limit(TOP_CATEGORY_LIMIT)
        .all()
    )

    logger.debug(f"Analytics for user {actor.id}: {completed}/{total} completed, {overdue} overdue")
    return schemas.AnalyticsResponse(
        total_tasks=total,
        completed_tasks=completed,
        overdue_tasks=overdue,
        completion_rate=completion_rate(completed, total),
        status_distribution=schemas.StatusDistribution(
            pending=status_counts.get(models.TaskStatus.PENDING, 0),
            in_progress=status_counts.get(models.TaskStatus.IN_PROGRESS, 0),
            completed=status_counts.get(models.TaskStatus.COMPLETED, 0),
        ),
        priority_distribution=schemas.PriorityDistribution(
            low=priority_counts.get(models.TaskPriority.LOW, 0),
            medium=priority_counts.get(models.TaskPriority.MEDIUM, 0),
            high=priority_counts.get(models.TaskPriority.HIGH, 0),
        ),
        top_categories=[
            schemas.CategoryCount(category=category, count=count)
            for category, count in top_categories
        ],
    )
