"""Task lifecycle rules: status transitions, derived timestamps and field validation.

Every status may move to every other status. What the lifecycle does enforce:
- completed_at is set exactly while status is completed
- updated_at is refreshed on every mutation
- field limits hold on create and update, and the assignee set is never empty
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from .models import Task, TaskStatus

logger = logging.getLogger("taskflow-core.lifecycle")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
CATEGORY_MAX_LENGTH = 50
TAG_MAX_LENGTH = 30
COMMENT_MAX_LENGTH = 500


class TaskValidationError(ValueError):
    """Raised when task fields violate lifecycle rules."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


# Transition matrix: current status → allowed next statuses.
# Currently unconstrained: every status may move to every status.
TRANSITION_MATRIX: dict[TaskStatus, list[TaskStatus]] = {
    status: list(TaskStatus) for status in TaskStatus
}


def is_transition_valid(current_status: TaskStatus, new_status: TaskStatus) -> bool:
    """Check if a status transition is allowed."""
    return new_status in TRANSITION_MATRIX.get(current_status, [])


def get_allowed_transitions(current_status: TaskStatus) -> list[TaskStatus]:
    """
    Get list of allowed transitions from current status.

    Args:
        current_status: Current task status

    Returns:
        List of allowed next statuses (excluding no-op same status)
    """
    return [s for s in TRANSITION_MATRIX.get(current_status, []) if s != current_status]


def validate_transition(current_status: TaskStatus, new_status: TaskStatus) -> None:
    """
    Validate a status transition and raise if it is not in the matrix.

    Raises:
        TaskValidationError: If the transition is not allowed
    """
    # No-op transitions are always allowed (setting same status)
    if current_status == new_status:
        logger.debug(f"No-op transition: {current_status.value} → {new_status.value}")
        return

    if not is_transition_valid(current_status, new_status):
        allowed_names = [s.value for s in get_allowed_transitions(current_status)]
        raise TaskValidationError(
            f"Invalid status transition: {current_status.value} → {new_status.value}. "
            f"From {current_status.value}, you can only transition to: {', '.join(allowed_names) or 'nothing'}.",
            field="status",
        )


def derive_timestamps(
    status: TaskStatus,
    completed_at: Optional[datetime],
    now: datetime,
) -> tuple[Optional[datetime], datetime]:
    """
    Compute the derived timestamps of a task about to be persisted.

    Args:
        status: Status the task will be saved with
        completed_at: Current completion timestamp (None if unset)
        now: Time of the mutation

    Returns:
        Tuple of (completed_at, updated_at)
    """
    if status == TaskStatus.COMPLETED:
        return (completed_at or now), now
    return None, now


def apply_lifecycle(task: Task, now: Optional[datetime] = None) -> Task:
    """
    Apply derived timestamps to a task. Call before every persist.

    Args:
        task: Task about to be flushed
        now: Time of the mutation (defaults to utcnow)

    Returns:
        The same task, for chaining
    """
    now = now or datetime.utcnow()
    previous = task.completed_at
    task.completed_at, task.updated_at = derive_timestamps(task.status, task.completed_at, now)
    if previous is None and task.completed_at is not None:
        logger.debug(f"Task {task.id} completed at {task.completed_at}")
    elif previous is not None and task.completed_at is None:
        logger.debug(f"Task {task.id} reopened as {task.status.value}")
    return task


def parse_tags(raw: Union[str, Iterable[str], None]) -> list[str]:
    """
    Normalize tag input to a list.

    Accepts a comma-separated string ("a, b,,c") or an iterable of strings.
    Entries are trimmed and empty entries dropped.
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [tag.strip() for tag in parts if tag and tag.strip()]


def _require_text(value: Optional[str], field: str, label: str, max_length: int) -> None:
    if value is None or not value.strip():
        raise TaskValidationError(f"Please provide a {label}", field=field)
    if len(value) > max_length:
        raise TaskValidationError(
            f"{label.capitalize()} cannot be more than {max_length} characters", field=field
        )


def validate_task_fields(
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[datetime] = None,
    assignee_ids: Optional[list] = None,
    category: Optional[str] = None,
    tags: Optional[list[str]] = None,
    estimated_hours: Optional[float] = None,
    actual_hours: Optional[float] = None,
    creating: bool = False,
) -> None:
    """
    Validate task fields for a create or an update.

    On create, title, description, due date and assignees are required. On
    update, only the fields that are provided (not None) are checked, except
    that a provided assignee collection must still be non-empty.

    Raises:
        TaskValidationError: If any field is invalid
    """
    if creating or title is not None:
        _require_text(title, "title", "title", TITLE_MAX_LENGTH)
    if creating or description is not None:
        _require_text(description, "description", "description", DESCRIPTION_MAX_LENGTH)
    if creating and due_date is None:
        raise TaskValidationError("Please provide a due date", field="dueDate")
    if creating or assignee_ids is not None:
        if not assignee_ids:
            raise TaskValidationError("Please assign this task to at least one user", field="assignedTo")
    if category is not None and len(category.strip()) > CATEGORY_MAX_LENGTH:
        raise TaskValidationError(
            f"Category cannot be more than {CATEGORY_MAX_LENGTH} characters", field="category"
        )
    for tag in tags or []:
        if len(tag) > TAG_MAX_LENGTH:
            raise TaskValidationError(
                f"Tag cannot be more than {TAG_MAX_LENGTH} characters", field="tags"
            )
    for field, hours in (("estimatedHours", estimated_hours), ("actualHours", actual_hours)):
        if hours is not None and hours < 0:
            raise TaskValidationError(f"{field} cannot be negative", field=field)


def validate_comment_text(text: Optional[str]) -> str:
    """Return the trimmed comment text or raise TaskValidationError."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise TaskValidationError("Comment text is required", field="text")
    if len(cleaned) > COMMENT_MAX_LENGTH:
        raise TaskValidationError(
            f"Comment cannot be more than {COMMENT_MAX_LENGTH} characters", field="text"
        )
    return cleaned
