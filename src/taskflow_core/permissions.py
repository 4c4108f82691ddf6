"""Authorization policy for tasks, their comments and documents, and users.

Every router asks this module before reading or mutating a resource, so the
rules are evaluated identically everywhere. Decisions depend only on the
actor's role and id, the task creator id and the task assignee-id set.

Rules:
- Admins may do everything
- Task creators may read, update, delete, comment on, and manage documents of their tasks
- Task assignees may read, comment on, and read documents of their tasks
- Users may read and update their own account; everything else on users is admin-only
"""
import enum
import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import or_

from . import models

logger = logging.getLogger("taskflow-core.permissions")


class PermissionDeniedError(Exception):
    """Raised when an authenticated actor lacks rights for an action."""

    def __init__(self, message: str, action: Optional[enum.Enum] = None):
        super().__init__(message)
        self.message = message
        self.action = action


class TaskAction(str, enum.Enum):
    """Actions on a task and its sub-resources."""

    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    READ_COMMENTS = "read_comments"
    ADD_COMMENT = "add_comment"
    READ_DOCUMENTS = "read_documents"
    UPLOAD_DOCUMENT = "upload_document"
    DELETE_DOCUMENT = "delete_document"


class UserAction(str, enum.Enum):
    """Actions on user accounts."""

    LIST = "list"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    UPDATE_ROLE = "update_role"
    DELETE = "delete"


# Who besides admins may perform each task action
CREATOR_ONLY_TASK_ACTIONS = frozenset({
    TaskAction.UPDATE,
    TaskAction.DELETE,
    TaskAction.UPLOAD_DOCUMENT,
    TaskAction.DELETE_DOCUMENT,
})
SHARED_TASK_ACTIONS = frozenset({
    TaskAction.READ,
    TaskAction.READ_COMMENTS,
    TaskAction.ADD_COMMENT,
    TaskAction.READ_DOCUMENTS,
})

SELF_USER_ACTIONS = frozenset({UserAction.READ, UserAction.UPDATE})

TASK_DENIAL_MESSAGES: dict[TaskAction, str] = {
    TaskAction.READ: "Not authorized to access this task",
    TaskAction.UPDATE: "Not authorized to update this task",
    TaskAction.DELETE: "Not authorized to delete this task",
    TaskAction.READ_COMMENTS: "Not authorized to view comments on this task",
    TaskAction.ADD_COMMENT: "Not authorized to comment on this task",
    TaskAction.READ_DOCUMENTS: "Not authorized to access this task",
    TaskAction.UPLOAD_DOCUMENT: "Not authorized to update this task",
    TaskAction.DELETE_DOCUMENT: "Not authorized to update this task",
}
# Task and user actions share string values, so they need separate tables
USER_DENIAL_MESSAGES: dict[UserAction, str] = {
    UserAction.LIST: "Not authorized as an admin",
    UserAction.CREATE: "Not authorized as an admin",
    UserAction.READ: "Not authorized to access this user",
    UserAction.UPDATE: "Not authorized to update this user",
    UserAction.UPDATE_ROLE: "Not authorized as an admin",
    UserAction.DELETE: "Not authorized as an admin",
}


def is_admin(actor: Any) -> bool:
    return getattr(actor, "role", None) == models.UserRole.ADMIN


def task_decision(
    actor_role: models.UserRole,
    actor_id: UUID,
    creator_id: Optional[UUID],
    assignee_ids: Iterable[UUID],
    action: TaskAction,
) -> bool:
    """
    Decide whether an actor may perform an action on a task.

    Args:
        actor_role: Role of the acting user
        actor_id: ID of the acting user
        creator_id: ID of the task creator (None if the creator was deleted)
        assignee_ids: IDs of every task assignee
        action: Requested action

    Returns:
        True if allowed, False otherwise
    """
    if actor_role == models.UserRole.ADMIN:
        return True

    is_creator = creator_id is not None and creator_id == actor_id
    if action in CREATOR_ONLY_TASK_ACTIONS:
        return is_creator
    if action in SHARED_TASK_ACTIONS:
        # Membership test against the whole assignee set, never a single id
        return is_creator or actor_id in set(assignee_ids)
    return False


def user_decision(
    actor_role: models.UserRole,
    actor_id: UUID,
    target_id: Optional[UUID],
    action: UserAction,
) -> bool:
    """
    Decide whether an actor may perform an action on a user account.

    Args:
        actor_role: Role of the acting user
        actor_id: ID of the acting user
        target_id: ID of the account acted on (None for list/create)
        action: Requested action

    Returns:
        True if allowed, False otherwise
    """
    if actor_role == models.UserRole.ADMIN:
        return True
    return action in SELF_USER_ACTIONS and target_id is not None and target_id == actor_id


def can_access(actor: models.User, resource: Any, action: enum.Enum) -> bool:
    """
    Check whether `actor` may perform `action` on `resource`.

    Comments and documents carry their parent task's ownership, so pass the
    task itself with a comment or document action. For user list/create
    pass None as the resource.
    """
    if isinstance(action, TaskAction):
        if not isinstance(resource, models.Task):
            raise TypeError(f"Task action {action.value} needs a Task, got {type(resource).__name__}")
        return task_decision(actor.role, actor.id, resource.created_by, resource.assignee_ids, action)

    if isinstance(action, UserAction):
        target_id = resource.id if isinstance(resource, models.User) else resource
        return user_decision(actor.role, actor.id, target_id, action)

    raise TypeError(f"Unknown action: {action!r}")


def require_access(actor: models.User, resource: Any, action: enum.Enum) -> None:
    """
    Raise PermissionDeniedError unless `actor` may perform `action` on `resource`.

    Raises:
        PermissionDeniedError: With a resource-specific message
    """
    if can_access(actor, resource, action):
        logger.debug(f"Allowed {action.value} for user {actor.id}")
        return
    logger.warning(f"Denied {action.value} for user {actor.id}")
    messages = TASK_DENIAL_MESSAGES if isinstance(action, TaskAction) else USER_DENIAL_MESSAGES
    raise PermissionDeniedError(messages[action], action=action)


def visible_tasks_clause(actor: models.User):
    """
    SQL filter restricting tasks to the actor's visibility scope.

    Returns:
        None for admins (no restriction), otherwise a creator-or-assignee clause
    """
    if is_admin(actor):
        return None
    return or_(
        models.Task.created_by == actor.id,
        models.Task.assignees.any(models.User.id == actor.id),
    )
