"""User account endpoints."""
import logging
from math import ceil
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from taskflow_core import crud, schemas, models
from taskflow_core.api.dependencies import get_current_user, require_admin
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.lifecycle import TaskValidationError
from taskflow_core.permissions import UserAction, require_access

logger = logging.getLogger("taskflow-core.users")

router = APIRouter(tags=["users"])


def _get_user_or_404(db: Session, user_id: UUID) -> models.User:
    user = crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=schemas.UserListResponse)
def list_users(
    page: int = Query(1, description="Page number"),
    limit: int = Query(10, description="Items per page"),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """List all users, ordered by email. Admin only."""
    if page < 1:
        raise TaskValidationError("page must be at least 1", field="page")
    if limit < 1 or limit > settings.max_page_size:
        raise TaskValidationError(f"limit must be between 1 and {settings.max_page_size}", field="limit")

    users, total = crud.list_users(db, skip=(page - 1) * limit, limit=limit)
    return schemas.UserListResponse(
        count=len(users),
        total=total,
        total_pages=ceil(total / limit),
        current_page=page,
        users=[schemas.UserResponse.model_validate(u) for u in users],
    )


@router.post("", response_model=schemas.UserEnvelope, status_code=201)
def create_user(
    user_data: schemas.UserCreate,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Create a user with any role. Admin only.

    - **email**: Unique email address
    - **password**: At least 6 characters
    - **role**: user (default) or admin
    """
    user = crud.create_user(
        db,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    return schemas.UserEnvelope(user=schemas.UserResponse.model_validate(user))


@router.get("/{user_id}", response_model=schemas.UserEnvelope)
def get_user(
    user_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a user. Users may read their own account; admins may read any."""
    require_access(current_user, user_id, UserAction.READ)
    user = _get_user_or_404(db, user_id)
    return schemas.UserEnvelope(user=schemas.UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=schemas.UserEnvelope)
def update_user(
    user_id: UUID,
    user_update: schemas.UserUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update a user. Users may change their own email; only admins may change roles.

    - **email**: New email address
    - **role**: New role (admin only)
    """
    require_access(current_user, user_id, UserAction.UPDATE)
    user = _get_user_or_404(db, user_id)

    if user_update.role is not None and user_update.role != user.role:
        require_access(current_user, user, UserAction.UPDATE_ROLE)

    user = crud.update_user(db, user, email=user_update.email, role=user_update.role)
    return schemas.UserEnvelope(user=schemas.UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: UUID,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Delete a user. Admin only.

    Fails if the user is the only assignee of any task.
    """
    user = _get_user_or_404(db, user_id)
    crud.delete_user(db, user)
    return schemas.MessageResponse(message="User removed")
