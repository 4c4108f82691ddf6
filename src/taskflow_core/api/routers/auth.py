"""Registration and login endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from taskflow_core import crud, models, schemas
from taskflow_core.api.dependencies import get_current_user
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.permissions import PermissionDeniedError
from taskflow_core.security import authenticate, create_access_token

logger = logging.getLogger("taskflow-core.auth")

router = APIRouter(tags=["auth"])


def _auth_response(user: models.User, settings: Settings) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        token=create_access_token(user.id, settings),
        user=schemas.UserResponse.model_validate(user),
    )


@router.post("/register", response_model=schemas.AuthResponse)
def register(
    user_data: schemas.UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new account and return an access token.

    - **email**: Unique email address (case-insensitive)
    - **password**: At least 6 characters
    - **role**: `user` (default); `admin` only when self-registration of admins is enabled
    """
    if user_data.role == models.UserRole.ADMIN and not settings.allow_admin_self_registration:
        raise PermissionDeniedError("Not authorized as an admin")

    user = crud.create_user(
        db,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    logger.info(f"Registered {user.email}")
    return _auth_response(user, settings)


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Exchange email and password for an access token."""
    user = authenticate(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info(f"Login: {user.email}")
    return _auth_response(user, settings)


@router.get("/me", response_model=schemas.UserEnvelope)
def get_me(current_user: models.User = Depends(get_current_user)):
    """Get the authenticated user."""
    return schemas.UserEnvelope(user=schemas.UserResponse.model_validate(current_user))
