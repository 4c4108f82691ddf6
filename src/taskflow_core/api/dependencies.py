"""FastAPI dependencies for authentication."""
import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from taskflow_core import models
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.permissions import PermissionDeniedError, is_admin
from taskflow_core.security import resolve_identity

logger = logging.getLogger("taskflow-core.auth")


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.User:
    """
    Resolve the bearer credential of the request to a user.

    Raises:
        AuthenticationError: If the header is missing or invalid (401)
    """
    return resolve_identity(db, authorization, settings)


def require_admin(current_user: models.User = Depends(get_current_user)) -> models.User:
    """
    Require an authenticated admin.

    Raises:
        PermissionDeniedError: If the user is not an admin (403)
    """
    if not is_admin(current_user):
        logger.warning(f"Admin-only endpoint refused for {current_user.email}")
        raise PermissionDeniedError("Not authorized as an admin")
    return current_user
