"""Task analytics endpoint."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskflow_core import models, schemas
from taskflow_core.analytics import compute_analytics
from taskflow_core.api.dependencies import get_current_user
from taskflow_core.database import get_db

router = APIRouter(tags=["analytics"])


@router.get("", response_model=schemas.AnalyticsEnvelope)
def get_analytics(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get task statistics for the current user.

    Admins get statistics over every task; other users over the tasks they
    created or are assigned to.
    """
    return schemas.AnalyticsEnvelope(analytics=compute_analytics(db, current_user))
