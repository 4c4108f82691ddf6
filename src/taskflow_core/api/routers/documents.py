"""Task document endpoints (PDF attachments)."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from taskflow_core import crud, schemas, models, storage
from taskflow_core.api.dependencies import get_current_user
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.permissions import TaskAction, require_access
from .tasks import get_task_or_404

logger = logging.getLogger("taskflow-core.documents")

router = APIRouter(tags=["documents"])


def _get_document_or_404(task: models.Task, document_id: UUID) -> models.TaskDocument:
    document = crud.get_document(task, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("/{task_id}/documents", response_model=schemas.DocumentListResponse)
def list_documents(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List a task's document metadata."""
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.READ_DOCUMENTS)
    return schemas.DocumentListResponse(
        documents=[schemas.DocumentResponse.model_validate(d) for d in task.documents]
    )


@router.post("/{task_id}/documents", response_model=schemas.DocumentEnvelope, status_code=201)
def upload_document(
    task_id: UUID,
    file: Optional[UploadFile] = File(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a PDF to a task. Only the creator or an admin may upload.

    - **file**: Multipart file field; must be application/pdf
    - A task holds at most 3 documents
    """
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.UPLOAD_DOCUMENT)

    if file is None:
        raise storage.InvalidDocumentError("No file uploaded")

    try:
        document = crud.add_document(
            db,
            task,
            filename=file.filename,
            content_type=file.content_type,
            stream=file.file,
            upload_dir=settings.upload_dir,
            max_documents=settings.max_documents_per_task,
            max_bytes=settings.max_upload_bytes,
        )
    finally:
        file.file.close()

    return schemas.DocumentEnvelope(document=schemas.DocumentResponse.model_validate(document))


@router.get("/{task_id}/documents/{document_id}")
def get_document(
    task_id: UUID,
    document_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Stream a document inline with its recorded MIME type."""
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.READ_DOCUMENTS)
    document = _get_document_or_404(task, document_id)

    path = storage.resolve_path(settings.upload_dir, document.path)
    if not path.is_file():
        logger.error(f"Document {document.id} has no backing file at {document.path}")
        raise HTTPException(status_code=404, detail="Document file not found")

    return FileResponse(
        path,
        media_type=document.mimetype,
        filename=document.filename,
        content_disposition_type="inline",
    )


@router.delete("/{task_id}/documents/{document_id}", response_model=schemas.MessageResponse)
def delete_document(
    task_id: UUID,
    document_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Delete a document and its file. Only the creator or an admin may delete."""
    task = get_task_or_404(db, task_id)
    require_access(current_user, task, TaskAction.DELETE_DOCUMENT)
    document = _get_document_or_404(task, document_id)

    crud.delete_document(db, task, document, settings.upload_dir)
    return schemas.MessageResponse(message="Document removed")
