"""Local-disk storage for task documents.

Files live under `<upload_dir>/<task id>/`. The database keeps only the
path relative to the upload directory plus metadata. Removal is split into
stage / finalize / restore steps so callers can keep the file and its
database record consistent around a commit.
"""
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import UUID, uuid4

logger = logging.getLogger("taskflow-core.storage")

PDF_MIME_TYPE = "application/pdf"
CHUNK_SIZE = 1024 * 1024  # 1MB chunks
STAGED_SUFFIX = ".deleting"


class InvalidDocumentError(ValueError):
    """Raised when an upload is missing, not a PDF, or too large."""


class DocumentLimitError(ValueError):
    """Raised when a task already holds the maximum number of documents."""

    def __init__(self, limit: int):
        super().__init__(f"Task already has the maximum number of documents ({limit})")
        self.limit = limit


class DocumentStorageError(Exception):
    """Raised when the filesystem fails while storing or removing a document."""


@dataclass
class StoredDocument:
    """Result of writing an upload to disk."""

    filename: str
    path: str
    size: int


def _safe_filename(filename: str) -> str:
    # Strip any directory components a client may send
    name = Path(filename.replace("\\", "/")).name.strip()
    return name or "document.pdf"


def resolve_path(upload_dir: str, relative_path: str) -> Path:
    """
    Resolve a stored relative path inside the upload directory.

    Raises:
        DocumentStorageError: If the path escapes the upload directory
    """
    root = Path(upload_dir).resolve()
    full = (root / relative_path.lstrip("/")).resolve()
    if root != full and root not in full.parents:
        raise DocumentStorageError(f"Document path escapes upload directory: {relative_path}")
    return full


def validate_upload(filename: Optional[str], content_type: Optional[str]) -> None:
    """
    Check that an upload is present and declared as a PDF.

    Raises:
        InvalidDocumentError: If no file was sent or its MIME type is not application/pdf
    """
    if not filename:
        raise InvalidDocumentError("No file uploaded")
    if content_type != PDF_MIME_TYPE:
        raise InvalidDocumentError("Only PDF files are allowed")


def save_document(
    upload_dir: str,
    task_id: UUID,
    filename: str,
    stream: BinaryIO,
    max_bytes: int,
) -> StoredDocument:
    """
    Copy an uploaded stream to the task's directory in chunks.

    Args:
        upload_dir: Root upload directory
        task_id: Owning task
        filename: Client-supplied file name
        stream: Binary file-like object positioned at the start of the upload
        max_bytes: Size limit; the partial file is removed when exceeded

    Returns:
        StoredDocument with the original name, relative path and byte size

    Raises:
        InvalidDocumentError: If the upload exceeds max_bytes
        DocumentStorageError: If the file cannot be written
    """
    original_name = _safe_filename(filename)
    stored_name = f"{int(time.time() * 1000)}-{uuid4().hex[:8]}-{original_name}"
    relative_path = f"{task_id}/{stored_name}"
    target = resolve_path(upload_dir, relative_path)

    total_size = 0
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_bytes:
                    raise InvalidDocumentError(
                        f"File too large. Maximum size: {max_bytes / (1024 * 1024):.0f}MB"
                    )
                out.write(chunk)
    except InvalidDocumentError:
        target.unlink(missing_ok=True)
        raise
    except OSError as e:
        target.unlink(missing_ok=True)
        logger.error(f"Failed to write document {relative_path}: {e}")
        raise DocumentStorageError(f"Failed to save file: {e}") from e

    logger.info(f"Stored document {relative_path} ({total_size} bytes)")
    return StoredDocument(filename=original_name, path=relative_path, size=total_size)


def discard_document(upload_dir: str, relative_path: str) -> None:
    """Remove a file written by save_document whose record was never committed."""
    try:
        resolve_path(upload_dir, relative_path).unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"Could not remove orphaned document {relative_path}: {e}")


def stage_removal(upload_dir: str, relative_path: str) -> Optional[Path]:
    """
    Move a document aside ahead of deleting its record.

    Returns:
        The staged path, or None if the file was already absent

    Raises:
        DocumentStorageError: If the file exists but cannot be moved
    """
    source = resolve_path(upload_dir, relative_path)
    staged = source.with_name(source.name + STAGED_SUFFIX)
    try:
        source.rename(staged)
    except FileNotFoundError:
        logger.warning(f"Document file already missing: {relative_path}")
        return None
    except OSError as e:
        logger.error(f"Failed to stage removal of {relative_path}: {e}")
        raise DocumentStorageError(f"Failed to delete file: {e}") from e
    return staged


def restore_staged(staged: Optional[Path]) -> None:
    """Undo stage_removal after the record deletion failed."""
    if staged is None:
        return
    original = staged.with_name(staged.name[: -len(STAGED_SUFFIX)])
    try:
        staged.rename(original)
    except OSError as e:
        logger.error(f"Failed to restore staged document {staged}: {e}")


def finalize_removal(staged: Optional[Path]) -> None:
    """Unlink a staged file once its record deletion is committed."""
    if staged is None:
        return
    try:
        staged.unlink(missing_ok=True)
    except OSError as e:
        # Record is already gone; the leftover file only wastes space
        logger.error(f"Failed to unlink staged document {staged}: {e}")


def remove_task_directory(upload_dir: str, task_id: UUID) -> None:
    """Delete every stored document of a deleted task."""
    directory = resolve_path(upload_dir, str(task_id))
    if not directory.exists():
        return
    try:
        shutil.rmtree(directory)
    except OSError as e:
        logger.error(f"Failed to remove document directory {directory}: {e}")
