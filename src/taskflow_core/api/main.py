"""Taskflow FastAPI application."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from taskflow_core import __version__
from taskflow_core.config import get_settings
from taskflow_core.crud import DuplicateEmailError, UserDeletionError
from taskflow_core.lifecycle import TaskValidationError
from taskflow_core.permissions import PermissionDeniedError
from taskflow_core.security import AuthenticationError
from taskflow_core.storage import DocumentLimitError, DocumentStorageError, InvalidDocumentError
from .routers import analytics, auth, documents, tasks, users

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("taskflow-core")

logger.info("Starting Taskflow API")

# Create FastAPI app
app = FastAPI(
    title="Taskflow API",
    description="Task management with role-based access, comments and PDF documents",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Error envelope
# ============================================================================

def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    logger.warning(f"{request.method} {request.url.path}: authentication failed")
    return _error(401, exc.message)


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return _error(403, exc.message)


@app.exception_handler(TaskValidationError)
@app.exception_handler(DuplicateEmailError)
@app.exception_handler(UserDeletionError)
@app.exception_handler(InvalidDocumentError)
@app.exception_handler(DocumentLimitError)
async def validation_error_handler(request: Request, exc: ValueError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return _error(400, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    logger.warning(f"{request.method} {request.url.path}: {message}")
    return _error(400, message)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.detail}")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(DocumentStorageError)
async def storage_error_handler(request: Request, exc: DocumentStorageError):
    logger.error(f"{request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(500, "Server error", str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(500, "Server error", str(exc))


# Include all routers with /api prefix
app.include_router(auth.router, prefix="/api/auth")
app.include_router(tasks.router, prefix="/api/tasks")
app.include_router(documents.router, prefix="/api/tasks")
app.include_router(users.router, prefix="/api/users")
app.include_router(analytics.router, prefix="/api/analytics")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "Taskflow API",
        "version": __version__,
        "docs": "/docs",
        "description": "Task management with role-based access, comments and PDF documents",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
