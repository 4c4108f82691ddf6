"""API routers for Taskflow."""

from . import analytics, auth, documents, tasks, users

__all__ = ["analytics", "auth", "documents", "tasks", "users"]
