"""Taskflow core: task management API with role-based access, comments and PDF documents."""

__version__ = "1.0.0"
