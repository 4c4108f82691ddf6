"""Application configuration using pydantic-settings.

Values are read from environment variables with the TASKFLOW_ prefix
(for example TASKFLOW_DATABASE_URL, TASKFLOW_JWT_SECRET) or from a local
.env file. Built-in defaults are suitable for local development only.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the Taskflow API."""

    model_config = SettingsConfigDict(
        env_prefix="TASKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite:///./taskflow.db", description="SQLAlchemy database URL")

    # Bearer tokens
    jwt_secret: SecretStr = Field(default=SecretStr("change-me-in-production"), description="HMAC secret for access tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expires_days: int = Field(default=30, ge=1, description="Access token lifetime in days")

    # Passwords
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor")

    # Documents
    upload_dir: str = Field(default="uploads", description="Root directory for task documents")
    max_documents_per_task: int = Field(default=3, ge=1, description="Document cap per task")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1, description="Maximum size of one document")

    # Pagination
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Registration
    allow_admin_self_registration: bool = Field(
        default=False,
        description="Allow POST /auth/register to create admin accounts",
    )

    # HTTP
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
