"""Identity resolution: password hashing, access tokens and bearer-header checks.

Every authentication failure surfaces as the same AuthenticationError message
so callers cannot tell a missing header from a bad signature or an unknown
user. The specific reason is logged at debug level only.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import bcrypt
import jwt
from sqlalchemy.orm import Session

from . import models
from .config import Settings

logger = logging.getLogger("taskflow-core.security")

AUTH_FAILURE_MESSAGE = "Not authorized"
BEARER_PREFIX = "bearer "


class AuthenticationError(Exception):
    """Raised when a bearer credential cannot be resolved to a user."""

    def __init__(self, reason: str):
        super().__init__(AUTH_FAILURE_MESSAGE)
        self.message = AUTH_FAILURE_MESSAGE
        self.reason = reason


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long password
        return False


def create_access_token(user_id: UUID, settings: Settings, now: Optional[datetime] = None) -> str:
    """
    Issue a signed access token for a user.

    Args:
        user_id: Subject of the token
        settings: Settings holding secret, algorithm and lifetime
        now: Issue time (defaults to current UTC time)

    Returns:
        Encoded JWT string
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> UUID:
    """
    Validate a token's signature and expiry and return its subject.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no usable subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"invalid token: {e}")

    try:
        return UUID(payload["sub"])
    except (ValueError, TypeError, AttributeError):
        raise AuthenticationError("malformed subject claim")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header value.

    Raises:
        AuthenticationError: If the header is missing or not a Bearer credential
    """
    if not authorization:
        raise AuthenticationError("missing authorization header")
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise AuthenticationError("authorization header is not a bearer credential")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError("empty bearer credential")
    return token


def resolve_identity(db: Session, authorization: Optional[str], settings: Settings) -> models.User:
    """
    Resolve an Authorization header to a user.

    Args:
        db: Database session
        authorization: Raw Authorization header value (may be None)
        settings: Token settings

    Returns:
        The authenticated User

    Raises:
        AuthenticationError: On any failure, always with the same message
    """
    try:
        token = extract_bearer_token(authorization)
        user_id = decode_access_token(token, settings)
        user = db.query(models.User).filter(models.User.id == user_id).first()
        if not user:
            raise AuthenticationError(f"user {user_id} not found")
    except AuthenticationError as e:
        logger.debug(f"Authentication failed: {e.reason}")
        raise
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[models.User]:
    """
    Check login credentials.

    Returns:
        The matching User, or None if the email is unknown or the password is wrong
    """
    # Emails are stored lowercased
    user = db.query(models.User).filter(models.User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user
