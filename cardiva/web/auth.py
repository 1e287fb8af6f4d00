"""Session authentication for the Cardiva API.

Users live in the ``profiles`` table with bcrypt password hashes. Sessions
are random tokens stored in Redis with a TTL, falling back to process memory
when Redis is unavailable (development).
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import redis
from fastapi import Cookie, Depends, HTTPException
from sqlalchemy import select

from cardiva.admin.accounts import check_password, normalize_email
from cardiva.db.connection import get_session
from cardiva.db.models import ProfileModel
from cardiva.models import AuthenticatedUser, UserRole

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
SESSION_EXPIRY_HOURS = int(os.environ.get("SESSION_EXPIRY_HOURS", "24"))
SESSION_EXPIRY_SECONDS = SESSION_EXPIRY_HOURS * 3600

# Fixed identity used when authentication is disabled
DEV_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# In-memory fallback for development when Redis is missing
_memory_sessions: dict[str, dict] = {}


def get_redis_client() -> redis.Redis:
    """Get Redis client for session storage."""
    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    return redis.from_url(redis_url, decode_responses=True)


def auth_disabled() -> bool:
    return os.environ.get("CARDIVA_AUTH_DISABLED", "false").lower() == "true"


def create_session(user_id: UUID, email: str, role: str = UserRole.USER.value) -> str:
    """Create a new session for an authenticated user.

    Returns:
        str: Session token
    """
    session_token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)

    session_data = {
        "user_id": str(user_id),
        "email": email,
        "role": role,
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(hours=SESSION_EXPIRY_HOURS)).isoformat(),
    }

    try:
        get_redis_client().setex(
            f"session:{session_token}", SESSION_EXPIRY_SECONDS, json.dumps(session_data)
        )
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        logger.warning("Redis unavailable, using in-memory session storage")
        _memory_sessions[session_token] = session_data

    return session_token


def _expired(session_data: dict) -> bool:
    expires_at = datetime.fromisoformat(session_data["expires_at"])
    return datetime.now(timezone.utc) > expires_at


def validate_session(session_token: str | None) -> dict | None:
    """Return session data if the token is valid, None otherwise."""
    if not session_token:
        return None

    try:
        redis_client = get_redis_client()
        session_data_str = redis_client.get(f"session:{session_token}")
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        session_data = _memory_sessions.get(session_token)
        if session_data is None:
            return None
        if _expired(session_data):
            del _memory_sessions[session_token]
            return None
        return session_data

    if not session_data_str:
        return None

    try:
        session_data = json.loads(session_data_str)
        if _expired(session_data):
            redis_client.delete(f"session:{session_token}")
            return None
        return session_data
    except (json.JSONDecodeError, KeyError, ValueError):
        redis_client.delete(f"session:{session_token}")
        return None


def logout(session_token: str | None) -> None:
    if not session_token:
        return
    try:
        get_redis_client().delete(f"session:{session_token}")
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
        _memory_sessions.pop(session_token, None)


async def verify_credentials_db(email: str, password: str) -> tuple[bool, ProfileModel | None]:
    """Verify credentials against the profiles table.

    Returns:
        tuple: (is_valid, profile)
    """
    async with get_session() as session:
        result = await session.execute(
            select(ProfileModel).where(ProfileModel.email == normalize_email(email))
        )
        user = result.scalars().first()

        if user is None or not user.is_active:
            return False, None

        if not check_password(password, user.password_hash):
            return False, None

        user.last_login = datetime.now(timezone.utc)
        return True, user


def get_current_user(session: str | None = Cookie(default=None)) -> AuthenticatedUser | None:
    """Resolve the session cookie to a user (None when anonymous)."""
    if auth_disabled():
        return AuthenticatedUser(id=DEV_USER_ID, email="dev@localhost", role=UserRole.ADMIN)

    session_data = validate_session(session)
    if not session_data:
        return None

    try:
        return AuthenticatedUser(
            id=UUID(session_data["user_id"]),
            email=session_data["email"],
            role=UserRole(session_data.get("role", UserRole.USER.value)),
        )
    except (KeyError, ValueError):
        logger.warning("Discarding malformed session data")
        return None


def require_user(
    user: AuthenticatedUser | None = Depends(get_current_user),
) -> AuthenticatedUser:
    """Dependency to require authentication on routes."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(
    user: AuthenticatedUser | None = Depends(get_current_user),
) -> AuthenticatedUser:
    """Dependency to require the admin role."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
