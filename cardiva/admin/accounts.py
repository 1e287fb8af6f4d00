"""Self-service accounts: registration and password changes.

New accounts start inactive and unapproved; they cannot log in until an
administrator approves them (see :func:`cardiva.admin.settings.approve_user`).
"""

from __future__ import annotations

import logging
import re

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.models import ProfileModel
from cardiva.models import AuthenticatedUser, UserRole
from cardiva.review.models import ActionResult

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
PENDING_APPROVAL_MESSAGE = "Account created. Pending admin approval."
EMAIL_TAKEN = "Email already registered"
WRONG_PASSWORD = "Current password is incorrect"

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain an uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain a lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain a number"),
)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def check_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def password_problem(password: str) -> str | None:
    """First strength rule the password breaks, or None."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            return message
    return None


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def register_user(
    session: AsyncSession, email: str, password: str, full_name: str | None = None
) -> ActionResult:
    """Create an inactive account awaiting administrator approval."""
    email = normalize_email(email)
    if "@" not in email.strip("@"):
        return ActionResult.fail("Invalid email address")

    problem = password_problem(password)
    if problem:
        return ActionResult.fail(problem)

    existing = await session.execute(select(ProfileModel.id).where(ProfileModel.email == email))
    if existing.first() is not None:
        return ActionResult.fail(EMAIL_TAKEN)

    profile = ProfileModel(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role=UserRole.USER.value,
        is_active=False,
        approved_at=None,
    )
    session.add(profile)
    await session.commit()

    logger.info(f"Account registered for {email}, awaiting approval")
    return ActionResult.ok(id=str(profile.id), message=PENDING_APPROVAL_MESSAGE)


async def update_password(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    current_password: str,
    new_password: str,
) -> ActionResult:
    if user is None:
        return ActionResult.fail("Not authenticated")

    profile = await session.get(ProfileModel, user.id)
    if profile is None:
        return ActionResult.fail("User not found")

    if not check_password(current_password, profile.password_hash):
        logger.warning(f"Password change refused for {user.email}: wrong current password")
        return ActionResult.fail(WRONG_PASSWORD)

    problem = password_problem(new_password)
    if problem:
        return ActionResult.fail(problem)

    profile.password_hash = hash_password(new_password)
    await session.commit()

    logger.info(f"Password updated for {user.email}")
    return ActionResult.ok()
