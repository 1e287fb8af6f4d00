"""Authentication routes for the Cardiva API.

Routes:
- POST /auth/login    - Verify credentials and set the session cookie
- POST /auth/logout   - Clear the session
- GET  /auth/me       - Current user
- POST /auth/register - Create an account awaiting admin approval
- POST /auth/password - Change the current user's password
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.admin import accounts
from cardiva.db.connection import get_db
from cardiva.models import AuthenticatedUser
from cardiva.web.auth import (
    SESSION_COOKIE,
    SESSION_EXPIRY_SECONDS,
    create_session,
    require_user,
    verify_credentials_db,
)
from cardiva.web.auth import logout as auth_logout
from cardiva.web.dependencies import raise_for_result
from cardiva.web.models import (
    ActionResponse,
    LoginRequest,
    PasswordUpdateRequest,
    RegisterRequest,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=UserResponse)
async def login(body: LoginRequest, response: Response):
    """Create a session and set an httponly cookie on success."""
    is_valid, user = await verify_credentials_db(body.email, body.password)
    if not is_valid or user is None:
        logger.warning(f"Failed login attempt for {body.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    session_token = create_session(user.id, user.email, role=user.role)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        max_age=SESSION_EXPIRY_SECONDS,
        samesite="lax",
    )
    logger.info(f"User {user.email} logged in")
    return UserResponse(id=user.id, email=user.email, role=user.role)


@router.post("/logout")
async def logout(response: Response, session: str | None = Cookie(default=None)):
    auth_logout(session)
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}


@router.get("/me", response_model=UserResponse)
async def me(user: AuthenticatedUser = Depends(require_user)):
    return UserResponse(id=user.id, email=user.email, role=user.role.value)


@router.post("/register", response_model=ActionResponse, status_code=201)
async def register(body: RegisterRequest, session: AsyncSession = Depends(get_db)):
    """Self-service sign-up; the account stays inactive until approved."""
    result = raise_for_result(
        await accounts.register_user(session, body.email, body.password, body.full_name)
    )
    return ActionResponse(success=True, data=result.data)


@router.post("/password", response_model=ActionResponse)
async def update_password(
    body: PasswordUpdateRequest,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    raise_for_result(
        await accounts.update_password(session, user, body.current_password, body.new_password)
    )
    return ActionResponse(success=True)
