"""Dashboard routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.connection import get_db
from cardiva.models import AuthenticatedUser
from cardiva.reporting.dashboard_metrics import get_dashboard_stats
from cardiva.web.auth import require_user

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard/stats")
async def dashboard_stats(
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    return await get_dashboard_stats(session, user)
