"""Administrator routes.

Routes:
- GET  /api/admin/settings/email              - E-mail recipient defaults
- PUT  /api/admin/settings/email              - Update e-mail defaults
- GET  /api/admin/settings/export-columns     - Export column configuration
- PUT  /api/admin/settings/export-columns     - Replace export columns
- GET  /api/admin/settings/inventory-columns  - Inventory listing columns
- PUT  /api/admin/settings/inventory-columns  - Replace inventory listing columns
- GET  /api/admin/users/pending               - Accounts awaiting approval
- POST /api/admin/users/{user_id}/approve     - Approve an account
- POST /api/admin/users/{user_id}/reject      - Reject (delete) an account
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.admin import settings as admin_settings
from cardiva.db.connection import get_db
from cardiva.models import AuthenticatedUser, EmailSettings
from cardiva.web.auth import require_admin
from cardiva.web.dependencies import raise_for_result
from cardiva.web.models import ActionResponse, ExportColumnsRequest, InventoryColumnsRequest

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/settings/email")
async def get_email_settings(
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    settings = await admin_settings.get_email_settings(session)
    return {**settings.model_dump(), "mode": settings.mode.value}


@router.put("/settings/email", response_model=ActionResponse)
async def update_email_settings(
    body: EmailSettings,
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    result = raise_for_result(await admin_settings.update_email_settings(session, user, body))
    return ActionResponse(success=True, data=result.data)


@router.get("/settings/export-columns")
async def get_export_columns(
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return {"columns": await admin_settings.get_export_columns(session)}


@router.put("/settings/export-columns", response_model=ActionResponse)
async def update_export_columns(
    body: ExportColumnsRequest,
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    result = raise_for_result(
        await admin_settings.update_export_column_config(session, user, body.columns)
    )
    return ActionResponse(success=True, data=result.data)


@router.get("/settings/inventory-columns")
async def get_inventory_columns(
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return {"columns": await admin_settings.get_inventory_columns(session)}


@router.put("/settings/inventory-columns", response_model=ActionResponse)
async def update_inventory_columns(
    body: InventoryColumnsRequest,
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    result = raise_for_result(
        await admin_settings.update_inventory_column_config(session, user, body.columns)
    )
    return ActionResponse(success=True, data=result.data)


@router.get("/users/pending")
async def pending_users(
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    profiles = await admin_settings.list_pending_users(session)
    return {
        "users": [
            {
                "id": str(profile.id),
                "email": profile.email,
                "full_name": profile.full_name,
                "created_at": profile.created_at,
            }
            for profile in profiles
        ]
    }


@router.post("/users/{user_id}/approve", response_model=ActionResponse)
async def approve_user(
    user_id: UUID,
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    raise_for_result(await admin_settings.approve_user(session, user, user_id))
    return ActionResponse(success=True)


@router.post("/users/{user_id}/reject", response_model=ActionResponse)
async def reject_user(
    user_id: UUID,
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    raise_for_result(await admin_settings.reject_user(session, user, user_id))
    return ActionResponse(success=True)
