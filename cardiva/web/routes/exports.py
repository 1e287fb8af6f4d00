"""Export routes.

Routes:
- GET  /api/rfps/{job_id}/export        - Download the Excel export
- POST /api/rfps/{job_id}/export/email  - Send the export by e-mail
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.admin.settings import get_email_settings
from cardiva.db.connection import get_db
from cardiva.db.models import RFPUploadJobModel
from cardiva.models import AuthenticatedUser
from cardiva.reporting.email_export import send_export_email
from cardiva.reporting.rfp_export import build_job_export
from cardiva.web.auth import require_user
from cardiva.web.dependencies import raise_for_result
from cardiva.web.models import ActionResponse, EmailExportRequest

router = APIRouter(tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/api/rfps/{job_id}/export")
async def export_rfp(
    job_id: UUID,
    confirmed_only: bool = Query(default=False),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Excel export of the job's items (owner or admin)."""
    owner_id = (
        await session.execute(
            select(RFPUploadJobModel.user_id).where(RFPUploadJobModel.id == job_id)
        )
    ).scalar_one_or_none()
    if owner_id is None:
        raise HTTPException(status_code=404, detail="RFP not found")
    if owner_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="You don't have permission to export this RFP")

    export = await build_job_export(session, job_id, confirmed_only=confirmed_only)
    return Response(
        content=export.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export.file_name}"'},
    )


@router.get("/api/rfps/{job_id}/export/email-settings")
async def export_email_settings(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Recipient defaults for the e-mail dialog."""
    settings = await get_email_settings(session)
    return {**settings.model_dump(), "mode": settings.mode.value}


@router.post("/api/rfps/{job_id}/export/email", response_model=ActionResponse)
async def email_export(
    job_id: UUID,
    body: EmailExportRequest,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    result = raise_for_result(
        await send_export_email(
            session,
            user,
            job_id,
            body.recipient_email,
            confirmed_only=body.confirmed_only,
        )
    )
    return ActionResponse(success=True, data=result.data)
