"""RFP upload job routes.

Routes:
- GET    /api/rfps                       - List uploads with review status
- GET    /api/rfps/recent                - Current user's latest uploads
- POST   /api/rfps/upload                - Upload a tender PDF
- GET    /api/rfps/{job_id}              - Job status
- GET    /api/rfps/{job_id}/review-status - Derived review status
- GET    /api/rfps/{job_id}/file         - Signed download link
- DELETE /api/rfps/{job_id}              - Delete job, items and file
- GET    /files/{bucket}/{key}           - Serve a signed document link
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.connection import get_db
from cardiva.ingestion.rfp_uploads import (
    delete_rfp_job,
    get_recent_rfp_jobs,
    get_rfp_file_url,
    get_rfp_job_status,
    list_rfp_jobs,
    trigger_rfp_upload,
)
from cardiva.ingestion.storage import LocalFileStorage, StorageError
from cardiva.models import AuthenticatedUser
from cardiva.review.repository import get_job_review_status
from cardiva.web.auth import require_user
from cardiva.web.dependencies import get_file_storage, raise_for_result, status_for_error
from cardiva.web.models import FileUrlResponse, UploadResponse

router = APIRouter(tags=["rfps"])


@router.get("/api/rfps")
async def list_rfps(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    jobs = await list_rfp_jobs(session, user, limit=limit, offset=offset)
    return {"jobs": jobs, "limit": limit, "offset": offset}


@router.get("/api/rfps/recent")
async def recent_rfps(
    limit: int = Query(default=10, ge=1, le=50),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    return {"jobs": await get_recent_rfp_jobs(session, user, limit=limit)}


@router.post("/api/rfps/upload", response_model=UploadResponse)
async def upload_rfp(
    file: UploadFile = File(...),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    """Store a tender PDF and hand it to the extraction workflow.

    A workflow outage still returns 200 with a ``warning``; the job stays
    pending until it is retried.
    """
    content = await file.read()
    result = await trigger_rfp_upload(
        session, user, file.filename or "", content, storage=storage
    )
    if not result.success:
        raise HTTPException(status_code=status_for_error(result.error), detail=result.error)
    return UploadResponse(success=True, job_id=result.job_id, warning=result.warning)


@router.get("/api/rfps/{job_id}")
async def rfp_status(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    job = await get_rfp_job_status(session, user, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="RFP not found")
    return job


@router.get("/api/rfps/{job_id}/review-status")
async def rfp_review_status(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """``por_rever``/``revisto``/``confirmado``, or null while extraction runs."""
    review_status = await get_job_review_status(session, job_id)
    return {
        "job_id": str(job_id),
        "review_status": review_status.value if review_status else None,
    }


@router.get("/api/rfps/{job_id}/file", response_model=FileUrlResponse)
async def rfp_file_url(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    result = raise_for_result(await get_rfp_file_url(session, user, job_id, storage=storage))
    return FileUrlResponse(**result.data)


@router.delete("/api/rfps/{job_id}")
async def delete_rfp(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    raise_for_result(await delete_rfp_job(session, user, job_id, storage=storage))
    return {"success": True}


@router.get("/files/{bucket}/{key:path}")
async def download_file(
    bucket: str,
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    """Serve a stored document for a valid, unexpired signed link."""
    if bucket != storage.bucket or not storage.verify_signature(key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired link")
    try:
        content = storage.download(key)
    except StorageError:
        raise HTTPException(status_code=404, detail="File not found") from None

    file_name = key.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{file_name}"'},
    )
