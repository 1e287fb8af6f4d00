"""Tender PDF uploads: job creation, storage, workflow trigger and cleanup."""

from __future__ import annotations

import logging
from uuid import UUID

import httpx
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.core.automation_triggers import trigger_rfp_ingest
from cardiva.core.webhook_client import WebhookError
from cardiva.db.models import (
    MatchSuggestionModel,
    ProfileModel,
    RFPItemModel,
    RFPUploadJobModel,
)
from cardiva.ingestion.filenames import sanitize_filename
from cardiva.ingestion.models import JobSummary, UploadResult
from cardiva.ingestion.storage import LocalFileStorage, StorageError, get_storage
from cardiva.models import AuthenticatedUser, JobReviewStatus, JobStatus, UserRole
from cardiva.review.models import ActionResult
from cardiva.review.repository import get_job_review_statuses

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Not authenticated"
WEBHOOK_RETRY_MESSAGE = "Webhook trigger failed - will retry"
MAX_PDF_SIZE_MB = 50


def storage_key(user_id: UUID, job_id: UUID, file_name: str) -> str:
    return f"{user_id}/{job_id}/{sanitize_filename(file_name)}"


def validate_pdf_upload(file_name: str | None, content: bytes) -> str | None:
    """Return an error message if the upload is not an acceptable PDF."""
    if not file_name or not file_name.lower().endswith(".pdf"):
        return "Only PDF files are allowed"
    if not content:
        return "File is empty"
    if len(content) > MAX_PDF_SIZE_MB * 1024 * 1024:
        return f"File too large. Maximum allowed: {MAX_PDF_SIZE_MB}MB"
    return None


async def trigger_rfp_upload(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    file_name: str,
    content: bytes,
    storage: LocalFileStorage | None = None,
    client: httpx.AsyncClient | None = None,
) -> UploadResult:
    """Create an upload job, store the PDF and trigger extraction.

    The job row is committed before the workflow is called so the workflow can
    update it. If the workflow cannot be reached the job stays ``pending``
    with an error message and the upload still counts as successful.
    """
    if user is None:
        return UploadResult(success=False, error=NOT_AUTHENTICATED)

    error = validate_pdf_upload(file_name, content)
    if error:
        return UploadResult(success=False, error=error)

    storage = storage or get_storage()

    job = RFPUploadJobModel(
        user_id=user.id,
        file_name=file_name,
        file_size=len(content),
        status=JobStatus.PENDING.value,
    )
    try:
        session.add(job)
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to create RFP upload job: {e}")
        return UploadResult(success=False, error=f"Failed to create job: {e}")

    job_id = job.id
    key = storage_key(user.id, job_id, file_name)

    try:
        storage.upload(key, content)
    except StorageError as e:
        logger.error(f"Storage upload failed for job {job_id}: {e}")
        job.status = JobStatus.FAILED.value
        job.error_message = f"Storage upload failed: {e}"
        await session.commit()
        return UploadResult(success=False, job_id=job_id, error=job.error_message)

    job.file_path = key
    await session.commit()
    logger.info(f"RFP upload job {job_id} created for {file_name} ({len(content)} bytes)")

    try:
        await trigger_rfp_ingest(
            job_id=job_id,
            user_id=user.id,
            file_name=sanitize_filename(file_name),
            content=content,
            file_path=key,
            client=client,
        )
    except WebhookError as e:
        logger.error(f"RFP webhook failed for job {job_id}: {e}")
        await session.execute(
            update(RFPUploadJobModel)
            .where(RFPUploadJobModel.id == job_id)
            .values(status=JobStatus.PENDING.value, error_message=WEBHOOK_RETRY_MESSAGE)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return UploadResult(success=True, job_id=job_id, warning=WEBHOOK_RETRY_MESSAGE)

    return UploadResult(success=True, job_id=job_id)


async def get_rfp_job_status(
    session: AsyncSession, user: AuthenticatedUser | None, job_id: UUID
) -> JobSummary | None:
    if user is None:
        return None
    job = await _load_job(session, job_id)
    if job is None or not _can_view(user, job):
        return None
    return (await _summarize_all(session, [job]))[0]


async def get_recent_rfp_jobs(
    session: AsyncSession, user: AuthenticatedUser | None, limit: int = 10
) -> list[JobSummary]:
    """The user's most recent uploads, newest first."""
    if user is None:
        return []
    stmt = (
        select(RFPUploadJobModel)
        .where(RFPUploadJobModel.user_id == user.id)
        .order_by(RFPUploadJobModel.created_at.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    jobs = (await session.execute(stmt)).scalars().all()
    return await _summarize_all(session, jobs)


async def list_rfp_jobs(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    limit: int = 50,
    offset: int = 0,
) -> list[JobSummary]:
    """All uploads visible on the RFP list, with their derived review status."""
    if user is None:
        return []
    stmt = (
        select(RFPUploadJobModel)
        .order_by(RFPUploadJobModel.created_at.desc())
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    jobs = (await session.execute(stmt)).scalars().all()
    return await _summarize_all(session, jobs)


async def delete_rfp_job(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    storage: LocalFileStorage | None = None,
) -> ActionResult:
    """Delete a job with its items, suggestions and stored PDF.

    Allowed for the owner, an admin, or anyone when the job was uploaded by
    the automation account. Failing to remove the stored file is not fatal.
    """
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    job = await _load_job(session, job_id)
    if job is None:
        return ActionResult.fail("RFP not found")

    if not await _can_delete(session, user, job):
        return ActionResult.fail("You don't have permission to delete this RFP")

    file_path = job.file_path
    try:
        item_ids = select(RFPItemModel.id).where(RFPItemModel.job_id == job_id)
        await session.execute(
            delete(MatchSuggestionModel)
            .where(MatchSuggestionModel.rfp_item_id.in_(item_ids))
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(RFPItemModel)
            .where(RFPItemModel.job_id == job_id)
            .execution_options(synchronize_session=False)
        )
        await session.delete(job)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to delete RFP job {job_id}: {e}")
        return ActionResult.fail(str(e))

    if file_path:
        try:
            (storage or get_storage()).remove(file_path)
        except StorageError as e:
            logger.warning(f"Failed to remove stored file for job {job_id}: {e}")

    logger.info(f"RFP job {job_id} deleted by {user.email}")
    return ActionResult.ok()


async def get_rfp_file_url(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    storage: LocalFileStorage | None = None,
    expires_in: int = 3600,
) -> ActionResult:
    """Signed download link for the original PDF (owner or admin only)."""
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    job = await _load_job(session, job_id)
    if job is None:
        return ActionResult.fail("RFP not found")
    if not _can_view(user, job):
        return ActionResult.fail("You don't have permission to view this file")
    if not job.file_path:
        return ActionResult.fail("File not available")

    url = (storage or get_storage()).signed_url(job.file_path, expires_in=expires_in)
    return ActionResult.ok(url=url, file_name=job.file_name)


async def _load_job(session: AsyncSession, job_id: UUID) -> RFPUploadJobModel | None:
    stmt = (
        select(RFPUploadJobModel)
        .where(RFPUploadJobModel.id == job_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


def _can_view(user: AuthenticatedUser, job: RFPUploadJobModel) -> bool:
    return user.is_admin or job.user_id == user.id


async def _can_delete(
    session: AsyncSession, user: AuthenticatedUser, job: RFPUploadJobModel
) -> bool:
    if _can_view(user, job):
        return True
    owner_role = (
        await session.execute(select(ProfileModel.role).where(ProfileModel.id == job.user_id))
    ).scalar_one_or_none()
    return owner_role == UserRole.AUTOMATION.value


async def _summarize_all(
    session: AsyncSession, jobs: list[RFPUploadJobModel]
) -> list[JobSummary]:
    review_statuses = await get_job_review_statuses(session, jobs)
    return [_summarize(job, review_statuses[job.id]) for job in jobs]


def _summarize(job: RFPUploadJobModel, review_status: JobReviewStatus | None) -> JobSummary:
    return JobSummary(
        id=job.id,
        user_id=job.user_id,
        file_name=job.file_name,
        status=job.status,
        error_message=job.error_message,
        file_size=job.file_size,
        processing_progress=job.processing_progress,
        items_total=job.items_total,
        created_at=job.created_at,
        completed_at=job.completed_at,
        review_status=review_status.value if review_status else None,
    )
