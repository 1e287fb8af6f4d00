"""Inventory CSV uploads (administrators only).

The CSV itself is loaded into the catalog by the automation workflow; this
module validates it, records the job and triggers the workflow.
"""

from __future__ import annotations

import csv
import io
import logging
from uuid import UUID

import httpx
import pandas as pd
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.core.automation_triggers import trigger_inventory_ingest
from cardiva.core.webhook_client import WebhookError
from cardiva.db.models import InventoryUploadJobModel
from cardiva.ingestion.filenames import sanitize_filename
from cardiva.ingestion.models import JobSummary, UploadResult
from cardiva.models import AuthenticatedUser, JobStatus

logger = logging.getLogger(__name__)

WEBHOOK_RETRY_MESSAGE = "Webhook trigger failed - will retry"
MAX_CSV_SIZE_MB = 50


def count_csv_rows(content: bytes) -> int:
    """Number of data rows (header excluded).

    Raises:
        ValueError: If the content is not a readable CSV
    """
    try:
        df = pd.read_csv(io.BytesIO(content), sep=None, engine="python", dtype=str)
    except (
        pd.errors.ParserError,
        pd.errors.EmptyDataError,
        UnicodeDecodeError,
        csv.Error,
    ) as e:
        raise ValueError(f"Invalid CSV file: {e}") from e
    return len(df.index)


async def trigger_inventory_upload(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    file_name: str,
    content: bytes,
    client: httpx.AsyncClient | None = None,
) -> UploadResult:
    if user is None:
        return UploadResult(success=False, error="Not authenticated")
    if not user.is_admin:
        return UploadResult(success=False, error="Only administrators can upload inventory")

    if not file_name or not file_name.lower().endswith(".csv"):
        return UploadResult(success=False, error="Only CSV files are allowed")
    if len(content) > MAX_CSV_SIZE_MB * 1024 * 1024:
        return UploadResult(
            success=False, error=f"File too large. Maximum allowed: {MAX_CSV_SIZE_MB}MB"
        )

    try:
        row_count = count_csv_rows(content)
    except ValueError as e:
        return UploadResult(success=False, error=str(e))
    if row_count == 0:
        return UploadResult(success=False, error="CSV file has no data rows")

    job = InventoryUploadJobModel(
        user_id=user.id,
        file_name=file_name,
        file_size=len(content),
        row_count=row_count,
        status=JobStatus.PENDING.value,
    )
    try:
        session.add(job)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to create inventory upload job: {e}")
        return UploadResult(success=False, error=f"Failed to create job: {e}")

    job_id = job.id
    logger.info(f"Inventory upload job {job_id} created ({row_count} rows)")

    try:
        await trigger_inventory_ingest(
            job_id=job_id,
            user_id=user.id,
            file_name=sanitize_filename(file_name),
            content=content,
            row_count=row_count,
            client=client,
        )
    except WebhookError as e:
        logger.error(f"Inventory webhook failed for job {job_id}: {e}")
        await session.execute(
            update(InventoryUploadJobModel)
            .where(InventoryUploadJobModel.id == job_id)
            .values(status=JobStatus.PENDING.value, error_message=WEBHOOK_RETRY_MESSAGE)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return UploadResult(success=True, job_id=job_id, warning=WEBHOOK_RETRY_MESSAGE)

    return UploadResult(success=True, job_id=job_id)


async def get_inventory_job_status(
    session: AsyncSession, user: AuthenticatedUser | None, job_id: UUID
) -> JobSummary | None:
    if user is None:
        return None
    stmt = (
        select(InventoryUploadJobModel)
        .where(InventoryUploadJobModel.id == job_id)
        .execution_options(populate_existing=True)
    )
    job = (await session.execute(stmt)).scalar_one_or_none()
    if job is None or (job.user_id != user.id and not user.is_admin):
        return None
    return JobSummary(
        id=job.id,
        user_id=job.user_id,
        file_name=job.file_name,
        status=job.status,
        error_message=job.error_message,
        file_size=job.file_size,
        processing_progress=job.processing_progress,
        items_total=None,
        created_at=job.created_at,
        completed_at=job.completed_at,
        row_count=job.row_count,
    )
