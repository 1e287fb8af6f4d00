"""Send an RFP export by e-mail through the automation workflow."""

from __future__ import annotations

import logging
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.core.automation_triggers import trigger_export_email
from cardiva.core.webhook_client import WebhookConfigurationError, WebhookError
from cardiva.db.models import RFPUploadJobModel
from cardiva.models import AuthenticatedUser
from cardiva.reporting.rfp_export import build_job_export
from cardiva.review.models import ActionResult

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIGURED = "Email service not configured. Please contact administrator."


def is_valid_email(address: str | None) -> bool:
    if not address:
        return False
    local, at, domain = address.strip().partition("@")
    return bool(at and local and domain)


async def send_export_email(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    recipient_email: str,
    confirmed_only: bool = False,
    client: httpx.AsyncClient | None = None,
) -> ActionResult:
    """Build the export workbook and hand it to the e-mail workflow.

    Only the job owner (or an administrator) may send its export.
    """
    if user is None:
        return ActionResult.fail("Not authenticated")

    if not is_valid_email(recipient_email):
        return ActionResult.fail("Invalid email address")
    recipient_email = recipient_email.strip()

    job = (
        await session.execute(
            select(RFPUploadJobModel.id, RFPUploadJobModel.user_id, RFPUploadJobModel.file_name)
            .where(RFPUploadJobModel.id == job_id)
        )
    ).one_or_none()
    if job is None:
        return ActionResult.fail("RFP not found")
    if job.user_id != user.id and not user.is_admin:
        return ActionResult.fail("You don't have permission to export this RFP")

    export = await build_job_export(session, job_id, confirmed_only=confirmed_only)

    try:
        await trigger_export_email(
            job_id=job_id,
            user_id=user.id,
            recipient_email=recipient_email,
            file_name=export.file_name,
            rfp_file_name=job.file_name,
            content=export.content,
            summary=export.summary.to_dict(),
            client=client,
        )
    except WebhookConfigurationError as e:
        logger.error(f"Export e-mail not sent: {e}")
        return ActionResult.fail(EMAIL_NOT_CONFIGURED)
    except WebhookError as e:
        logger.error(f"Export e-mail for job {job_id} failed: {e}")
        return ActionResult.fail(f"Failed to send email: {e}")

    logger.info(f"Export of job {job_id} sent to {recipient_email}")
    return ActionResult.ok(file_name=export.file_name, summary=export.summary.to_dict())
