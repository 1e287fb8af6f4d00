"""Triggers for the external automation workflows.

Each trigger builds a multipart payload and delivers it through
``post_with_retry`` so callers get the same retry/backoff behaviour.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx

from cardiva.config import WebhookConfig, get_config
from cardiva.core.webhook_client import (
    RetryPolicy,
    WebhookConfigurationError,
    build_headers,
    post_with_retry,
)

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
CSV_CONTENT_TYPE = "text/csv"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_url(url: str | None, name: str) -> str:
    if not url:
        raise WebhookConfigurationError(f"{name} webhook URL not configured")
    return url


async def _send(
    url: str,
    data: dict[str, Any],
    files: dict[str, tuple[str, bytes, str]],
    config: WebhookConfig,
    client: httpx.AsyncClient | None,
) -> httpx.Response:
    return await post_with_retry(
        url,
        data=data,
        files=files,
        headers=build_headers(config.secret),
        policy=RetryPolicy.from_config(config),
        client=client,
    )


async def trigger_rfp_ingest(
    *,
    job_id: UUID,
    user_id: UUID,
    file_name: str,
    content: bytes,
    file_path: str,
    config: WebhookConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """Ask the workflow to extract and match a stored tender PDF."""
    config = config or get_config().webhooks
    url = _require_url(config.rfp_url, "RFP")

    logger.info(f"Triggering RFP ingest for job {job_id}")
    return await _send(
        url,
        {
            "jobId": str(job_id),
            "userId": str(user_id),
            "filePath": file_path,
            "timestamp": _timestamp(),
        },
        {"attachment_0": (file_name, content, PDF_CONTENT_TYPE)},
        config,
        client,
    )


async def trigger_inventory_ingest(
    *,
    job_id: UUID,
    user_id: UUID,
    file_name: str,
    content: bytes,
    row_count: int,
    config: WebhookConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """Ask the workflow to load an inventory CSV into the catalog."""
    config = config or get_config().webhooks
    url = _require_url(config.inventory_url, "Inventory")

    logger.info(f"Triggering inventory ingest for job {job_id} ({row_count} rows)")
    return await _send(
        url,
        {
            "jobId": str(job_id),
            "userId": str(user_id),
            "rowCount": str(row_count),
            "timestamp": _timestamp(),
        },
        {"attachment_0": (file_name, content, CSV_CONTENT_TYPE)},
        config,
        client,
    )


async def trigger_export_email(
    *,
    job_id: UUID,
    user_id: UUID,
    recipient_email: str,
    file_name: str,
    rfp_file_name: str,
    content: bytes,
    summary: dict[str, int],
    config: WebhookConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """Hand an export workbook to the workflow for e-mail delivery."""
    config = config or get_config().webhooks
    url = _require_url(config.export_email_url, "Export email")

    logger.info(f"Triggering export e-mail for job {job_id} to {recipient_email}")
    return await _send(
        url,
        {
            "jobId": str(job_id),
            "userId": str(user_id),
            "recipientEmail": recipient_email,
            "fileName": file_name,
            "rfpFileName": rfp_file_name,
            "summary": json.dumps(summary),
            "timestamp": _timestamp(),
        },
        {"file": (file_name, content, XLSX_CONTENT_TYPE)},
        config,
        client,
    )
