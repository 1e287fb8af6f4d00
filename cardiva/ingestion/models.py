"""Results returned by the upload services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(slots=True)
class UploadResult:
    success: bool
    job_id: UUID | None = None
    error: str | None = None
    warning: str | None = None  # job created but the workflow was not reached


@dataclass(slots=True)
class JobSummary:
    id: UUID
    user_id: UUID
    file_name: str
    status: str
    error_message: str | None
    file_size: int | None
    processing_progress: int | None
    items_total: int | None
    created_at: datetime | None
    completed_at: datetime | None
    review_status: str | None = None
    row_count: int | None = None
