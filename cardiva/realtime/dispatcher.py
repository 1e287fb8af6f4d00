"""Turns job row changes into status notifications.

Each event stream owns one dispatcher and feeds it events strictly in receipt
order, so the active-job view never sees an older state of a job after a
newer one.
"""

from __future__ import annotations

from typing import Any

from cardiva.models import JobStatus
from cardiva.realtime.events import (
    RFP_JOBS_TABLE,
    ChangeEvent,
    ChangeType,
    JobNotification,
    NotificationLevel,
)

ACTIVE_STATUSES = frozenset({JobStatus.PENDING.value, JobStatus.PROCESSING.value})
TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED.value, JobStatus.FAILED.value, JobStatus.PARTIAL.value}
)


class ActiveJobView:
    """Jobs currently pending or processing, keyed by id."""

    def __init__(self):
        self._jobs: dict[str, dict[str, Any]] = {}

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def apply(self, event: ChangeEvent) -> dict[str, Any] | None:
        """Update the view; returns the job's previous state, if it was active."""
        job_id = event.record_id
        if job_id is None:
            return None

        previous = self._jobs.get(job_id)
        if event.type == ChangeType.DELETE:
            self._jobs.pop(job_id, None)
        elif event.new.get("status") in ACTIVE_STATUSES:
            self._jobs[job_id] = dict(event.new)
        else:
            self._jobs.pop(job_id, None)
        return previous


class JobStatusDispatcher:
    def __init__(self):
        self.view = ActiveJobView()

    def handle(self, event: ChangeEvent) -> tuple[JobNotification | None, bool]:
        """Apply one event.

        Returns:
            tuple: (notification to show or None, whether lists should refresh)
        """
        previous = self.view.apply(event)

        if event.type == ChangeType.DELETE:
            return None, True

        record = event.new
        status = record.get("status")
        if previous is not None:
            previous_status = previous.get("status")
        else:
            previous_status = event.old.get("status")

        if event.type == ChangeType.INSERT:
            if status in ACTIVE_STATUSES:
                return self._notify(event, NotificationLevel.INFO, "queued for processing"), True
            return None, True

        if status == JobStatus.PROCESSING.value:
            progress_changed = previous is not None and previous.get(
                "processing_progress"
            ) != record.get("processing_progress")
            if previous_status != status or progress_changed:
                return self._notify(event, NotificationLevel.LOADING, "processing"), False
            return None, False

        if status in TERMINAL_STATUSES and previous_status != status:
            if status == JobStatus.FAILED.value:
                detail = record.get("error_message") or "processing failed"
                return self._notify(event, NotificationLevel.ERROR, f"failed: {detail}"), True
            return self._notify(event, NotificationLevel.SUCCESS, "processed"), True

        return None, False

    def _notify(
        self, event: ChangeEvent, level: NotificationLevel, text: str
    ) -> JobNotification:
        record = event.new
        job_id = event.record_id
        file_name = record.get("file_name")
        label = "RFP" if event.table == RFP_JOBS_TABLE else "Inventory"

        link = None
        if (
            event.table == RFP_JOBS_TABLE
            and record.get("status") == JobStatus.COMPLETED.value
        ):
            link = f"/rfps/{job_id}/matches"

        return JobNotification(
            job_id=job_id,
            table=event.table,
            status=record.get("status") or "",
            level=level,
            message=f"{label} '{file_name}' {text}",
            file_name=file_name,
            progress=record.get("processing_progress"),
            link=link,
        )
