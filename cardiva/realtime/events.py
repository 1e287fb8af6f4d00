"""Change events and the notifications derived from them."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

RFP_JOBS_TABLE = "rfp_upload_jobs"
INVENTORY_JOBS_TABLE = "inventory_upload_jobs"
JOB_TABLES = frozenset({RFP_JOBS_TABLE, INVENTORY_JOBS_TABLE})


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(slots=True)
class ChangeEvent:
    """One row change on a watched table."""

    table: str
    type: ChangeType
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)

    @property
    def record(self) -> dict[str, Any]:
        return self.new if self.type != ChangeType.DELETE else self.old

    @property
    def record_id(self) -> str | None:
        value = self.record.get("id")
        return str(value) if value is not None else None

    @property
    def user_id(self) -> str | None:
        value = self.record.get("user_id")
        return str(value) if value is not None else None

    @classmethod
    def from_payload(cls, payload: str | dict[str, Any]) -> ChangeEvent:
        """Build an event from a NOTIFY payload.

        Raises:
            ValueError: If the payload is not a valid change event
        """
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid change payload: {e}") from e
        try:
            return cls(
                table=payload["table"],
                type=ChangeType(payload["type"]),
                new=payload.get("new") or {},
                old=payload.get("old") or {},
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid change payload: {e}") from e


class NotificationLevel(str, Enum):
    INFO = "info"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True)
class JobNotification:
    """User-facing job status message (one toast per job, updated in place)."""

    job_id: UUID | str
    table: str
    status: str
    level: NotificationLevel
    message: str
    file_name: str | None = None
    progress: int | None = None
    link: str | None = None

    @property
    def toast_id(self) -> str:
        prefix = "rfp-job" if self.table == RFP_JOBS_TABLE else "inventory-job"
        return f"{prefix}-{self.job_id}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["job_id"] = str(self.job_id)
        data["level"] = self.level.value
        data["toast_id"] = self.toast_id
        return data
