"""Bounded multi-file upload queue.

At most ``max_queued`` files may be waiting or uploading at once, at most
``max_concurrent`` upload in parallel, consecutive uploads start at least
``stagger_seconds`` apart so the workflow is not flooded, and every entry
stays in ``uploading`` for at least ``min_uploading_seconds`` so the state is
visible to the user.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4

from cardiva.config import UploadQueueConfig
from cardiva.ingestion.models import UploadResult

logger = logging.getLogger(__name__)

UploadFn = Callable[[str, bytes], Awaitable[UploadResult]]


class UploadState(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    FAILED = "failed"


class QueueFullError(Exception):
    """Raised when adding a file would exceed the queue limit."""


@dataclass
class UploadEntry:
    file_name: str
    content: bytes = field(repr=False)
    id: UUID = field(default_factory=uuid4)
    state: UploadState = UploadState.QUEUED
    job_id: UUID | None = None
    error: str | None = None
    warning: str | None = None

    @property
    def finished(self) -> bool:
        return self.state in (UploadState.SUBMITTED, UploadState.FAILED)


class UploadQueue:
    """Runs uploads through ``upload_fn`` under the queue limits.

    Example:
        >>> queue = UploadQueue(upload_fn)
        >>> queue.add("tender.pdf", content)
        >>> await queue.drain()
    """

    def __init__(
        self,
        upload_fn: UploadFn,
        max_queued: int = 10,
        max_concurrent: int = 3,
        stagger_seconds: float = 2.0,
        min_uploading_seconds: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_change: Callable[[UploadEntry], None] | None = None,
    ):
        self.upload_fn = upload_fn
        self.max_queued = max_queued
        self.max_concurrent = max_concurrent
        self.stagger_seconds = stagger_seconds
        self.min_uploading_seconds = min_uploading_seconds
        self._clock = clock
        self._sleep = sleep
        self._on_change = on_change

        self._entries: list[UploadEntry] = []
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._stagger_lock = asyncio.Lock()
        self._last_start: float | None = None
        self._active = 0
        self.max_active_seen = 0

    @classmethod
    def from_config(cls, upload_fn: UploadFn, config: UploadQueueConfig, **kwargs) -> UploadQueue:
        return cls(
            upload_fn,
            max_queued=config.max_queued,
            max_concurrent=config.max_concurrent,
            stagger_seconds=config.stagger_seconds,
            min_uploading_seconds=config.min_uploading_seconds,
            **kwargs,
        )

    @property
    def entries(self) -> list[UploadEntry]:
        return list(self._entries)

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.finished)

    def add(self, file_name: str, content: bytes) -> UploadEntry:
        if self.pending_count >= self.max_queued:
            raise QueueFullError(
                f"Upload queue is full ({self.max_queued} files). "
                "Wait for current uploads to finish."
            )
        entry = UploadEntry(file_name=file_name, content=content)
        self._entries.append(entry)
        self._changed(entry)
        return entry

    def clear_finished(self) -> int:
        before = len(self._entries)
        self._entries = [entry for entry in self._entries if not entry.finished]
        return before - len(self._entries)

    async def drain(self) -> list[UploadEntry]:
        """Upload every queued entry and wait for all of them."""
        queued = [entry for entry in self._entries if entry.state == UploadState.QUEUED]
        await asyncio.gather(*(self._process(entry) for entry in queued))
        return queued

    async def _process(self, entry: UploadEntry) -> None:
        async with self._semaphore:
            await self._wait_for_stagger()

            self._active += 1
            self.max_active_seen = max(self.max_active_seen, self._active)
            entry.state = UploadState.UPLOADING
            self._changed(entry)
            started = self._clock()

            try:
                result = await self.upload_fn(entry.file_name, entry.content)
            except Exception as e:
                logger.error(f"Upload of {entry.file_name} failed: {e}")
                result = UploadResult(success=False, error=str(e))

            elapsed = self._clock() - started
            if elapsed < self.min_uploading_seconds:
                await self._sleep(self.min_uploading_seconds - elapsed)

            entry.job_id = result.job_id
            entry.warning = result.warning
            if result.success:
                entry.state = UploadState.SUBMITTED
            else:
                entry.state = UploadState.FAILED
                entry.error = result.error
            self._active -= 1
            self._changed(entry)

    async def _wait_for_stagger(self) -> None:
        async with self._stagger_lock:
            if self._last_start is not None:
                wait = self._last_start + self.stagger_seconds - self._clock()
                if wait > 0:
                    logger.debug(f"Staggering upload start by {wait:.2f}s")
                    await self._sleep(wait)
            self._last_start = self._clock()

    def _changed(self, entry: UploadEntry) -> None:
        if self._on_change is not None:
            self._on_change(entry)
