"""Server-sent events for upload job status.

Routes:
- GET /api/events/jobs - Stream job notifications and list refresh hints

Each connection owns one subscription and one dispatcher, so events for a
job are delivered to the browser in the order they were committed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from cardiva.models import AuthenticatedUser
from cardiva.realtime.dispatcher import JobStatusDispatcher
from cardiva.realtime.events import JOB_TABLES
from cardiva.realtime.feed import ChangeFeed, Subscription
from cardiva.web.auth import require_user
from cardiva.web.dependencies import get_feed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

HEARTBEAT_SECONDS = 15.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


async def job_event_stream(
    subscription: Subscription,
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
) -> AsyncGenerator[str, None]:
    """Yield SSE frames until the client disconnects."""
    dispatcher = JobStatusDispatcher()
    try:
        while not subscription.closed:
            event = await subscription.get(timeout=heartbeat_seconds)
            if event is None:
                yield ": keep-alive\n\n"
                continue

            notification, refresh = dispatcher.handle(event)
            if notification is not None:
                yield format_sse("notification", notification.to_dict())
            if refresh:
                yield format_sse(
                    "refresh",
                    {"table": event.table, "type": event.type.value, "id": event.record_id},
                )
    except asyncio.CancelledError:
        logger.info("Job event stream cancelled")
        raise
    finally:
        subscription.close()


@router.get("/api/events/jobs")
async def job_events(
    user: AuthenticatedUser = Depends(require_user),
    feed: ChangeFeed = Depends(get_feed),
) -> StreamingResponse:
    """Stream status changes of upload jobs.

    Administrators receive every job; other users only their own.
    """
    subscription = feed.subscribe(
        JOB_TABLES, user_id=None if user.is_admin else str(user.id)
    )
    return StreamingResponse(
        job_event_stream(subscription),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
