"""Shared dependencies for Cardiva web routes.

Dependencies are injected using FastAPI's Depends() system and can be
replaced in tests through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import HTTPException

from cardiva.ingestion.storage import LocalFileStorage, get_storage
from cardiva.realtime.feed import ChangeFeed, get_change_feed
from cardiva.review.models import ActionResult


def get_file_storage() -> LocalFileStorage:
    return get_storage()


def get_feed() -> ChangeFeed:
    return get_change_feed()


def status_for_error(error: str | None) -> int:
    """Map a service error message to an HTTP status code."""
    message = (error or "").lower()
    if message == "not authenticated":
        return 401
    if "not configured" in message:
        return 503
    if "permission" in message or "admin" in message:
        return 403
    if "not found" in message:
        return 404
    return 400


def raise_for_result(result: ActionResult) -> ActionResult:
    """Raise HTTPException for failed service results, else return them."""
    if not result.success:
        raise HTTPException(status_code=status_for_error(result.error), detail=result.error)
    return result
