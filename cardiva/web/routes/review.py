"""Match review routes.

Routes:
- GET  /api/rfps/{job_id}/items                      - Items with suggestions and progress
- POST /api/rfps/{job_id}/auto-accept                - Accept every exact match
- POST /api/rfps/{job_id}/items/{item_id}/accept     - Accept a suggestion
- POST /api/rfps/{job_id}/items/{item_id}/reject     - Reject a suggestion
- POST /api/rfps/{job_id}/items/{item_id}/unselect   - Undo a selection
- POST /api/rfps/{job_id}/items/{item_id}/manual     - Select an article by hand
- POST /api/rfps/{job_id}/confirm                    - Confirm the review
- POST /api/rfps/{job_id}/revert                     - Revert the confirmation
"""

from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.connection import get_db
from cardiva.models import AuthenticatedUser, ItemFilter
from cardiva.review import service
from cardiva.review.models import ReviewItem
from cardiva.review.repository import fetch_job, fetch_job_items
from cardiva.review.status import (
    can_confirm,
    derive_job_review_status,
    filter_items,
    item_category,
    review_progress,
)
from cardiva.web.auth import get_current_user
from cardiva.web.dependencies import raise_for_result, status_for_error
from cardiva.web.models import (
    ActionResponse,
    AutoAcceptResponse,
    ManualMatchRequest,
    MatchActionRequest,
    ReviewProgressResponse,
)

router = APIRouter(tags=["review"])


# ============================================================================
# Helper Functions
# ============================================================================


def _parse_item_filter(value: str | None) -> ItemFilter:
    if not value:
        return ItemFilter.ALL
    try:
        return ItemFilter(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid item filter") from None


def _item_payload(item: ReviewItem) -> dict:
    payload = asdict(item)
    payload["category"] = item_category(item).value
    return payload


def _to_response(result) -> ActionResponse:
    raise_for_result(result)
    return ActionResponse(success=True, data=result.data)


# ============================================================================
# Review Screen
# ============================================================================


@router.get("/api/rfps/{job_id}/items")
async def list_items(
    job_id: UUID,
    filter: str | None = Query(default=None),
    search: str | None = Query(default=None),
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Items of one job, filtered, with progress over the whole job."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    item_filter = _parse_item_filter(filter)
    job = await fetch_job(session, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="RFP not found")

    items = await fetch_job_items(session, job_id)
    progress = review_progress(items)
    review_status = derive_job_review_status(job.status, job.confirmed_at, items)

    return {
        "job": {
            "id": str(job.id),
            "file_name": job.file_name,
            "status": job.status,
            "confirmed_at": job.confirmed_at,
            "review_status": review_status.value if review_status else None,
            "can_confirm": can_confirm(items),
        },
        "progress": ReviewProgressResponse(
            **asdict(progress), percent_reviewed=progress.percent_reviewed
        ),
        "items": [_item_payload(item) for item in filter_items(items, item_filter, search)],
    }


# ============================================================================
# Review Actions
# ============================================================================


@router.post("/api/rfps/{job_id}/auto-accept", response_model=AutoAcceptResponse)
async def auto_accept(
    job_id: UUID,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    result = await service.auto_accept_exact_matches(session, user, job_id)
    if not result.success:
        raise HTTPException(status_code=status_for_error(result.error), detail=result.error)
    return AutoAcceptResponse(success=True, accepted_count=result.accepted_count)


@router.post("/api/rfps/{job_id}/items/{item_id}/accept", response_model=ActionResponse)
async def accept(
    job_id: UUID,
    item_id: UUID,
    body: MatchActionRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(
        await service.accept_match(session, user, job_id, item_id, body.match_id)
    )


@router.post("/api/rfps/{job_id}/items/{item_id}/reject", response_model=ActionResponse)
async def reject(
    job_id: UUID,
    item_id: UUID,
    body: MatchActionRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(
        await service.reject_match(session, user, job_id, item_id, body.match_id)
    )


@router.post("/api/rfps/{job_id}/items/{item_id}/unselect", response_model=ActionResponse)
async def unselect(
    job_id: UUID,
    item_id: UUID,
    body: MatchActionRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(
        await service.unselect_match(session, user, job_id, item_id, body.match_id)
    )


@router.post("/api/rfps/{job_id}/items/{item_id}/manual", response_model=ActionResponse)
async def manual(
    job_id: UUID,
    item_id: UUID,
    body: ManualMatchRequest,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(
        await service.set_manual_match(session, user, job_id, item_id, body.article)
    )


@router.post("/api/rfps/{job_id}/confirm", response_model=ActionResponse)
async def confirm(
    job_id: UUID,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(await service.confirm_rfp(session, user, job_id))


@router.post("/api/rfps/{job_id}/revert", response_model=ActionResponse)
async def revert(
    job_id: UUID,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    return _to_response(await service.revert_confirmation(session, user, job_id))
