"""Match reconciliation operations (accept/unselect/reject/manual/auto-accept).

Each operation runs as a single transaction on the given session. Sibling
rejection and the ``last_edited_by`` stamp run inside savepoints: if they fail
the primary change is still committed and the failure is only logged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import case, delete, func, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.models import MatchSuggestionModel, RFPItemModel, RFPUploadJobModel
from cardiva.models import (
    MANUAL_MATCH_TYPE,
    AuthenticatedUser,
    InventoryArticle,
    ReviewStatus,
    SuggestionStatus,
)
from cardiva.review.models import ActionResult, AutoAcceptResult
from cardiva.review.repository import fetch_job_items
from cardiva.review.status import EXACT_MATCH_THRESHOLD, can_confirm

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Not authenticated"
ITEM_NOT_FOUND = "Item not found"
MATCH_NOT_FOUND = "Match not found"
JOB_NOT_FOUND = "RFP not found"

_NO_SYNC = {"synchronize_session": False}


async def accept_match(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    item_id: UUID,
    match_id: UUID,
) -> ActionResult:
    """Accept one suggestion, reject its siblings, select it on the item."""
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    try:
        error = await _validate_target(session, job_id, item_id, match_id)
        if error:
            return ActionResult.fail(error)

        await _set_suggestion_status(session, match_id, SuggestionStatus.ACCEPTED)

        await _execute_non_fatal(
            session,
            update(MatchSuggestionModel)
            .where(
                MatchSuggestionModel.rfp_item_id == item_id,
                MatchSuggestionModel.id != match_id,
            )
            .values(status=SuggestionStatus.REJECTED.value)
            .execution_options(**_NO_SYNC),
            "reject sibling suggestions",
        )

        await _set_item_state(session, item_id, ReviewStatus.ACCEPTED, match_id)
        await _stamp_last_edited(session, job_id, user.id)
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "accept match", e)

    logger.info(f"Accepted match {match_id} for item {item_id}")
    return ActionResult.ok()


async def unselect_match(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    item_id: UUID,
    match_id: UUID,
) -> ActionResult:
    """Undo a selection; manual suggestions are deleted, others reset to pending.

    Siblings are left alone, so previously rejected candidates stay rejected.
    """
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    try:
        suggestion = await _load_suggestion(session, job_id, item_id, match_id)
        if isinstance(suggestion, str):
            return ActionResult.fail(suggestion)

        if suggestion.match_type == MANUAL_MATCH_TYPE:
            await session.execute(
                delete(MatchSuggestionModel)
                .where(MatchSuggestionModel.id == match_id)
                .execution_options(**_NO_SYNC)
            )
        else:
            await _set_suggestion_status(session, match_id, SuggestionStatus.PENDING)

        await _set_item_state(session, item_id, ReviewStatus.PENDING, None)
        await _stamp_last_edited(session, job_id, user.id)
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "unselect match", e)

    logger.info(f"Unselected match {match_id} for item {item_id}")
    return ActionResult.ok()


async def reject_match(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    item_id: UUID,
    match_id: UUID,
) -> ActionResult:
    """Reject one suggestion and reconcile the item state.

    - no non-rejected suggestions left: item becomes ``rejected``
    - the rejected suggestion was the selected one: item back to ``pending``
    - otherwise the item is untouched
    """
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    try:
        error = await _validate_target(session, job_id, item_id, match_id)
        if error:
            return ActionResult.fail(error)

        await _set_suggestion_status(session, match_id, SuggestionStatus.REJECTED)

        remaining = (
            await session.execute(
                select(func.count(MatchSuggestionModel.id)).where(
                    MatchSuggestionModel.rfp_item_id == item_id,
                    MatchSuggestionModel.status != SuggestionStatus.REJECTED.value,
                )
            )
        ).scalar_one()

        if remaining == 0:
            await _set_item_state(session, item_id, ReviewStatus.REJECTED, None)
        else:
            selected_id = (
                await session.execute(
                    select(RFPItemModel.selected_match_id).where(RFPItemModel.id == item_id)
                )
            ).scalar_one_or_none()
            if selected_id == match_id:
                await _set_item_state(session, item_id, ReviewStatus.PENDING, None)

        await _stamp_last_edited(session, job_id, user.id)
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "reject match", e)

    logger.info(f"Rejected match {match_id} for item {item_id} ({remaining} candidates left)")
    return ActionResult.ok()


async def set_manual_match(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
    item_id: UUID,
    article: InventoryArticle,
) -> ActionResult:
    """Select an inventory article the algorithm did not propose."""
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    new_id = uuid4()
    try:
        if not await _item_in_job(session, job_id, item_id):
            return ActionResult.fail(ITEM_NOT_FOUND)

        session.add(
            MatchSuggestionModel(
                id=new_id,
                rfp_item_id=item_id,
                codigo_spms=article.codigo_spms,
                artigo=article.artigo,
                descricao=article.descricao,
                descricao_comercial=article.descricao_comercial,
                unidade_venda=article.unidade_venda,
                quantidade_disponivel=article.quantidade_disponivel,
                preco=article.preco,
                similarity_score=1.0,
                match_type=MANUAL_MATCH_TYPE,
                rank=0,
                status=SuggestionStatus.ACCEPTED.value,
            )
        )
        await session.flush()

        await _execute_non_fatal(
            session,
            update(MatchSuggestionModel)
            .where(
                MatchSuggestionModel.rfp_item_id == item_id,
                MatchSuggestionModel.id != new_id,
            )
            .values(status=SuggestionStatus.REJECTED.value)
            .execution_options(**_NO_SYNC),
            "reject existing suggestions",
        )

        await _set_item_state(session, item_id, ReviewStatus.MANUAL, new_id)
        await _stamp_last_edited(session, job_id, user.id)
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "set manual match", e)

    logger.info(f"Manual match {new_id} ({article.codigo_spms}) set for item {item_id}")
    return ActionResult.ok(match_id=str(new_id))


async def auto_accept_exact_matches(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
) -> AutoAcceptResult:
    """Accept the exact match of every pending item in one batch.

    Runs one select plus three updates regardless of the number of items.
    Items that are no longer pending are skipped, so repeated calls are no-ops.
    """
    if user is None:
        return AutoAcceptResult(success=False, error=NOT_AUTHENTICATED)

    try:
        rows = (
            await session.execute(
                select(
                    MatchSuggestionModel.id,
                    MatchSuggestionModel.rfp_item_id,
                    MatchSuggestionModel.similarity_score,
                    MatchSuggestionModel.rank,
                )
                .join(RFPItemModel, RFPItemModel.id == MatchSuggestionModel.rfp_item_id)
                .where(
                    RFPItemModel.job_id == job_id,
                    RFPItemModel.review_status == ReviewStatus.PENDING.value,
                    MatchSuggestionModel.similarity_score >= EXACT_MATCH_THRESHOLD,
                )
            )
        ).all()

        # Best exact candidate per item: highest score, then lowest rank
        chosen: dict[UUID, tuple[UUID, float, int]] = {}
        for row in rows:
            current = chosen.get(row.rfp_item_id)
            if current is None or (row.similarity_score, -row.rank) > (current[1], -current[2]):
                chosen[row.rfp_item_id] = (row.id, row.similarity_score, row.rank)

        if not chosen:
            return AutoAcceptResult(success=True, accepted_count=0)

        item_ids = list(chosen)
        match_ids = [match_id for match_id, _, _ in chosen.values()]

        await session.execute(
            update(MatchSuggestionModel)
            .where(MatchSuggestionModel.id.in_(match_ids))
            .values(status=SuggestionStatus.ACCEPTED.value)
            .execution_options(**_NO_SYNC)
        )

        await _execute_non_fatal(
            session,
            update(MatchSuggestionModel)
            .where(
                MatchSuggestionModel.rfp_item_id.in_(item_ids),
                MatchSuggestionModel.id.not_in(match_ids),
            )
            .values(status=SuggestionStatus.REJECTED.value)
            .execution_options(**_NO_SYNC),
            "reject non-exact suggestions",
        )

        selected = case(
            *[
                (RFPItemModel.id == item_id, literal(match_id, RFPItemModel.selected_match_id.type))
                for item_id, (match_id, _, _) in chosen.items()
            ],
            else_=RFPItemModel.selected_match_id,
        )
        await session.execute(
            update(RFPItemModel)
            .where(RFPItemModel.id.in_(item_ids))
            .values(review_status=ReviewStatus.ACCEPTED.value, selected_match_id=selected)
            .execution_options(**_NO_SYNC)
        )

        await _stamp_last_edited(session, job_id, user.id)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to auto-accept exact matches for job {job_id}: {e}")
        return AutoAcceptResult(success=False, error=str(e))

    logger.info(f"Auto-accepted {len(chosen)} exact matches for job {job_id}")
    return AutoAcceptResult(success=True, accepted_count=len(chosen))


async def confirm_rfp(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
) -> ActionResult:
    """Mark the review as confirmed once nothing is left to review."""
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    try:
        job_exists = await session.execute(
            select(RFPUploadJobModel.id).where(RFPUploadJobModel.id == job_id)
        )
        if job_exists.scalar_one_or_none() is None:
            return ActionResult.fail(JOB_NOT_FOUND)

        items = await fetch_job_items(session, job_id)
        if not can_confirm(items):
            return ActionResult.fail(
                "RFP cannot be confirmed: items still need review or nothing was matched"
            )

        await session.execute(
            update(RFPUploadJobModel)
            .where(RFPUploadJobModel.id == job_id)
            .values(confirmed_at=datetime.now(timezone.utc), last_edited_by=user.id)
            .execution_options(**_NO_SYNC)
        )
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "confirm RFP", e)

    logger.info(f"RFP {job_id} confirmed by {user.email}")
    return ActionResult.ok()


async def revert_confirmation(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    job_id: UUID,
) -> ActionResult:
    if user is None:
        return ActionResult.fail(NOT_AUTHENTICATED)

    try:
        result = await session.execute(
            update(RFPUploadJobModel)
            .where(RFPUploadJobModel.id == job_id)
            .values(confirmed_at=None, last_edited_by=user.id)
            .execution_options(**_NO_SYNC)
        )
        if result.rowcount == 0:
            await session.rollback()
            return ActionResult.fail(JOB_NOT_FOUND)
        await session.commit()
    except SQLAlchemyError as e:
        return await _fail(session, "revert confirmation", e)

    logger.info(f"RFP {job_id} confirmation reverted by {user.email}")
    return ActionResult.ok()


async def _item_in_job(session: AsyncSession, job_id: UUID, item_id: UUID) -> bool:
    found = await session.execute(
        select(RFPItemModel.id).where(RFPItemModel.id == item_id, RFPItemModel.job_id == job_id)
    )
    return found.scalar_one_or_none() is not None


async def _load_suggestion(
    session: AsyncSession, job_id: UUID, item_id: UUID, match_id: UUID
):
    """Return the suggestion row, or an error message if it is not reachable."""
    if not await _item_in_job(session, job_id, item_id):
        return ITEM_NOT_FOUND

    row = (
        await session.execute(
            select(MatchSuggestionModel.id, MatchSuggestionModel.match_type).where(
                MatchSuggestionModel.id == match_id,
                MatchSuggestionModel.rfp_item_id == item_id,
            )
        )
    ).one_or_none()
    return row if row is not None else MATCH_NOT_FOUND


async def _validate_target(
    session: AsyncSession, job_id: UUID, item_id: UUID, match_id: UUID
) -> str | None:
    suggestion = await _load_suggestion(session, job_id, item_id, match_id)
    return suggestion if isinstance(suggestion, str) else None


async def _set_suggestion_status(
    session: AsyncSession, match_id: UUID, status: SuggestionStatus
) -> None:
    await session.execute(
        update(MatchSuggestionModel)
        .where(MatchSuggestionModel.id == match_id)
        .values(status=status.value)
        .execution_options(**_NO_SYNC)
    )


async def _set_item_state(
    session: AsyncSession,
    item_id: UUID,
    status: ReviewStatus,
    selected_match_id: UUID | None,
) -> None:
    await session.execute(
        update(RFPItemModel)
        .where(RFPItemModel.id == item_id)
        .values(review_status=status.value, selected_match_id=selected_match_id)
        .execution_options(**_NO_SYNC)
    )


async def _execute_non_fatal(session: AsyncSession, statement, description: str) -> bool:
    try:
        async with session.begin_nested():
            await session.execute(statement)
    except SQLAlchemyError as e:
        logger.warning(f"Failed to {description}: {e}")
        return False
    return True


async def _stamp_last_edited(session: AsyncSession, job_id: UUID, user_id: UUID) -> None:
    await _execute_non_fatal(
        session,
        update(RFPUploadJobModel)
        .where(RFPUploadJobModel.id == job_id)
        .values(last_edited_by=user_id)
        .execution_options(**_NO_SYNC),
        f"record last editor on job {job_id}",
    )


async def _fail(session: AsyncSession, action: str, error: Exception) -> ActionResult:
    await session.rollback()
    logger.error(f"Failed to {action}: {error}")
    return ActionResult.fail(str(error))
