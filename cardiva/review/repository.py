"""Database queries for the review screen."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.models import (
    ArtigoModel,
    MatchSuggestionModel,
    RFPItemModel,
    RFPUploadJobModel,
)
from cardiva.models import JobReviewStatus, JobStatus, ReviewStatus, SuggestionStatus
from cardiva.review.models import ReviewItem, ReviewJob, ReviewSuggestion
from cardiva.review.status import EXACT_MATCH_THRESHOLD

MIN_SEARCH_LENGTH = 2


async def fetch_job(session: AsyncSession, job_id: UUID) -> ReviewJob | None:
    stmt = (
        select(RFPUploadJobModel)
        .where(RFPUploadJobModel.id == job_id)
        .execution_options(populate_existing=True)
    )
    job = (await session.execute(stmt)).scalar_one_or_none()
    if job is None:
        return None
    return _to_review_job(job)


async def fetch_job_items(session: AsyncSession, job_id: UUID) -> list[ReviewItem]:
    """Return the job's items ordered by lot and position.

    Each item carries its suggestions sorted by similarity score, best first.
    """
    item_stmt = (
        select(RFPItemModel)
        .where(RFPItemModel.job_id == job_id)
        .order_by(
            RFPItemModel.lote_pedido.asc().nulls_last(),
            RFPItemModel.posicao_pedido.asc().nulls_last(),
            RFPItemModel.created_at.asc(),
        )
        .execution_options(populate_existing=True)
    )
    items = (await session.execute(item_stmt)).scalars().all()
    if not items:
        return []

    suggestion_stmt = (
        select(MatchSuggestionModel)
        .join(RFPItemModel, RFPItemModel.id == MatchSuggestionModel.rfp_item_id)
        .where(RFPItemModel.job_id == job_id)
        .order_by(
            MatchSuggestionModel.similarity_score.desc(),
            MatchSuggestionModel.rank.asc(),
        )
        .execution_options(populate_existing=True)
    )
    suggestions = (await session.execute(suggestion_stmt)).scalars().all()

    by_item: dict[UUID, list[ReviewSuggestion]] = defaultdict(list)
    for suggestion in suggestions:
        by_item[suggestion.rfp_item_id].append(_to_review_suggestion(suggestion))

    return [_to_review_item(item, by_item.get(item.id, [])) for item in items]


def needs_review_condition():
    """SQL form of :func:`cardiva.review.status.item_needs_review` over item rows."""
    pending_suggestion = exists().where(
        and_(
            MatchSuggestionModel.rfp_item_id == RFPItemModel.id,
            MatchSuggestionModel.status == SuggestionStatus.PENDING.value,
        )
    )
    exact_suggestion = exists().where(
        and_(
            MatchSuggestionModel.rfp_item_id == RFPItemModel.id,
            MatchSuggestionModel.similarity_score >= EXACT_MATCH_THRESHOLD,
        )
    )
    return and_(
        RFPItemModel.review_status == ReviewStatus.PENDING.value,
        pending_suggestion,
        ~exact_suggestion,
    )


async def count_items_needing_review(session: AsyncSession, job_id: UUID) -> int:
    """Count pending items with an undecided candidate and no exact match."""
    stmt = select(func.count(RFPItemModel.id)).where(
        RFPItemModel.job_id == job_id, needs_review_condition()
    )
    return (await session.execute(stmt)).scalar_one()


async def get_job_review_status(
    session: AsyncSession, job_id: UUID
) -> JobReviewStatus | None:
    """Derive the review status of a job, or None if extraction is unfinished."""
    stmt = select(RFPUploadJobModel.status, RFPUploadJobModel.confirmed_at).where(
        RFPUploadJobModel.id == job_id
    )
    row = (await session.execute(stmt)).one_or_none()
    if row is None:
        return None

    needs_review = False
    if row.status == JobStatus.COMPLETED.value and row.confirmed_at is None:
        needs_review = await count_items_needing_review(session, job_id) > 0
    return _review_status(row.status, row.confirmed_at, needs_review)


async def get_job_review_statuses(
    session: AsyncSession, jobs: Iterable[RFPUploadJobModel]
) -> dict[UUID, JobReviewStatus | None]:
    """Review status of several jobs with one grouped query."""
    jobs = list(jobs)
    candidates = [
        job.id
        for job in jobs
        if job.status == JobStatus.COMPLETED.value and job.confirmed_at is None
    ]

    needing_review: set[UUID] = set()
    if candidates:
        stmt = (
            select(RFPItemModel.job_id)
            .where(RFPItemModel.job_id.in_(candidates), needs_review_condition())
            .group_by(RFPItemModel.job_id)
        )
        needing_review = set((await session.execute(stmt)).scalars().all())

    return {
        job.id: _review_status(job.status, job.confirmed_at, job.id in needing_review)
        for job in jobs
    }


def _review_status(
    job_status: str, confirmed_at: datetime | None, needs_review: bool
) -> JobReviewStatus | None:
    if job_status != JobStatus.COMPLETED.value:
        return None
    if confirmed_at is not None:
        return JobReviewStatus.CONFIRMADO
    return JobReviewStatus.POR_REVER if needs_review else JobReviewStatus.REVISTO


async def search_inventory(
    session: AsyncSession, query: str, limit: int = 20
) -> list[ArtigoModel]:
    """Case-insensitive catalog search by code, name or description."""
    query = (query or "").strip()
    if len(query) < MIN_SEARCH_LENGTH:
        return []

    pattern = f"%{query.lower()}%"
    stmt = (
        select(ArtigoModel)
        .where(
            or_(
                func.lower(ArtigoModel.codigo_spms).like(pattern),
                func.lower(ArtigoModel.artigo).like(pattern),
                func.lower(ArtigoModel.descricao).like(pattern),
                func.lower(ArtigoModel.descricao_comercial).like(pattern),
            )
        )
        .order_by(ArtigoModel.artigo.asc())
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


def _to_review_job(job: RFPUploadJobModel) -> ReviewJob:
    return ReviewJob(
        id=job.id,
        user_id=job.user_id,
        file_name=job.file_name,
        status=job.status,
        confirmed_at=job.confirmed_at,
        last_edited_by=job.last_edited_by,
        created_at=job.created_at,
    )


def _to_review_item(
    item: RFPItemModel, suggestions: list[ReviewSuggestion]
) -> ReviewItem:
    return ReviewItem(
        id=item.id,
        job_id=item.job_id,
        lote_pedido=item.lote_pedido,
        posicao_pedido=item.posicao_pedido,
        artigo_pedido=item.artigo_pedido,
        descricao_pedido=item.descricao_pedido,
        especificacoes_tecnicas=item.especificacoes_tecnicas,
        quantidade_pedido=item.quantidade_pedido,
        preco_artigo=item.preco_artigo,
        preco_posicao=item.preco_posicao,
        preco_lote=item.preco_lote,
        review_status=item.review_status,
        selected_match_id=item.selected_match_id,
        suggestions=suggestions,
    )


def _to_review_suggestion(suggestion: MatchSuggestionModel) -> ReviewSuggestion:
    return ReviewSuggestion(
        id=suggestion.id,
        rfp_item_id=suggestion.rfp_item_id,
        codigo_spms=suggestion.codigo_spms,
        artigo=suggestion.artigo,
        descricao=suggestion.descricao,
        descricao_comercial=suggestion.descricao_comercial,
        unidade_venda=suggestion.unidade_venda,
        quantidade_disponivel=suggestion.quantidade_disponivel,
        preco=suggestion.preco,
        similarity_score=suggestion.similarity_score,
        match_type=suggestion.match_type,
        rank=suggestion.rank,
        status=suggestion.status,
    )
