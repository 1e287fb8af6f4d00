"""Derived review state for items and jobs.

Nothing here is stored: the job-level review status and the item categories
are recomputed from item/suggestion rows whenever they are needed.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from cardiva.models import ItemFilter, JobReviewStatus, JobStatus, ReviewStatus, SuggestionStatus
from cardiva.review.models import ReviewItem, ReviewProgress

# Scores at or above this value count as exact matches
EXACT_MATCH_THRESHOLD = 0.9999


def is_exact_match(similarity_score: float | None) -> bool:
    return similarity_score is not None and similarity_score >= EXACT_MATCH_THRESHOLD


def has_exact_match(item: ReviewItem) -> bool:
    return any(is_exact_match(s.similarity_score) for s in item.suggestions)


def item_needs_review(item: ReviewItem) -> bool:
    """Pending item with an undecided candidate and no exact match.

    An item whose candidates were all rejected (for instance after a manual
    match was unselected) is left as no match and does not block the job.
    """
    return (
        item.review_status == ReviewStatus.PENDING.value
        and any(s.status == SuggestionStatus.PENDING.value for s in item.suggestions)
        and not has_exact_match(item)
    )


def item_category(item: ReviewItem) -> ItemFilter:
    """Bucket an item for the review filters (never returns ``ALL``)."""
    status = item.review_status
    if status in (ReviewStatus.ACCEPTED.value, ReviewStatus.MANUAL.value):
        return ItemFilter.MATCHED
    if status == ReviewStatus.REJECTED.value:
        return ItemFilter.NO_MATCH
    if not item.suggestions:
        return ItemFilter.NO_MATCH
    if has_exact_match(item):
        return ItemFilter.MATCHED
    return ItemFilter.POR_REVER


def derive_job_review_status(
    job_status: str,
    confirmed_at: datetime | None,
    items: Iterable[ReviewItem],
) -> JobReviewStatus | None:
    """Job-level review status, or None while extraction is unfinished."""
    if job_status != JobStatus.COMPLETED.value:
        return None
    if confirmed_at is not None:
        return JobReviewStatus.CONFIRMADO
    if any(item_needs_review(item) for item in items):
        return JobReviewStatus.POR_REVER
    return JobReviewStatus.REVISTO


def can_confirm(items: Iterable[ReviewItem]) -> bool:
    """Nothing left to review and at least one item matched."""
    items = list(items)
    if any(item_needs_review(item) for item in items):
        return False
    return any(
        item.review_status in (ReviewStatus.ACCEPTED.value, ReviewStatus.MANUAL.value)
        for item in items
    )


def review_progress(items: Iterable[ReviewItem]) -> ReviewProgress:
    progress = ReviewProgress()
    for item in items:
        progress.total += 1
        category = item_category(item)
        if category == ItemFilter.POR_REVER:
            progress.por_rever += 1
        elif category == ItemFilter.MATCHED:
            progress.matched += 1
        else:
            progress.no_match += 1
        if item.review_status != ReviewStatus.PENDING.value:
            progress.reviewed += 1
    return progress


def filter_items(
    items: Iterable[ReviewItem],
    item_filter: ItemFilter = ItemFilter.ALL,
    search: str | None = None,
) -> list[ReviewItem]:
    """Apply the review screen category filter and free-text search."""
    needle = search.strip().lower() if search else ""
    selected = []
    for item in items:
        if item_filter != ItemFilter.ALL and item_category(item) != item_filter:
            continue
        if needle and not _item_matches_text(item, needle):
            continue
        selected.append(item)
    return selected


def _item_matches_text(item: ReviewItem, needle: str) -> bool:
    fields = [item.artigo_pedido, item.descricao_pedido, item.especificacoes_tecnicas]
    for suggestion in item.suggestions:
        fields.extend([suggestion.codigo_spms, suggestion.artigo, suggestion.descricao])
    return any(needle in value.lower() for value in fields if value)
