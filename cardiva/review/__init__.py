"""Match review data models, queries and reconciliation services."""

from cardiva.review.models import (
    ActionResult,
    AutoAcceptResult,
    ReviewItem,
    ReviewJob,
    ReviewProgress,
    ReviewSuggestion,
)
from cardiva.review.repository import (
    count_items_needing_review,
    fetch_job,
    fetch_job_items,
    get_job_review_status,
    get_job_review_statuses,
    search_inventory,
)
from cardiva.review.service import (
    accept_match,
    auto_accept_exact_matches,
    confirm_rfp,
    reject_match,
    revert_confirmation,
    set_manual_match,
    unselect_match,
)

__all__ = [
    "ActionResult",
    "AutoAcceptResult",
    "ReviewItem",
    "ReviewJob",
    "ReviewProgress",
    "ReviewSuggestion",
    "count_items_needing_review",
    "fetch_job",
    "fetch_job_items",
    "get_job_review_status",
    "get_job_review_statuses",
    "search_inventory",
    "accept_match",
    "auto_accept_exact_matches",
    "confirm_rfp",
    "reject_match",
    "revert_confirmation",
    "set_manual_match",
    "unselect_match",
]
