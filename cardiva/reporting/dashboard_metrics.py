"""Dashboard KPIs: RFP volume, review backlog and match acceptance.

Month buckets are computed in Python from ``created_at`` values so the same
code runs on Postgres and SQLite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.models import MatchSuggestionModel, RFPItemModel, RFPUploadJobModel
from cardiva.models import AuthenticatedUser, JobStatus, SuggestionStatus
from cardiva.review.repository import get_job_review_statuses, needs_review_condition

MONTH_LABELS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]
CHART_MONTHS = 6
RECENT_RFPS_LIMIT = 5


@dataclass
class MonthlyPoint:
    month: str
    rfps: int
    matches: int


@dataclass
class RecentRFP:
    id: str
    file_name: str
    status: str
    review_status: str | None
    created_at: datetime | None


@dataclass
class DashboardStats:
    total_rfps: int = 0  # completed
    total_matches: int = 0  # accepted suggestions
    pending_review: int = 0  # jobs with items still to review
    acceptance_rate: int = 0  # % of accepted among accepted+rejected
    rfps_this_month: int = 0
    matches_this_month: int = 0
    monthly_data: list[MonthlyPoint] = field(default_factory=list)
    recent_rfps: list[RecentRFP] = field(default_factory=list)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_key(value: datetime) -> tuple[int, int]:
    return value.year, value.month


def acceptance_rate(accepted: int, rejected: int) -> int:
    decisions = accepted + rejected
    if decisions == 0:
        return 0
    return round(accepted / decisions * 100)


async def count_jobs_needing_review(session: AsyncSession) -> int:
    """Completed, unconfirmed jobs with at least one item still to review."""
    stmt = (
        select(func.count(func.distinct(RFPItemModel.job_id)))
        .join(RFPUploadJobModel, RFPUploadJobModel.id == RFPItemModel.job_id)
        .where(
            RFPUploadJobModel.status == JobStatus.COMPLETED.value,
            RFPUploadJobModel.confirmed_at.is_(None),
            needs_review_condition(),
        )
    )
    return (await session.execute(stmt)).scalar_one()


async def get_dashboard_stats(
    session: AsyncSession,
    user: AuthenticatedUser | None,
    now: datetime | None = None,
) -> DashboardStats:
    """Aggregate dashboard statistics (empty stats for anonymous callers)."""
    if user is None:
        return DashboardStats()

    now = now or datetime.now(timezone.utc)
    this_month = (now.year, now.month)
    chart_months = [
        _shift_month(now.year, now.month, -offset) for offset in range(CHART_MONTHS - 1, -1, -1)
    ]
    chart_start = datetime(chart_months[0][0], chart_months[0][1], 1, tzinfo=timezone.utc)

    total_rfps = (
        await session.execute(
            select(func.count(RFPUploadJobModel.id)).where(
                RFPUploadJobModel.status == JobStatus.COMPLETED.value
            )
        )
    ).scalar_one()

    rfp_dates = (
        await session.execute(
            select(RFPUploadJobModel.created_at).where(
                RFPUploadJobModel.status == JobStatus.COMPLETED.value,
                RFPUploadJobModel.created_at >= chart_start,
            )
        )
    ).scalars().all()

    decision_counts = dict(
        (
            await session.execute(
                select(MatchSuggestionModel.status, func.count(MatchSuggestionModel.id))
                .where(
                    MatchSuggestionModel.status.in_(
                        [SuggestionStatus.ACCEPTED.value, SuggestionStatus.REJECTED.value]
                    )
                )
                .group_by(MatchSuggestionModel.status)
            )
        ).all()
    )
    accepted = decision_counts.get(SuggestionStatus.ACCEPTED.value, 0)
    rejected = decision_counts.get(SuggestionStatus.REJECTED.value, 0)

    match_dates = (
        await session.execute(
            select(MatchSuggestionModel.created_at).where(
                MatchSuggestionModel.status == SuggestionStatus.ACCEPTED.value,
                MatchSuggestionModel.created_at >= chart_start,
            )
        )
    ).scalars().all()

    rfps_by_month: dict[tuple[int, int], int] = {}
    for created_at in rfp_dates:
        key = _month_key(created_at)
        rfps_by_month[key] = rfps_by_month.get(key, 0) + 1

    matches_by_month: dict[tuple[int, int], int] = {}
    for created_at in match_dates:
        key = _month_key(created_at)
        matches_by_month[key] = matches_by_month.get(key, 0) + 1

    monthly_data = [
        MonthlyPoint(
            month=MONTH_LABELS[month - 1],
            rfps=rfps_by_month.get((year, month), 0),
            matches=matches_by_month.get((year, month), 0),
        )
        for year, month in chart_months
    ]

    recent_jobs = (
        await session.execute(
            select(RFPUploadJobModel)
            .order_by(RFPUploadJobModel.created_at.desc())
            .limit(RECENT_RFPS_LIMIT)
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    review_statuses = await get_job_review_statuses(session, recent_jobs)
    recent_rfps = [
        RecentRFP(
            id=str(job.id),
            file_name=job.file_name,
            status=job.status,
            review_status=review_statuses[job.id].value if review_statuses[job.id] else None,
            created_at=job.created_at,
        )
        for job in recent_jobs
    ]

    return DashboardStats(
        total_rfps=total_rfps,
        total_matches=accepted,
        pending_review=await count_jobs_needing_review(session),
        acceptance_rate=acceptance_rate(accepted, rejected),
        rfps_this_month=rfps_by_month.get(this_month, 0),
        matches_this_month=matches_by_month.get(this_month, 0),
        monthly_data=monthly_data,
        recent_rfps=recent_rfps,
    )
