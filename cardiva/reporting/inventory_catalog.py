"""Paginated inventory catalog listing.

Visible columns, sortable columns and the columns the search box looks in
all come from the administrator's inventory column configuration; an empty
configuration falls back to :data:`DEFAULT_INVENTORY_COLUMNS`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.admin.settings import get_inventory_columns
from cardiva.db.models import ArtigoModel, InventoryUploadJobModel, ProfileModel
from cardiva.models import InventoryColumn, JobStatus

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_SEARCH_LENGTH = 200

DEFAULT_INVENTORY_COLUMNS = [
    InventoryColumn(column_name="codigo_spms", display_name="Cód. SPMS", searchable=True),
    InventoryColumn(column_name="artigo", display_name="Artigo", searchable=True),
    InventoryColumn(column_name="descricao", display_name="Descrição", searchable=True),
    InventoryColumn(column_name="unidade_venda", display_name="Unidade"),
    InventoryColumn(
        column_name="quantidade_disponivel", display_name="Quantidade", column_type="number"
    ),
    InventoryColumn(column_name="preco", display_name="Preço", column_type="currency"),
]


@dataclass
class LastInventoryUpload:
    file_name: str
    completed_at: datetime | None
    row_count: int | None
    uploaded_by: str | None


@dataclass
class InventoryPage:
    rows: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    sort_by: str
    sort_order: str
    columns: list[InventoryColumn] = field(default_factory=list)
    last_upload: LastInventoryUpload | None = None

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total // self.page_size))


def clamp_paging(page: int, page_size: int) -> tuple[int, int]:
    return max(1, page), min(MAX_PAGE_SIZE, max(1, page_size))


def resolve_sort(columns: list[InventoryColumn], sort_by: str | None) -> str:
    """Requested column when it is sortable, else the first sortable visible one."""
    if sort_by and any(c.column_name == sort_by and c.sortable for c in columns):
        return sort_by
    for column in columns:
        if column.sortable and column.visible:
            return column.column_name
    visible = [c for c in columns if c.visible]
    return visible[0].column_name if visible else "codigo_spms"


async def list_inventory(
    session: AsyncSession,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    search: str = "",
    sort_by: str | None = None,
    sort_order: str = "asc",
) -> InventoryPage:
    page, page_size = clamp_paging(page, page_size)
    search = (search or "").strip()[:MAX_SEARCH_LENGTH]
    sort_order = "desc" if sort_order == "desc" else "asc"

    columns = await get_inventory_columns(session) or DEFAULT_INVENTORY_COLUMNS
    sort_column = resolve_sort(columns, sort_by)

    conditions = []
    searchable = [c.column_name for c in columns if c.searchable]
    if search and searchable:
        pattern = f"%{search.lower()}%"
        conditions.append(
            or_(*(func.lower(getattr(ArtigoModel, name)).like(pattern) for name in searchable))
        )

    total = (
        await session.execute(select(func.count()).select_from(ArtigoModel).where(*conditions))
    ).scalar_one()

    order = getattr(ArtigoModel, sort_column)
    stmt = (
        select(ArtigoModel)
        .where(*conditions)
        .order_by(order.desc() if sort_order == "desc" else order.asc(), ArtigoModel.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = (await session.execute(stmt)).scalars().all()

    visible = [c for c in columns if c.visible]
    rows = [
        {"id": str(article.id), **{c.column_name: getattr(article, c.column_name) for c in visible}}
        for article in articles
    ]

    return InventoryPage(
        rows=rows,
        total=total,
        page=page,
        page_size=page_size,
        sort_by=sort_column,
        sort_order=sort_order,
        columns=visible,
        last_upload=await get_last_inventory_upload(session),
    )


async def get_last_inventory_upload(session: AsyncSession) -> LastInventoryUpload | None:
    stmt = (
        select(InventoryUploadJobModel, ProfileModel)
        .outerjoin(ProfileModel, ProfileModel.id == InventoryUploadJobModel.user_id)
        .where(InventoryUploadJobModel.status == JobStatus.COMPLETED.value)
        .order_by(InventoryUploadJobModel.completed_at.desc())
        .limit(1)
    )
    row = (await session.execute(stmt)).first()
    if row is None:
        return None

    job, profile = row
    return LastInventoryUpload(
        file_name=job.file_name,
        completed_at=job.completed_at,
        row_count=job.row_count,
        uploaded_by=(profile.full_name or profile.email) if profile else None,
    )
