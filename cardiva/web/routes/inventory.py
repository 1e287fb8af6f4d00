"""Inventory routes.

Routes:
- GET  /api/inventory                - Paginated catalog listing
- POST /api/inventory/upload         - Upload an inventory CSV (admin)
- GET  /api/inventory/jobs/{job_id}  - Inventory job status
- GET  /api/inventory/search         - Catalog search for manual matches
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.connection import get_db
from cardiva.ingestion.inventory_uploads import get_inventory_job_status, trigger_inventory_upload
from cardiva.models import AuthenticatedUser
from cardiva.reporting.inventory_catalog import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, list_inventory
from cardiva.review.repository import search_inventory
from cardiva.web.auth import require_admin, require_user
from cardiva.web.dependencies import status_for_error
from cardiva.web.models import UploadResponse

router = APIRouter(tags=["inventory"])


@router.get("/api/inventory")
async def inventory_listing(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: str = Query(default="", max_length=200),
    sort_by: str | None = Query(default=None),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Catalog page shaped by the administrator's inventory column configuration."""
    result = await list_inventory(
        session,
        page=page,
        page_size=page_size,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "rows": result.rows,
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "page_count": result.page_count,
        "sort_by": result.sort_by,
        "sort_order": result.sort_order,
        "columns": result.columns,
        "last_upload": result.last_upload,
        "can_upload": user.is_admin,
    }


@router.post("/api/inventory/upload", response_model=UploadResponse)
async def upload_inventory(
    file: UploadFile = File(...),
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    content = await file.read()
    result = await trigger_inventory_upload(session, user, file.filename or "", content)
    if not result.success:
        raise HTTPException(status_code=status_for_error(result.error), detail=result.error)
    return UploadResponse(success=True, job_id=result.job_id, warning=result.warning)


@router.get("/api/inventory/jobs/{job_id}")
async def inventory_job_status(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    job = await get_inventory_job_status(session, user, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Inventory job not found")
    return job


@router.get("/api/inventory/search")
async def inventory_search(
    q: str = Query(default=""),
    limit: int = Query(default=20, ge=1, le=100),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Search the catalog by code, name or description (min. 2 characters)."""
    articles = await search_inventory(session, q, limit=limit)
    return {
        "query": q,
        "results": [
            {
                "id": str(article.id),
                "codigo_spms": article.codigo_spms,
                "artigo": article.artigo,
                "descricao": article.descricao,
                "descricao_comercial": article.descricao_comercial,
                "unidade_venda": article.unidade_venda,
                "quantidade_disponivel": article.quantidade_disponivel,
                "preco": article.preco,
            }
            for article in articles
        ],
    }
