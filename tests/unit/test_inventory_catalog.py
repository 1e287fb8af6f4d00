"""Tests for the paginated inventory listing."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from cardiva.admin.settings import update_inventory_column_config
from cardiva.db.models import ArtigoModel, InventoryUploadJobModel
from cardiva.models import InventoryColumn
from cardiva.reporting.inventory_catalog import (
    DEFAULT_INVENTORY_COLUMNS,
    InventoryPage,
    clamp_paging,
    list_inventory,
    resolve_sort,
)
from tests.factories import add_profile


@pytest_asyncio.fixture
async def catalog(db_session):
    db_session.add_all(
        [
            ArtigoModel(
                codigo_spms=f"SPMS-{n:03d}",
                artigo=name,
                descricao=f"{name} esteril",
                unidade_venda="UN",
                preco=Decimal(n),
                categoria="Consumiveis" if n % 2 else "Material",
            )
            for n, name in enumerate(
                ["Seringa 5ml", "Seringa 10ml", "Luvas nitrilo", "Cateter", "Adesivo"], start=1
            )
        ]
    )
    await db_session.flush()


class TestPaging:
    @pytest.mark.parametrize(
        "page,page_size,expected",
        [(0, 50, (1, 50)), (3, 0, (3, 1)), (2, 1000, (2, 100)), (-4, 20, (1, 20))],
    )
    def test_clamp(self, page, page_size, expected):
        assert clamp_paging(page, page_size) == expected

    def test_page_count(self):
        page = InventoryPage(rows=[], total=101, page=1, page_size=50, sort_by="artigo", sort_order="asc")

        assert page.page_count == 3
        assert InventoryPage([], 0, 1, 50, "artigo", "asc").page_count == 1


class TestResolveSort:
    def test_requested_sortable_column(self):
        assert resolve_sort(DEFAULT_INVENTORY_COLUMNS, "preco") == "preco"

    def test_unsortable_or_unknown_falls_back(self):
        columns = [
            InventoryColumn(column_name="artigo", display_name="Artigo", sortable=False),
            InventoryColumn(column_name="preco", display_name="Preço"),
        ]

        assert resolve_sort(columns, "artigo") == "preco"
        assert resolve_sort(columns, "password_hash") == "preco"

    def test_nothing_sortable_uses_first_visible(self):
        columns = [
            InventoryColumn(column_name="categoria", display_name="Cat", visible=False),
            InventoryColumn(column_name="artigo", display_name="Artigo", sortable=False),
        ]

        assert resolve_sort(columns, None) == "artigo"


class TestListInventory:
    @pytest.mark.asyncio
    async def test_default_columns_when_unconfigured(self, db_session, catalog):
        page = await list_inventory(db_session)

        assert page.total == 5
        assert page.sort_by == "codigo_spms"
        assert [row["codigo_spms"] for row in page.rows] == [
            "SPMS-001",
            "SPMS-002",
            "SPMS-003",
            "SPMS-004",
            "SPMS-005",
        ]
        assert set(page.rows[0]) == {"id"} | {c.column_name for c in DEFAULT_INVENTORY_COLUMNS}

    @pytest.mark.asyncio
    async def test_search_and_paging(self, db_session, catalog):
        first = await list_inventory(db_session, page=1, page_size=1, search="SERINGA")
        second = await list_inventory(db_session, page=2, page_size=1, search="seringa")

        assert first.total == second.total == 2
        assert first.page_count == 2
        assert [first.rows[0]["artigo"], second.rows[0]["artigo"]] == [
            "Seringa 5ml",
            "Seringa 10ml",
        ]

    @pytest.mark.asyncio
    async def test_sort_descending(self, db_session, catalog):
        page = await list_inventory(db_session, sort_by="preco", sort_order="desc")

        assert page.rows[0]["artigo"] == "Adesivo"
        assert page.sort_order == "desc"

    @pytest.mark.asyncio
    async def test_configured_columns_shape_rows_and_search(self, db_session, admin, catalog):
        await update_inventory_column_config(
            db_session,
            admin,
            [
                InventoryColumn(column_name="artigo", display_name="Artigo"),
                InventoryColumn(column_name="categoria", display_name="Categoria", searchable=True),
                InventoryColumn(
                    column_name="codigo_spms", display_name="Código", visible=False, sortable=False
                ),
            ],
        )

        by_category = await list_inventory(db_session, search="material")
        by_name = await list_inventory(db_session, search="seringa")

        assert [c.column_name for c in by_category.columns] == ["artigo", "categoria"]
        assert set(by_category.rows[0]) == {"id", "artigo", "categoria"}
        assert {row["artigo"] for row in by_category.rows} == {"Seringa 10ml", "Cateter"}
        assert by_name.total == 0

    @pytest.mark.asyncio
    async def test_last_completed_upload(self, db_session, admin, catalog):
        await add_profile(db_session, admin)
        db_session.add_all(
            [
                InventoryUploadJobModel(
                    user_id=admin.id,
                    file_name="inventario_marco.csv",
                    row_count=900,
                    status="completed",
                    completed_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
                ),
                InventoryUploadJobModel(
                    user_id=admin.id,
                    file_name="inventario_abril.csv",
                    row_count=950,
                    status="completed",
                    completed_at=datetime(2024, 4, 1, tzinfo=timezone.utc),
                ),
                InventoryUploadJobModel(
                    user_id=admin.id, file_name="inventario_maio.csv", status="processing"
                ),
            ]
        )
        await db_session.flush()

        page = await list_inventory(db_session)

        assert page.last_upload.file_name == "inventario_abril.csv"
        assert page.last_upload.row_count == 950
        assert page.last_upload.uploaded_by == admin.email

    @pytest.mark.asyncio
    async def test_no_upload_yet(self, db_session, catalog):
        assert (await list_inventory(db_session)).last_upload is None
