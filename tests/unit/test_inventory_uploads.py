"""Tests for inventory CSV uploads."""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy import select

from cardiva.db.models import InventoryUploadJobModel
from cardiva.ingestion.inventory_uploads import (
    WEBHOOK_RETRY_MESSAGE,
    count_csv_rows,
    get_inventory_job_status,
    trigger_inventory_upload,
)
from tests.factories import INVENTORY_WEBHOOK_URL, reload

CSV = "codigo_spms;artigo;preco\nSPMS-1;Seringa 5ml;0.12\nSPMS-2;Luvas nitrilo;0.05\n".encode()


def webhook_client(status: int, calls: list[httpx.Request]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestCountCsvRows:
    def test_semicolon_separated(self):
        assert count_csv_rows(CSV) == 2

    def test_comma_separated(self):
        assert count_csv_rows(b"a,b\n1,2\n3,4\n5,6\n") == 3

    def test_header_only(self):
        assert count_csv_rows(b"codigo,artigo\n") == 0

    def test_empty_content_is_invalid(self):
        with pytest.raises(ValueError, match="Invalid CSV"):
            count_csv_rows(b"")


class TestTriggerInventoryUpload:
    @pytest.mark.asyncio
    async def test_admin_upload_triggers_workflow(self, db_session, admin):
        calls: list[httpx.Request] = []

        async with webhook_client(200, calls) as client:
            result = await trigger_inventory_upload(
                db_session, admin, "Artigos Março.csv", CSV, client=client
            )

        assert result.success
        job = await db_session.get(InventoryUploadJobModel, result.job_id)
        assert job.row_count == 2
        assert job.status == "pending"

        assert str(calls[0].url) == INVENTORY_WEBHOOK_URL
        body = calls[0].content.decode("utf-8")
        assert 'filename="Artigos_Marco.csv"' in body
        assert "Seringa 5ml" in body

    @pytest.mark.asyncio
    async def test_non_admin_is_refused(self, db_session, user):
        result = await trigger_inventory_upload(db_session, user, "artigos.csv", CSV)

        assert result.error == "Only administrators can upload inventory"
        jobs = (await db_session.execute(select(InventoryUploadJobModel))).scalars().all()
        assert jobs == []

    @pytest.mark.asyncio
    async def test_requires_user(self, db_session):
        result = await trigger_inventory_upload(db_session, None, "artigos.csv", CSV)

        assert result.error == "Not authenticated"

    @pytest.mark.asyncio
    async def test_rejects_non_csv(self, db_session, admin):
        result = await trigger_inventory_upload(db_session, admin, "artigos.xlsx", CSV)

        assert result.error == "Only CSV files are allowed"

    @pytest.mark.asyncio
    async def test_rejects_csv_without_rows(self, db_session, admin):
        result = await trigger_inventory_upload(db_session, admin, "artigos.csv", b"a,b\n")

        assert result.error == "CSV file has no data rows"

    @pytest.mark.asyncio
    async def test_webhook_failure_returns_warning(self, db_session, admin):
        calls: list[httpx.Request] = []

        async with webhook_client(500, calls) as client:
            result = await trigger_inventory_upload(
                db_session, admin, "artigos.csv", CSV, client=client
            )

        assert result.success
        assert result.warning == WEBHOOK_RETRY_MESSAGE
        job = await reload(db_session, InventoryUploadJobModel, result.job_id)
        assert job.error_message == WEBHOOK_RETRY_MESSAGE


class TestInventoryJobStatus:
    @pytest.mark.asyncio
    async def test_owner_sees_job(self, db_session, admin, user):
        job = InventoryUploadJobModel(
            user_id=admin.id, file_name="artigos.csv", row_count=10, status="partial"
        )
        db_session.add(job)
        await db_session.flush()

        summary = await get_inventory_job_status(db_session, admin, job.id)

        assert summary.row_count == 10
        assert summary.status == "partial"
        assert await get_inventory_job_status(db_session, user, job.id) is None
