"""Tests for administrator settings and user approval."""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from cardiva.admin.settings import (
    ADMIN_REQUIRED,
    approve_user,
    get_email_settings,
    get_export_columns,
    get_inventory_columns,
    list_pending_users,
    reject_user,
    update_email_settings,
    update_export_column_config,
    update_inventory_column_config,
)
from cardiva.db.models import ProfileModel
from cardiva.models import EmailRecipientMode, EmailSettings, ExportColumn, InventoryColumn


def column(name: str, order: int = 0, **kwargs) -> ExportColumn:
    return ExportColumn(
        source_table=kwargs.pop("source_table", "rfp_items"),
        column_name=name,
        display_name=name.title(),
        display_order=order,
        **kwargs,
    )


class TestEmailSettings:
    @pytest.mark.parametrize(
        "settings,mode",
        [
            (EmailSettings(), EmailRecipientMode.NO_DEFAULTS),
            (EmailSettings(default_recipients=["a@b.pt"], user_can_edit=False), EmailRecipientMode.LOCKED),
            (
                EmailSettings(default_recipients=["a@b.pt"], defaults_replaceable=False),
                EmailRecipientMode.ADD_ONLY,
            ),
            (EmailSettings(default_recipients=["a@b.pt"]), EmailRecipientMode.REPLACEABLE),
        ],
    )
    def test_mode(self, settings, mode):
        assert settings.mode == mode

    def test_recipients_are_cleaned(self):
        settings = EmailSettings(default_recipients=[" compras@hospital.pt ", "", "  "])

        assert settings.default_recipients == ["compras@hospital.pt"]

    def test_invalid_recipient(self):
        with pytest.raises(ValidationError):
            EmailSettings(default_recipients=["compras"])

    @pytest.mark.asyncio
    async def test_defaults_without_row(self, db_session):
        assert (await get_email_settings(db_session)).mode == EmailRecipientMode.NO_DEFAULTS

    @pytest.mark.asyncio
    async def test_update_and_read_back(self, db_session, admin):
        settings = EmailSettings(default_recipients=["compras@hospital.pt"], user_can_edit=False)

        result = await update_email_settings(db_session, admin, settings)

        assert result.success
        assert result.data == {"mode": "locked"}
        stored = await get_email_settings(db_session)
        assert stored.default_recipients == ["compras@hospital.pt"]
        assert stored.user_can_edit is False

    @pytest.mark.asyncio
    async def test_update_requires_admin(self, db_session, user):
        result = await update_email_settings(db_session, user, EmailSettings())

        assert result.error == ADMIN_REQUIRED


class TestExportColumns:
    @pytest.mark.asyncio
    async def test_replace_configuration(self, db_session, admin):
        await update_export_column_config(db_session, admin, [column("lote_pedido")])

        result = await update_export_column_config(
            db_session,
            admin,
            [
                column("artigo_pedido", 2),
                column("codigo_spms", 1, source_table="rfp_match_suggestions", visible=False),
            ],
        )

        assert result.data == {"count": 2}
        columns = await get_export_columns(db_session)
        assert [(c.column_name, c.visible) for c in columns] == [
            ("codigo_spms", False),
            ("artigo_pedido", True),
        ]

    @pytest.mark.asyncio
    async def test_empty_list_restores_defaults(self, db_session, admin):
        await update_export_column_config(db_session, admin, [column("lote_pedido")])

        await update_export_column_config(db_session, admin, [])

        assert await get_export_columns(db_session) == []

    @pytest.mark.asyncio
    async def test_duplicates_are_refused(self, db_session, admin):
        result = await update_export_column_config(
            db_session, admin, [column("lote_pedido"), column("lote_pedido", 1)]
        )

        assert result.error == "Duplicate export columns"

    def test_unknown_source_table(self):
        with pytest.raises(ValidationError):
            column("x", source_table="artigos")

    @pytest.mark.parametrize(
        "source_table,name",
        [
            ("rfp_items", "suggestions"),
            ("rfp_items", "selected_match"),
            ("rfp_match_suggestions", "rfp_item_id"),
            ("rfp_match_suggestions", "artigo_pedido"),
        ],
    )
    def test_column_must_be_exportable_from_its_table(self, source_table, name):
        with pytest.raises(ValidationError, match="cannot be exported"):
            column(name, source_table=source_table)

    @pytest.mark.asyncio
    async def test_requires_admin(self, db_session, user):
        result = await update_export_column_config(db_session, user, [])

        assert result.error == ADMIN_REQUIRED


class TestInventoryColumns:
    @pytest.mark.asyncio
    async def test_replace_configuration(self, db_session, admin):
        await update_inventory_column_config(
            db_session, admin, [InventoryColumn(column_name="artigo", display_name="Artigo")]
        )

        result = await update_inventory_column_config(
            db_session,
            admin,
            [
                InventoryColumn(column_name="preco", display_name="Preço", display_order=2),
                InventoryColumn(
                    column_name="codigo_spms",
                    display_name="Código",
                    searchable=True,
                    display_order=1,
                ),
            ],
        )

        assert result.data == {"count": 2}
        columns = await get_inventory_columns(db_session)
        assert [(c.column_name, c.searchable) for c in columns] == [
            ("codigo_spms", True),
            ("preco", False),
        ]

    @pytest.mark.asyncio
    async def test_duplicates_are_refused(self, db_session, admin):
        column = InventoryColumn(column_name="artigo", display_name="Artigo")

        result = await update_inventory_column_config(db_session, admin, [column, column])

        assert result.error == "Duplicate inventory columns"

    @pytest.mark.asyncio
    async def test_requires_admin(self, db_session, user):
        result = await update_inventory_column_config(db_session, user, [])

        assert result.error == ADMIN_REQUIRED

    def test_unknown_column(self):
        with pytest.raises(ValidationError):
            InventoryColumn(column_name="password_hash", display_name="x")

    def test_numeric_column_is_not_searchable(self):
        with pytest.raises(ValidationError, match="not searchable"):
            InventoryColumn(column_name="quantidade_disponivel", display_name="Qtd", searchable=True)


class TestUserApproval:
    @pytest.fixture
    def pending_profile(self, db_session) -> ProfileModel:
        profile = ProfileModel(email="novo@hospital.pt", is_active=False, role="user")
        db_session.add(profile)
        return profile

    @pytest.mark.asyncio
    async def test_list_and_approve(self, db_session, admin, pending_profile):
        await db_session.flush()

        pending = await list_pending_users(db_session)
        assert [p.email for p in pending] == ["novo@hospital.pt"]

        result = await approve_user(db_session, admin, pending_profile.id)

        assert result.success
        assert pending_profile.is_active is True
        assert pending_profile.approved_at is not None
        assert await list_pending_users(db_session) == []

    @pytest.mark.asyncio
    async def test_reject_deletes_profile(self, db_session, admin, pending_profile):
        await db_session.flush()

        result = await reject_user(db_session, admin, pending_profile.id)

        assert result.success
        remaining = (await db_session.execute(select(ProfileModel))).scalars().all()
        assert remaining == []

    @pytest.mark.asyncio
    async def test_admin_cannot_reject_self(self, db_session, admin):
        result = await reject_user(db_session, admin, admin.id)

        assert result.error == "You cannot remove your own account"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, admin):
        assert (await approve_user(db_session, admin, uuid4())).error == "User not found"

    @pytest.mark.asyncio
    async def test_requires_admin(self, db_session, user, pending_profile):
        await db_session.flush()

        assert (await approve_user(db_session, user, pending_profile.id)).error == ADMIN_REQUIRED
