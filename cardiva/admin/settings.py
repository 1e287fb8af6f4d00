"""Administrator settings: export e-mail defaults, export and inventory columns, user approval."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardiva.db.models import (
    AppSettingsModel,
    ExportColumnConfigModel,
    InventoryColumnConfigModel,
    ProfileModel,
)
from cardiva.models import AuthenticatedUser, EmailSettings, ExportColumn, InventoryColumn
from cardiva.review.models import ActionResult

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1
ADMIN_REQUIRED = "Admin access required"


def _require_admin(user: AuthenticatedUser | None) -> str | None:
    if user is None:
        return "Not authenticated"
    if not user.is_admin:
        return ADMIN_REQUIRED
    return None


async def get_email_settings(session: AsyncSession) -> EmailSettings:
    row = await session.get(AppSettingsModel, SETTINGS_ROW_ID)
    if row is None:
        return EmailSettings()
    return EmailSettings(
        default_recipients=list(row.email_default_recipients or []),
        user_can_edit=row.email_user_can_edit,
        defaults_replaceable=row.email_defaults_replaceable,
    )


async def update_email_settings(
    session: AsyncSession, user: AuthenticatedUser | None, settings: EmailSettings
) -> ActionResult:
    error = _require_admin(user)
    if error:
        return ActionResult.fail(error)

    try:
        row = await session.get(AppSettingsModel, SETTINGS_ROW_ID)
        if row is None:
            row = AppSettingsModel(id=SETTINGS_ROW_ID)
            session.add(row)
        row.email_default_recipients = list(settings.default_recipients)
        row.email_user_can_edit = settings.user_can_edit
        row.email_defaults_replaceable = settings.defaults_replaceable
        row.updated_by = user.id
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update email settings: {e}")
        return ActionResult.fail(str(e))

    logger.info(f"Email settings updated by {user.email} (mode={settings.mode.value})")
    return ActionResult.ok(mode=settings.mode.value)


async def get_export_columns(session: AsyncSession) -> list[ExportColumn]:
    """All configured columns, hidden ones included, in display order."""
    rows = (
        await session.execute(
            select(ExportColumnConfigModel).order_by(ExportColumnConfigModel.display_order.asc())
        )
    ).scalars().all()
    return [
        ExportColumn(
            source_table=row.source_table,
            column_name=row.column_name,
            display_name=row.display_name,
            visible=row.visible,
            display_order=row.display_order,
            column_type=row.column_type,
        )
        for row in rows
    ]


async def update_export_column_config(
    session: AsyncSession, user: AuthenticatedUser | None, columns: list[ExportColumn]
) -> ActionResult:
    """Replace the export column configuration (an empty list restores defaults)."""
    error = _require_admin(user)
    if error:
        return ActionResult.fail(error)

    keys = [(c.source_table, c.column_name) for c in columns]
    if len(keys) != len(set(keys)):
        return ActionResult.fail("Duplicate export columns")

    try:
        await session.execute(delete(ExportColumnConfigModel))
        for order, column in enumerate(columns):
            session.add(
                ExportColumnConfigModel(
                    source_table=column.source_table,
                    column_name=column.column_name,
                    display_name=column.display_name,
                    visible=column.visible,
                    display_order=column.display_order or order,
                    column_type=column.column_type,
                )
            )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update export columns: {e}")
        return ActionResult.fail(str(e))

    logger.info(f"Export columns updated by {user.email} ({len(columns)} columns)")
    return ActionResult.ok(count=len(columns))


async def get_inventory_columns(session: AsyncSession) -> list[InventoryColumn]:
    rows = (
        await session.execute(
            select(InventoryColumnConfigModel).order_by(
                InventoryColumnConfigModel.display_order.asc()
            )
        )
    ).scalars().all()
    return [
        InventoryColumn(
            column_name=row.column_name,
            display_name=row.display_name,
            visible=row.visible,
            sortable=row.sortable,
            searchable=row.searchable,
            display_order=row.display_order,
            column_type=row.column_type,
        )
        for row in rows
    ]


async def update_inventory_column_config(
    session: AsyncSession, user: AuthenticatedUser | None, columns: list[InventoryColumn]
) -> ActionResult:
    """Replace the inventory listing columns (an empty list restores defaults)."""
    error = _require_admin(user)
    if error:
        return ActionResult.fail(error)

    names = [c.column_name for c in columns]
    if len(names) != len(set(names)):
        return ActionResult.fail("Duplicate inventory columns")

    try:
        await session.execute(delete(InventoryColumnConfigModel))
        for order, column in enumerate(columns):
            session.add(
                InventoryColumnConfigModel(
                    column_name=column.column_name,
                    display_name=column.display_name,
                    visible=column.visible,
                    sortable=column.sortable,
                    searchable=column.searchable,
                    display_order=column.display_order or order,
                    column_type=column.column_type,
                )
            )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update inventory columns: {e}")
        return ActionResult.fail(str(e))

    logger.info(f"Inventory columns updated by {user.email} ({len(columns)} columns)")
    return ActionResult.ok(count=len(columns))


async def list_pending_users(session: AsyncSession) -> list[ProfileModel]:
    stmt = (
        select(ProfileModel)
        .where(ProfileModel.approved_at.is_(None), ProfileModel.is_active.is_(False))
        .order_by(ProfileModel.created_at.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def approve_user(
    session: AsyncSession, user: AuthenticatedUser | None, user_id: UUID
) -> ActionResult:
    error = _require_admin(user)
    if error:
        return ActionResult.fail(error)

    profile = await session.get(ProfileModel, user_id)
    if profile is None:
        return ActionResult.fail("User not found")

    profile.is_active = True
    profile.approved_at = datetime.now(timezone.utc)
    await session.commit()
    logger.info(f"User {profile.email} approved by {user.email}")
    return ActionResult.ok()


async def reject_user(
    session: AsyncSession, user: AuthenticatedUser | None, user_id: UUID
) -> ActionResult:
    error = _require_admin(user)
    if error:
        return ActionResult.fail(error)
    if user.id == user_id:
        return ActionResult.fail("You cannot remove your own account")

    profile = await session.get(ProfileModel, user_id)
    if profile is None:
        return ActionResult.fail("User not found")

    await session.delete(profile)
    await session.commit()
    logger.info(f"User {profile.email} rejected by {user.email}")
    return ActionResult.ok()
