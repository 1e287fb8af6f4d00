"""Pytest configuration and fixtures for Cardiva tests.

Provides isolated configuration, an in-memory SQLite database and test users.
Row factories live in ``tests/factories.py``.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from cardiva.config import reset_config
from cardiva.core import webhook_client
from cardiva.db.models import Base
from cardiva.models import AuthenticatedUser, UserRole
from tests.factories import (
    EXPORT_EMAIL_WEBHOOK_URL,
    INVENTORY_WEBHOOK_URL,
    RFP_WEBHOOK_URL,
)


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Isolated configuration for every test."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("N8N_RFP_WEBHOOK_URL", RFP_WEBHOOK_URL)
    monkeypatch.setenv("N8N_INVENTORY_WEBHOOK_URL", INVENTORY_WEBHOOK_URL)
    monkeypatch.setenv("N8N_EXPORT_EMAIL_WEBHOOK_URL", EXPORT_EMAIL_WEBHOOK_URL)
    monkeypatch.setenv("N8N_WEBHOOK_SECRET", "test-secret")
    monkeypatch.delenv("CARDIVA_AUTH_DISABLED", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Record webhook backoff waits instead of sleeping."""
    waits: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        waits.append(seconds)

    monkeypatch.setattr(webhook_client, "_sleep", fake_sleep)
    return waits


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")

    # Let SQLAlchemy own BEGIN so SAVEPOINTs behave on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), email="reviewer@cardiva.test", role=UserRole.USER)


@pytest.fixture
def other_user() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), email="colleague@cardiva.test", role=UserRole.USER)


@pytest.fixture
def admin() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), email="admin@cardiva.test", role=UserRole.ADMIN)
