"""Async engine and session handling.

One engine per process, created lazily from ``DATABASE_URL``. Every service
operation runs inside a single :func:`get_session` block, which is the
transaction boundary: commit on success, rollback when anything raises.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from cardiva.config import DBConfig, get_config
from cardiva.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def engine_options(db_config: DBConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``.

    Pool sizing only applies to server databases; SQLite (tests, local
    tooling) runs without a queue pool.
    """
    options: dict[str, Any] = {"echo": db_config.echo}
    if not db_config.url.lower().startswith("sqlite"):
        options.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.pool_max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return options


def get_engine() -> AsyncEngine:
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **engine_options(db_config))
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Transactional session scope.

    Usage:
        async with get_session() as session:
            result = await accept_match(session, user, job_id, item_id, match_id)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one transactional session per request."""
    async with get_session() as session:
        yield session


async def init_db(install_triggers: bool = False) -> None:
    """Create missing tables.

    With ``install_triggers`` on a Postgres engine, also installs the NOTIFY
    triggers that feed job status changes to the realtime listener.
    """
    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

        if install_triggers and engine.dialect.name == "postgresql":
            from cardiva.realtime.pg_listener import trigger_ddl

            for statement in trigger_ddl(get_config().realtime.channel):
                await conn.exec_driver_sql(statement)


async def close_db() -> None:
    """Dispose the engine; the next :func:`get_engine` call creates a new one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
