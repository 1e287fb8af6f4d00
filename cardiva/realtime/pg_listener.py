"""Postgres LISTEN/NOTIFY bridge into the change feed."""

from __future__ import annotations

import logging

import asyncpg

from cardiva.realtime.events import ChangeEvent, JOB_TABLES
from cardiva.realtime.feed import ChangeFeed

logger = logging.getLogger(__name__)

NOTIFY_FUNCTION = "cardiva_notify_change"


def trigger_ddl(channel: str, tables=JOB_TABLES) -> list[str]:
    """SQL statements installing the row-change NOTIFY triggers."""
    statements = [
        f"""
        CREATE OR REPLACE FUNCTION {NOTIFY_FUNCTION}() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify(
                '{channel}',
                json_build_object(
                    'table', TG_TABLE_NAME,
                    'type', TG_OP,
                    'new', CASE WHEN TG_OP = 'DELETE' THEN NULL ELSE row_to_json(NEW) END,
                    'old', CASE WHEN TG_OP = 'INSERT' THEN NULL ELSE row_to_json(OLD) END
                )::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql
        """
    ]
    for table in sorted(tables):
        trigger = f"{table}_notify_change"
        statements.append(f"DROP TRIGGER IF EXISTS {trigger} ON {table}")
        statements.append(
            f"CREATE TRIGGER {trigger} AFTER INSERT OR UPDATE OR DELETE ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION {NOTIFY_FUNCTION}()"
        )
    return statements


def asyncpg_dsn(database_url: str) -> str:
    """Turn an SQLAlchemy URL into a plain asyncpg DSN."""
    return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


class PostgresChangeListener:
    """Holds one dedicated connection listening on the change channel."""

    def __init__(self, dsn: str, feed: ChangeFeed, channel: str = "cardiva_changes"):
        self.dsn = dsn
        self.feed = feed
        self.channel = channel
        self._connection: asyncpg.Connection | None = None

    @property
    def running(self) -> bool:
        return self._connection is not None and not self._connection.is_closed()

    async def start(self) -> None:
        self._connection = await asyncpg.connect(self.dsn)
        await self._connection.add_listener(self.channel, self._on_notify)
        logger.info(f"Listening for row changes on channel '{self.channel}'")

    async def stop(self) -> None:
        if self._connection is None:
            return
        try:
            await self._connection.remove_listener(self.channel, self._on_notify)
        finally:
            await self._connection.close()
            self._connection = None
        logger.info("Change listener stopped")

    def _on_notify(self, connection, pid: int, channel: str, payload: str) -> None:
        try:
            event = ChangeEvent.from_payload(payload)
        except ValueError as e:
            logger.warning(f"Ignoring malformed change notification: {e}")
            return
        self.feed.publish(event)
