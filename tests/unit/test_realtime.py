"""Tests for change events, the change feed and job status notifications."""

from __future__ import annotations

import json

import pytest

from cardiva.realtime.dispatcher import JobStatusDispatcher
from cardiva.realtime.events import (
    INVENTORY_JOBS_TABLE,
    JOB_TABLES,
    RFP_JOBS_TABLE,
    ChangeEvent,
    ChangeType,
    NotificationLevel,
)
from cardiva.realtime.feed import ChangeFeed
from cardiva.realtime.pg_listener import PostgresChangeListener, asyncpg_dsn, trigger_ddl

JOB_ID = "5f0c6a9e-7b1d-4c55-9a43-2b7f1e0d9c11"
OWNER = "8d1e2f3a-0000-4000-8000-000000000001"


def job_event(
    change: ChangeType = ChangeType.UPDATE,
    table: str = RFP_JOBS_TABLE,
    old: dict | None = None,
    **record,
) -> ChangeEvent:
    row = {"id": JOB_ID, "user_id": OWNER, "file_name": "concurso.pdf", **record}
    if change == ChangeType.DELETE:
        return ChangeEvent(table=table, type=change, old=row)
    return ChangeEvent(table=table, type=change, new=row, old=old or {})


class TestChangeEvent:
    def test_from_json_payload(self):
        payload = json.dumps(
            {
                "table": RFP_JOBS_TABLE,
                "type": "UPDATE",
                "new": {"id": JOB_ID, "status": "processing"},
                "old": {"id": JOB_ID, "status": "pending"},
            }
        )

        event = ChangeEvent.from_payload(payload)

        assert event.type == ChangeType.UPDATE
        assert event.record_id == JOB_ID
        assert event.old["status"] == "pending"

    def test_delete_reads_old_row(self):
        event = ChangeEvent.from_payload(
            {"table": RFP_JOBS_TABLE, "type": "DELETE", "new": None, "old": {"id": 7, "user_id": 3}}
        )

        assert event.new == {}
        assert event.record_id == "7"
        assert event.user_id == "3"

    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            {"type": "UPDATE"},
            {"table": RFP_JOBS_TABLE, "type": "TRUNCATE"},
            "[]",
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValueError, match="Invalid change payload"):
            ChangeEvent.from_payload(payload)


class TestChangeFeed:
    def test_routes_by_table(self):
        feed = ChangeFeed()
        rfps = feed.subscribe([RFP_JOBS_TABLE])
        inventory = feed.subscribe([INVENTORY_JOBS_TABLE])

        delivered = feed.publish(job_event(status="pending"))

        assert delivered == 1
        assert rfps.queue.qsize() == 1
        assert inventory.queue.qsize() == 0

    def test_filters_by_owner(self):
        feed = ChangeFeed()
        owner = feed.subscribe(JOB_TABLES, user_id=OWNER)
        stranger = feed.subscribe(JOB_TABLES, user_id="someone-else")
        everyone = feed.subscribe(JOB_TABLES)

        feed.publish(job_event(status="pending"))

        assert owner.queue.qsize() == 1
        assert stranger.queue.qsize() == 0
        assert everyone.queue.qsize() == 1

    def test_full_subscription_drops_events(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(JOB_TABLES, maxsize=1)

        assert feed.publish(job_event(status="pending")) == 1
        assert feed.publish(job_event(status="processing")) == 0
        assert subscription.queue.qsize() == 1

    def test_close_unsubscribes(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(JOB_TABLES)

        subscription.close()
        subscription.close()

        assert feed.subscriber_count == 0
        assert feed.publish(job_event(status="pending")) == 0

    @pytest.mark.asyncio
    async def test_events_arrive_in_publish_order(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(JOB_TABLES)
        for progress in (10, 20, 30):
            feed.publish(job_event(status="processing", processing_progress=progress))

        received = [await subscription.get(timeout=1) for _ in range(3)]

        assert [event.new["processing_progress"] for event in received] == [10, 20, 30]

    @pytest.mark.asyncio
    async def test_get_times_out(self):
        subscription = ChangeFeed().subscribe(JOB_TABLES)

        assert await subscription.get(timeout=0.01) is None


class TestJobStatusDispatcher:
    def test_insert_of_pending_job(self):
        dispatcher = JobStatusDispatcher()

        notification, refresh = dispatcher.handle(job_event(ChangeType.INSERT, status="pending"))

        assert notification.level == NotificationLevel.INFO
        assert notification.message == "RFP 'concurso.pdf' queued for processing"
        assert notification.toast_id == f"rfp-job-{JOB_ID}"
        assert refresh is True
        assert JOB_ID in dispatcher.view

    def test_processing_progress_updates(self):
        dispatcher = JobStatusDispatcher()
        dispatcher.handle(job_event(ChangeType.INSERT, status="pending"))

        first, refresh = dispatcher.handle(job_event(status="processing", processing_progress=10))
        repeated, _ = dispatcher.handle(job_event(status="processing", processing_progress=10))
        advanced, _ = dispatcher.handle(job_event(status="processing", processing_progress=60))

        assert first.level == NotificationLevel.LOADING
        assert first.progress == 10
        assert refresh is False
        assert repeated is None
        assert advanced.progress == 60

    def test_completion_links_to_review(self):
        dispatcher = JobStatusDispatcher()
        dispatcher.handle(job_event(ChangeType.INSERT, status="pending"))

        notification, refresh = dispatcher.handle(job_event(status="completed"))

        assert notification.level == NotificationLevel.SUCCESS
        assert notification.link == f"/rfps/{JOB_ID}/matches"
        assert refresh is True
        assert JOB_ID not in dispatcher.view

    def test_failure_carries_error_message(self):
        dispatcher = JobStatusDispatcher()
        dispatcher.handle(job_event(ChangeType.INSERT, status="processing"))

        notification, _ = dispatcher.handle(job_event(status="failed", error_message="OCR timeout"))

        assert notification.level == NotificationLevel.ERROR
        assert notification.message == "RFP 'concurso.pdf' failed: OCR timeout"
        assert notification.link is None

    def test_inventory_jobs(self):
        dispatcher = JobStatusDispatcher()

        notification, _ = dispatcher.handle(
            job_event(
                table=INVENTORY_JOBS_TABLE,
                status="partial",
                old={"status": "processing"},
                file_name="artigos.csv",
            )
        )

        assert notification.message == "Inventory 'artigos.csv' processed"
        assert notification.toast_id == f"inventory-job-{JOB_ID}"
        assert notification.link is None

    def test_unchanged_terminal_status_is_silent(self):
        dispatcher = JobStatusDispatcher()

        notification, refresh = dispatcher.handle(
            job_event(status="completed", old={"status": "completed"})
        )

        assert notification is None
        assert refresh is False

    def test_delete_refreshes_and_forgets_job(self):
        dispatcher = JobStatusDispatcher()
        dispatcher.handle(job_event(ChangeType.INSERT, status="pending"))

        notification, refresh = dispatcher.handle(job_event(ChangeType.DELETE, status="pending"))

        assert notification is None
        assert refresh is True
        assert len(dispatcher.view) == 0

    def test_to_dict(self):
        notification, _ = JobStatusDispatcher().handle(
            job_event(ChangeType.INSERT, status="pending")
        )

        data = notification.to_dict()

        assert data["job_id"] == JOB_ID
        assert data["level"] == "info"
        assert data["toast_id"] == f"rfp-job-{JOB_ID}"


class TestPostgresListenerHelpers:
    def test_trigger_ddl(self):
        statements = trigger_ddl("cardiva_changes")

        assert "pg_notify(" in statements[0]
        assert "'cardiva_changes'" in statements[0]
        assert len(statements) == 1 + 2 * len(JOB_TABLES)
        assert any(
            s.startswith("CREATE TRIGGER rfp_upload_jobs_notify_change") for s in statements
        )

    def test_asyncpg_dsn(self):
        assert asyncpg_dsn("postgresql+asyncpg://u:p@db/cardiva") == "postgresql://u:p@db/cardiva"
        assert asyncpg_dsn("postgresql://u:p@db/cardiva") == "postgresql://u:p@db/cardiva"

    def test_notifications_are_published(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(JOB_TABLES)
        listener = PostgresChangeListener("postgresql://db/cardiva", feed)
        payload = json.dumps(
            {"table": RFP_JOBS_TABLE, "type": "INSERT", "new": {"id": JOB_ID}, "old": None}
        )

        listener._on_notify(None, 1, "cardiva_changes", payload)
        listener._on_notify(None, 1, "cardiva_changes", "garbage")

        assert subscription.queue.qsize() == 1
        assert listener.running is False
