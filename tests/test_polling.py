"""Sync cursors and the poll orchestrator."""

import asyncio
from datetime import timedelta

import pytest
from sqlmodel import select

from conftest import shopify_order
from halo.config import settings
from halo.connectors.base import SourcePoller
from halo.core.errors import PollerError
from halo.core.timeutil import as_utc, utcnow
from halo.ingestion.raw_events import RawEventStore
from halo.models.enums import ConnectionStatus, CursorStatus
from halo.models.intake_models import EventInput, PollResult
from halo.models.raw_models import IngestionBatch
from halo.polling.cursors import CursorRepo
from halo.polling.orchestrator import PollOrchestrator, failure_backoff, poll_interval


class StaticPoller(SourcePoller):
    source = "shopify"

    def __init__(self, result=None, error=None):
        self.result = result or PollResult()
        self.error = error
        self.calls = 0

    async def poll(self, cursor, connection):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def cursor(session, shopify_connection):
    return CursorRepo(session).create(
        shopify_connection.id, shopify_connection.tenant_id, "order"
    )


@pytest.fixture
def now():
    return utcnow() + timedelta(seconds=1)


def orchestrator(session, poller, now):
    return PollOrchestrator(session, pollers={"shopify": poller}, clock=lambda: now)


class TestCursorRepo:
    def test_new_cursor_is_due(self, session, cursor, now):
        due = CursorRepo(session).find_due(now)
        assert [c.id for c in due] == [cursor.id]
        assert cursor.status == CursorStatus.IDLE.value
        assert cursor.cursor_value == ""

    def test_claim_is_exclusive(self, session, cursor):
        repo = CursorRepo(session)
        assert repo.claim(cursor.id) is True
        assert repo.claim(cursor.id) is False
        assert repo.get(cursor.id).status == CursorStatus.RUNNING.value

    def test_running_cursor_not_due(self, session, cursor, now):
        repo = CursorRepo(session)
        repo.claim(cursor.id)
        assert repo.find_due(now) == []

    def test_failed_claimable_only_when_retrying(self, session, cursor, now):
        repo = CursorRepo(session)
        repo.mark_failed(cursor.id, "boom")
        assert repo.find_due(now) == []
        assert repo.claim(cursor.id) is False
        assert [c.id for c in repo.find_due(now, include_failed=True)] == [cursor.id]
        assert repo.claim(cursor.id, include_failed=True) is True

    def test_trigger_and_reset_are_tenant_scoped(self, session, cursor, other_tenant):
        repo = CursorRepo(session)
        repo.advance(cursor.id, "2026-02-01", utcnow() + timedelta(hours=1))
        repo.mark_failed(cursor.id, "boom")

        assert repo.trigger(cursor.id, other_tenant.id) is False
        assert repo.trigger(cursor.id, cursor.tenant_id) is True
        triggered = repo.get(cursor.id)
        assert triggered.status == CursorStatus.IDLE.value
        assert triggered.cursor_value == "2026-02-01"
        assert triggered.error_count == 1

        assert repo.reset(cursor.id, cursor.tenant_id) is True
        session.expire_all()
        reset = repo.get(cursor.id)
        assert reset.cursor_value == ""
        assert reset.error_count == 0
        assert reset.last_error is None

    def test_list_for_tenant(self, session, cursor, other_tenant):
        repo = CursorRepo(session)
        assert [c.id for c in repo.list_for_tenant(cursor.tenant_id)] == [cursor.id]
        assert repo.list_for_tenant(other_tenant.id) == []


class TestPollOrchestrator:
    def test_zero_events_still_advances(self, session, cursor, now):
        poller = StaticPoller(PollResult(next_cursor_value="2026-02-01"))
        outcomes = asyncio.run(orchestrator(session, poller, now).run())

        assert outcomes == {"due": 1, "polled": 1, "skipped": 0, "failed": 0}
        session.expire_all()
        polled = CursorRepo(session).get(cursor.id)
        assert polled.cursor_value == "2026-02-01"
        assert polled.status == CursorStatus.IDLE.value
        assert as_utc(polled.next_sync_at) == now + timedelta(milliseconds=settings.default_poll_interval_ms)
        assert session.exec(select(IngestionBatch)).all() == []

    def test_null_next_cursor_keeps_position(self, session, cursor, now):
        CursorRepo(session).advance(cursor.id, "2026-01-31", now)
        asyncio.run(orchestrator(session, StaticPoller(), now).run())
        session.expire_all()
        assert CursorRepo(session).get(cursor.id).cursor_value == "2026-01-31"

    def test_events_are_ingested_with_connection(self, session, cursor, shopify_connection, now):
        poller = StaticPoller(
            PollResult(events=[EventInput(payload=shopify_order(9))], next_cursor_value="9")
        )
        asyncio.run(orchestrator(session, poller, now).run())

        pending = RawEventStore(session).get_unprocessed()
        assert [e.external_id for e in pending] == ["9"]
        assert pending[0].connection_id == shopify_connection.id

    def test_poll_interval_from_connection_config(self, session, cursor, shopify_connection, now):
        shopify_connection.config = {"pollInterval": 5000}
        session.add(shopify_connection)
        session.commit()

        asyncio.run(orchestrator(session, StaticPoller(), now).run())
        session.expire_all()
        assert as_utc(CursorRepo(session).get(cursor.id).next_sync_at) == now + timedelta(seconds=5)

    def test_failure_marks_cursor_and_keeps_schedule(self, session, cursor, now):
        before = CursorRepo(session).get(cursor.id).next_sync_at
        poller = StaticPoller(error=PollerError("upstream 503"))

        outcomes = asyncio.run(orchestrator(session, poller, now).run())

        assert outcomes["failed"] == 1
        session.expire_all()
        failed = CursorRepo(session).get(cursor.id)
        assert failed.status == CursorStatus.FAILED.value
        assert failed.error_count == 1
        assert failed.last_error == "upstream 503"
        assert failed.next_sync_at == before

        # Not retried until triggered or reset.
        again = asyncio.run(orchestrator(session, poller, now).run())
        assert again["due"] == 0
        assert poller.calls == 1

    def test_failure_backoff_when_enabled(self, session, cursor, now, monkeypatch):
        monkeypatch.setattr(settings, "poll_failure_backoff", True)
        poller = StaticPoller(error=PollerError("timeout"))

        asyncio.run(orchestrator(session, poller, now).run())
        session.expire_all()
        failed = CursorRepo(session).get(cursor.id)
        assert as_utc(failed.next_sync_at) == now + failure_backoff(1)

        later = now + failure_backoff(1)
        outcomes = asyncio.run(orchestrator(session, poller, later).run())
        assert outcomes["due"] == 1
        session.expire_all()
        assert CursorRepo(session).get(cursor.id).error_count == 2

    def test_inactive_connection_is_skipped(self, session, cursor, shopify_connection, now):
        shopify_connection.status = ConnectionStatus.PAUSED.value
        session.add(shopify_connection)
        session.commit()
        poller = StaticPoller()

        outcomes = asyncio.run(orchestrator(session, poller, now).run())

        assert outcomes["skipped"] == 1
        assert poller.calls == 0
        session.expire_all()
        assert CursorRepo(session).get(cursor.id).status == CursorStatus.IDLE.value

    def test_already_claimed_cursor_is_skipped(self, session, cursor, now):
        due = CursorRepo(session).find_due(now)
        CursorRepo(session).claim(cursor.id)
        poller = StaticPoller()

        outcome = asyncio.run(orchestrator(session, poller, now).poll_cursor(due[0]))

        assert outcome == "skipped"
        assert poller.calls == 0

    def test_one_failure_does_not_stop_the_cycle(self, session, cursor, shopify_connection, now):
        repo = CursorRepo(session)
        second = repo.create(shopify_connection.id, shopify_connection.tenant_id, "customer")

        class FlakyPoller(StaticPoller):
            async def poll(self, cursor, connection):
                self.calls += 1
                if cursor.event_type == "order":
                    raise PollerError("order feed down")
                return PollResult(next_cursor_value="c-1")

        outcomes = asyncio.run(orchestrator(session, FlakyPoller(), now).run())

        assert outcomes == {"due": 2, "polled": 1, "skipped": 0, "failed": 1}
        session.expire_all()
        assert repo.get(cursor.id).status == CursorStatus.FAILED.value
        assert repo.get(second.id).cursor_value == "c-1"


def test_poll_interval_defaults(shopify_connection):
    assert poll_interval(shopify_connection) == timedelta(milliseconds=settings.default_poll_interval_ms)
    shopify_connection.config = {"pollInterval": "fast"}
    assert poll_interval(shopify_connection) == timedelta(milliseconds=settings.default_poll_interval_ms)


def test_failure_backoff_is_capped():
    assert failure_backoff(1) == timedelta(seconds=settings.poll_backoff_base_seconds)
    assert failure_backoff(2) == timedelta(seconds=settings.poll_backoff_base_seconds * 2)
    assert failure_backoff(50) == timedelta(seconds=settings.poll_backoff_max_seconds)
