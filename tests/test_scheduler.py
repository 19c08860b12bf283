"""Scheduler cycle tracking and graceful shutdown."""

import asyncio

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from conftest import shopify_order
from halo.analytics.summary_repo import DailySummaryRepo
from halo.core.timeutil import utc_today
from halo.ingestion.service import IngestionService
from halo.models.intake_models import EventInput
from halo.scheduler import jobs


@pytest.fixture(autouse=True)
def clear_inflight():
    jobs._inflight.clear()
    yield
    jobs._inflight.clear()


def test_run_tracked_returns_result_and_clears():
    async def work():
        return {"processed": 3}

    assert asyncio.run(jobs.run_tracked("process", work)) == {"processed": 3}
    assert jobs._inflight == {}


def test_overlapping_cycle_is_skipped():
    calls = []

    async def work():
        calls.append(1)

    async def scenario():
        jobs._inflight["poll"] = asyncio.current_task()
        return await jobs.run_tracked("poll", work)

    assert asyncio.run(scenario()) is None
    assert calls == []


def test_failed_cycle_is_logged_not_raised():
    async def work():
        raise RuntimeError("db down")

    assert asyncio.run(jobs.run_tracked("aggregate", work)) is None
    assert jobs._inflight == {}


def test_drain_waits_for_fast_cycles():
    async def scenario():
        task = asyncio.create_task(jobs.run_tracked("process", lambda: asyncio.sleep(0.01)))
        await asyncio.sleep(0)
        assert "process" in jobs._inflight
        abandoned = await jobs.drain_inflight(timeout=1.0)
        await task
        return abandoned

    assert asyncio.run(scenario()) == []


def test_drain_cancels_slow_cycles():
    async def scenario():
        task = asyncio.create_task(jobs.run_tracked("poll", lambda: asyncio.sleep(30)))
        await asyncio.sleep(0)
        abandoned = await jobs.drain_inflight(timeout=0.01)
        await asyncio.gather(task, return_exceptions=True)
        return abandoned, task.cancelled()

    abandoned, cancelled = asyncio.run(scenario())
    assert abandoned == ["poll"]
    assert cancelled is True
    assert jobs._inflight == {}


def test_stop_without_running_scheduler():
    assert asyncio.run(jobs.stop_scheduler()) == []


def test_run_once_drives_the_pipeline(session, tenant):
    IngestionService(session).ingest(
        tenant.id,
        "shopify",
        [EventInput(payload=shopify_order(1, created_at=f"{utc_today().isoformat()}T08:00:00Z"))],
    )

    result = asyncio.run(jobs.run_once(session))

    assert result["poll"]["due"] == 0
    assert result["process"]["processed"] == 1
    assert result["aggregate"]["aggregated"] == 1
    assert DailySummaryRepo(session).get(tenant.id, utc_today()).revenue == 97.2


class TestStopScheduler:
    @pytest.fixture
    def live_scheduler(self, monkeypatch):
        monkeypatch.setattr(jobs.settings, "shutdown_grace_seconds", 5)
        scheduler = AsyncIOScheduler()
        monkeypatch.setattr(jobs, "scheduler", scheduler)
        return scheduler

    @staticmethod
    async def start_and_stop(scheduler, name, work):
        async def job():
            await jobs.run_tracked(name, work)

        scheduler.add_job(job)
        scheduler.start()
        while name not in jobs._inflight:
            await asyncio.sleep(0.01)
        abandoned = await jobs.stop_scheduler()
        await asyncio.sleep(0.05)
        return abandoned

    def test_running_cycle_finishes_within_grace(self, live_scheduler):
        finished = []

        async def work():
            await asyncio.sleep(0.2)
            finished.append("process")

        abandoned = asyncio.run(
            asyncio.wait_for(self.start_and_stop(live_scheduler, "process", work), timeout=5)
        )

        assert abandoned == []
        assert finished == ["process"]
        assert not live_scheduler.running

    def test_cycle_past_grace_is_reported_abandoned(self, live_scheduler, monkeypatch):
        monkeypatch.setattr(jobs.settings, "shutdown_grace_seconds", 0.05)
        finished = []

        async def work():
            await asyncio.sleep(30)
            finished.append("poll")

        abandoned = asyncio.run(
            asyncio.wait_for(self.start_and_stop(live_scheduler, "poll", work), timeout=5)
        )

        assert abandoned == ["poll"]
        assert finished == []
        assert jobs._inflight == {}
