"""HALO — Scheduler Jobs.

Three APScheduler interval jobs drive the pipeline: poll, process,
aggregate. Each job runs with ``max_instances=1`` / ``coalesce=True`` so
a tick that fires while the previous cycle is still running is skipped.
Every cycle is tracked as an in-flight task so shutdown can wait for it
and report anything it had to abandon.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from halo.analytics.aggregation import AggregationJob
from halo.config import settings
from halo.core.logging import get_logger
from halo.database import engine
from halo.modeling.processor import EventProcessor
from halo.polling.orchestrator import PollOrchestrator

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()

_inflight: Dict[str, asyncio.Task] = {}


async def run_tracked(name: str, work: Callable[[], Awaitable[object]]) -> Optional[object]:
    """Run one cycle of ``name`` unless one is already in flight."""
    if name in _inflight:
        logger.warning(f"{name} cycle still running; skipping tick", extra={"job": name})
        return None

    task = asyncio.current_task()
    if task is not None:
        _inflight[name] = task
    started = time.monotonic()
    try:
        return await work()
    except Exception as e:
        logger.error(f"{name} cycle failed: {e}", exc_info=True, extra={"job": name})
        return None
    finally:
        _inflight.pop(name, None)
        logger.info(
            f"{name} cycle finished",
            extra={"job": name, "duration_ms": round((time.monotonic() - started) * 1000)},
        )


async def poll_job():
    async def cycle():
        with Session(engine) as session:
            return await PollOrchestrator(session).run()

    return await run_tracked("poll", cycle)


async def process_job():
    async def cycle():
        with Session(engine) as session:
            return await EventProcessor(session).run()

    return await run_tracked("process", cycle)


async def aggregate_job():
    async def cycle():
        with Session(engine) as session:
            return await AggregationJob(session).run()

    return await run_tracked("aggregate", cycle)


async def run_once(session: Session) -> Dict[str, object]:
    """Poll, process and aggregate once, in order, on one session."""
    logger.info("Running all jobs once...")
    result = {
        "poll": await PollOrchestrator(session).run(),
        "process": await EventProcessor(session).run(),
        "aggregate": await AggregationJob(session).run(),
    }
    logger.info("Completed single run")
    return result


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    for job, job_id, seconds in (
        (poll_job, "poll", settings.poll_interval_seconds),
        (process_job, "process", settings.process_interval_seconds),
        (aggregate_job, "aggregate", settings.aggregate_interval_seconds),
    ):
        scheduler.add_job(
            job,
            "interval",
            seconds=seconds,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    scheduler.start()
    logger.info(
        f"Scheduler started (poll: {settings.poll_interval_seconds}s, "
        f"process: {settings.process_interval_seconds}s, "
        f"aggregate: {settings.aggregate_interval_seconds}s)"
    )


async def drain_inflight(timeout: float) -> list[str]:
    """Wait up to ``timeout`` for running cycles; cancel and return the rest."""
    pending = dict(_inflight)
    if not pending:
        return []

    logger.info(f"Waiting for in-flight cycles: {sorted(pending)}")
    _, still_running = await asyncio.wait(pending.values(), timeout=timeout)

    abandoned = [name for name, task in pending.items() if task in still_running]
    for name in abandoned:
        pending[name].cancel()
        logger.warning(f"Abandoned in-flight {name} cycle at shutdown", extra={"job": name})
    return abandoned


async def stop_scheduler() -> list[str]:
    """Stop new ticks, then let in-flight cycles finish within the grace period.

    The scheduler is paused rather than shut down first: shutting down the
    asyncio executor cancels every running job immediately.
    """
    if scheduler.running:
        scheduler.pause()
        logger.info("Scheduler paused; no new cycles will start")
    abandoned = await drain_inflight(settings.shutdown_grace_seconds)
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    return abandoned
