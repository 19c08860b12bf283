"""HALO — Poll Orchestrator.

One cycle: find due cursors → for each, sequentially: claim → resolve
connection → poll source → ingest → advance cursor. A failure marks that
cursor failed and the cycle moves on to the next one.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlmodel import Session

from halo.config import settings
from halo.connectors.base import SourcePoller
from halo.connectors.registry import get_poller
from halo.core.logging import get_logger
from halo.core.timeutil import utcnow
from halo.ingestion.service import IngestionService
from halo.models.platform_models import Connection
from halo.models.sync_models import SyncCursor
from halo.platform.repository import ConnectionRepo
from halo.polling.cursors import CursorRepo

logger = get_logger("polling.orchestrator")


def poll_interval(connection: Connection) -> timedelta:
    """``config.pollInterval`` in milliseconds, else the configured default."""
    value = (connection.config or {}).get("pollInterval")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        value = settings.default_poll_interval_ms
    return timedelta(milliseconds=value)


def failure_backoff(error_count: int) -> timedelta:
    """Capped exponential delay after the ``error_count``-th consecutive failure."""
    seconds = settings.poll_backoff_base_seconds * (2 ** max(error_count - 1, 0))
    return timedelta(seconds=min(seconds, settings.poll_backoff_max_seconds))


class PollOrchestrator:
    def __init__(
        self,
        session: Session,
        ingestion: Optional[IngestionService] = None,
        pollers: Optional[Dict[str, SourcePoller]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.cursors = CursorRepo(session)
        self.connections = ConnectionRepo(session)
        self.ingestion = ingestion or IngestionService(session)
        self._pollers = pollers or {}
        self._clock = clock

    def _poller_for(self, source: str) -> SourcePoller:
        return self._pollers.get(source) or get_poller(source)

    async def run(self) -> Dict[str, int]:
        """Run one poll cycle. Returns outcome counts."""
        retry_failed = settings.poll_failure_backoff
        due = self.cursors.find_due(self._clock(), include_failed=retry_failed)
        outcomes = {"due": len(due), "polled": 0, "skipped": 0, "failed": 0}
        if not due:
            return outcomes

        for cursor in due:
            outcome = await self.poll_cursor(cursor, include_failed=retry_failed)
            outcomes[outcome] += 1

        logger.info(
            f"Poll cycle: {outcomes['due']} due, {outcomes['polled']} polled, "
            f"{outcomes['skipped']} skipped, {outcomes['failed']} failed",
            extra={"job": "poll"},
        )
        return outcomes

    async def poll_cursor(self, cursor: SyncCursor, include_failed: bool = False) -> str:
        cursor_id = cursor.id
        tenant_id = cursor.tenant_id
        connection_id = cursor.connection_id
        previous_value = cursor.cursor_value
        prior_errors = cursor.error_count
        log_extra = {"cursor_id": cursor_id, "tenant_id": tenant_id}

        if not self.cursors.claim(cursor_id, include_failed=include_failed):
            logger.info("Cursor already claimed; skipping", extra=log_extra)
            return "skipped"

        try:
            connection = self.connections.get(connection_id)
            if connection is None or not connection.is_active:
                self.cursors.release(cursor_id)
                return "skipped"

            source = connection.source
            result = await self._poller_for(source).poll(cursor, connection)

            if result.events:
                self.ingestion.ingest(
                    tenant_id=tenant_id,
                    source=source,
                    events=result.events,
                    connection_id=connection_id,
                )

            self.cursors.advance(
                cursor_id,
                result.next_cursor_value or previous_value,
                self._clock() + poll_interval(connection),
            )
            return "polled"

        except Exception as e:
            self.session.rollback()
            next_sync_at = None
            if include_failed:
                next_sync_at = self._clock() + failure_backoff(prior_errors + 1)
            self.cursors.mark_failed(cursor_id, str(e) or type(e).__name__, next_sync_at)
            logger.error(f"Failed cursor {cursor_id}: {e}", extra=log_extra)
            return "failed"
