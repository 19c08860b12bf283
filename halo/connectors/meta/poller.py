"""HALO — Meta Ads Poller.

The cursor value is the last fully synced day (``YYYY-MM-DD``). Each poll
asks for every complete day after it, up to yesterday; today's numbers
are still moving and are picked up on the next day's poll.

When the page cap cuts a window short, the cursor only moves to the day
before the last day fetched and the result reports ``has_more``.
"""

from datetime import date, timedelta
from typing import Callable, Optional

import httpx

from halo.config import settings
from halo.connectors.base import SourcePoller
from halo.connectors.meta.client import RETRY_BASE_DELAY, MetaClient
from halo.core.logging import get_logger
from halo.core.timeutil import utc_today
from halo.models.enums import Source
from halo.models.intake_models import EventInput, PollResult
from halo.models.platform_models import Connection
from halo.models.sync_models import SyncCursor

logger = get_logger("meta.poller")


def _ad_account_id(external_account_id: str) -> str:
    if external_account_id.startswith("act_"):
        return external_account_id
    return f"act_{external_account_id}"


class MetaPoller(SourcePoller):
    source = Source.META.value

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
        today: Callable[[], date] = utc_today,
    ):
        self._transport = transport
        self._retry_base_delay = retry_base_delay
        self._today = today

    def _window(self, cursor_value: str) -> tuple[date, date]:
        until = self._today() - timedelta(days=1)
        if cursor_value:
            since = date.fromisoformat(cursor_value) + timedelta(days=1)
        else:
            since = until - timedelta(days=settings.meta_backfill_days - 1)
        return since, until

    async def poll(self, cursor: SyncCursor, connection: Connection) -> PollResult:
        token = (connection.credentials or {}).get("access_token")
        if not token:
            logger.info(
                "No Meta access token on connection; nothing to poll",
                extra={"cursor_id": cursor.id, "tenant_id": cursor.tenant_id},
            )
            return PollResult()

        since, until = self._window(cursor.cursor_value)
        if since > until:
            return PollResult()

        async with MetaClient(
            access_token=token,
            ad_account_id=_ad_account_id(connection.external_account_id),
            transport=self._transport,
            retry_base_delay=self._retry_base_delay,
        ) as client:
            rows, complete = await client.fetch_campaign_insights(
                since.isoformat(), until.isoformat()
            )

        events = [EventInput(payload=row) for row in rows]
        if complete:
            return PollResult(events=events, next_cursor_value=until.isoformat())

        # Rows arrive day by day, so the last day seen may be partial.
        resume = _resume_day(rows, since)
        logger.warning(
            f"Meta page cap hit for {since}..{until}; resuming after {resume}",
            extra={"cursor_id": cursor.id, "tenant_id": cursor.tenant_id},
        )
        return PollResult(
            events=events,
            next_cursor_value=resume.isoformat() if resume >= since else None,
            has_more=True,
        )


def _resume_day(rows: list, since: date) -> date:
    days = [row["date_start"] for row in rows if row.get("date_start")]
    if not days:
        return since - timedelta(days=1)
    return date.fromisoformat(max(days)) - timedelta(days=1)
