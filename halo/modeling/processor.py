"""HALO — Raw Event Processor.

Drains up to ``processor_batch_size`` unprocessed raw events per run,
oldest receipt first. Each event is transformed, upserted and marked
processed on its own; a failure rejects that event only. A full backlog
drains over several scheduled runs.
"""

from typing import Dict, Optional

from sqlmodel import Session

from halo.config import settings
from halo.core.errors import ProcessingError
from halo.core.logging import get_logger
from halo.ingestion.raw_events import RawEventStore
from halo.modeling.store import CanonicalStore
from halo.modeling.transformers import TRANSFORMERS
from halo.models.enums import EventType
from halo.models.raw_models import RawEvent

logger = get_logger("modeling.processor")


class EventProcessor:
    def __init__(
        self,
        session: Session,
        raw_events: Optional[RawEventStore] = None,
        store: Optional[CanonicalStore] = None,
        batch_size: Optional[int] = None,
    ):
        self.session = session
        self.raw_events = raw_events or RawEventStore(session)
        self.store = store or CanonicalStore(session)
        self.batch_size = batch_size or settings.processor_batch_size

    async def run(self) -> Dict[str, int]:
        """Process one batch. Returns counts of processed and failed events."""
        events = self.raw_events.get_unprocessed(limit=self.batch_size)
        counts = {"fetched": len(events), "processed": 0, "failed": 0}
        if not events:
            return counts

        logger.info(f"Processing {len(events)} raw events", extra={"job": "process"})

        # Plain values up front: a rollback below expires the ORM objects.
        work = [(e.id, e.tenant_id, e) for e in events]
        for raw_event_id, tenant_id, event in work:
            try:
                self.process_event(event)
                self.session.commit()
                self.raw_events.mark_processed(raw_event_id)
                counts["processed"] += 1
            except Exception as e:
                self.session.rollback()
                reason = str(e) or type(e).__name__
                logger.error(
                    f"Failed raw event {raw_event_id}: {reason}",
                    extra={"raw_event_id": raw_event_id, "tenant_id": tenant_id},
                )
                self.raw_events.mark_failed(raw_event_id, reason)
                counts["failed"] += 1

        logger.info(
            f"Processed {counts['processed']}, failed {counts['failed']}",
            extra={"job": "process"},
        )
        return counts

    def process_event(self, event: RawEvent) -> None:
        """Transform and upsert one raw event. Does not commit."""
        transform = TRANSFORMERS.get(event.event_type)
        if transform is None:
            raise ProcessingError(f"Unknown event type: {event.event_type}")

        row = transform(event)

        if event.event_type == EventType.ORDER.value:
            self.store.upsert_order(row)
            self.store.link_order_customer(row["tenant_id"], row["source"], row["external_id"])
        elif event.event_type == EventType.CUSTOMER.value:
            self.store.upsert_customer(row)
            self.store.link_customer_orders(row["tenant_id"], row["source"], row["email"])
        else:
            self.store.upsert_ad_spend(row)
