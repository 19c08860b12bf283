"""HALO — Ingestion Service.

The single funnel every event passes through, whatever delivered it
(batch upload, webhook, poller):

  batch record → adapter per event → idempotency key → bulk insert
  (conflict = duplicate) → finalize batch counts and status
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session, select

from halo.connectors.registry import get_adapter
from halo.core.errors import HaloError, ValidationError
from halo.core.logging import get_logger
from halo.core.timeutil import as_utc, utcnow
from halo.ingestion.raw_events import RawEventStore
from halo.models.enums import BatchStatus, EventType, RawEventStatus
from halo.models.intake_models import EventInput, IntakeEvent
from halo.models.raw_models import IngestionBatch, idempotency_key

logger = get_logger("ingestion.service")

BATCH_LIST_LIMIT = 50


def batch_status(rejected: int) -> BatchStatus:
    """Any rejection, even of every event, makes the batch a partial failure."""
    return BatchStatus.COMPLETED if rejected == 0 else BatchStatus.PARTIAL_FAILURE


class IngestionService:
    def __init__(self, session: Session, raw_events: Optional[RawEventStore] = None):
        self.session = session
        self.raw_events = raw_events or RawEventStore(session)

    def _extract(self, source: str, event: EventInput) -> IntakeEvent:
        """Use pre-extracted identity when complete, otherwise the adapter."""
        if event.external_id and event.event_type:
            try:
                event_type = EventType(event.event_type)
            except ValueError:
                raise ValidationError(f"Unknown event_type: {event.event_type}") from None
            return IntakeEvent(
                external_id=event.external_id,
                event_type=event_type,
                payload=event.payload,
                source_timestamp=event.source_timestamp or utcnow(),
            )
        return get_adapter(source).validate_and_extract(event.payload)

    def ingest(
        self,
        tenant_id: str,
        source: str,
        events: Sequence[Union[EventInput, Dict[str, Any]]],
        connection_id: Optional[str] = None,
    ) -> IngestionBatch:
        """Ingest a batch for one tenant/source and return the finalized batch."""
        # Resolve the adapter up front: an unknown source fails the call, not each event.
        get_adapter(source)

        batch = IngestionBatch(
            tenant_id=tenant_id,
            source=source,
            total_events=len(events),
            status=BatchStatus.PROCESSING.value,
        )
        self.session.add(batch)
        self.session.commit()
        self.session.refresh(batch)

        received_at = utcnow()
        rows: List[Dict[str, Any]] = []
        rejected = 0

        for raw in events:
            try:
                event = raw if isinstance(raw, EventInput) else EventInput.model_validate(raw)
                intake = self._extract(source, event)
            except (HaloError, PydanticValidationError) as e:
                rejected += 1
                logger.warning(
                    f"Rejected event: {e}",
                    extra={"tenant_id": tenant_id, "source": source, "batch_id": batch.id},
                )
                continue

            rows.append(
                {
                    "tenant_id": tenant_id,
                    "connection_id": connection_id,
                    "batch_id": batch.id,
                    "source": source,
                    "event_type": intake.event_type.value,
                    "external_id": intake.external_id,
                    "idempotency_key": idempotency_key(
                        source, intake.event_type.value, intake.external_id
                    ),
                    "payload": intake.payload,
                    "status": RawEventStatus.ACCEPTED.value,
                    "source_timestamp": as_utc(intake.source_timestamp),
                    "received_at": received_at,
                }
            )

        accepted, duplicates = self.raw_events.insert(rows)

        batch.accepted = accepted
        batch.rejected = rejected
        batch.duplicates = duplicates
        batch.status = batch_status(rejected).value
        batch.completed_at = utcnow()
        self.session.add(batch)
        self.session.commit()
        self.session.refresh(batch)

        logger.info(
            f"Batch {batch.id}: {batch.total_events} events, {accepted} accepted, "
            f"{duplicates} duplicates, {rejected} rejected",
            extra={"tenant_id": tenant_id, "source": source, "batch_id": batch.id},
        )
        return batch

    def get_batch(self, tenant_id: str, batch_id: int) -> Optional[IngestionBatch]:
        return self.session.exec(
            select(IngestionBatch).where(
                IngestionBatch.id == batch_id,
                IngestionBatch.tenant_id == tenant_id,
            )
        ).first()

    def list_batches(self, tenant_id: str) -> List[IngestionBatch]:
        return list(
            self.session.exec(
                select(IngestionBatch)
                .where(IngestionBatch.tenant_id == tenant_id)
                .order_by(IngestionBatch.created_at.desc(), IngestionBatch.id.desc())  # type: ignore
                .limit(BATCH_LIST_LIMIT)
            ).all()
        )

    def pipeline_status(self, tenant_id: str) -> Dict[str, Any]:
        return {
            "unprocessed_by_source": self.raw_events.count_unprocessed(tenant_id),
            "total_raw_events": self.raw_events.count_for_tenant(tenant_id),
        }
