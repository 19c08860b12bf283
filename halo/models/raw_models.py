"""HALO — Raw Intake Models (Immutable).

Raw events are the audit trail: once inserted, only ``status``,
``processed_at`` and ``failure_reason`` ever change.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, Index
from sqlmodel import SQLModel, Field, UniqueConstraint

from halo.models.enums import BatchStatus, RawEventStatus


class IngestionBatch(SQLModel, table=True):
    """Bookkeeping for one call to the ingestion service."""

    __tablename__ = "ingestion_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    source: str
    total_events: int = 0
    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    status: str = Field(default=BatchStatus.PROCESSING.value)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class RawEvent(SQLModel, table=True):
    """One accepted intake record.

    Unique constraint on (tenant_id, idempotency_key) makes a resend a
    no-op duplicate rather than a second row.
    """

    __tablename__ = "raw_events"
    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_raw_event_key"),
        Index("ix_raw_events_unprocessed", "status", "processed_at", "received_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    connection_id: Optional[str] = Field(default=None, foreign_key="connections.id")
    batch_id: Optional[int] = Field(default=None, foreign_key="ingestion_batches.id")
    source: str = Field(index=True)
    event_type: str = Field(description="order | customer | ad_spend")
    external_id: str
    idempotency_key: str = Field(description="source:event_type:external_id")
    payload: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    status: str = Field(default=RawEventStatus.ACCEPTED.value)
    failure_reason: Optional[str] = None
    source_timestamp: datetime
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: Optional[datetime] = None


def idempotency_key(source: str, event_type: str, external_id: str) -> str:
    return f"{source}:{event_type}:{external_id}"
