"""HALO — Raw Event Store.

Append-only, tenant-scoped, idempotent. Inserts go through the
dialect's ``INSERT … ON CONFLICT (tenant_id, idempotency_key) DO NOTHING``
so a resend is resolved by the unique constraint, in one statement.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlmodel import Session, select

from halo.core.timeutil import utcnow
from halo.database import dialect_insert
from halo.models.enums import RawEventStatus
from halo.models.raw_models import RawEvent

# Keeps a single multi-row INSERT under SQLite's bound-parameter limit.
INSERT_CHUNK_SIZE = 200


class RawEventStore:
    def __init__(self, session: Session):
        self.session = session

    def insert(self, rows: List[Dict[str, Any]]) -> Tuple[int, int]:
        """Insert rows, skipping idempotency-key conflicts.

        Returns (accepted, duplicates). Does not commit.
        """
        if not rows:
            return 0, 0

        accepted = 0
        conn = self.session.connection()
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            chunk = rows[start : start + INSERT_CHUNK_SIZE]
            stmt = (
                dialect_insert(self.session, RawEvent)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=["tenant_id", "idempotency_key"])
                .returning(RawEvent.id)
            )
            accepted += len(conn.execute(stmt).fetchall())

        return accepted, len(rows) - accepted

    def get_unprocessed(
        self, limit: int = 100, event_type: Optional[str] = None
    ) -> List[RawEvent]:
        """Accepted, not-yet-consumed events, oldest receipt first."""
        query = (
            select(RawEvent)
            .where(
                RawEvent.status == RawEventStatus.ACCEPTED.value,
                RawEvent.processed_at.is_(None),  # type: ignore
            )
            .order_by(RawEvent.received_at, RawEvent.id)  # type: ignore
            .limit(limit)
        )
        if event_type:
            query = query.where(RawEvent.event_type == event_type)
        return list(self.session.exec(query).all())

    def mark_processed(self, raw_event_id: int) -> None:
        self.session.connection().execute(
            update(RawEvent)
            .where(RawEvent.id == raw_event_id)
            .values(processed_at=utcnow())
        )
        self.session.commit()

    def mark_failed(self, raw_event_id: int, reason: str) -> None:
        self.session.connection().execute(
            update(RawEvent)
            .where(RawEvent.id == raw_event_id)
            .values(
                status=RawEventStatus.REJECTED.value,
                failure_reason=reason[:1000],
                processed_at=utcnow(),
            )
        )
        self.session.commit()

    def count_unprocessed(self, tenant_id: str) -> Dict[str, int]:
        """Backlog per source for one tenant."""
        rows = self.session.exec(
            select(RawEvent.source, func.count())
            .where(
                RawEvent.tenant_id == tenant_id,
                RawEvent.status == RawEventStatus.ACCEPTED.value,
                RawEvent.processed_at.is_(None),  # type: ignore
            )
            .group_by(RawEvent.source)
        ).all()
        counts: Dict[str, int] = defaultdict(int)
        for source, n in rows:
            counts[source] += n
        return dict(counts)

    def count_for_tenant(self, tenant_id: str) -> int:
        return self.session.exec(
            select(func.count()).select_from(RawEvent).where(RawEvent.tenant_id == tenant_id)
        ).one()
