"""HALO — Sync Cursor Repository.

State changes are single conditional UPDATEs. ``claim`` only succeeds if
the row is still claimable when the UPDATE runs, so two overlapping poll
cycles that both read the same due cursor cannot both poll it.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, update
from sqlmodel import Session, select

from halo.core.timeutil import utcnow
from halo.models.enums import CursorStatus
from halo.models.sync_models import SyncCursor


class CursorRepo:
    def __init__(self, session: Session):
        self.session = session

    def _claimable(self, include_failed: bool):
        if include_failed:
            return or_(
                SyncCursor.status == CursorStatus.IDLE.value,
                SyncCursor.status == CursorStatus.FAILED.value,
            )
        return SyncCursor.status == CursorStatus.IDLE.value

    def _update(self, *where, **values) -> int:
        result = self.session.connection().execute(
            update(SyncCursor).where(*where).values(**values)
        )
        self.session.commit()
        return result.rowcount

    # ── Reads ──

    def get(self, cursor_id: int, tenant_id: Optional[str] = None) -> Optional[SyncCursor]:
        query = select(SyncCursor).where(SyncCursor.id == cursor_id)
        if tenant_id is not None:
            query = query.where(SyncCursor.tenant_id == tenant_id)
        return self.session.exec(query).first()

    def list_for_tenant(self, tenant_id: str) -> List[SyncCursor]:
        return list(
            self.session.exec(
                select(SyncCursor)
                .where(SyncCursor.tenant_id == tenant_id)
                .order_by(SyncCursor.id)  # type: ignore
            ).all()
        )

    def find_due(self, now: datetime, include_failed: bool = False) -> List[SyncCursor]:
        """Claimable cursors whose next_sync_at has passed, earliest first."""
        return list(
            self.session.exec(
                select(SyncCursor)
                .where(
                    self._claimable(include_failed),
                    SyncCursor.next_sync_at <= now,
                )
                .order_by(SyncCursor.next_sync_at, SyncCursor.id)  # type: ignore
            ).all()
        )

    # ── Writes ──

    def create(
        self,
        connection_id: str,
        tenant_id: str,
        event_type: str,
        cursor_field: str = "updated_at",
    ) -> SyncCursor:
        cursor = SyncCursor(
            connection_id=connection_id,
            tenant_id=tenant_id,
            event_type=event_type,
            cursor_field=cursor_field,
        )
        self.session.add(cursor)
        self.session.commit()
        self.session.refresh(cursor)
        return cursor

    def claim(self, cursor_id: int, include_failed: bool = False) -> bool:
        """Atomically move a claimable cursor to running. False if someone else has it."""
        return (
            self._update(
                SyncCursor.id == cursor_id,
                self._claimable(include_failed),
                status=CursorStatus.RUNNING.value,
            )
            == 1
        )

    def release(self, cursor_id: int) -> None:
        """Hand a claimed cursor back untouched (e.g. its connection is paused)."""
        self._update(SyncCursor.id == cursor_id, status=CursorStatus.IDLE.value)

    def advance(self, cursor_id: int, cursor_value: str, next_sync_at: datetime) -> None:
        self._update(
            SyncCursor.id == cursor_id,
            cursor_value=cursor_value,
            next_sync_at=next_sync_at,
            status=CursorStatus.IDLE.value,
            error_count=0,
            last_error=None,
        )

    def mark_failed(
        self, cursor_id: int, error: str, next_sync_at: Optional[datetime] = None
    ) -> None:
        values = {
            "status": CursorStatus.FAILED.value,
            "last_error": error[:1000],
            "error_count": SyncCursor.error_count + 1,
        }
        if next_sync_at is not None:
            values["next_sync_at"] = next_sync_at
        self._update(SyncCursor.id == cursor_id, **values)

    def trigger(self, cursor_id: int, tenant_id: str) -> bool:
        """Make a cursor due now. Leaves its position and error history alone."""
        return (
            self._update(
                SyncCursor.id == cursor_id,
                SyncCursor.tenant_id == tenant_id,
                next_sync_at=utcnow(),
                status=CursorStatus.IDLE.value,
            )
            == 1
        )

    def reset(self, cursor_id: int, tenant_id: str) -> bool:
        """Rewind to the start for a backfill and make it due now."""
        return (
            self._update(
                SyncCursor.id == cursor_id,
                SyncCursor.tenant_id == tenant_id,
                cursor_value="",
                status=CursorStatus.IDLE.value,
                error_count=0,
                last_error=None,
                next_sync_at=utcnow(),
            )
            == 1
        )
