"""HALO — Incremental Sync State."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field, UniqueConstraint

from halo.models.enums import CursorStatus


class SyncCursor(SQLModel, table=True):
    """Incremental sync position for one (connection, event_type) pair.

    ``status`` doubles as the claim flag: only a cursor moved from idle to
    running by a successful conditional update may be polled.
    """

    __tablename__ = "sync_cursors"
    __table_args__ = (
        UniqueConstraint("connection_id", "event_type", name="uq_cursor_stream"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    connection_id: str = Field(foreign_key="connections.id", index=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    event_type: str
    cursor_field: str = Field(default="updated_at")
    cursor_value: str = Field(default="", description="Opaque; empty = start")
    status: str = Field(default=CursorStatus.IDLE.value, index=True)
    next_sync_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    error_count: int = 0
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
