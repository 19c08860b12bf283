"""HALO — Intake Schemas.

``EventInput`` is what callers hand to ingestion (batch upload, webhook,
poller). ``IntakeEvent`` is the tagged variant an adapter produces: the
event type is decided once, at the adapter boundary.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from halo.models.enums import EventType


class EventInput(BaseModel):
    """One event as received. Only ``payload`` is mandatory."""

    event_type: Optional[str] = None
    external_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    source_timestamp: Optional[datetime] = None


class IntakeEvent(BaseModel):
    """Adapter output — identity and type resolved, payload untouched."""

    external_id: str
    event_type: EventType
    payload: Dict[str, Any]
    source_timestamp: datetime


class PollResult(BaseModel):
    """What a source poller returns for one cursor."""

    events: List[EventInput] = []
    next_cursor_value: Optional[str] = None
    has_more: bool = False


class BatchIngestRequest(BaseModel):
    """Request body for POST /ingest/batch."""

    source: str
    events: List[EventInput]

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "source": "shopify",
                    "events": [
                        {
                            "payload": {
                                "id": 1001,
                                "created_at": "2026-02-01T10:00:00Z",
                                "total_price": "97.20",
                                "line_items": [{"sku": "A1", "price": "50", "quantity": 2}],
                            }
                        }
                    ],
                }
            ]
        }
    }
