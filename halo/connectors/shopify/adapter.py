"""HALO — Shopify Source Adapter.

Shopify sends orders and customers through the same channels, so the
event type is decided here, in this order:

  1. an explicit ``event_type`` tag (``order`` / ``customer``)
  2. ``line_items`` or ``total_price`` present → order
  3. ``email`` present → customer
  4. anything else is rejected
"""

from typing import Any, Dict

from halo.connectors.base import SourceAdapter
from halo.core.errors import ValidationError
from halo.models.enums import EventType, Source
from halo.models.intake_models import IntakeEvent

TAGGED_TYPES = {EventType.ORDER.value, EventType.CUSTOMER.value}


def detect_event_type(payload: Dict[str, Any]) -> EventType:
    tag = payload.get("event_type")
    if tag is not None:
        if tag not in TAGGED_TYPES:
            raise ValidationError(f"Unsupported Shopify event_type: {tag}")
        return EventType(tag)
    if payload.get("line_items") is not None or payload.get("total_price") is not None:
        return EventType.ORDER
    if payload.get("email") is not None:
        return EventType.CUSTOMER
    raise ValidationError("Unknown Shopify event type for payload")


class ShopifyAdapter(SourceAdapter):
    source = Source.SHOPIFY.value

    def validate_and_extract(self, raw_payload: Dict[str, Any]) -> IntakeEvent:
        event_type = detect_event_type(raw_payload)
        if not raw_payload.get("id") or not raw_payload.get("created_at"):
            raise ValidationError(
                f"Shopify {event_type.value} missing id or created_at"
            )
        return IntakeEvent(
            external_id=str(raw_payload["id"]),
            event_type=event_type,
            payload=raw_payload,
            source_timestamp=self._timestamp(raw_payload, "created_at"),
        )
