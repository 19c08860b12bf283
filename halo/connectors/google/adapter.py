"""HALO — Google Ads Source Adapter.

Google rows use ``date`` and report cost as ``cost_micros``; the unit
conversion happens in the ad-spend transformer, not here.
"""

from typing import Any, Dict

from halo.connectors.base import SourceAdapter
from halo.core.errors import ValidationError
from halo.models.enums import EventType, Source
from halo.models.intake_models import IntakeEvent


class GoogleAdapter(SourceAdapter):
    source = Source.GOOGLE.value

    def validate_and_extract(self, raw_payload: Dict[str, Any]) -> IntakeEvent:
        if not raw_payload.get("campaign_id") or not raw_payload.get("date"):
            raise ValidationError("Google ad spend payload missing campaign_id or date")
        return IntakeEvent(
            external_id=f"{raw_payload['campaign_id']}:{raw_payload['date']}",
            event_type=EventType.AD_SPEND,
            payload=raw_payload,
            source_timestamp=self._timestamp(raw_payload, "date"),
        )
