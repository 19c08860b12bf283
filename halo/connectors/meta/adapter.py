"""HALO — Meta Ads Source Adapter.

Meta insight rows (``level=campaign``, ``time_increment=1``) carry
``campaign_id`` and ``date_start``; spend is already in currency units.
"""

from typing import Any, Dict

from halo.connectors.base import SourceAdapter
from halo.core.errors import ValidationError
from halo.models.enums import EventType, Source
from halo.models.intake_models import IntakeEvent


class MetaAdapter(SourceAdapter):
    source = Source.META.value

    def validate_and_extract(self, raw_payload: Dict[str, Any]) -> IntakeEvent:
        if not raw_payload.get("campaign_id") or not raw_payload.get("date_start"):
            raise ValidationError(
                "Meta ad spend payload missing campaign_id or date_start"
            )
        return IntakeEvent(
            external_id=f"{raw_payload['campaign_id']}:{raw_payload['date_start']}",
            event_type=EventType.AD_SPEND,
            payload=raw_payload,
            source_timestamp=self._timestamp(raw_payload, "date_start"),
        )
