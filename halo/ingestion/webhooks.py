"""HALO — Webhook intake helpers.

A webhook delivery is one payload or a list of them. Each payload goes
through the source adapter (which reads its own ``id`` / ``created_at``
/ ``date`` fields), so webhook and batch ingestion share one path.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from halo.core.errors import ValidationError
from halo.models.intake_models import EventInput


def webhook_events(body: Union[Dict[str, Any], List[Any]]) -> List[EventInput]:
    payloads = body if isinstance(body, list) else [body]
    events: List[EventInput] = []
    for payload in payloads:
        if not isinstance(payload, dict):
            raise ValidationError("Webhook payloads must be JSON objects")
        events.append(EventInput(payload=payload))
    return events


def resolve_webhook_account(
    headers: Mapping[str, str], body: Union[Dict[str, Any], List[Any]]
) -> Optional[str]:
    """External account id: shop-domain header, then payload, then X-Account-ID."""
    lowered = {k.lower(): v for k, v in headers.items()}
    if lowered.get("x-shopify-shop-domain"):
        return lowered["x-shopify-shop-domain"]
    first = body[0] if isinstance(body, list) and body else body
    if isinstance(first, dict) and first.get("account_id"):
        return str(first["account_id"])
    return lowered.get("x-account-id") or None
