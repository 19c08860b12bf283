"""HALO — Raw → Canonical Transformers.

Pure functions from a RawEvent to the field dict of one canonical row.
No session, no lookups: the same raw event always yields the same dict,
which is what makes reprocessing safe.
"""

from typing import Any, Callable, Dict, List

from halo.config import settings
from halo.core.errors import ProcessingError
from halo.core.timeutil import parse_date
from halo.models.canonical_models import LineItem
from halo.models.enums import EventType, Source
from halo.models.raw_models import RawEvent

MICROS_PER_UNIT = 1_000_000


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    """First present, non-empty value among ``keys``."""
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _date_from(payload: Dict[str, Any], raw: RawEvent, *keys: str):
    value = _first(payload, *keys)
    try:
        return parse_date(value if value is not None else raw.source_timestamp)
    except ValueError as e:
        raise ProcessingError(f"Unparseable date in {keys}: {value!r}") from e


def _line_items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = []
    for li in payload.get("line_items") or []:
        if not isinstance(li, dict):
            continue
        quantity = _safe_int(li.get("quantity"), default=1) or 1
        unit_price = _safe_float(li.get("price", li.get("unit_price")))
        items.append(
            LineItem(
                sku=str(li.get("sku") or ""),
                name=str(li.get("name") or li.get("title") or ""),
                quantity=quantity,
                unit_price=unit_price,
                total_price=round(unit_price * quantity, 2),
            ).model_dump()
        )
    return items


def transform_order(raw: RawEvent) -> Dict[str, Any]:
    """Order row. Revenue falls back to subtotal − discount + tax."""
    p = raw.payload or {}

    subtotal = _safe_float(_first(p, "subtotal_price", "subtotal"))
    total_discount = _safe_float(_first(p, "total_discounts", "total_discount"))
    total_tax = _safe_float(p.get("total_tax"))
    explicit_total = _first(p, "total_price", "total_revenue")
    if explicit_total is not None:
        total_revenue = _safe_float(explicit_total)
    else:
        total_revenue = subtotal - total_discount + total_tax

    customer = p.get("customer") if isinstance(p.get("customer"), dict) else {}
    customer_email = _first(p, "email", "customer_email") or customer.get("email") or ""

    return {
        "tenant_id": raw.tenant_id,
        "source": raw.source,
        "external_id": raw.external_id,
        # Linked to a canonical customer after upsert, never here.
        "customer_id": None,
        "customer_email": str(customer_email),
        "line_items": _line_items(p),
        "subtotal": round(subtotal, 2),
        "total_discount": round(total_discount, 2),
        "total_tax": round(total_tax, 2),
        "total_revenue": round(total_revenue, 2),
        "currency": str(p.get("currency") or settings.default_currency),
        "order_date": _date_from(p, raw, "created_at"),
    }


def transform_customer(raw: RawEvent) -> Dict[str, Any]:
    p = raw.payload or {}
    return {
        "tenant_id": raw.tenant_id,
        "source": raw.source,
        "external_id": raw.external_id,
        "email": str(p.get("email") or ""),
        "first_order_date": _date_from(p, raw, "first_order_date", "created_at"),
        "total_orders": _safe_int(_first(p, "orders_count", "total_orders")),
        "total_revenue": round(_safe_float(_first(p, "total_spent", "total_revenue")), 2),
    }


def _spend_amount(source: str, p: Dict[str, Any]) -> float:
    """Meta reports currency units; Google reports micro-units."""
    if source == Source.GOOGLE.value:
        micros = _first(p, "cost_micros")
        if micros is not None:
            return _safe_float(micros) / MICROS_PER_UNIT
    elif source == Source.META.value:
        spend = _first(p, "spend")
        if spend is not None:
            return _safe_float(spend)
    return _safe_float(p.get("amount"))


def transform_ad_spend(raw: RawEvent) -> Dict[str, Any]:
    p = raw.payload or {}
    date_key = "date_start" if raw.source == Source.META.value else "date"
    campaign_id = _first(p, "campaign_id")
    if campaign_id is None:
        raise ProcessingError("Ad spend payload has no campaign_id")
    return {
        "tenant_id": raw.tenant_id,
        "source": raw.source,
        "campaign_id": str(campaign_id),
        "campaign_name": str(p.get("campaign_name") or ""),
        "amount": _spend_amount(raw.source, p),
        "impressions": _safe_int(p.get("impressions")),
        "clicks": _safe_int(p.get("clicks")),
        "spend_date": _date_from(p, raw, date_key),
    }


TRANSFORMERS: Dict[str, Callable[[RawEvent], Dict[str, Any]]] = {
    EventType.ORDER.value: transform_order,
    EventType.CUSTOMER.value: transform_customer,
    EventType.AD_SPEND.value: transform_ad_spend,
}
