"""Transformers, canonical upserts and the raw event processor."""

import asyncio
from datetime import date

import pytest
from sqlmodel import select

from conftest import at, meta_insight, shopify_customer, shopify_order
from halo.core.errors import ProcessingError
from halo.ingestion.raw_events import RawEventStore
from halo.ingestion.service import IngestionService
from halo.modeling.processor import EventProcessor
from halo.modeling.transformers import transform_ad_spend, transform_customer, transform_order
from halo.models.canonical_models import AdSpend, Customer, Order
from halo.models.enums import RawEventStatus
from halo.models.intake_models import EventInput
from halo.models.raw_models import RawEvent


def raw_event(source, event_type, payload, external_id="x-1", tenant_id="t-1"):
    return RawEvent(
        tenant_id=tenant_id,
        source=source,
        event_type=event_type,
        external_id=external_id,
        idempotency_key=f"{source}:{event_type}:{external_id}",
        payload=payload,
        source_timestamp=at(2026, 2, 1, 12),
    )


def ingest(session, tenant, source, *payloads):
    return IngestionService(session).ingest(
        tenant.id, source, [EventInput(payload=p) for p in payloads]
    )


class TestTransformers:
    def test_order_fields(self):
        row = transform_order(raw_event("shopify", "order", shopify_order(email="jo@example.com")))
        assert row["total_revenue"] == 97.2
        assert row["subtotal"] == 100.0
        assert row["total_discount"] == 10.0
        assert row["total_tax"] == 7.2
        assert row["order_date"] == date(2026, 2, 1)
        assert row["customer_email"] == "jo@example.com"
        assert row["customer_id"] is None
        assert row["line_items"] == [
            {"sku": "A1", "name": "Widget", "quantity": 2, "unit_price": 50.0, "total_price": 100.0}
        ]

    def test_order_revenue_falls_back_to_components(self):
        payload = shopify_order()
        del payload["total_price"]
        row = transform_order(raw_event("shopify", "order", payload))
        assert row["total_revenue"] == 97.2

    def test_order_currency_and_email_defaults(self):
        payload = shopify_order(customer={"email": "nested@example.com"})
        del payload["currency"]
        row = transform_order(raw_event("shopify", "order", payload))
        assert row["currency"] == "USD"
        assert row["customer_email"] == "nested@example.com"

    def test_order_bad_date_raises(self):
        with pytest.raises(ProcessingError):
            transform_order(raw_event("shopify", "order", shopify_order(created_at="not a date")))

    def test_customer_fields(self):
        row = transform_customer(raw_event("shopify", "customer", shopify_customer()))
        assert row["email"] == "jo@example.com"
        assert row["first_order_date"] == date(2026, 2, 1)
        assert row["total_orders"] == 1

    def test_meta_spend_in_currency_units(self):
        row = transform_ad_spend(raw_event("meta", "ad_spend", meta_insight(spend="12.345")))
        assert row["amount"] == 12.345
        assert row["spend_date"] == date(2026, 2, 1)
        assert row["impressions"] == 1000
        assert row["clicks"] == 40

    def test_google_spend_in_micros(self):
        payload = {"campaign_id": "g-1", "date": "2026-02-04", "cost_micros": "12340000"}
        row = transform_ad_spend(raw_event("google", "ad_spend", payload))
        assert row["amount"] == 12.34
        assert row["spend_date"] == date(2026, 2, 4)

    def test_generic_amount_fallback(self):
        payload = {"campaign_id": "g-1", "date": "2026-02-04", "amount": 8}
        assert transform_ad_spend(raw_event("google", "ad_spend", payload))["amount"] == 8.0

    def test_missing_campaign_raises(self):
        with pytest.raises(ProcessingError):
            transform_ad_spend(raw_event("google", "ad_spend", {"date": "2026-02-04"}))


class TestEventProcessor:
    def test_processes_all_event_types(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_order(1), shopify_customer(2))
        ingest(session, tenant, "meta", meta_insight())

        counts = asyncio.run(EventProcessor(session).run())

        assert counts == {"fetched": 3, "processed": 3, "failed": 0}
        assert len(session.exec(select(Order)).all()) == 1
        assert len(session.exec(select(Customer)).all()) == 1
        assert session.exec(select(AdSpend)).one().amount == 50.0
        assert RawEventStore(session).get_unprocessed() == []
        processed = session.exec(select(RawEvent)).all()
        assert all(e.processed_at is not None for e in processed)
        assert all(e.status == RawEventStatus.ACCEPTED.value for e in processed)

    def test_bad_event_does_not_block_batch(self, session, tenant):
        IngestionService(session).ingest(
            tenant.id,
            "google",
            [
                EventInput(external_id="broken", event_type="ad_spend", payload={"date": "2026-02-01"}),
                EventInput(payload={"campaign_id": "g-1", "date": "2026-02-01", "cost_micros": 5_000_000}),
            ],
        )

        counts = asyncio.run(EventProcessor(session).run())

        assert counts == {"fetched": 2, "processed": 1, "failed": 1}
        broken = session.exec(select(RawEvent).where(RawEvent.external_id == "broken")).one()
        assert broken.status == RawEventStatus.REJECTED.value
        assert "campaign_id" in broken.failure_reason
        assert broken.processed_at is not None
        assert session.exec(select(AdSpend)).one().amount == 5.0

    def test_respects_batch_size(self, session, tenant):
        ingest(session, tenant, "shopify", *(shopify_order(i) for i in range(1, 6)))

        first = asyncio.run(EventProcessor(session, batch_size=3).run())
        second = asyncio.run(EventProcessor(session, batch_size=3).run())

        assert first["processed"] == 3
        assert second["processed"] == 2
        assert len(session.exec(select(Order)).all()) == 5

    def test_reprocessing_is_idempotent(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_order(1))
        processor = EventProcessor(session)
        event = RawEventStore(session).get_unprocessed()[0]

        processor.process_event(event)
        processor.process_event(event)
        session.commit()

        orders = session.exec(select(Order)).all()
        assert len(orders) == 1
        assert orders[0].total_revenue == 97.2

    def test_redelivered_order_updates_in_place(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_order(1))
        asyncio.run(EventProcessor(session).run())
        resent = raw_event("shopify", "order", shopify_order(1, total_price="120.00"), "1", tenant.id)

        EventProcessor(session).process_event(resent)
        session.commit()

        orders = session.exec(select(Order)).all()
        assert len(orders) == 1
        assert orders[0].total_revenue == 120.0

    def test_order_links_to_existing_customer(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_customer(501, email="jo@example.com"))
        ingest(session, tenant, "shopify", shopify_order(1, email="jo@example.com"))

        asyncio.run(EventProcessor(session).run())

        customer = session.exec(select(Customer)).one()
        order = session.exec(select(Order)).one()
        assert order.customer_id == customer.id

    def test_customer_backfills_earlier_orders(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_order(1, email="jo@example.com"))
        ingest(session, tenant, "shopify", shopify_customer(501, email="jo@example.com"))

        asyncio.run(EventProcessor(session).run())

        customer = session.exec(select(Customer)).one()
        order = session.exec(select(Order)).one()
        assert order.customer_id == customer.id

        # Reprocessing the order keeps the link.
        raw_order = session.exec(select(RawEvent).where(RawEvent.event_type == "order")).one()
        EventProcessor(session).process_event(raw_order)
        session.commit()
        session.expire_all()
        assert session.exec(select(Order)).one().customer_id == customer.id

    def test_first_order_date_keeps_earliest(self, session, tenant):
        ingest(session, tenant, "shopify", shopify_customer(501, created_at="2026-02-05T00:00:00Z"))
        asyncio.run(EventProcessor(session).run())
        processor = EventProcessor(session)

        for created_at in ("2026-01-20T00:00:00Z", "2026-03-01T00:00:00Z"):
            payload = shopify_customer(501, created_at=created_at)
            processor.process_event(raw_event("shopify", "customer", payload, "501", tenant.id))
            session.commit()

        session.expire_all()
        assert session.exec(select(Customer)).one().first_order_date == date(2026, 1, 20)
