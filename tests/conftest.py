"""
Test Configuration — in-memory database, sessions, seeded tenants.

Every test gets a fresh in-memory SQLite database. StaticPool keeps the
single connection alive so the schema survives across sessions and the
TestClient's worker thread.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import halo.models.analytics_models  # noqa: F401
import halo.models.canonical_models  # noqa: F401
import halo.models.raw_models  # noqa: F401
import halo.models.sync_models  # noqa: F401
from halo.models.enums import Source
from halo.models.platform_models import Connection, Tenant

SHOP_DOMAIN = "acme.myshopify.com"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def tenant(session):
    tenant = Tenant(name="Acme", slug="acme")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(session):
    tenant = Tenant(name="Globex", slug="globex")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture
def shopify_connection(session, tenant):
    connection = Connection(
        tenant_id=tenant.id,
        source=Source.SHOPIFY.value,
        external_account_id=SHOP_DOMAIN,
    )
    session.add(connection)
    session.commit()
    session.refresh(connection)
    return connection


def shopify_order(order_id=1001, created_at="2026-02-01T10:00:00Z", **fields):
    payload = {
        "id": order_id,
        "created_at": created_at,
        "subtotal_price": "100.00",
        "total_discounts": "10.00",
        "total_tax": "7.20",
        "total_price": "97.20",
        "currency": "USD",
        "line_items": [{"sku": "A1", "title": "Widget", "price": "50.00", "quantity": 2}],
    }
    payload.update(fields)
    return payload


def shopify_customer(customer_id=501, email="jo@example.com", created_at="2026-02-01T09:00:00Z"):
    return {"id": customer_id, "email": email, "created_at": created_at, "orders_count": 1}


def meta_insight(campaign_id="c-1", date_start="2026-02-01", spend="50.00"):
    return {
        "campaign_id": campaign_id,
        "campaign_name": f"Campaign {campaign_id}",
        "spend": spend,
        "impressions": "1000",
        "clicks": "40",
        "date_start": date_start,
        "date_stop": date_start,
    }


def at(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)
