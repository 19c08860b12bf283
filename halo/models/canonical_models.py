"""HALO — Canonical Commerce Models (Universal Schema).

Every source normalizes into these three tables. Each has a natural key
enforced by a unique constraint, and every write is an upsert that
replaces fields from the source event, so reprocessing an event can
never double-count money.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


class LineItem(BaseModel):
    sku: str = ""
    name: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    total_price: float = 0.0


class Customer(SQLModel, table=True):
    """One customer per (tenant, source, external_id)."""

    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "source", "external_id", name="uq_customer"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    source: str
    external_id: str
    email: str = Field(default="", index=True)
    first_order_date: Optional[date] = Field(default=None, index=True)
    total_orders: int = 0
    total_revenue: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Order(SQLModel, table=True):
    """One order per (tenant, source, external_id)."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "source", "external_id", name="uq_order"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    source: str
    external_id: str
    customer_id: Optional[int] = Field(default=None, foreign_key="customers.id")
    customer_email: str = ""
    line_items: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    subtotal: float = 0.0
    total_discount: float = 0.0
    total_tax: float = 0.0
    total_revenue: float = 0.0
    currency: str = "USD"
    order_date: date = Field(index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdSpend(SQLModel, table=True):
    """Daily spend per (tenant, source, campaign_id, spend_date)."""

    __tablename__ = "ad_spend"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "source", "campaign_id", "spend_date", name="uq_ad_spend"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    source: str
    campaign_id: str
    campaign_name: str = ""
    amount: float = 0.0
    impressions: int = 0
    clicks: int = 0
    spend_date: date = Field(index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
