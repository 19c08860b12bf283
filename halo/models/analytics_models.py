"""HALO — Analytics Output Models."""

from datetime import date, datetime, timezone
from typing import List, Optional
from pydantic import BaseModel
from sqlmodel import SQLModel, Field, UniqueConstraint


# ─────────────────────────────────────────────
# DATABASE MODEL — one derived row per tenant per day
# ─────────────────────────────────────────────


class DailySummary(SQLModel, table=True):
    """Per-day metrics, always recomputed in full from canonical models."""

    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "summary_date", name="uq_daily_summary"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    summary_date: date = Field(index=True)
    revenue: float = 0.0
    orders_count: int = 0
    new_customers: int = 0
    ad_spend: float = 0.0
    roas: float = 0.0
    cac: float = 0.0
    avg_order_value: float = 0.0
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — read-side outputs
# ─────────────────────────────────────────────

METRIC_NAMES = (
    "revenue",
    "orders_count",
    "new_customers",
    "ad_spend",
    "roas",
    "cac",
    "avg_order_value",
)


class MetricsBucket(BaseModel):
    """Totals over a set of days with derived ratios recomputed from them."""

    revenue: float = 0.0
    orders_count: int = 0
    new_customers: int = 0
    ad_spend: float = 0.0
    roas: float = 0.0
    cac: float = 0.0
    avg_order_value: float = 0.0


class MetricsChanges(BaseModel):
    """Percent change per metric, current vs previous period."""

    revenue: float = 0.0
    orders_count: float = 0.0
    new_customers: float = 0.0
    ad_spend: float = 0.0
    roas: float = 0.0
    cac: float = 0.0
    avg_order_value: float = 0.0


class PeriodRange(BaseModel):
    start: date
    end: date


class MetricsSummary(BaseModel):
    period: str
    current_range: PeriodRange
    previous_range: PeriodRange
    current: MetricsBucket = MetricsBucket()
    previous: MetricsBucket = MetricsBucket()
    changes: MetricsChanges = MetricsChanges()


class AdSpendBreakdownRow(BaseModel):
    group: str
    ad_spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    pct_of_total: float = 0.0


class AdSpendBreakdown(BaseModel):
    group_by: str
    total_ad_spend: float = 0.0
    rows: List[AdSpendBreakdownRow] = []
