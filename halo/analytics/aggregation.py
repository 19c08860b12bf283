"""HALO — Aggregation Job.

Builds the DailySummary for one tenant and one day from canonical
models: revenue, orders, new customers, ad spend, and ROAS / CAC / AOV
derived from the day's totals (never an average of ratios).
"""

from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from sqlmodel import Session

from halo.analytics.summary_repo import DailySummaryRepo
from halo.core.logging import get_logger
from halo.core.timeutil import utc_today, utcnow
from halo.modeling.store import CanonicalStore
from halo.platform.repository import TenantRepo

logger = get_logger("analytics.aggregation")


def derived_metrics(
    revenue: float, orders_count: int, new_customers: int, ad_spend: float
) -> Dict[str, float]:
    """ROAS, CAC and AOV from totals; each is 0 when its denominator is 0."""
    roas = (revenue / ad_spend) if ad_spend > 0 else 0.0
    cac = (ad_spend / new_customers) if new_customers > 0 else 0.0
    aov = (revenue / orders_count) if orders_count > 0 else 0.0
    return {
        "roas": round(roas, 4),
        "cac": round(cac, 2),
        "avg_order_value": round(aov, 2),
    }


class AggregationJob:
    def __init__(
        self,
        session: Session,
        store: Optional[CanonicalStore] = None,
        summaries: Optional[DailySummaryRepo] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.session = session
        self.store = store or CanonicalStore(session)
        self.summaries = summaries or DailySummaryRepo(session)
        self.tenants = TenantRepo(session)
        self._today = today

    def aggregate_for_date(self, tenant_id: str, day: date) -> Dict[str, float]:
        """Recompute and upsert the summary for (tenant_id, day)."""
        orders = self.store.orders_on(tenant_id, day)
        new_customers = self.store.new_customers_on(tenant_id, day)
        spend_rows = self.store.ad_spend_on(tenant_id, day)

        revenue = sum(o.total_revenue for o in orders)
        ad_spend = sum(a.amount for a in spend_rows)

        row = {
            "tenant_id": tenant_id,
            "summary_date": day,
            "revenue": round(revenue, 2),
            "orders_count": len(orders),
            "new_customers": len(new_customers),
            "ad_spend": round(ad_spend, 2),
            **derived_metrics(revenue, len(orders), len(new_customers), ad_spend),
            "computed_at": utcnow(),
        }
        self.summaries.upsert(row)
        return row

    def run_for_date_range(self, tenant_id: str, start: date, end: date) -> List[date]:
        """Aggregate every calendar day in [start, end]."""
        days = []
        day = start
        while day <= end:
            self.aggregate_for_date(tenant_id, day)
            days.append(day)
            day += timedelta(days=1)
        logger.info(
            f"Aggregated {len(days)} days ({start} → {end})",
            extra={"tenant_id": tenant_id, "job": "aggregate"},
        )
        return days

    async def run(self) -> Dict[str, int]:
        """Aggregate today for every tenant; one tenant's failure skips only it."""
        today = self._today()
        counts = {"tenants": 0, "aggregated": 0, "failed": 0}

        for tenant in self.tenants.list_all():
            tenant_id = tenant.id
            counts["tenants"] += 1
            try:
                self.aggregate_for_date(tenant_id, today)
                counts["aggregated"] += 1
            except Exception as e:
                self.session.rollback()
                counts["failed"] += 1
                logger.error(
                    f"Aggregation failed for tenant {tenant_id}: {e}",
                    extra={"tenant_id": tenant_id, "job": "aggregate"},
                )

        return counts
