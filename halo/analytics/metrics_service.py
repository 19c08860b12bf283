"""HALO — Metrics Service.

Read side of the daily summaries: period roll-ups with period-over-period
change, bucketed time series, and an ad-spend breakdown. Ratios are
always re-derived from summed totals.
"""

from collections import OrderedDict
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session

from halo.analytics.aggregation import derived_metrics
from halo.analytics.summary_repo import DailySummaryRepo
from halo.core.timeutil import utc_today
from halo.modeling.store import CanonicalStore
from halo.models.analytics_models import (
    METRIC_NAMES,
    AdSpendBreakdown,
    AdSpendBreakdownRow,
    DailySummary,
    MetricsBucket,
    MetricsChanges,
    MetricsSummary,
    PeriodRange,
)
from halo.models.enums import Granularity

PERIOD_DAYS = {
    "last_7_days": 7,
    "last_14_days": 14,
    "last_30_days": 30,
    "last_90_days": 90,
}
DEFAULT_PERIOD_DAYS = 30
BREAKDOWN_GROUPS = ("source", "campaign")


def resolve_period(period: str, today: date) -> Tuple[date, date, date, date]:
    """(current_start, current_end, previous_start, previous_end).

    Current is the N days ending today; previous is the N days before it.
    """
    days = PERIOD_DAYS.get(period, DEFAULT_PERIOD_DAYS)
    current_end = today
    current_start = today - timedelta(days=days - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=days - 1)
    return current_start, current_end, previous_start, previous_end


def rollup(rows: Iterable[DailySummary]) -> MetricsBucket:
    revenue = 0.0
    orders_count = 0
    new_customers = 0
    ad_spend = 0.0
    for r in rows:
        revenue += r.revenue
        orders_count += r.orders_count
        new_customers += r.new_customers
        ad_spend += r.ad_spend
    return MetricsBucket(
        revenue=round(revenue, 2),
        orders_count=orders_count,
        new_customers=new_customers,
        ad_spend=round(ad_spend, 2),
        **derived_metrics(revenue, orders_count, new_customers, ad_spend),
    )


def pct_change(current: float, previous: float) -> float:
    """Percent change; a zero baseline reads as +100 when anything happened."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def bucket_key(day: date, granularity: Granularity) -> str:
    if granularity == Granularity.WEEKLY:
        return (day - timedelta(days=day.weekday())).isoformat()  # ISO Monday
    if granularity == Granularity.MONTHLY:
        return day.strftime("%Y-%m")
    return day.isoformat()


def bucket_rows(
    rows: Iterable[DailySummary], granularity: Granularity
) -> "OrderedDict[str, List[DailySummary]]":
    buckets: Dict[str, List[DailySummary]] = {}
    for row in rows:
        buckets.setdefault(bucket_key(row.summary_date, granularity), []).append(row)
    return OrderedDict(sorted(buckets.items()))


class MetricsService:
    def __init__(
        self,
        session: Session,
        summaries: Optional[DailySummaryRepo] = None,
        store: Optional[CanonicalStore] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.summaries = summaries or DailySummaryRepo(session)
        self.store = store or CanonicalStore(session)
        self._today = today

    def summary(self, tenant_id: str, period: str = "last_30_days") -> MetricsSummary:
        cur_start, cur_end, prev_start, prev_end = resolve_period(period, self._today())
        current = rollup(self.summaries.between(tenant_id, cur_start, cur_end))
        previous = rollup(self.summaries.between(tenant_id, prev_start, prev_end))
        changes = MetricsChanges(
            **{
                name: pct_change(getattr(current, name), getattr(previous, name))
                for name in METRIC_NAMES
            }
        )
        return MetricsSummary(
            period=period,
            current_range=PeriodRange(start=cur_start, end=cur_end),
            previous_range=PeriodRange(start=prev_start, end=prev_end),
            current=current,
            previous=previous,
            changes=changes,
        )

    def time_series(
        self,
        tenant_id: str,
        start: date,
        end: date,
        granularity: Granularity,
        metrics: Sequence[str],
    ) -> List[Dict[str, object]]:
        """One point per bucket with only the requested (known) metrics set."""
        wanted = [m for m in metrics if m in METRIC_NAMES]
        rows = self.summaries.between(tenant_id, start, end)
        points: List[Dict[str, object]] = []
        for label, bucket in bucket_rows(rows, Granularity(granularity)).items():
            rolled = rollup(bucket)
            point: Dict[str, object] = {"date": label}
            for name in wanted:
                point[name] = getattr(rolled, name)
            points.append(point)
        return points

    def ad_spend_breakdown(
        self, tenant_id: str, start: date, end: date, group_by: str = "source"
    ) -> AdSpendBreakdown:
        if group_by not in BREAKDOWN_GROUPS:
            raise ValueError(f"group_by must be one of {BREAKDOWN_GROUPS}")
        totals = self.store.ad_spend_totals(tenant_id, start, end, group_by)
        grand_total = sum(float(amount or 0) for _, amount, _, _ in totals)
        rows = [
            AdSpendBreakdownRow(
                group=str(group),
                ad_spend=round(float(amount or 0), 2),
                impressions=int(impressions or 0),
                clicks=int(clicks or 0),
                pct_of_total=round(float(amount or 0) / grand_total * 100, 2)
                if grand_total > 0
                else 0.0,
            )
            for group, amount, impressions, clicks in totals
        ]
        return AdSpendBreakdown(
            group_by=group_by, total_ad_spend=round(grand_total, 2), rows=rows
        )
