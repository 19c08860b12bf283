"""HALO — Metrics & Aggregation API Routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from halo.analytics.aggregation import AggregationJob
from halo.analytics.metrics_service import MetricsService
from halo.api.deps import get_tenant_id
from halo.core.logging import get_logger
from halo.database import get_session
from halo.models.analytics_models import AdSpendBreakdown, MetricsSummary
from halo.models.enums import Granularity

logger = get_logger("api.analytics")

router = APIRouter(prefix="/metrics", tags=["Metrics"])

DEFAULT_SERIES_METRICS = "revenue,orders_count,ad_spend,roas"


class AggregateRequest(BaseModel):
    """Request body for POST /metrics/aggregate."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None


@router.get("/summary", response_model=MetricsSummary)
async def get_summary(
    period: str = Query("last_30_days", description="last_7_days | last_14_days | last_30_days | last_90_days"),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Headline totals for the period and change vs the period before it."""
    return MetricsService(session).summary(tenant_id, period)


@router.get("")
async def get_time_series(
    start: date,
    end: date,
    granularity: Granularity = Granularity.DAILY,
    metrics: str = Query(DEFAULT_SERIES_METRICS, description="Comma-separated metric names"),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    names = [m.strip() for m in metrics.split(",") if m.strip()]
    data = MetricsService(session).time_series(tenant_id, start, end, granularity, names)
    return {"data": data}


@router.get("/ad-spend", response_model=AdSpendBreakdown)
async def get_ad_spend_breakdown(
    start: date,
    end: date,
    group_by: str = "source",
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    try:
        return MetricsService(session).ad_spend_breakdown(tenant_id, start, end, group_by)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/aggregate")
async def trigger_aggregation(
    request: Optional[AggregateRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Re-aggregate a date range for this tenant, or today for every tenant."""
    job = AggregationJob(session)
    try:
        if request and request.start_date and request.end_date:
            if request.start_date > request.end_date:
                raise HTTPException(status_code=400, detail="start_date must not be after end_date")
            days = job.run_for_date_range(tenant_id, request.start_date, request.end_date)
            return {"status": "success", "days": len(days)}
        await job.run()
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Aggregation failed: {e}", extra={"tenant_id": tenant_id})
        raise HTTPException(status_code=500, detail=f"Aggregation failed: {str(e)}")
