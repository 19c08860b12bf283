"""HALO — Daily Summary Repository."""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from halo.database import dialect_insert
from halo.models.analytics_models import METRIC_NAMES, DailySummary


class DailySummaryRepo:
    def __init__(self, session: Session):
        self.session = session

    def upsert(self, row: Dict[str, Any]) -> None:
        """Insert or fully replace the summary for (tenant_id, summary_date)."""
        stmt = dialect_insert(self.session, DailySummary).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "summary_date"],
            set_={
                name: getattr(stmt.excluded, name)
                for name in (*METRIC_NAMES, "computed_at")
            },
        )
        self.session.connection().execute(stmt)
        self.session.commit()

    def get(self, tenant_id: str, day: date) -> Optional[DailySummary]:
        return self.session.exec(
            select(DailySummary).where(
                DailySummary.tenant_id == tenant_id,
                DailySummary.summary_date == day,
            )
        ).first()

    def between(self, tenant_id: str, start: date, end: date) -> List[DailySummary]:
        return list(
            self.session.exec(
                select(DailySummary)
                .where(
                    DailySummary.tenant_id == tenant_id,
                    DailySummary.summary_date >= start,
                    DailySummary.summary_date <= end,
                )
                .order_by(DailySummary.summary_date)  # type: ignore
            ).all()
        )
