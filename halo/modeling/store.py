"""HALO — Canonical Model Store.

Upserts are ``INSERT … ON CONFLICT (natural key) DO UPDATE`` that copy
fields from the incoming row. Nothing is incremented in place, so the
same raw event applied twice leaves the same row behind.
"""

from datetime import date
from typing import Any, Dict, List

from sqlalchemy import and_, case, func, update
from sqlmodel import Session, select

from halo.core.timeutil import utcnow
from halo.database import dialect_insert
from halo.models.canonical_models import AdSpend, Customer, Order


class CanonicalStore:
    def __init__(self, session: Session):
        self.session = session

    def _execute(self, stmt):
        return self.session.connection().execute(stmt)

    # ── Upserts ──

    def upsert_order(self, row: Dict[str, Any]) -> None:
        now = utcnow()
        stmt = dialect_insert(self.session, Order).values(
            **row, created_at=now, updated_at=now
        )
        # customer_id is owned by the linking step; a reprocessed order
        # must not unlink itself.
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "source", "external_id"],
            set_={
                "customer_email": stmt.excluded.customer_email,
                "line_items": stmt.excluded.line_items,
                "subtotal": stmt.excluded.subtotal,
                "total_discount": stmt.excluded.total_discount,
                "total_tax": stmt.excluded.total_tax,
                "total_revenue": stmt.excluded.total_revenue,
                "currency": stmt.excluded.currency,
                "order_date": stmt.excluded.order_date,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._execute(stmt)

    def upsert_customer(self, row: Dict[str, Any]) -> None:
        now = utcnow()
        stmt = dialect_insert(self.session, Customer).values(
            **row, created_at=now, updated_at=now
        )
        existing = Customer.__table__.c.first_order_date
        incoming = stmt.excluded.first_order_date
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "source", "external_id"],
            set_={
                "email": stmt.excluded.email,
                # Earliest first-order date ever seen wins.
                "first_order_date": case(
                    (existing.is_(None), incoming),
                    (incoming.is_(None), existing),
                    (existing <= incoming, existing),
                    else_=incoming,
                ),
                "total_orders": stmt.excluded.total_orders,
                "total_revenue": stmt.excluded.total_revenue,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._execute(stmt)

    def upsert_ad_spend(self, row: Dict[str, Any]) -> None:
        stmt = dialect_insert(self.session, AdSpend).values(**row, created_at=utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "source", "campaign_id", "spend_date"],
            set_={
                "campaign_name": stmt.excluded.campaign_name,
                "amount": stmt.excluded.amount,
                "impressions": stmt.excluded.impressions,
                "clicks": stmt.excluded.clicks,
            },
        )
        self._execute(stmt)

    # ── Order ↔ customer linking ──

    def _customer_id_for(self, tenant_id: str, source: str, email: str):
        return (
            select(Customer.id)
            .where(
                Customer.tenant_id == tenant_id,
                Customer.source == source,
                Customer.email == email,
            )
            .order_by(Customer.id)  # type: ignore
            .limit(1)
            .scalar_subquery()
        )

    def link_order_customer(self, tenant_id: str, source: str, external_id: str) -> int:
        """Point one order at the canonical customer sharing its email."""
        result = self._execute(
            update(Order)
            .where(
                Order.tenant_id == tenant_id,
                Order.source == source,
                Order.external_id == external_id,
                Order.customer_email != "",
                Order.customer_id.is_(None),  # type: ignore
            )
            .values(
                customer_id=self._customer_id_for(
                    tenant_id, source, Order.__table__.c.customer_email
                )
            )
        )
        return result.rowcount

    def link_customer_orders(self, tenant_id: str, source: str, email: str) -> int:
        """Backfill the link on orders that arrived before their customer."""
        if not email:
            return 0
        result = self._execute(
            update(Order)
            .where(
                Order.tenant_id == tenant_id,
                Order.source == source,
                Order.customer_email == email,
                Order.customer_id.is_(None),  # type: ignore
            )
            .values(customer_id=self._customer_id_for(tenant_id, source, email))
        )
        return result.rowcount

    # ── Reads for aggregation ──

    def orders_on(self, tenant_id: str, day: date) -> List[Order]:
        return list(
            self.session.exec(
                select(Order).where(Order.tenant_id == tenant_id, Order.order_date == day)
            ).all()
        )

    def new_customers_on(self, tenant_id: str, day: date) -> List[Customer]:
        return list(
            self.session.exec(
                select(Customer).where(
                    Customer.tenant_id == tenant_id, Customer.first_order_date == day
                )
            ).all()
        )

    def ad_spend_on(self, tenant_id: str, day: date) -> List[AdSpend]:
        return list(
            self.session.exec(
                select(AdSpend).where(
                    AdSpend.tenant_id == tenant_id, AdSpend.spend_date == day
                )
            ).all()
        )

    def ad_spend_totals(
        self, tenant_id: str, start: date, end: date, group_by: str
    ) -> List[tuple]:
        """(group, amount, impressions, clicks) per source or campaign."""
        column = AdSpend.source if group_by == "source" else AdSpend.campaign_id
        return list(
            self.session.exec(
                select(
                    column,
                    func.sum(AdSpend.amount),
                    func.sum(AdSpend.impressions),
                    func.sum(AdSpend.clicks),
                )
                .where(
                    and_(
                        AdSpend.tenant_id == tenant_id,
                        AdSpend.spend_date >= start,
                        AdSpend.spend_date <= end,
                    )
                )
                .group_by(column)
                .order_by(column)
            ).all()
        )
