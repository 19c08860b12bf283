"""HALO — Platform Models (tenants & connections).

Owned by the platform layer; the pipeline only reads them.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint

from halo.models.enums import ConnectionStatus


def _new_id() -> str:
    return str(uuid4())


class Tenant(SQLModel, table=True):
    """Isolation boundary — every pipeline row belongs to exactly one."""

    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    plan: str = Field(default="starter")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Connection(SQLModel, table=True):
    """A tenant's link to one external account on one source."""

    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint(
            "source", "external_account_id", name="uq_connection_account"
        ),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    source: str = Field(description="shopify | meta | google")
    external_account_id: str
    credentials: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    status: str = Field(default=ConnectionStatus.ACTIVE.value)
    config: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE.value
