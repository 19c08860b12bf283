"""HALO — Platform lookups (tenants & connections), read-only."""

from typing import List, Optional

from sqlmodel import Session, select

from halo.models.enums import ConnectionStatus
from halo.models.platform_models import Connection, Tenant


class ConnectionRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.session.get(Connection, connection_id)

    def find_by_external_account(
        self, source: str, external_account_id: str
    ) -> Optional[Connection]:
        """Active connection for a provider account, used to route webhooks."""
        return self.session.exec(
            select(Connection).where(
                Connection.source == source,
                Connection.external_account_id == external_account_id,
                Connection.status == ConnectionStatus.ACTIVE.value,
            )
        ).first()


class TenantRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, tenant_id: str) -> Optional[Tenant]:
        return self.session.get(Tenant, tenant_id)

    def list_all(self) -> List[Tenant]:
        return list(self.session.exec(select(Tenant).order_by(Tenant.created_at)).all())
