"""HALO — Shared API dependencies."""

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from halo.database import get_session
from halo.platform.repository import TenantRepo


def get_tenant_id(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    session: Session = Depends(get_session),
) -> str:
    """Tenant for the request, passed explicitly by the (external) auth layer."""
    if TenantRepo(session).get(x_tenant_id) is None:
        raise HTTPException(status_code=404, detail="Unknown tenant")
    return x_tenant_id
