"""HALO — Ingestion API Routes."""

from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlmodel import Session

from halo.api.deps import get_tenant_id
from halo.core.errors import UnknownSourceError, ValidationError
from halo.core.logging import get_logger
from halo.database import get_session
from halo.ingestion.service import IngestionService
from halo.ingestion.webhooks import resolve_webhook_account, webhook_events
from halo.models.enums import Source
from halo.models.intake_models import BatchIngestRequest
from halo.models.raw_models import IngestionBatch
from halo.models.sync_models import SyncCursor
from halo.platform.repository import ConnectionRepo
from halo.polling.cursors import CursorRepo

logger = get_logger("api.ingestion")

router = APIRouter(prefix="/ingest", tags=["Ingestion"])

SOURCES = {s.value for s in Source}


@router.post("/batch", response_model=IngestionBatch, status_code=201)
async def ingest_batch(
    request: BatchIngestRequest,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Bulk upload of events for the calling tenant."""
    try:
        return IngestionService(session).ingest(
            tenant_id=tenant_id, source=request.source, events=request.events
        )
    except UnknownSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/webhook/{source}", response_model=IngestionBatch, status_code=201)
async def ingest_webhook(
    source: str,
    request: Request,
    body: Union[Dict[str, Any], List[Any]] = Body(...),
    session: Session = Depends(get_session),
):
    """Provider webhook: one payload or a list, routed to the owning connection."""
    if source not in SOURCES:
        raise HTTPException(status_code=400, detail=f"Unsupported source: {source}")

    account_id = resolve_webhook_account(request.headers, body)
    if not account_id:
        raise HTTPException(status_code=400, detail="Cannot determine external account ID")

    connection = ConnectionRepo(session).find_by_external_account(source, account_id)
    if connection is None:
        raise HTTPException(status_code=404, detail="No active connection for this account")

    try:
        events = webhook_events(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return IngestionService(session).ingest(
        tenant_id=connection.tenant_id,
        source=source,
        events=events,
        connection_id=connection.id,
    )


@router.get("/batches", response_model=List[IngestionBatch])
async def list_batches(
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    return IngestionService(session).list_batches(tenant_id)


@router.get("/batches/{batch_id}", response_model=IngestionBatch)
async def get_batch(
    batch_id: int,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    batch = IngestionService(session).get_batch(tenant_id, batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


@router.get("/status")
async def pipeline_status(
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Backlog of unprocessed raw events per source."""
    return IngestionService(session).pipeline_status(tenant_id)


@router.get("/syncs", response_model=List[SyncCursor])
async def list_syncs(
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    return CursorRepo(session).list_for_tenant(tenant_id)


@router.post("/syncs/{cursor_id}/trigger")
async def trigger_sync(
    cursor_id: int,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Make the cursor due on the next poll cycle."""
    if not CursorRepo(session).trigger(cursor_id, tenant_id):
        raise HTTPException(status_code=404, detail="Sync cursor not found")
    return {"status": "success", "message": "Sync triggered"}


@router.post("/syncs/{cursor_id}/reset")
async def reset_sync(
    cursor_id: int,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_session),
):
    """Rewind the cursor to the start for a backfill."""
    if not CursorRepo(session).reset(cursor_id, tenant_id):
        raise HTTPException(status_code=404, detail="Sync cursor not found")
    logger.info("Cursor reset", extra={"cursor_id": cursor_id, "tenant_id": tenant_id})
    return {"status": "success", "message": "Cursor reset"}
