"""
Admin / operational endpoints.

GET  /admin/health
GET  /admin/diagnostics
PUT  /admin/tenants/{tenant_id}/destination
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from notionsync.config import Settings
from notionsync.database import get_db
from notionsync.deps import get_app_settings, get_orchestrator, require_admin_token
from notionsync.errors import DestinationUnreachable
from notionsync.schemas import DestinationUpdate, DiagnosticsResponse, HealthResponse
from notionsync.services.sync import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        db_status = "error"
    return HealthResponse(status="ok", db=db_status)


@router.get(
    "/diagnostics",
    response_model=DiagnosticsResponse,
    dependencies=[Depends(require_admin_token)],
)
async def diagnostics(
    settings: Settings = Depends(get_app_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> DiagnosticsResponse:
    """Is the service able to authenticate events and reach its default destination?"""
    result = DiagnosticsResponse(
        webhook_secret=bool(settings.shopify_webhook_secret),
        oauth_secret=bool(settings.shopify_api_secret),
        fallback_destination=orchestrator.fallback is not None,
    )
    fallback = orchestrator.fallback
    if fallback is None:
        return result

    orchestrator.introspector.invalidate(fallback.destination_id)
    try:
        schema = await orchestrator.introspector.get_schema(
            fallback.destination_id, fallback.credential_token
        )
    except DestinationUnreachable as exc:
        logger.warning("Default destination check failed: %s", exc.message)
        result.fallback_reachable = False
        return result

    result.fallback_reachable = True
    result.fallback_properties = len(schema.properties)
    return result


@router.put(
    "/tenants/{tenant_id}/destination",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin_token)],
)
async def update_tenant_destination(
    tenant_id: str,
    body: DestinationUpdate,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> None:
    updated = await orchestrator.resolver.repository.update_destination_id(
        tenant_id, body.destination_id
    )
    if not updated:
        raise HTTPException(status_code=404, detail=f"Tenant {tenant_id!r} not found")
    # A re-pointed destination may have been re-created with a new schema
    orchestrator.introspector.invalidate(body.destination_id)
