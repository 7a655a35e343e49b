"""
Shopify webhook receiver.

POST /webhooks/orders
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from notionsync.deps import get_orchestrator, inbound_event
from notionsync.services.sync import InboundEvent, SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/orders")
async def order_created(
    event: InboundEvent = Depends(inbound_event),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Receive an order event and sync it to every workspace bound to the storefront.
    Always 200 once the event is authentic and parseable; per-workspace failures
    are reported in perTenantResults.
    """
    result = await orchestrator.handle(event)
    return JSONResponse(status_code=200, content=result.to_json())
