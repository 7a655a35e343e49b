"""
FastAPI dependency utilities: raw inbound events, the shared orchestrator,
admin bearer-token check.
"""
from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException, Request, status

from notionsync.config import Settings, get_settings
from notionsync.services.sync import InboundEvent, SyncOrchestrator

logger = logging.getLogger(__name__)


async def inbound_event(request: Request) -> InboundEvent:
    """Raw body + headers; parsing waits until the signature is verified."""
    body = await request.body()
    return InboundEvent.from_headers(body, request.headers)


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """The orchestrator built at startup (see main._startup)."""
    return request.app.state.orchestrator


def get_app_settings() -> Settings:
    return get_settings()


async def require_admin_token(
    authorization: str | None = Header(default=None),
) -> None:
    token = get_settings().admin_api_token
    if not token:
        return
    if authorization and authorization.startswith("Bearer "):
        provided = authorization.removeprefix("Bearer ").strip()
        if hmac.compare_digest(provided.encode(), token.encode()):
            return
    logger.warning("Rejected admin request with invalid or missing bearer token")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing Bearer token",
    )
