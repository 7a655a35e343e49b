"""
Shopify -> Notion order sync service – FastAPI entry point.
"""
from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notionsync.config import Settings, get_settings
from notionsync.database import AsyncSessionLocal
from notionsync.errors import SyncError
from notionsync.routers import admin, webhooks
from notionsync.services.mapping import FieldMapper
from notionsync.services.notion_client import NotionClient
from notionsync.services.schema import SchemaIntrospector
from notionsync.services.sync import FallbackDestination, SyncOrchestrator
from notionsync.services.tenants import SqlTenantRepository, TenantResolver
from notionsync.services.writer import PageWriter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s – %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="NotionSync",
    version="1.0.0",
    description="Syncs Shopify orders into each tenant's Notion database, adapting to its schema.",
)

# ── Exception handlers ────────────────────────────────────────────────────────

@app.exception_handler(SyncError)
async def _sync_error(request: Request, exc: SyncError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(webhooks.router)
app.include_router(admin.router)


# ── Startup / shutdown ────────────────────────────────────────────────────────

def build_orchestrator(config: Settings, http: httpx.AsyncClient) -> SyncOrchestrator:
    """Wire the sync engine once; every request shares these instances."""
    client = NotionClient.from_settings(http, config)
    fallback = None
    if config.fallback_configured:
        fallback = FallbackDestination(
            credential_token=config.notion_token,
            destination_id=config.notion_db_id,
        )
    return SyncOrchestrator(
        webhook_secret=config.shopify_webhook_secret,
        resolver=TenantResolver(
            SqlTenantRepository(AsyncSessionLocal), suffix=config.storefront_suffix
        ),
        introspector=SchemaIntrospector(client),
        mapper=FieldMapper(high_value_threshold=config.high_value_threshold),
        writer=PageWriter(client),
        fallback=fallback,
    )


@app.on_event("startup")
async def _startup() -> None:
    app.state.http = httpx.AsyncClient(timeout=httpx.Timeout(settings.notion_timeout_seconds))
    app.state.orchestrator = build_orchestrator(settings, app.state.http)

    if not settings.shopify_webhook_secret:
        logger.warning("SHOPIFY_WEBHOOK_SECRET is not set – webhooks will be refused")
    if not settings.fallback_configured:
        logger.info("No default Notion destination; unbound storefronts sync nowhere")
    logger.info("Order sync service ready.")


@app.on_event("shutdown")
async def _shutdown() -> None:
    http = getattr(app.state, "http", None)
    if http is not None:
        await http.aclose()
