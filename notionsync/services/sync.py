"""
Per-event sync pipeline.

    Received -> Verified -> Parsed -> TenantsResolved
             -> per tenant: Mapping -> Written | Failed
             -> Aggregated

Only the event-level steps can fail the request (ConfigurationMissing,
AuthenticationFailure, MalformedPayload).  Each tenant runs concurrently
and in isolation: its errors become a failed SyncOutcome and never touch
the other tenants or the aggregate response.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional

from notionsync.errors import (
    AuthenticationFailure,
    ConfigurationMissing,
    SyncError,
    WriteRejected,
)
from notionsync.schemas import SyncOutcome, SyncResponse
from notionsync.services.mapping import FieldMapper
from notionsync.services.orders import Order, decode_body, parse_order, storefront_from_payload
from notionsync.services.schema import SchemaIntrospector
from notionsync.services.signatures import SignatureMode, verify
from notionsync.services.tenants import TenantBinding, TenantResolver
from notionsync.services.writer import PageWriter

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-shopify-hmac-sha256"
STOREFRONT_HEADER = "x-shopify-shop-domain"

FALLBACK_TENANT_ID = "default"


@dataclass(frozen=True)
class InboundEvent:
    """One webhook delivery; the body stays raw until the signature is checked."""

    raw_body: bytes
    signature: Optional[str] = None
    storefront: Optional[str] = None

    @classmethod
    def from_headers(cls, raw_body: bytes, headers: Mapping[str, str]) -> "InboundEvent":
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            raw_body=raw_body,
            signature=lowered.get(SIGNATURE_HEADER),
            storefront=lowered.get(STOREFRONT_HEADER),
        )


@dataclass(frozen=True)
class FallbackDestination:
    credential_token: str
    destination_id: str


class SyncOrchestrator:
    def __init__(
        self,
        webhook_secret: Optional[str],
        resolver: TenantResolver,
        introspector: SchemaIntrospector,
        mapper: FieldMapper,
        writer: PageWriter,
        fallback: Optional[FallbackDestination] = None,
    ) -> None:
        self._webhook_secret = webhook_secret
        self.resolver = resolver
        self.introspector = introspector
        self.mapper = mapper
        self.writer = writer
        self.fallback = fallback

    async def handle(self, event: InboundEvent) -> SyncResponse:
        if not self._webhook_secret:
            logger.error("Webhook secret is not configured – refusing event")
            raise ConfigurationMissing("Webhook secret not configured")

        if not verify(event.raw_body, event.signature, self._webhook_secret, SignatureMode.BASE64):
            logger.warning(
                "Rejected webhook with %s signature (storefront=%s)",
                "invalid" if event.signature else "missing", event.storefront,
            )
            raise AuthenticationFailure("Invalid webhook signature")
        logger.info("Webhook signature verified")

        data = decode_body(event.raw_body)
        order = parse_order(data)
        storefront = self.resolver.normalize(event.storefront or storefront_from_payload(data))
        logger.info(
            "Processing order %s (#%s) for storefront=%s",
            order.order_id, order.order_number, storefront or "unknown",
        )

        bindings = await self.resolver.resolve(storefront)
        if bindings:
            outcomes = list(
                await asyncio.gather(*(self._sync_tenant(order, b) for b in bindings))
            )
            target = "tenants"
        elif self.fallback is not None:
            logger.warning(
                "No tenant bound to storefront=%s – syncing to default destination",
                storefront or "unknown",
            )
            outcomes = [await self._sync_fallback(order)]
            target = "default"
        else:
            logger.warning(
                "No tenant bound to storefront=%s and no default destination configured",
                storefront or "unknown",
            )
            outcomes = []
            target = "none"

        return self._aggregate(order, storefront, target, outcomes)

    async def sync_order(self, order: Order, binding: TenantBinding) -> str:
        """Introspect, map and write one order for one binding; returns the record id."""
        if binding.credential_error:
            raise ConfigurationMissing(binding.credential_error)
        schema = await self.introspector.get_schema(
            binding.destination_id, binding.credential_token
        )
        mapping = self.mapper.map(order, schema)
        return await self.writer.write(
            binding.destination_id, binding.credential_token, mapping
        )

    async def _sync_tenant(
        self, order: Order, binding: TenantBinding, target: str = "tenant"
    ) -> SyncOutcome:
        try:
            record_id = await self.sync_order(order, binding)
        except WriteRejected as exc:
            logger.warning(
                "Tenant %s rejected order %s: %s", binding.tenant_id, order.order_id, exc.detail
            )
            return self._failed(binding, target, exc.detail)
        except SyncError as exc:
            logger.warning(
                "Tenant %s sync failed for order %s: %s",
                binding.tenant_id, order.order_id, exc.message,
            )
            return self._failed(binding, target, exc.message)
        except Exception as exc:
            logger.exception(
                "Unexpected error syncing order %s to tenant %s", order.order_id, binding.tenant_id
            )
            return self._failed(binding, target, str(exc) or type(exc).__name__)

        return SyncOutcome(
            tenant_id=binding.tenant_id,
            success=True,
            destination_id=binding.destination_id,
            record_id=record_id,
            target=target,
        )

    async def _sync_fallback(self, order: Order) -> SyncOutcome:
        binding = TenantBinding(
            tenant_id=FALLBACK_TENANT_ID,
            storefront_id="",
            credential_token=self.fallback.credential_token,
            destination_id=self.fallback.destination_id,
        )
        return await self._sync_tenant(order, binding, target="default")

    @staticmethod
    def _failed(binding: TenantBinding, target: str, error: str) -> SyncOutcome:
        return SyncOutcome(
            tenant_id=binding.tenant_id,
            success=False,
            destination_id=binding.destination_id,
            error=error,
            target=target,
        )

    @staticmethod
    def _aggregate(
        order: Order, storefront: str, target: str, outcomes: List[SyncOutcome]
    ) -> SyncResponse:
        synced = sum(1 for o in outcomes if o.success)

        if target == "default":
            synced_to_tenants = 0
            total_tenants = 0
            message = (
                "Order synced to default destination"
                if synced else "Order could not be synced to default destination"
            )
        else:
            synced_to_tenants = synced
            total_tenants = len(outcomes)
            message = (
                f"Order synced to {synced}/{total_tenants} workspace database(s)"
                if outcomes else "No workspace is connected to this storefront"
            )

        logger.info(
            "Order %s aggregated: target=%s synced=%d attempted=%d",
            order.order_id, target, synced, len(outcomes),
        )
        return SyncResponse(
            success=synced > 0 or not outcomes,
            message=message,
            order_id=order.order_id,
            order_number=order.order_number,
            storefront=storefront,
            target=target,
            synced_to_tenants=synced_to_tenants,
            total_tenants=total_tenants,
            per_tenant_results=outcomes,
        )
