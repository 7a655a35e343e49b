#!/usr/bin/env python3
"""
CLI: Inspect a Notion destination and preview how orders map onto it.

Usage:
    # Property table + dry-run mapping of a sample order (default destination)
    python -m cli.inspect_destination

    # A specific database with a specific integration token
    python -m cli.inspect_destination --destination <db-id> --token <secret>

    # Which workspaces receive a storefront's orders
    python -m cli.inspect_destination --storefront shop-1.myshopify.com
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from notionsync.config import get_settings
from notionsync.crypto import mask_token
from notionsync.database import AsyncSessionLocal
from notionsync.errors import DestinationUnreachable
from notionsync.services.mapping import FieldMapper
from notionsync.services.notion_client import NotionClient
from notionsync.services.orders import Address, LineItem, Order
from notionsync.services.schema import SchemaIntrospector
from notionsync.services.tenants import SqlTenantRepository, TenantResolver


def sample_order() -> Order:
    now = datetime.now(timezone.utc)
    return Order(
        order_id="999999",
        order_number=999999,
        display_name="#999999 - TEST ORDER",
        customer_first_name="Test",
        customer_last_name="Customer",
        customer_email="test@example.com",
        total_price="123.45",
        subtotal_price="100.00",
        total_tax="23.45",
        currency="USD",
        financial_status="paid",
        fulfillment_status="partially_fulfilled",
        line_items=(LineItem(title="Test Product", quantity=2, price="50.00"),),
        shipping_address=Address(
            address1="123 Test Street", city="Test City", province="TS", zip="12345", country="US"
        ),
        note="Preview generated by inspect_destination",
        status_url="https://example.com/orders/999999",
        created_at=now,
        updated_at=now,
    )


async def cmd_inspect(destination_id: str, token: str) -> None:
    settings = get_settings()
    mapper = FieldMapper(high_value_threshold=settings.high_value_threshold)

    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.notion_timeout_seconds)) as http:
        introspector = SchemaIntrospector(NotionClient.from_settings(http, settings))
        try:
            schema = await introspector.get_schema(destination_id, token)
        except DestinationUnreachable as exc:
            print(f"ERROR: {exc.message}", file=sys.stderr)
            sys.exit(1)

    print(f"\nDestination {destination_id} ({schema.title or 'Untitled'}) token={mask_token(token)}")
    print(f"\n{'PROPERTY':<30} {'TYPE':<14} SOURCE")
    print("-" * 70)
    for name, ptype in sorted(schema.properties.items()):
        rule = mapper.rule_for(name, ptype)
        print(f"{name:<30} {ptype:<14} {rule.source if rule else '-'}")

    if schema.title_property is None:
        print("\nWARNING: no title property; synced orders will have no name")

    print("\nDry-run mapping of a sample order:")
    print(json.dumps(mapper.map(sample_order(), schema), indent=2, ensure_ascii=False))


async def cmd_bindings(storefront: str) -> None:
    settings = get_settings()
    resolver = TenantResolver(
        SqlTenantRepository(AsyncSessionLocal), suffix=settings.storefront_suffix
    )
    bindings = await resolver.resolve(storefront)

    if not bindings:
        target = settings.notion_db_id if settings.fallback_configured else "nowhere"
        print(f"No tenant bound to {resolver.normalize(storefront)!r}; orders go to {target}.")
        return

    print(f"\n{'TENANT':<38} {'DESTINATION':<38} TOKEN")
    print("-" * 90)
    for b in bindings:
        print(f"{b.tenant_id:<38} {b.destination_id:<38} {mask_token(b.credential_token)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Notion destination inspection")
    parser.add_argument("--destination", metavar="DB_ID", help="Database id (default: NOTION_DB_ID)")
    parser.add_argument("--token", help="Integration token (default: NOTION_TOKEN)")
    parser.add_argument("--storefront", metavar="DOMAIN", help="List bindings for a storefront")
    args = parser.parse_args()

    if args.storefront:
        asyncio.run(cmd_bindings(args.storefront))
        return

    settings = get_settings()
    destination = args.destination or settings.notion_db_id
    token = args.token or settings.notion_token
    if not destination or not token:
        print("ERROR: give --destination and --token or set NOTION_DB_ID / NOTION_TOKEN", file=sys.stderr)
        sys.exit(1)
    asyncio.run(cmd_inspect(destination, token))


if __name__ == "__main__":
    main()
