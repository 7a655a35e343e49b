"""
Shared pytest fixtures – in-memory SQLite tenant store, a fake Notion API
behind httpx.MockTransport, and sample orders.
"""
from __future__ import annotations

import dataclasses
import json
import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional, Tuple

from cryptography.fernet import Fernet

# Configure test env before any notionsync import reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CONFIG_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("SHOPIFY_WEBHOOK_SECRET", "testsecret")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from notionsync.models import Base  # noqa: E402
from notionsync.services.mapping import FieldMapper  # noqa: E402
from notionsync.services.notion_client import NotionClient  # noqa: E402
from notionsync.services.orders import Address, LineItem, Order  # noqa: E402
from notionsync.services.schema import SchemaIntrospector  # noqa: E402
from notionsync.services.sync import FallbackDestination, SyncOrchestrator  # noqa: E402
from notionsync.services.tenants import TenantBinding, TenantResolver  # noqa: E402
from notionsync.services.writer import PageWriter  # noqa: E402

TEST_SECRET = "testsecret"
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ORDERS_SCHEMA: Dict[str, str] = {
    "Name": "title",
    "Order ID": "rich_text",
    "Order Number": "number",
    "Customer": "rich_text",
    "Email": "email",
    "Total Price": "number",
    "Currency": "select",
    "Fulfillment": "status",
    "Created At": "date",
    "Shipping Address": "rich_text",
    "Line Items": "rich_text",
    "Order Link": "url",
    "High Value": "checkbox",
}


@pytest.fixture
def orders_schema() -> Dict[str, str]:
    return dict(ORDERS_SCHEMA)


# ── Fake Notion API ──────────────────────────────────────────────────────────

class FakeNotion:
    """Just enough of the Notion REST API: retrieve database, create page."""

    def __init__(self) -> None:
        self.databases: Dict[str, Tuple[str, Dict[str, str]]] = {}
        self.pages: List[dict] = []
        self.schema_calls: List[str] = []
        self.schema_failures: Dict[str, int] = {}
        self.write_failures: Dict[str, Tuple[int, dict]] = {}
        self.unreachable: set = set()
        self.requests: List[httpx.Request] = []

    def add_database(
        self, db_id: str, properties: Optional[Dict[str, str]] = None, title: str = "Orders"
    ) -> None:
        self.databases[db_id] = (title, dict(ORDERS_SCHEMA if properties is None else properties))

    def pages_for(self, db_id: str) -> List[dict]:
        return [p for p in self.pages if p["database_id"] == db_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.startswith("/v1/databases/"):
            db_id = path.rsplit("/", 1)[1]
            self.schema_calls.append(db_id)
            if db_id in self.unreachable:
                raise httpx.ConnectError("connection refused", request=request)
            if db_id in self.schema_failures:
                return httpx.Response(
                    self.schema_failures[db_id],
                    json={"object": "error", "message": "schema unavailable"},
                )
            if db_id not in self.databases:
                return httpx.Response(
                    404,
                    json={"object": "error", "code": "object_not_found",
                          "message": f"Could not find database with ID: {db_id}."},
                )
            title, props = self.databases[db_id]
            return httpx.Response(200, json={
                "object": "database",
                "id": db_id,
                "title": [{"plain_text": title}],
                "properties": {
                    name: {"id": f"p{i}", "name": name, "type": ptype, ptype: {}}
                    for i, (name, ptype) in enumerate(props.items())
                },
            })

        if request.method == "POST" and path == "/v1/pages":
            payload = json.loads(request.content)
            db_id = payload["parent"]["database_id"]
            if db_id in self.unreachable:
                raise httpx.ConnectError("connection refused", request=request)
            if db_id in self.write_failures:
                status, body = self.write_failures[db_id]
                return httpx.Response(status, json=body)
            page_id = f"page-{len(self.pages) + 1}"
            self.pages.append({
                "id": page_id,
                "database_id": db_id,
                "properties": payload["properties"],
                "authorization": request.headers.get("Authorization"),
            })
            return httpx.Response(200, json={"object": "page", "id": page_id})

        return httpx.Response(404, json={"object": "error", "message": "unknown route"})


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest_asyncio.fixture
async def notion_client(fake_notion) -> AsyncGenerator[NotionClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_notion.handler)) as http:
        yield NotionClient(http)


# ── Tenant store ─────────────────────────────────────────────────────────────

class InMemoryTenantRepository:
    def __init__(self, bindings: Optional[List[TenantBinding]] = None) -> None:
        self.bindings: List[TenantBinding] = list(bindings or [])
        self.lookups: List[str] = []

    async def find_bindings_by_storefront(self, storefront_id: str) -> List[TenantBinding]:
        self.lookups.append(storefront_id)
        return [b for b in self.bindings if b.storefront_id == storefront_id]

    async def update_destination_id(self, tenant_id: str, destination_id: str) -> bool:
        for i, b in enumerate(self.bindings):
            if b.tenant_id == tenant_id:
                self.bindings[i] = dataclasses.replace(b, destination_id=destination_id)
                return True
        return False


@pytest.fixture
def repository() -> InMemoryTenantRepository:
    return InMemoryTenantRepository()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ── Engine wiring ────────────────────────────────────────────────────────────

@pytest.fixture
def make_orchestrator(notion_client, repository):
    def _make(
        fallback: Optional[FallbackDestination] = None,
        secret: Optional[str] = TEST_SECRET,
    ) -> SyncOrchestrator:
        return SyncOrchestrator(
            webhook_secret=secret,
            resolver=TenantResolver(repository),
            introspector=SchemaIntrospector(notion_client),
            mapper=FieldMapper(),
            writer=PageWriter(notion_client),
            fallback=fallback,
        )

    return _make


# ── Orders ───────────────────────────────────────────────────────────────────

BASE_ORDER = Order(
    order_id="5550001",
    order_number=1001,
    display_name="#1001",
    customer_first_name="John",
    customer_last_name="Doe",
    customer_email="john@test.com",
    customer_phone="+1234567890",
    total_price="99.99",
    subtotal_price="90.00",
    total_tax="9.99",
    currency="USD",
    financial_status="paid",
    fulfillment_status="partially_fulfilled",
    line_items=(
        LineItem(title="Blue Mug", quantity=2, price="30.00"),
        LineItem(title="Tea Towel", quantity=1, price="30.00", variant_title="Large"),
    ),
    shipping_address=Address(
        address1="1 Main St", city="Springfield", province="IL", zip="62701", country="US"
    ),
    note="Leave at the door",
    status_url="https://shop-1.myshopify.com/orders/abc/authenticate",
    created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    updated_at=datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc),
)


@pytest.fixture
def make_order():
    def _make(**overrides) -> Order:
        return dataclasses.replace(BASE_ORDER, **overrides)

    return _make


@pytest.fixture
def shopify_payload() -> dict:
    return {
        "id": 5550001,
        "order_number": 1001,
        "name": "#1001",
        "email": "john@test.com",
        "created_at": "2024-05-01T12:30:00Z",
        "updated_at": "2024-05-02T08:00:00Z",
        "total_price": "99.99",
        "subtotal_price": "90.00",
        "total_tax": "9.99",
        "currency": "USD",
        "financial_status": "paid",
        "fulfillment_status": None,
        "note": "Leave at the door",
        "order_status_url": "https://shop-1.myshopify.com/orders/abc/authenticate",
        "customer": {
            "id": 42,
            "first_name": "John",
            "last_name": "Doe",
            "email": "john@test.com",
            "phone": None,
        },
        "shipping_address": {
            "first_name": "John",
            "last_name": "Doe",
            "address1": "1 Main St",
            "address2": None,
            "city": "Springfield",
            "province": "IL",
            "country": "US",
            "zip": "62701",
            "phone": "+1234567890",
        },
        "line_items": [
            {"id": 1, "title": "Blue Mug", "quantity": 2, "price": "30.00",
             "variant_title": None, "product_id": 10, "variant_id": 11},
        ],
    }
