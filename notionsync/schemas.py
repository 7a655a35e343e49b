"""
Pydantic schemas for inbound order payloads and sync responses.
"""
from __future__ import annotations

from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _money_to_str(v: Any) -> Any:
    # Keep money as decimal strings; relays sometimes send bare numbers
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return v


Money = Annotated[Optional[str], BeforeValidator(_money_to_str)]


# ── Native Shopify order webhook ─────────────────────────────────────────────

class ShopifyCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ShopifyAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class ShopifyLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    quantity: int = 1
    price: Money = None
    variant_title: Optional[str] = None


class ShopifyOrderPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    order_number: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    total_price: Money = None
    subtotal_price: Money = None
    total_tax: Money = None
    currency: Optional[str] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    note: Optional[str] = None
    order_status_url: Optional[str] = None
    customer: Optional[ShopifyCustomer] = None
    shipping_address: Optional[ShopifyAddress] = None
    line_items: List[ShopifyLineItem] = []


# ── Flat relay shape (pre-processed by an automation workflow) ──────────────

class FlatOrderPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    order_id: str = Field(alias="orderId")
    order_number: Optional[int] = Field(default=None, alias="orderNumber")
    order_name: Optional[str] = Field(default=None, alias="orderName")
    shop_domain: Optional[str] = Field(default=None, alias="shopDomain")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")
    customer_phone: Optional[str] = Field(default=None, alias="customerPhone")
    shipping_address: Optional[str] = Field(default=None, alias="shippingAddress")
    total_price: Money = Field(default=None, alias="totalPrice")
    subtotal_price: Money = Field(default=None, alias="subtotalPrice")
    total_tax: Money = Field(default=None, alias="totalTax")
    currency: Optional[str] = None
    order_status: Optional[str] = Field(default=None, alias="orderStatus")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    line_items: Optional[str] = Field(default=None, alias="lineItems")
    note: Optional[str] = None
    admin_link: Optional[str] = Field(default=None, alias="shopifyAdminLink")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @field_validator("order_id", mode="before")
    @classmethod
    def _order_id_to_str(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


# ── Responses ────────────────────────────────────────────────────────────────

class SyncOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(serialization_alias="tenantId")
    success: bool
    destination_id: Optional[str] = Field(default=None, serialization_alias="destinationId")
    record_id: Optional[str] = Field(default=None, serialization_alias="recordId")
    error: Optional[str] = None
    # "tenant" for a bound workspace, "default" for the fallback destination
    target: str = "tenant"


class SyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    order_id: str = Field(serialization_alias="orderId")
    order_number: Optional[int] = Field(default=None, serialization_alias="orderNumber")
    storefront: str
    target: str
    synced_to_tenants: int = Field(serialization_alias="syncedToTenants")
    total_tenants: int = Field(serialization_alias="totalTenants")
    per_tenant_results: List[SyncOutcome] = Field(
        default_factory=list, serialization_alias="perTenantResults"
    )

    def to_json(self) -> dict:
        body = self.model_dump(by_alias=True, exclude_none=True)
        # Name used by callers of the earlier response contract
        body["syncedToUsers"] = self.synced_to_tenants
        return body


class DestinationUpdate(BaseModel):
    destination_id: str = Field(alias="destinationId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class DiagnosticsResponse(BaseModel):
    webhook_secret: bool
    oauth_secret: bool
    fallback_destination: bool
    fallback_reachable: Optional[bool] = None
    fallback_properties: Optional[int] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    db: str = "ok"
