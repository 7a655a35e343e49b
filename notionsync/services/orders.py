"""
Order normalization: raw webhook JSON -> immutable Order record.

Accepts the native Shopify order webhook and the flat shape produced by the
automation relay.  Placeholder values the relay uses for "nothing here"
(fake e-mail, "No Address", ...) are recognized and dropped so they are never
written to a destination as data.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from notionsync.errors import MalformedPayload
from notionsync.schemas import FlatOrderPayload, ShopifyOrderPayload

logger = logging.getLogger(__name__)

# ── Placeholder values ───────────────────────────────────────────────────────

PLACEHOLDER_EMAILS = frozenset({"no-email@manual-order.com"})
PLACEHOLDER_CUSTOMERS = frozenset({"manual order - no customer", "no customer"})
PLACEHOLDER_ADDRESSES = frozenset({"no address", "no shipping address"})
PLACEHOLDER_PHONES = frozenset({"no phone"})


def present(value: Optional[str], placeholders: Iterable[str] = ()) -> Optional[str]:
    """Return *value* stripped, or None if it is empty or a known placeholder."""
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned or cleaned.lower() in placeholders:
        return None
    return cleaned


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp %r ignored", value)
        return None


# ── Order record ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Address:
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

    def as_text(self) -> Optional[str]:
        region = " ".join(p for p in (self.province, self.zip) if p)
        parts = [self.address1, self.address2, self.city, region, self.country]
        text = ", ".join(p.strip() for p in parts if p and p.strip())
        return present(text, PLACEHOLDER_ADDRESSES)


@dataclass(frozen=True)
class LineItem:
    title: str
    quantity: int = 1
    price: Optional[str] = None
    variant_title: Optional[str] = None

    def as_text(self) -> str:
        label = self.title
        if self.variant_title:
            label = f"{label} / {self.variant_title}"
        text = f"{label} (x{self.quantity})"
        if self.price:
            text += f" - {self.price}"
        return text


@dataclass(frozen=True)
class Order:
    order_id: str
    order_number: Optional[int] = None
    display_name: Optional[str] = None
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    total_price: Optional[str] = None
    subtotal_price: Optional[str] = None
    total_tax: Optional[str] = None
    currency: Optional[str] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    line_items: Tuple[LineItem, ...] = ()
    # Free text from relays that pre-format the item list
    line_items_text: Optional[str] = None
    shipping_address: Optional[Address] = None
    note: Optional[str] = None
    status_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def customer_name(self) -> Optional[str]:
        name = " ".join(
            p for p in (self.customer_first_name, self.customer_last_name) if p
        )
        return present(name, PLACEHOLDER_CUSTOMERS)

    @property
    def title(self) -> str:
        if self.display_name:
            return self.display_name
        return f"Order #{self.order_number if self.order_number is not None else self.order_id}"

    @property
    def items_summary(self) -> Optional[str]:
        if self.line_items:
            return "\n".join(item.as_text() for item in self.line_items)
        return present(self.line_items_text)

    @property
    def item_count(self) -> Optional[int]:
        if not self.line_items:
            return None
        return sum(item.quantity for item in self.line_items)


# ── Parsing ──────────────────────────────────────────────────────────────────

def decode_body(raw_body: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayload("Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise MalformedPayload("Order payload must be a JSON object")
    return data


def storefront_from_payload(data: Dict[str, Any]) -> Optional[str]:
    for key in ("shopDomain", "shop_domain", "shop"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _from_shopify(payload: ShopifyOrderPayload) -> Order:
    customer = payload.customer
    address = payload.shipping_address
    shipping = None
    if address is not None:
        shipping = Address(
            address1=present(address.address1, PLACEHOLDER_ADDRESSES),
            address2=present(address.address2),
            city=present(address.city),
            province=present(address.province),
            zip=present(address.zip),
            country=present(address.country),
        )
        if shipping.as_text() is None:
            shipping = None

    email = customer.email if customer and customer.email else payload.email
    phone = customer.phone if customer and customer.phone else None
    if not phone and address is not None:
        phone = address.phone

    return Order(
        order_id=str(payload.id),
        order_number=payload.order_number,
        display_name=present(payload.name),
        customer_first_name=present(customer.first_name) if customer else None,
        customer_last_name=present(customer.last_name) if customer else None,
        customer_email=present(email, PLACEHOLDER_EMAILS),
        customer_phone=present(phone, PLACEHOLDER_PHONES),
        total_price=present(payload.total_price),
        subtotal_price=present(payload.subtotal_price),
        total_tax=present(payload.total_tax),
        currency=present(payload.currency),
        financial_status=present(payload.financial_status),
        fulfillment_status=present(payload.fulfillment_status),
        line_items=tuple(
            LineItem(
                title=item.title,
                quantity=item.quantity,
                price=present(item.price),
                variant_title=present(item.variant_title),
            )
            for item in payload.line_items
        ),
        shipping_address=shipping,
        note=present(payload.note),
        status_url=present(payload.order_status_url),
        created_at=parse_timestamp(payload.created_at),
        updated_at=parse_timestamp(payload.updated_at),
    )


def _from_flat(payload: FlatOrderPayload) -> Order:
    first = last = None
    name = present(payload.customer_name, PLACEHOLDER_CUSTOMERS)
    if name:
        first, _, rest = name.partition(" ")
        last = rest or None

    address_text = present(payload.shipping_address, PLACEHOLDER_ADDRESSES)
    created = parse_timestamp(payload.created_at)

    return Order(
        order_id=payload.order_id,
        order_number=payload.order_number,
        display_name=present(payload.order_name),
        customer_first_name=first,
        customer_last_name=last,
        customer_email=present(payload.customer_email, PLACEHOLDER_EMAILS),
        customer_phone=present(payload.customer_phone, PLACEHOLDER_PHONES),
        total_price=present(payload.total_price),
        subtotal_price=present(payload.subtotal_price),
        total_tax=present(payload.total_tax),
        currency=present(payload.currency),
        financial_status=present(payload.payment_status),
        fulfillment_status=present(payload.order_status),
        line_items_text=present(payload.line_items),
        shipping_address=Address(address1=address_text) if address_text else None,
        note=present(payload.note),
        status_url=present(payload.admin_link),
        created_at=created,
        updated_at=parse_timestamp(payload.updated_at) or created,
    )


def parse_order(data: Dict[str, Any]) -> Order:
    """Build an Order from a decoded payload; raises MalformedPayload."""
    try:
        if "orderId" in data and "id" not in data:
            return _from_flat(FlatOrderPayload.model_validate(data))
        return _from_shopify(ShopifyOrderPayload.model_validate(data))
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) for err in exc.errors()
        )
        raise MalformedPayload(f"Invalid order payload ({fields})") from exc
