"""
Schema-adaptive mapping of an Order onto a destination's properties.

Each destination database has its own set of properties, so instead of a
fixed field list the mapper walks the destination schema and, for every
property, picks the first rule of the table whose property type matches and
whose synonyms occur (case-insensitively) in the property name.  A rule only
looks at the Order and the property it is evaluated for, which makes the
result independent of the order properties are visited in.

A property no rule matches, or whose extractor yields nothing, is left out
of the payload entirely: destinations reject type-mismatched explicit
values, so omission is the only safe "empty".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from notionsync.services.orders import (
    PLACEHOLDER_ADDRESSES,
    PLACEHOLDER_EMAILS,
    PLACEHOLDER_PHONES,
    Order,
    present,
)
from notionsync.services.schema import DestinationSchema

logger = logging.getLogger(__name__)

# Notion caps a single rich-text object at 2000 characters
_MAX_TEXT = 2000
_MAX_OPTION = 100

DEFAULT_FULFILLMENT = "Unfulfilled"

FULFILLMENT_LABELS: Dict[str, str] = {
    "fulfilled": "Fulfilled",
    "partial": "Partially Fulfilled",
    "partially_fulfilled": "Partially Fulfilled",
    "unfulfilled": "Unfulfilled",
    "null": "Unfulfilled",
    "restocked": "Restocked",
    "on_hold": "On Hold",
    "in_progress": "In Progress",
    "scheduled": "Scheduled",
}

FINANCIAL_LABELS: Dict[str, str] = {
    "pending": "Pending",
    "authorized": "Authorized",
    "partially_paid": "Partially Paid",
    "paid": "Paid",
    "partially_refunded": "Partially Refunded",
    "refunded": "Refunded",
    "voided": "Voided",
    "expired": "Expired",
}


def _status_key(value: str) -> str:
    return value.strip().lower().replace("-", "_").replace(" ", "_")


def fulfillment_label(status: Optional[str]) -> str:
    if not status:
        return DEFAULT_FULFILLMENT
    return FULFILLMENT_LABELS.get(_status_key(status), DEFAULT_FULFILLMENT)


def financial_label(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    key = _status_key(status)
    return FINANCIAL_LABELS.get(key) or key.replace("_", " ").title()


def parse_money(value: Optional[str]) -> Optional[Decimal]:
    """Decimal for a monetary string, or None.  Never coerces garbage to 0."""
    if value is None:
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _money_number(value: Optional[str]) -> Optional[float]:
    amount = parse_money(value)
    return float(amount) if amount is not None else None


# ── Rule table ───────────────────────────────────────────────────────────────

Extractor = Callable[[Order], Any]


@dataclass(frozen=True)
class FieldRule:
    property_type: str
    synonyms: Tuple[str, ...]
    extract: Extractor
    # Short label for logs and the inspection CLI
    source: str = ""

    def matches(self, name: str, property_type: str) -> bool:
        if property_type != self.property_type:
            return False
        if not self.synonyms:
            return True
        lowered = name.lower()
        return any(s in lowered for s in self.synonyms)


def _email(order: Order) -> Optional[str]:
    return present(order.customer_email, PLACEHOLDER_EMAILS)


def _phone(order: Order) -> Optional[str]:
    return present(order.customer_phone, PLACEHOLDER_PHONES)


def _address(order: Order) -> Optional[str]:
    if order.shipping_address is None:
        return None
    return present(order.shipping_address.as_text(), PLACEHOLDER_ADDRESSES)


def _fulfillment(order: Order) -> str:
    return fulfillment_label(order.fulfillment_status)


def _financial(order: Order) -> Optional[str]:
    return financial_label(order.financial_status)


def build_rules(high_value_threshold: Decimal = Decimal("100")) -> Tuple[FieldRule, ...]:
    """The rule table, first match wins within a property type."""

    def _high_value(order: Order) -> Optional[bool]:
        total = parse_money(order.total_price)
        if total is None:
            return None
        return total >= high_value_threshold

    return (
        FieldRule("title", (), lambda o: o.title, "order name"),
        # rich text
        FieldRule("rich_text", ("order id",), lambda o: o.order_id, "order id"),
        FieldRule("rich_text", ("email",), _email, "customer email"),
        FieldRule("rich_text", ("phone",), _phone, "customer phone"),
        FieldRule("rich_text", ("payment", "financial"), _financial, "payment status"),
        FieldRule("rich_text", ("fulfillment", "status"), _fulfillment, "fulfillment status"),
        FieldRule("rich_text", ("address", "shipping"), _address, "shipping address"),
        FieldRule("rich_text", ("customer", "client", "buyer"), lambda o: o.customer_name, "customer name"),
        FieldRule("rich_text", ("line item", "items", "products"), lambda o: o.items_summary, "line items"),
        FieldRule("rich_text", ("note", "comment"), lambda o: o.note, "note"),
        # numbers
        FieldRule("number", ("order number", "order no", "order #"), lambda o: o.order_number, "order number"),
        FieldRule("number", ("subtotal",), lambda o: _money_number(o.subtotal_price), "subtotal"),
        FieldRule("number", ("tax",), lambda o: _money_number(o.total_tax), "tax"),
        FieldRule("number", ("quantity", "qty", "item count"), lambda o: o.item_count, "item count"),
        FieldRule("number", ("total", "price", "amount"), lambda o: _money_number(o.total_price), "total"),
        # dates
        FieldRule("date", ("updated", "modified", "last edited"), lambda o: o.updated_at, "updated at"),
        FieldRule("date", ("created", "date", "placed", "ordered"), lambda o: o.created_at, "created at"),
        # choices
        FieldRule("select", ("currency",), lambda o: o.currency, "currency"),
        FieldRule("select", ("payment", "financial"), _financial, "payment status"),
        FieldRule("select", ("fulfillment", "status"), _fulfillment, "fulfillment status"),
        FieldRule("status", ("payment", "financial"), _financial, "payment status"),
        FieldRule("status", (), _fulfillment, "fulfillment status"),
        # typed scalars
        FieldRule("email", (), _email, "customer email"),
        FieldRule("phone_number", (), _phone, "customer phone"),
        FieldRule("url", ("link", "url", "status page"), lambda o: o.status_url, "order status page"),
        FieldRule("checkbox", (), _high_value, "high-value order"),
    )


# ── Value shaping per property type ──────────────────────────────────────────

def _rich(value: Any) -> list:
    return [{"type": "text", "text": {"content": str(value)[:_MAX_TEXT]}}]


def _option(value: Any) -> Dict[str, str]:
    # Select option names may not contain commas
    return {"name": str(value).replace(",", "")[:_MAX_OPTION]}


def _date(value: Any) -> Dict[str, str]:
    if isinstance(value, datetime):
        return {"start": value.isoformat()}
    return {"start": str(value)}


_SHAPERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "title": lambda v: {"title": _rich(v)},
    "rich_text": lambda v: {"rich_text": _rich(v)},
    "number": lambda v: {"number": v},
    "date": lambda v: {"date": _date(v)},
    "select": lambda v: {"select": _option(v)},
    "status": lambda v: {"status": _option(v)},
    "email": lambda v: {"email": str(v)},
    "phone_number": lambda v: {"phone_number": str(v)},
    "url": lambda v: {"url": str(v)},
    "checkbox": lambda v: {"checkbox": bool(v)},
}


def shape_value(property_type: str, value: Any) -> Dict[str, Any]:
    return _SHAPERS[property_type](value)


class FieldMapper:
    def __init__(
        self,
        rules: Optional[Sequence[FieldRule]] = None,
        high_value_threshold: Decimal = Decimal("100"),
    ) -> None:
        self.rules: Tuple[FieldRule, ...] = (
            tuple(rules) if rules is not None else build_rules(high_value_threshold)
        )

    def rule_for(self, name: str, property_type: str) -> Optional[FieldRule]:
        for rule in self.rules:
            if rule.matches(name, property_type):
                return rule
        return None

    def map(self, order: Order, schema: DestinationSchema) -> Dict[str, Any]:
        """Property payload for *order*, keyed by destination property name."""
        mapping: Dict[str, Any] = {}
        for name, property_type in schema.properties.items():
            if property_type not in _SHAPERS:
                continue
            rule = self.rule_for(name, property_type)
            if rule is None:
                continue
            value = rule.extract(order)
            if value is None or value == "":
                continue
            mapping[name] = shape_value(property_type, value)

        if schema.title_property is None:
            logger.warning(
                "Destination %s has no title property; order %s will have no name",
                schema.destination_id, order.order_id,
            )
        logger.debug(
            "Mapped order %s onto %d/%d properties of destination=%s",
            order.order_id, len(mapping), len(schema.properties), schema.destination_id,
        )
        return dict(sorted(mapping.items()))
