"""
payload.py — Partner Order Payload Builder

Classifies each candidate line and assembles the partner API order document.

Classification (shared by the worker's mapping pre-check and the builder):
    1. Non-empty print job id              -> print-job item (type 2)
    2. Any non-private, non-empty property -> textual item (type 5)
    3. Otherwise                           -> not personalised, skipped
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from .line_props import PRIVATE_PREFIX
from .models import (
    PRINT_JOB_ITEM_TYPE,
    TEXTUAL_ITEM_TYPE,
    Candidate,
    LineItem,
    PartnerAttribute,
    PartnerOrderItem,
    PartnerOrderPayload,
    ShopifyOrder,
)

THUMB_ATTRIBUTE = "_thumb"
SALE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ItemKind(str, Enum):
    PRINT_JOB = "print_job"
    TEXTUAL = "textual"


def normalize_sku(sku: Optional[str]) -> str:
    """Trimmed, lower-cased SKU. Idempotent."""
    return (sku or "").strip().lower()


def format_utc(timestamp: Optional[str]) -> Optional[str]:
    """
    Renders an ISO timestamp as 'YYYY-MM-DD HH:MM:SS' in UTC.

    Returns None for an absent or unparseable timestamp. A timestamp
    without offset is taken as UTC.
    """
    if not timestamp:
        return None
    text = timestamp.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(SALE_DATETIME_FORMAT)


def _user_facing(li: LineItem):
    """Yields (name, value) of every non-private property with a non-empty value, trimmed."""
    for prop in li.properties:
        name = prop.name.strip()
        value = prop.value.strip()
        if not name or not value:
            continue
        if name.startswith(PRIVATE_PREFIX):
            continue
        yield name, value


def has_user_facing_props(li: LineItem) -> bool:
    return any(True for _ in _user_facing(li))


def classify(candidate: Candidate) -> Optional[ItemKind]:
    """Kind of partner item a candidate becomes, or None if it is not personalised."""
    if candidate.bits.print_job_id:
        return ItemKind.PRINT_JOB
    if has_user_facing_props(candidate.li):
        return ItemKind.TEXTUAL
    return None


def personalised(candidates: Iterable[Candidate]) -> List[Candidate]:
    return [c for c in candidates if classify(c) is not None]


def passthrough_attributes(li: LineItem, thumb: Optional[str] = None) -> List[PartnerAttribute]:
    """
    Customer-facing properties, deduplicated by name (case-insensitive, first
    wins) in their original order, plus the thumbnail once.
    """
    attrs = []
    seen = set()
    for name, value in _user_facing(li):
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        attrs.append(PartnerAttribute(name=name, value=value))

    if thumb and THUMB_ATTRIBUTE not in seen:
        attrs.append(PartnerAttribute(name=THUMB_ATTRIBUTE, value=thumb))
    return attrs


def print_job_attributes(thumb: Optional[str] = None) -> List[PartnerAttribute]:
    return [PartnerAttribute(name=THUMB_ATTRIBUTE, value=thumb)] if thumb else []


def _quantity(li: LineItem) -> int:
    return li.quantity if li.quantity is not None else 1


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


def customer_name(order: ShopifyOrder) -> Optional[str]:
    if order.shipping_address and order.shipping_address.name:
        return order.shipping_address.name
    if order.customer:
        joined = " ".join(n for n in (order.customer.first_name, order.customer.last_name) if n)
        if joined:
            return joined
    return None


def build_item(
        candidate: Candidate,
        sku_to_product_id: Optional[Mapping[str, int]] = None,
        default_product_id: Optional[int] = None,
) -> Optional[PartnerOrderItem]:
    """Partner item for one candidate, or None when the line is skipped."""
    kind = classify(candidate)
    if kind is None:
        return None

    li, bits = candidate.li, candidate.bits
    product_id = (sku_to_product_id or {}).get(normalize_sku(li.sku))
    if product_id is None:
        product_id = default_product_id

    if kind is ItemKind.PRINT_JOB:
        return PartnerOrderItem(
            external_ref=str(li.id),
            quantity=_quantity(li),
            type=PRINT_JOB_ITEM_TYPE,
            print_job_ref=str(bits.print_job_id),
            sku=li.sku,
            description=li.title,
            textual_product_id=product_id,
            attributes=print_job_attributes(bits.thumb),
        )

    attributes = passthrough_attributes(li, bits.thumb)
    if not attributes:
        return None
    return PartnerOrderItem(
        external_ref=str(li.id),
        quantity=_quantity(li),
        type=TEXTUAL_ITEM_TYPE,
        sku=li.sku,
        description=li.title,
        textual_product_id=product_id,
        attributes=attributes,
    )


def build_partner_payload(
        order: ShopifyOrder,
        company_ref_id: int,
        candidates: Iterable[Candidate],
        sku_to_product_id: Optional[Dict[str, int]] = None,
        default_product_id: Optional[int] = None,
) -> PartnerOrderPayload:
    """
    Builds the partner order document from all candidates of an order.

    Non-personalised lines are dropped. A missing product mapping is not an
    error here: the item is sent with `default_product_id` (or none), so the
    caller checks mappings beforehand.

    Args:
        order (ShopifyOrder): The inbound order.
        company_ref_id (int): Partner company reference.
        candidates (Iterable[Candidate]): Every line of the order with its design bits.
        sku_to_product_id (Optional[Dict[str, int]]): Normalized SKU -> partner product id.
        default_product_id (Optional[int]): Fallback product id for unmapped SKUs.

    Returns:
        PartnerOrderPayload: The document to submit; `items` may be empty.
    """
    items = []
    for candidate in candidates:
        item = build_item(candidate, sku_to_product_id, default_product_id)
        if item is not None:
            items.append(item)

    ship = order.shipping_address
    customer = order.customer
    return PartnerOrderPayload(
        external_ref=order.external_id,
        company_ref_id=company_ref_id,
        sale_datetime=format_utc(order.processed_at or order.created_at),
        customer_name=customer_name(order),
        customer_email=_blank_to_none((customer.email if customer else None) or order.email),
        customer_telephone=_blank_to_none((customer.phone if customer else None) or (ship.phone if ship else None)),
        shipping_address_1=_blank_to_none(ship.address1) if ship else None,
        shipping_address_2=_blank_to_none(ship.address2) if ship else None,
        shipping_address_3=_blank_to_none(ship.city) if ship else None,
        shipping_address_4=_blank_to_none(ship.province) if ship else None,
        shipping_address_5=_blank_to_none(ship.company) if ship else None,
        shipping_postcode=_blank_to_none(ship.zip) if ship else None,
        shipping_country_code=_blank_to_none(ship.country_code) if ship else None,
        items=items,
    )
