"""
intake.py — Synchronous Webhook Intake

received -> validated -> enqueued, or received -> rejected.

Intake verifies the webhook, extracts design bits for every line with the
client's alias configuration and publishes one queue message per order.
It never decides which lines are personalised; the worker does that.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from pydantic import ValidationError

from .errors import InvalidSignatureError, MalformedBodyError, UnknownTenantError
from .line_props import extract_props, get_design_bits
from .logging_config import order_prefix
from .models import Candidate, QueueMessage, ShopifyOrder
from .services import Services
from .verification import SHOP_DOMAIN_HEADER, SIGNATURE_HEADER, verify_signature

log = logging.getLogger(__name__)

_HOOK_SUFFIX = re.compile(r"^(.+?)[-_]orders$", re.IGNORECASE)


def to_slug(value: str) -> str:
    slug = str(value or "").strip().lower()
    slug = re.sub(r"[^a-z0-9_-]+", "-", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return re.sub(r"^[-_]+|[-_]+$", "", slug)


def parse_client_slug(client_hook: Optional[str]) -> Optional[str]:
    """
    Derives the client slug from the hook path segment, e.g.
    "IV-Creative_orders" -> "iv-creative". Returns None if nothing usable remains.
    """
    if not client_hook:
        return None
    match = _HOOK_SUFFIX.match(str(client_hook))
    slug = to_slug(match.group(1) if match else client_hook)
    return slug or None


@dataclass
class IntakeResult:
    slug: str
    shop_domain: str
    order_id: str
    items: int


def build_candidates(order: ShopifyOrder, client) -> list:
    aliases = client.key_aliases
    return [
        Candidate(li=li, bits=get_design_bits(extract_props(li.properties), aliases))
        for li in order.line_items
    ]


def receive_order_webhook(
        services: Services,
        client_hook: Optional[str],
        raw_body: bytes,
        headers: Mapping[str, str],
) -> IntakeResult:
    """
    Validates one order webhook and enqueues it for the worker.

    Args:
        services (Services): Process-wide collaborators.
        client_hook (Optional[str]): Path segment identifying the client.
        raw_body (bytes): Request body exactly as received.
        headers (Mapping[str, str]): Request headers.

    Returns:
        IntakeResult: What was enqueued.

    Raises:
        UnknownTenantError: Invalid hook or no client for the slug (404).
        InvalidSignatureError: HMAC check failed (401).
        MalformedBodyError: Body is not a valid order document (400).
        SecretNotFoundError: The client's secret reference cannot be resolved.
        pika.exceptions.AMQPError: If publishing to the queue fails.
    """
    headers = {k.lower(): v for k, v in headers.items()}

    slug = parse_client_slug(client_hook)
    if not slug:
        log.warning(f"Invalid client hook '{client_hook}'.")
        raise UnknownTenantError(str(client_hook or ""))

    client = services.clients.get(slug)
    if client is None:
        log.warning(f"Unknown client slug '{slug}' (hook '{client_hook}').")
        raise UnknownTenantError(slug)

    secrets = services.secrets.get(client.secret_ref)

    shop_domain_header = headers.get(SHOP_DOMAIN_HEADER, "")
    if shop_domain_header and shop_domain_header != client.shop_domain:
        # Signature is authoritative; a mismatch is logged only.
        log.warning(f"Shop domain mismatch for '{slug}': expected {client.shop_domain}, got {shop_domain_header}.")

    if not verify_signature(raw_body, headers.get(SIGNATURE_HEADER), secrets.webhook_signing_key.get_secret_value()):
        log.warning(f"Invalid HMAC for '{slug}' (shop header: '{shop_domain_header}').")
        raise InvalidSignatureError(f"Signature verification failed for '{slug}'")

    try:
        order = ShopifyOrder.model_validate(json.loads(raw_body))
    except (ValueError, ValidationError) as e:
        log.error(f"Invalid order body for '{slug}': {e}")
        raise MalformedBodyError(str(e)) from e

    log_prefix = order_prefix(client.shop_domain, order.id)
    candidates = build_candidates(order, client)

    message = QueueMessage(
        slug=slug,
        shop_domain=client.shop_domain,
        secret_ref=client.secret_ref,
        order=order,
        candidates=candidates,
    )
    services.queue.publish(message.to_json(), group_key=client.shop_domain, dedup_key=message.dedup_key)
    log.info(f"{log_prefix} Order webhook accepted; enqueued with {len(candidates)} line(s).")

    return IntakeResult(slug=slug, shop_domain=client.shop_domain, order_id=str(order.id), items=len(candidates))
