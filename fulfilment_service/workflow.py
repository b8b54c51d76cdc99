"""
workflow.py — Core Orchestration Logic for Order Processing

This module contains the worker side of order ingestion. It runs once per
dequeued message; delivery is at-least-once, so every step is safe to repeat
until the order is recorded in the processed-order ledger.

Workflow Overview:
1. Idempotency check against the processed-order ledger
2. Re-resolve client configuration and secrets (tolerates rotation)
3. Bulk-resolve SKU -> partner product ids for all lines
4. Fail fast if a personalised line has no product mapping
5. Build the partner order and submit it with bounded retries
6. Record the order as processed
"""

import logging

from .errors import MissingProductMappingError, UnknownTenantError
from .logging_config import order_prefix
from .models import ProcessingOutcome, QueueMessage
from .payload import build_partner_payload, normalize_sku, personalised
from .retry import with_retry
from .services import Services

log = logging.getLogger(__name__)


def _mark_processed(services: Services, message: QueueMessage, log_prefix: str):
    order = message.order
    created = services.ledger.put(message.shop_domain, order.id, order.external_id)
    if not created:
        log.info(f"{log_prefix} Ledger entry already present; another worker handled this order.")


async def process_order_message(services: Services, message: QueueMessage) -> ProcessingOutcome:
    """
    Processes one queued order.

    Args:
        services (Services): Process-wide collaborators.
        message (QueueMessage): Order and pre-extracted candidates from intake.

    Returns:
        ProcessingOutcome: ALREADY_PROCESSED, NO_PERSONALISED_CONTENT or SUBMITTED.

    Raises:
        UnknownTenantError: The client vanished between intake and processing.
        SecretNotFoundError: The client's secret reference cannot be resolved.
        MissingProductMappingError: A personalised line has no partner product id.
        SubmissionError / httpx.HTTPError: Submission failed on every attempt.

        Nothing is written to the ledger when an error is raised, so a
        redelivery starts over.
    """
    order = message.order
    log_prefix = order_prefix(message.shop_domain, order.id)

    # --- 1. Idempotency ---
    if services.ledger.exists(message.shop_domain, order.id):
        log.info(f"{log_prefix} Order already processed; skipping.")
        return ProcessingOutcome.ALREADY_PROCESSED

    # --- 2. Client + secrets ---
    client = services.clients.get(message.slug)
    if client is None:
        log.error(f"{log_prefix} Client '{message.slug}' not found at worker.")
        raise UnknownTenantError(message.slug)
    secrets = services.secrets.get(client.secret_ref)

    # --- 3. SKU mapping for all lines ---
    skus = [c.li.sku.strip() for c in message.candidates if c.li.sku and c.li.sku.strip()]
    sku_to_product_id = services.sku_maps.bulk_get(message.slug, skus)

    # --- 4. Personalised lines must be mapped ---
    personalised_lines = personalised(message.candidates)
    if not personalised_lines:
        log.info(f"{log_prefix} No personalised items; marking processed without submission.")
        _mark_processed(services, message, log_prefix)
        return ProcessingOutcome.NO_PERSONALISED_CONTENT

    missing = []
    for candidate in personalised_lines:
        sku = normalize_sku(candidate.li.sku)
        if sku not in sku_to_product_id:
            missing.append(sku or f"<no sku: line {candidate.li.id}>")
    if missing:
        log.error(f"{log_prefix} Missing product_id mapping for personalised SKUs: {missing}")
        raise MissingProductMappingError(message.slug, missing)

    # --- 5. Build + submit ---
    payload = build_partner_payload(
        order,
        company_ref_id=secrets.company_ref_id,
        candidates=message.candidates,
        sku_to_product_id=sku_to_product_id,
    )
    if not payload.items:
        log.info(f"{log_prefix} No items left after filtering; marking processed without submission.")
        _mark_processed(services, message, log_prefix)
        return ProcessingOutcome.NO_PERSONALISED_CONTENT

    def on_retry(error, attempt):
        log.warning(f"{log_prefix} Partner submission attempt {attempt} failed: {error}")

    log.info(f"{log_prefix} Submitting {len(payload.items)} item(s) to the partner API.")
    response = await with_retry(
        lambda: services.partner_api.submit_order(
            secrets.company_ref_id,
            secrets.api_key.get_secret_value(),
            payload,
        ),
        services.submit_retry_options(on_retry=on_retry),
    )

    # --- 6. Ledger ---
    _mark_processed(services, message, log_prefix)
    log.info(f"{log_prefix} Partner order created ({len(payload.items)} item(s)). Response: {response}")
    return ProcessingOutcome.SUBMITTED
