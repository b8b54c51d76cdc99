"""Shared fixtures for the fulfilment service test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fulfilment_service.clients import InMemoryMessageQueue, PartnerApiClient
from fulfilment_service.config import Settings
from fulfilment_service.models import ClientConfig, ClientSecrets
from fulfilment_service.services import Services
from fulfilment_service.stores import (
    InMemoryClientConfigStore,
    InMemoryProcessedOrderLedger,
    InMemorySecretStore,
    InMemorySkuMapStore,
)
from fulfilment_service.verification import compute_signature

SHOP_DOMAIN = "acme.myshopify.com"
SIGNING_KEY = "acme-signing-key"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        run_worker=False,
        submit_attempts=3,
        submit_base_delay=0.0,
        submit_max_delay=0.0,
        log_file=None,
    )


@pytest.fixture()
def client_config() -> ClientConfig:
    return ClientConfig.model_validate({
        "slug": "acme",
        "shopDomain": SHOP_DOMAIN,
        "secretRef": "acme/fulfilment",
        "topKeysJson": '["Line 1"]',
    })


@pytest.fixture()
def services(settings, client_config) -> Services:
    secrets = ClientSecrets.model_validate({
        "webhookSigningKey": SIGNING_KEY,
        "companyRefId": 1001,
        "apiKey": "kx-key",
    })
    partner_api = AsyncMock(spec=PartnerApiClient)
    partner_api.submit_order.return_value = {"id": "ord_1"}
    return Services(
        settings=settings,
        clients=InMemoryClientConfigStore([client_config]),
        secrets=InMemorySecretStore({"acme/fulfilment": secrets}),
        sku_maps=InMemorySkuMapStore({"acme": {"ABC-1": 42, "LABEL-001": 7}}),
        ledger=InMemoryProcessedOrderLedger(),
        queue=InMemoryMessageQueue(),
        partner_api=partner_api,
    )


def line_item(line_id=1, sku="ABC-1", quantity=1, title="Label", properties=None) -> dict:
    return {
        "id": line_id,
        "quantity": quantity,
        "title": title,
        "sku": sku,
        "properties": [{"name": n, "value": v} for n, v in (properties or [])],
    }


def order_doc(order_id=1001, name="#1001", line_items=None, **extra) -> dict:
    doc = {"id": order_id, "name": name, "line_items": line_items or []}
    doc.update(extra)
    return doc


def sign(body: bytes, secret: str = SIGNING_KEY) -> str:
    return compute_signature(body, secret)
