"""Collaborator stores: in-memory, Redis ledger and file bootstrap."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from fulfilment_service.errors import SecretNotFoundError
from fulfilment_service.stores import (
    ClientConfigStore,
    InMemoryProcessedOrderLedger,
    InMemorySecretStore,
    InMemorySkuMapStore,
    ProcessedOrderLedger,
    RedisProcessedOrderLedger,
    load_file_stores,
)


def test_sku_map_normalizes_keys_and_queries():
    store = InMemorySkuMapStore({"acme": {" ABC-1 ": 42, "def-2": "7"}})
    assert store.bulk_get("acme", ["abc-1", "DEF-2 ", "missing", ""]) == {"abc-1": 42, "def-2": 7}


def test_sku_map_unknown_slug_is_empty():
    assert InMemorySkuMapStore().bulk_get("nobody", ["ABC"]) == {}


def test_secret_store_fails_loudly():
    with pytest.raises(SecretNotFoundError):
        InMemorySecretStore().get("missing")


def test_in_memory_ledger_write_once():
    ledger = InMemoryProcessedOrderLedger()
    assert ledger.exists("shop", 1) is False
    assert ledger.put("shop", 1, "#1001") is True
    first = dict(ledger.records["shop#1"])
    assert ledger.put("shop", 1, "#other") is False
    assert ledger.records["shop#1"] == first
    assert ledger.exists("shop", "1") is True


class TestRedisLedger:

    def test_put_is_conditional(self):
        client = MagicMock()
        client.set.return_value = True
        ledger = RedisProcessedOrderLedger("redis://unused", client=client)

        assert ledger.put("shop", 42, "#1001") is True
        key, value = client.set.call_args.args
        assert key == "processed:shop#42"
        assert json.loads(value)["externalId"] == "#1001"
        assert client.set.call_args.kwargs == {"nx": True}

    def test_lost_race_returns_false(self):
        client = MagicMock()
        client.set.return_value = None
        assert RedisProcessedOrderLedger("redis://unused", client=client).put("shop", 42, "#1") is False

    def test_exists(self):
        client = MagicMock()
        client.exists.return_value = 1
        assert RedisProcessedOrderLedger("redis://unused", client=client).exists("shop", 42) is True
        client.exists.assert_called_once_with("processed:shop#42")


def test_load_file_stores(tmp_path):
    path = tmp_path / "stores.json"
    path.write_text(json.dumps({
        "clients": [{"slug": "acme", "shopDomain": "acme.myshopify.com", "secretRef": "s", "topKeys": "A, B"}],
        "skuMaps": {"acme": {"SKU-1": 3}},
        "secrets": {"s": {"shopifyWebhookKey": "w", "kxCompanyRefId": 1001, "kxApiKey": "kx-api-key-123"}},
    }))

    clients, sku_maps, secrets = load_file_stores(str(path))

    assert isinstance(clients, ClientConfigStore)
    assert clients.get("acme").top_aliases == ["A", "B"]
    assert clients.get("nobody") is None
    assert sku_maps.bulk_get("acme", ["sku-1"]) == {"sku-1": 3}
    bundle = secrets.get("s")
    assert bundle.company_ref_id == 1001
    assert bundle.api_key.get_secret_value() == "kx-api-key-123"
    assert "kx-api-key-123" not in repr(bundle)


def test_ledgers_satisfy_protocol():
    assert isinstance(InMemoryProcessedOrderLedger(), ProcessedOrderLedger)
    assert isinstance(RedisProcessedOrderLedger("redis://unused", client=MagicMock()), ProcessedOrderLedger)


@pytest.mark.parametrize("ref", ["ACME-1", "", None])
def test_non_numeric_company_ref_is_rejected_at_load(tmp_path, ref):
    path = tmp_path / "stores.json"
    path.write_text(json.dumps({
        "clients": [],
        "skuMaps": {},
        "secrets": {"s": {"shopifyWebhookKey": "w", "kxCompanyRefId": ref, "kxApiKey": "k"}},
    }))

    with pytest.raises(ValidationError):
        load_file_stores(str(path))
