"""
stores.py — Collaborator Interfaces and Their Implementations

The core only talks to these protocols:
    - ClientConfigStore: client configuration by slug
    - SecretStore: secrets bundle by reference (fails loudly)
    - SkuMapStore: bulk SKU -> partner product id lookup
    - ProcessedOrderLedger: idempotency record per (shop domain, order id)

File-backed in-memory implementations serve local runs and tests; the
Redis ledger uses a conditional write so only one worker records an order.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

import redis

from .errors import SecretNotFoundError
from .models import ClientConfig, ClientSecrets
from .payload import normalize_sku

log = logging.getLogger(__name__)


@runtime_checkable
class ClientConfigStore(Protocol):
    def get(self, slug: str) -> Optional[ClientConfig]: ...


@runtime_checkable
class SecretStore(Protocol):
    def get(self, secret_ref: str) -> ClientSecrets: ...


@runtime_checkable
class SkuMapStore(Protocol):
    def bulk_get(self, slug: str, skus: Iterable[str]) -> Dict[str, int]: ...


@runtime_checkable
class ProcessedOrderLedger(Protocol):
    def exists(self, shop_domain: str, order_id) -> bool: ...

    def put(self, shop_domain: str, order_id, external_id: str) -> bool: ...


def ledger_key(shop_domain: str, order_id) -> str:
    return f"{shop_domain}#{order_id}"


# --- In-memory implementations ---
class InMemoryClientConfigStore:
    def __init__(self, clients: Iterable[ClientConfig] = ()):
        self._clients = {c.slug: c for c in clients}

    def add(self, client: ClientConfig):
        self._clients[client.slug] = client

    def get(self, slug: str) -> Optional[ClientConfig]:
        return self._clients.get(slug)


class InMemorySecretStore:
    def __init__(self, secrets: Optional[Dict[str, ClientSecrets]] = None):
        self._secrets = dict(secrets or {})

    def get(self, secret_ref: str) -> ClientSecrets:
        try:
            return self._secrets[secret_ref]
        except KeyError:
            raise SecretNotFoundError(secret_ref) from None


class InMemorySkuMapStore:
    """Per-slug SKU maps. Keys are normalized on the way in and on lookup."""

    def __init__(self, maps: Optional[Dict[str, Dict[str, int]]] = None):
        self._maps = {
            slug: {normalize_sku(sku): int(pid) for sku, pid in mapping.items()}
            for slug, mapping in (maps or {}).items()
        }

    def bulk_get(self, slug: str, skus: Iterable[str]) -> Dict[str, int]:
        mapping = self._maps.get(slug, {})
        wanted = {normalize_sku(s) for s in skus if s and normalize_sku(s)}
        return {sku: mapping[sku] for sku in wanted if sku in mapping}


class InMemoryProcessedOrderLedger:
    def __init__(self):
        self.records: Dict[str, dict] = {}

    def exists(self, shop_domain: str, order_id) -> bool:
        return ledger_key(shop_domain, order_id) in self.records

    def put(self, shop_domain: str, order_id, external_id: str) -> bool:
        key = ledger_key(shop_domain, order_id)
        if key in self.records:
            return False
        self.records[key] = {
            "externalId": external_id,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        }
        return True


# --- Redis ledger ---
class RedisProcessedOrderLedger:
    """
    Processed-order ledger in Redis.

    Key pattern: processed:{shop_domain}#{order_id}. Records are written with
    SET NX and never expire, updated or deleted.
    """
    PREFIX = "processed:"

    def __init__(self, redis_url: str, client=None):
        self._redis = client or redis.from_url(redis_url, decode_responses=True)

    def _key(self, shop_domain: str, order_id) -> str:
        return f"{self.PREFIX}{ledger_key(shop_domain, order_id)}"

    def exists(self, shop_domain: str, order_id) -> bool:
        return bool(self._redis.exists(self._key(shop_domain, order_id)))

    def put(self, shop_domain: str, order_id, external_id: str) -> bool:
        record = json.dumps({
            "externalId": external_id,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        })
        was_set = self._redis.set(self._key(shop_domain, order_id), record, nx=True)
        return bool(was_set)


# --- Bootstrap from file ---
def load_file_stores(path: str):
    """
    Loads client configuration, SKU maps and secrets from one JSON document:

        {
          "clients": [{"slug": "...", "shopDomain": "...", "secretRef": "...", "topKeys": [...]}],
          "skuMaps": {"<slug>": {"<sku>": <product id>}},
          "secrets": {"<secretRef>": {"webhookSigningKey": "...", "companyRefId": <int>, "apiKey": "..."}}
        }

    Returns:
        tuple: (InMemoryClientConfigStore, InMemorySkuMapStore, InMemorySecretStore)
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)

    clients = [ClientConfig.model_validate(c) for c in data.get("clients", [])]
    secrets = {ref: ClientSecrets.model_validate(s) for ref, s in data.get("secrets", {}).items()}
    log.info(f"Loaded {len(clients)} client(s) and {len(secrets)} secret bundle(s) from {path}.")
    return (
        InMemoryClientConfigStore(clients),
        InMemorySkuMapStore(data.get("skuMaps", {})),
        InMemorySecretStore(secrets),
    )
