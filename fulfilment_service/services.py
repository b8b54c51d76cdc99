"""
services.py — Process-wide Collaborators

Every network handle (queue connection, Redis client, stores, partner API
client) is built once per process by `build_services()` and passed to the
intake handler and the worker through the `Services` container.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .clients import MessageQueue, OrderQueuePublisher, PartnerApiClient
from .config import Settings
from .retry import RetryOptions
from .stores import (
    ClientConfigStore,
    InMemoryProcessedOrderLedger,
    ProcessedOrderLedger,
    RedisProcessedOrderLedger,
    SecretStore,
    SkuMapStore,
    load_file_stores,
)

log = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    clients: ClientConfigStore
    secrets: SecretStore
    sku_maps: SkuMapStore
    ledger: ProcessedOrderLedger
    queue: MessageQueue
    partner_api: PartnerApiClient

    def submit_retry_options(self, on_retry=None) -> RetryOptions:
        return RetryOptions(
            attempts=self.settings.submit_attempts,
            base_delay=self.settings.submit_base_delay,
            max_delay=self.settings.submit_max_delay,
            on_retry=on_retry,
        )

    def close(self):
        close = getattr(self.queue, "close", None)
        if close:
            close()


def build_services(settings: Settings, queue: Optional[MessageQueue] = None) -> Services:
    """
    Builds the collaborators described by `settings`.

    Args:
        settings (Settings): Runtime configuration.
        queue (Optional[MessageQueue]): Use this queue instead of connecting to RabbitMQ.
    """
    clients, sku_maps, secrets = load_file_stores(settings.stores_file)

    if settings.redis_url:
        ledger = RedisProcessedOrderLedger(settings.redis_url)
        log.info("Processed-order ledger: Redis.")
    else:
        ledger = InMemoryProcessedOrderLedger()
        log.warning("Processed-order ledger: in-memory (REDIS_URL not set). Not safe across processes.")

    return Services(
        settings=settings,
        clients=clients,
        secrets=secrets,
        sku_maps=sku_maps,
        ledger=ledger,
        queue=queue or OrderQueuePublisher(settings),
        partner_api=PartnerApiClient(
            settings.partner_api_base_url,
            timeout=settings.partner_api_timeout,
            read_timeout=settings.partner_api_read_timeout,
        ),
    )
