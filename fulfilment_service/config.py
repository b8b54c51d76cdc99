"""
config.py — Runtime Settings

All settings come from environment variables (Docker/Kubernetes friendly).
`Settings.from_env()` is called once at start-up; the resulting object is
passed to every component that needs it.
"""

import os
from typing import Optional

from pydantic import BaseModel

DEFAULT_PARTNER_API_BASE_URL = "https://api-sl-2-2.kornitx.net"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


class Settings(BaseModel):
    """
    Service configuration.

    Attributes:
        partner_api_base_url (str): Base URL of the partner fulfilment API.
        partner_api_timeout (float): Connect/write/pool timeout in seconds.
        partner_api_read_timeout (float): Read timeout in seconds.
        rabbitmq_host (str): RabbitMQ host for the order queue.
        order_queue (str): Name of the queue between intake and worker.
        retry_queue (str): Holding queue for failed orders; they return to `order_queue` after `retry_delay`.
        retry_delay (float): Seconds a failed order waits in `retry_queue` before redelivery.
        dead_letter_queue (str): Queue that parks undecodable messages.
        redis_url (Optional[str]): Enables the Redis-backed processed-order ledger.
        stores_file (str): JSON document holding clients, SKU maps and secrets.
        run_worker (bool): Start the queue consumer thread together with the API.
        ack_intake_errors (bool): Answer unexpected intake failures with 200 instead of 500.
    """
    partner_api_base_url: str = DEFAULT_PARTNER_API_BASE_URL
    partner_api_timeout: float = 5.0
    partner_api_read_timeout: float = 8.0

    rabbitmq_host: str = "localhost"
    rabbitmq_port: int = 5672
    rabbitmq_user: str = "guest"
    rabbitmq_password: str = "guest"
    order_queue: str = "fulfilment.orders.new"
    retry_queue: str = "fulfilment.orders.retry"
    retry_delay: float = 60.0
    dead_letter_queue: str = "fulfilment.orders.dead"

    redis_url: Optional[str] = None
    stores_file: str = "stores.json"

    run_worker: bool = True
    ack_intake_errors: bool = False

    submit_attempts: int = 5
    submit_base_delay: float = 1.0
    submit_max_delay: float = 8.0

    log_level: str = "INFO"
    log_file: Optional[str] = "order_processing.log"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            partner_api_base_url=env.get("PARTNER_API_BASE_URL") or DEFAULT_PARTNER_API_BASE_URL,
            partner_api_timeout=float(env.get("PARTNER_API_TIMEOUT", "5.0")),
            partner_api_read_timeout=float(env.get("PARTNER_API_READ_TIMEOUT", "8.0")),
            rabbitmq_host=env.get("RABBITMQ_HOST", "localhost"),
            rabbitmq_port=int(env.get("RABBITMQ_PORT", "5672")),
            rabbitmq_user=env.get("RABBITMQ_USER", "guest"),
            rabbitmq_password=env.get("RABBITMQ_PASSWORD", "guest"),
            order_queue=env.get("ORDER_QUEUE", "fulfilment.orders.new"),
            retry_queue=env.get("RETRY_QUEUE", "fulfilment.orders.retry"),
            retry_delay=float(env.get("RETRY_DELAY", "60")),
            dead_letter_queue=env.get("DEAD_LETTER_QUEUE", "fulfilment.orders.dead"),
            redis_url=env.get("REDIS_URL") or None,
            stores_file=env.get("STORES_FILE", "stores.json"),
            run_worker=_env_bool("RUN_WORKER", True),
            ack_intake_errors=_env_bool("ACK_INTAKE_ERRORS", False),
            submit_attempts=int(env.get("SUBMIT_ATTEMPTS", "5")),
            submit_base_delay=float(env.get("SUBMIT_BASE_DELAY", "1.0")),
            submit_max_delay=float(env.get("SUBMIT_MAX_DELAY", "8.0")),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_file=env.get("LOG_FILE", "order_processing.log") or None,
        )
