"""
This module provides communication clients for external systems used by the fulfilment service:
- Partner Fulfilment API (REST)
- Order queue between intake and worker (RabbitMQ)
Each class encapsulates its protocol logic, error handling, and connection management.
"""

import base64
import logging
import threading
from typing import List, Optional, Protocol, runtime_checkable

import httpx
import pika

from .config import DEFAULT_PARTNER_API_BASE_URL, Settings
from .errors import SubmissionError
from .models import PartnerOrderPayload

log = logging.getLogger(__name__)


# --- Partner API Client (REST) ---
class PartnerApiClient:
    """
    Client for the partner fulfilment API.
    Submits one order per call; retrying is left to the caller.
    """
    def __init__(
            self,
            base_url: str = DEFAULT_PARTNER_API_BASE_URL,
            timeout: float = 5.0,
            read_timeout: float = 8.0,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url (str): API root; orders are POSTed to `{base_url}/order`.
            timeout (float): Connect/write/pool timeout in seconds.
            read_timeout (float): Read timeout in seconds.
            transport (Optional[httpx.AsyncBaseTransport]): Custom transport, e.g. httpx.MockTransport.
        """
        self.base_url = (base_url or DEFAULT_PARTNER_API_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(timeout, read=read_timeout)
        self.transport = transport

    @staticmethod
    def basic_auth(company_ref_id, api_key: str) -> str:
        token = base64.b64encode(f"{company_ref_id}:{api_key}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    async def submit_order(self, company_ref_id: int, api_key: str, payload: PartnerOrderPayload) -> dict:
        """
        Creates an order at the partner API.

        Args:
            company_ref_id (int): Partner company reference id.
            api_key (str): Partner API key.
            payload (PartnerOrderPayload): The order document.

        Returns:
            dict: Decoded JSON response body, or {"raw": text} if it is not JSON.

        Raises:
            SubmissionError: If the partner API answers with a non-2xx status.
            httpx.HTTPError: On connection problems or timeouts.
        """
        headers = {
            "Authorization": self.basic_auth(company_ref_id, api_key),
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f"{self.base_url}/order", json=payload.to_wire(), headers=headers)

        if not response.is_success:
            try:
                body = response.text
            except (UnicodeDecodeError, LookupError):
                body = ""
            log.warning(f"[Partner: {payload.external_ref}] Order rejected with HTTP {response.status_code}.")
            raise SubmissionError(response.status_code, response.reason_phrase, body)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            # Any 2xx is an accepted order, whatever the body.
            log.warning(f"[Partner: {payload.external_ref}] Order accepted with a non-JSON body.")
            return {"raw": response.text}


# --- Order Queue (MQ) ---
@runtime_checkable
class MessageQueue(Protocol):
    def publish(self, body: str, group_key: Optional[str] = None, dedup_key: Optional[str] = None) -> None: ...


def declare_order_queues(channel, settings: Settings):
    """
    Declares the order queue with its retry and dead-letter queues.

    Rejected orders go to the retry queue, wait `retry_delay` seconds there
    and return to the order queue. Undecodable messages are parked in the
    dead-letter queue.
    """
    channel.queue_declare(
        queue=settings.order_queue,
        durable=True,
        arguments={
            "x-dead-letter-exchange": "",
            "x-dead-letter-routing-key": settings.retry_queue,
        },
    )
    channel.queue_declare(
        queue=settings.retry_queue,
        durable=True,
        arguments={
            "x-message-ttl": int(settings.retry_delay * 1000),
            "x-dead-letter-exchange": "",
            "x-dead-letter-routing-key": settings.order_queue,
        },
    )
    channel.queue_declare(queue=settings.dead_letter_queue, durable=True)


class OrderQueuePublisher:
    """
    Publisher for the order queue (RabbitMQ).
    Hands intake messages to the worker and manages the MQ connection.
    One connection is shared by all request threads, guarded by a lock.
    """
    def __init__(self, settings: Settings):
        """Initializes the RabbitMQ connection and declares the order queues."""
        self.settings = settings
        self.connection = None
        self.channel = None
        self._lock = threading.Lock()
        self._connect()

    def _connect(self):
        """
        Establishes a RabbitMQ connection using the configured credentials.
        Raises:
            pika.exceptions.AMQPConnectionError: If the connection fails.
        """
        try:
            self.connection = pika.BlockingConnection(connection_parameters(self.settings))
            self.channel = self.connection.channel()
            declare_order_queues(self.channel, self.settings)
            log.info(f"Order queue publisher connected to RabbitMQ (queue: {self.settings.order_queue}).")
        except pika.exceptions.AMQPConnectionError as e:
            log.critical(f"Cannot connect to RabbitMQ (order queue): {e}")
            raise

    def _basic_publish(self, body: str, properties: pika.BasicProperties):
        self.channel.basic_publish(
            exchange='',
            routing_key=self.settings.order_queue,
            body=body,
            properties=properties,
        )

    def publish(self, body: str, group_key: Optional[str] = None, dedup_key: Optional[str] = None):
        """
        Publishes one persistent message to the order queue.
        A connection dropped by the broker (e.g. missed heartbeats while idle)
        is re-established and the publish is tried once more.
        Args:
            body (str): JSON message document.
            group_key (Optional[str]): Ordering group, sent as the x-group-key header.
            dedup_key (Optional[str]): Deduplication key, sent as message_id.
        Raises:
            pika.exceptions.AMQPError: If publishing fails after reconnecting.
        """
        headers = {}
        if group_key:
            headers["x-group-key"] = group_key
        if dedup_key:
            headers["x-dedup-key"] = dedup_key
        properties = pika.BasicProperties(
            delivery_mode=2,  # persistent
            content_type="application/json",
            message_id=dedup_key,
            headers=headers or None,
        )

        with self._lock:
            if not self.connection or self.connection.is_closed:
                self._connect()
            try:
                self._basic_publish(body, properties)
            except pika.exceptions.AMQPError as e:
                log.warning(f"Publish to order queue failed ({e!r}); reconnecting once.")
                self._reconnect()
                self._basic_publish(body, properties)

    def _reconnect(self):
        try:
            if self.connection and self.connection.is_open:
                self.connection.close()
        except pika.exceptions.AMQPError:
            pass  # stale connection, replaced below
        self._connect()

    def close(self):
        with self._lock:
            if self.connection and self.connection.is_open:
                self.connection.close()


class InMemoryMessageQueue:
    """Records published messages; used for local runs without a broker and in tests."""
    def __init__(self):
        self.messages: List[dict] = []

    def publish(self, body: str, group_key: Optional[str] = None, dedup_key: Optional[str] = None):
        self.messages.append({"body": body, "group_key": group_key, "dedup_key": dedup_key})

    def close(self):
        pass


def connection_parameters(settings: Settings) -> pika.ConnectionParameters:
    credentials = pika.PlainCredentials(settings.rabbitmq_user, settings.rabbitmq_password)
    return pika.ConnectionParameters(
        host=settings.rabbitmq_host,
        port=settings.rabbitmq_port,
        credentials=credentials,
        heartbeat=60,
    )
