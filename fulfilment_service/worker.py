"""
worker.py — Order Queue Consumer

Consumes the order queue in a background thread and runs the processing
workflow for every message. A message is acknowledged only after the
workflow returned. Failed orders are rejected into the retry queue, which
hands them back after `retry_delay`; undecodable messages are parked in
the dead-letter queue.
"""

import asyncio
import logging
import threading
from typing import Optional

import pika
from pydantic import ValidationError

from .clients import connection_parameters, declare_order_queues
from .logging_config import order_prefix
from .models import QueueMessage
from .services import Services
from .workflow import process_order_message

log = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 10
POLL_INTERVAL_SECONDS = 1


def handle_delivery(services: Services, ch, method, properties, body):
    """
    Processes one delivery and settles it with the broker.

    - Undecodable message: copied to the dead-letter queue, then acknowledged
    - Processing error: rejected without requeue (-> retry queue, delayed redelivery)
    - Otherwise: acknowledged
    """
    try:
        message = QueueMessage.model_validate_json(body)
    except ValidationError as e:
        log.error(f"[ORDER-QUEUE] Invalid message received, moving it to '{services.settings.dead_letter_queue}': {e}")
        ch.basic_publish(
            exchange='',
            routing_key=services.settings.dead_letter_queue,
            body=body,
            properties=properties,
        )
        ch.basic_ack(delivery_tag=method.delivery_tag)
        return

    log_prefix = order_prefix(message.shop_domain, message.order.id)
    try:
        outcome = asyncio.run(process_order_message(services, message))
    except Exception as e:
        log.error(
            f"{log_prefix} Processing failed; retrying in {services.settings.retry_delay:g}s. {e}",
            exc_info=True,
        )
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
        return

    log.info(f"{log_prefix} Processing finished: {outcome.value}.")
    ch.basic_ack(delivery_tag=method.delivery_tag)


def start_order_consumer(services: Services, stop_event: Optional[threading.Event] = None):
    """
    Consumes the order queue until `stop_event` is set.

    The connection is polled in short slices so a set `stop_event` is noticed
    within POLL_INTERVAL_SECONDS. On connection loss or errors, it reconnects
    after RECONNECT_DELAY_SECONDS.
    """
    settings = services.settings
    stop_event = stop_event or threading.Event()
    log.info("Order consumer thread starting...")
    while not stop_event.is_set():
        connection = None
        try:
            connection = pika.BlockingConnection(connection_parameters(settings))
            channel = connection.channel()
            declare_order_queues(channel, settings)
            channel.basic_qos(prefetch_count=1)

            def callback(ch, method, properties, body):
                handle_delivery(services, ch, method, properties, body)

            log.info(f"[ORDER-QUEUE] Consumer active on '{settings.order_queue}'.")
            channel.basic_consume(queue=settings.order_queue, on_message_callback=callback)
            while not stop_event.is_set():
                connection.process_data_events(time_limit=POLL_INTERVAL_SECONDS)

        except pika.exceptions.AMQPConnectionError:
            log.warning(f"Order consumer: lost connection to RabbitMQ. Reconnecting in {RECONNECT_DELAY_SECONDS}s...")
            stop_event.wait(RECONNECT_DELAY_SECONDS)
        except Exception as e:
            log.error(f"Order consumer: unexpected error. {e}. Restarting in {RECONNECT_DELAY_SECONDS}s.")
            stop_event.wait(RECONNECT_DELAY_SECONDS)
        finally:
            if connection is not None and connection.is_open:
                connection.close()
    log.info("Order consumer thread stopped.")
