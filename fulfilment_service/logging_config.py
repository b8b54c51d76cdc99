"""
logging_config.py — Centralized Logging Configuration for the Fulfilment Service

Configures one logging setup shared by the webhook API and the queue worker,
so both phases of an order end up in the same log stream.

Features:
    • Combined console and file logging output
    • Process ID tagging for multi-process visibility (API workers, consumers)
    • Standardized log format for all modules
    • Reduced verbosity for external dependencies (pika, httpx)
"""

import logging
import sys
from typing import Optional


def setup_logging(level: str = "INFO", log_file: Optional[str] = "order_processing.log"):
    """
    Configures the global logging system for the application.

    Args:
        level (str): Root log level name, e.g. "INFO" or "DEBUG".
        log_file (Optional[str]): Persistent log file. None logs to stdout only.
    """
    log_format = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
    )

    # Reduce verbosity from external libraries
    logging.getLogger("pika").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def order_prefix(shop_domain: str, order_id) -> str:
    """Log prefix identifying one order across intake and worker log lines."""
    return f"[Order: {shop_domain}#{order_id}]"


def get_logger(name):
    """
    Returns a logger for a given module or component name.

    Args:
        name (str): The logger name, typically the module's __name__.
    """
    return logging.getLogger(name)
