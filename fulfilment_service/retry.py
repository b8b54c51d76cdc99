"""
retry.py — Bounded Retry with Exponential Backoff

Wraps a fallible async operation. Delays are awaited, so the event loop
keeps serving other work while a retry is pending.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOptions:
    """
    Attributes:
        attempts (int): Total number of calls, including the first one.
        base_delay (float): Backoff before the first retry, in seconds.
        max_delay (float): Upper bound for any single backoff, in seconds.
        jitter (bool): Draw the actual delay uniformly from 50-100% of the backoff.
        on_retry (Optional[Callable]): Called as on_retry(error, attempt) after every failed attempt.
        retry_on (Tuple[Type[BaseException], ...]): Errors worth another attempt; others propagate at once.
        sleep (Callable): Awaitable used for the delay.
    """
    attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: bool = True
    on_retry: Optional[Callable[[BaseException, int], None]] = None
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


def compute_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """Backoff after the `attempt`-th failure, before jitter: min(max, base * 2^(attempt-1))."""
    return min(max_delay, base_delay * (2 ** (attempt - 1)))


async def with_retry(operation: Callable[[], Awaitable[T]], options: Optional[RetryOptions] = None) -> T:
    """
    Runs `operation` until it succeeds or `options.attempts` calls have failed.

    Raises:
        The last error raised by `operation`, once all attempts are used up.
    """
    options = options or RetryOptions()
    attempts = max(1, options.attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except options.retry_on as e:
            if options.on_retry:
                options.on_retry(e, attempt)
            if attempt == attempts:
                raise

            delay = compute_backoff(attempt, options.base_delay, options.max_delay)
            if options.jitter:
                delay = delay * random.uniform(0.5, 1.0)
            log.debug(f"Attempt {attempt}/{attempts} failed ({e}); retrying in {delay:.2f}s")
            await options.sleep(delay)
