"""
Kube Actuator - Retry Utilities
===============================

Exponential-backoff retry for calls made outside the scaling core,
such as reporting action results upstream. The core never retries.
"""

import asyncio
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Type, TypeVar

from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Attributes:
        max_attempts: Attempts including the first one
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        backoff_multiplier: Growth factor between delays
        retryable_exceptions: Exception types that trigger a retry
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,)


def calculate_delay(attempt: int, base_delay: float, max_delay: float, backoff_multiplier: float) -> float:
    """Delay after the 0-indexed ``attempt`` failed."""
    return min(base_delay * backoff_multiplier ** attempt, max_delay)


def with_retry(config: RetryConfig):
    """
    Retry an async function on ``config.retryable_exceptions``.

    Other exceptions propagate at once; the last retryable one is
    re-raised when attempts run out.
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    attempt += 1
                    if attempt >= config.max_attempts:
                        logger.error(
                            f"{func.__name__} failed after {attempt} attempts: {e}",
                            extra={"attempts": attempt}
                        )
                        raise
                    delay = calculate_delay(attempt - 1, config.base_delay, config.max_delay, config.backoff_multiplier)
                    logger.warning(
                        f"{func.__name__} failed ({e}), attempt {attempt}/{config.max_attempts}, "
                        f"retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
