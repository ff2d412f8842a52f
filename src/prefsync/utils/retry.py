"""Retrying subprocess spawns that fail for transient reasons.

Only the spawn is retried. A process that started and exited non-zero is
a result, not a transient failure, and is left to the caller.
"""
import asyncio
import logging
from functools import wraps
from typing import Any, Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# EAGAIN on fork, EINTR, and spawn timeouts
RETRYABLE_EXCEPTIONS = (
    BlockingIOError,
    InterruptedError,
    TimeoutError,
)


def _policy(max_attempts: int, min_wait: float, max_wait: float, exceptions: tuple):
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 0.1,
    max_wait: float = 2,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable:
    """Retry a sync or async callable with exponential backoff.

    Args:
        max_attempts: Attempts before the last exception is re-raised
        min_wait: First and smallest wait between attempts (seconds)
        max_wait: Largest wait between attempts (seconds)
        exceptions: Exception types worth another attempt
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        policy = _policy(max_attempts, min_wait, max_wait, exceptions)

        if asyncio.iscoroutinefunction(func):
            @policy
            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                return await func(*args, **kwargs)  # type: ignore[misc]
            return async_wrapper  # type: ignore[return-value]

        @policy
        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            return func(*args, **kwargs)
        return sync_wrapper

    return decorator
