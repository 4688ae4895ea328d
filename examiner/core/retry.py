"""Retry logic for backend adapter calls.

Retries belong to the backend adapters only; no pipeline stage retries on
its own. A retried adapter call happens before any debit, so it cannot
double-bill a trial.

## Usage:

    >>> @with_retry(RETRY_QUICK)
    ... async def call_provider():
    ...     ...
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .exceptions import BackendError

__all__ = [
    "RetryConfig",
    "with_retry",
    "RETRY_QUICK",
    "RETRY_STANDARD",
    "RETRY_PERSISTENT",
    "RETRYABLE_EXCEPTIONS",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    BackendError,
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy with exponential backoff.

    Args:
        max_attempts: Total attempts including the first call
        delay: Seconds to wait before the first retry
        backoff: Multiplier applied to the delay after each retry
    """

    max_attempts: int = 3
    delay: float = 1.0
    backoff: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay <= 0:
            raise ValueError("delay must be positive")
        if self.backoff < 1.0:
            raise ValueError("backoff must be at least 1.0")


RETRY_QUICK = RetryConfig(max_attempts=2, delay=0.5, backoff=1.5)
RETRY_STANDARD = RetryConfig(max_attempts=3, delay=1.0, backoff=2.0)
RETRY_PERSISTENT = RetryConfig(max_attempts=5, delay=1.0, backoff=2.0)


def with_retry(
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate an async function so transient failures are retried.

    Only errors in RETRYABLE_EXCEPTIONS are retried, and a BackendError
    with ``retryable=False`` is not. Everything else (including
    cancellation) propagates on the first occurrence.
    """
    cfg = config or RETRY_STANDARD

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            delay = cfg.delay
            for attempt in range(1, cfg.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except RETRYABLE_EXCEPTIONS as e:
                    if not getattr(e, "retryable", True):
                        raise
                    if attempt >= cfg.max_attempts:
                        logger.warning(
                            f"{func.__name__} failed after {attempt} attempts: "
                            f"{type(e).__name__}: {e!s}"
                        )
                        raise
                    logger.info(
                        f"{func.__name__} attempt {attempt}/{cfg.max_attempts} failed "
                        f"({type(e).__name__}), retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    delay *= cfg.backoff
            raise AssertionError("unreachable")

        return wrapper

    return decorator
