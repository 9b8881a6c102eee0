"""Retry utility for upstream API calls with exponential backoff."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, FrozenSet, Optional, TypeVar

import httpx


logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.0
    retryable_status_codes: FrozenSet[int] = field(default=RETRYABLE_STATUS_CODES)

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (0-based)."""
        delay = min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay


DEFAULT_RETRY_CONFIG = RetryConfig()


def is_retryable_error(error: BaseException, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> bool:
    """Check if an error is transient.

    Transport failures (no response received at all) and responses whose
    status is in ``config.retryable_status_codes`` are retryable. Anything
    else, including malformed payloads, is fatal.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in config.retryable_status_codes
    return isinstance(error, httpx.TransportError)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
) -> T:
    """
    Run one upstream call, retrying transient failures with exponential backoff.

    Args:
        func: Zero-argument coroutine function performing a single attempt
        config: Backoff parameters (default: 3 retries, 1s doubling up to 10s)

    Returns:
        The result of the first successful attempt

    Raises:
        The first fatal error immediately, or the last retryable error once
        ``max_retries`` retries are exhausted
    """
    config = config or DEFAULT_RETRY_CONFIG
    total_attempts = config.max_retries + 1

    for attempt in range(total_attempts):
        try:
            return await func()
        except Exception as exc:
            if not is_retryable_error(exc, config):
                raise

            if attempt + 1 >= total_attempts:
                logger.error(
                    f"All {total_attempts} attempts failed. Last error: {exc}"
                )
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{total_attempts} failed: {exc}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError("retry loop exited without a result")  # pragma: no cover


def with_retry(config: Optional[RetryConfig] = None):
    """
    Decorator to add retry logic to async functions.

    Usage:
        @with_retry(RetryConfig(max_retries=2))
        async def fetch_data():
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            async def _call():
                return await func(*args, **kwargs)

            return await retry_async(_call, config)

        return wrapper
    return decorator
