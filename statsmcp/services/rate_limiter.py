"""Per-source sliding-window rate limiting for upstream statistics APIs.

Every outbound call waits for admission from the limiter of its source. A
limiter admits at most ``max_requests`` calls within any trailing
``interval``; callers beyond that suspend until the oldest admission ages
out. Requests are delayed, never dropped.

Limiters are owned by a :class:`RateLimiterRegistry` that is created by the
application and handed to each provider at construction.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimiterConfig:
    """Configuration for a source's rate limit.

    Attributes:
        name: Source name (e.g., "ESTAT", "WORLDBANK")
        max_requests: Admissions allowed inside one window
        interval: Window length in seconds
    """

    name: str
    max_requests: int = 10
    interval: float = 1.0


class SlidingWindowRateLimiter:
    """Tracks the admission window for a single source."""

    def __init__(
        self,
        config: RateLimiterConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        if config.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if config.interval <= 0:
            raise ValueError("interval must be positive")
        self.config = config
        self._clock = clock
        self._window: Deque[float] = deque()
        # Admission is check-then-record; concurrent callers must not interleave it
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Drop admissions that are at least one interval old."""
        while self._window and now - self._window[0] >= self.config.interval:
            self._window.popleft()

    def get_delay_until_ready(self) -> float:
        """
        Get the number of seconds to wait before the next admission.

        Returns:
            Delay in seconds (0 if ready now)
        """
        now = self._clock()
        self._prune(now)
        if len(self._window) < self.config.max_requests:
            return 0.0
        return max(0.0, self.config.interval - (now - self._window[0]))

    async def wait_for_availability(self) -> float:
        """
        Suspend until admission is safe, then record one admission.

        The window is re-checked after every sleep because another caller
        may have been admitted in the meantime.

        Returns:
            Total time spent waiting (in seconds)
        """
        waited = 0.0
        async with self._lock:
            while True:
                delay = self.get_delay_until_ready()
                if delay <= 0:
                    break
                logger.info(
                    f"{self.config.name} rate limit: waiting {delay:.3f}s before next request "
                    f"({len(self._window)}/{self.config.max_requests} in {self.config.interval}s window)"
                )
                await asyncio.sleep(delay)
                waited += delay

            self._window.append(self._clock())
        return waited

    @property
    def in_window(self) -> int:
        """Admissions currently inside the window."""
        self._prune(self._clock())
        return len(self._window)

    def reset(self) -> None:
        """Forget all recorded admissions."""
        self._window.clear()

    def get_status(self) -> dict:
        """Window status for diagnostics."""
        return {
            "name": self.config.name,
            "max_requests": self.config.max_requests,
            "interval_seconds": self.config.interval,
            "requests_in_window": self.in_window,
        }


class RateLimiterRegistry:
    """Owns one limiter per source name."""

    DEFAULT_CONFIGS: Dict[str, RateLimiterConfig] = {
        "ESTAT": RateLimiterConfig(name="ESTAT", max_requests=10, interval=1.0),
        "WORLDBANK": RateLimiterConfig(name="WORLDBANK", max_requests=5, interval=1.0),
        "OECD": RateLimiterConfig(name="OECD", max_requests=5, interval=1.0),
        "EUROSTAT": RateLimiterConfig(name="EUROSTAT", max_requests=5, interval=1.0),
    }

    FALLBACK_MAX_REQUESTS = 10
    FALLBACK_INTERVAL = 1.0

    def __init__(self, configs: Optional[Dict[str, RateLimiterConfig]] = None):
        self._limiters: Dict[str, SlidingWindowRateLimiter] = {}
        for name, config in (configs or self.DEFAULT_CONFIGS).items():
            self._limiters[name.upper()] = SlidingWindowRateLimiter(config)

    def get_limiter(self, source: str) -> SlidingWindowRateLimiter:
        """Get or create the rate limiter for a source."""
        source_upper = source.upper()

        if source_upper not in self._limiters:
            config = RateLimiterConfig(
                name=source_upper,
                max_requests=self.FALLBACK_MAX_REQUESTS,
                interval=self.FALLBACK_INTERVAL,
            )
            self._limiters[source_upper] = SlidingWindowRateLimiter(config)

        return self._limiters[source_upper]

    def set_config(self, source: str, config: RateLimiterConfig) -> None:
        """Override the rate limit config for a source (drops its window)."""
        source_upper = source.upper()
        self._limiters[source_upper] = SlidingWindowRateLimiter(config)
        logger.info(
            f"Updated rate limit config for {source_upper}: "
            f"{config.max_requests} requests per {config.interval}s"
        )

    async def wait_for_availability(self, source: str) -> float:
        """Wait until it's safe to make a request to a source."""
        return await self.get_limiter(source).wait_for_availability()

    def get_status(self) -> Dict[str, dict]:
        return {name: limiter.get_status() for name, limiter in self._limiters.items()}
