"""
Rate limiting utility module for app_publish.

This module provides a per-backend token bucket used by every adapter before
it sends a request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from ..config.models import RateLimitSettings

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMITS: Dict[str, RateLimitSettings] = {
    "google_play": RateLimitSettings(capacity=10, refill_rate=10),
    "app_store": RateLimitSettings(capacity=10, refill_rate=2),
    "huawei_agc": RateLimitSettings(capacity=5, refill_rate=1),
}

FALLBACK_RATE_LIMIT = RateLimitSettings(capacity=10, refill_rate=5)


class RateLimiter:
    """
    Rate limiter using token bucket algorithm.

    The bucket starts full. Tokens refill continuously at ``refill_rate`` per
    second up to ``capacity``.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the bucket.

        Args:
            capacity: Maximum number of tokens
            refill_rate: Tokens added per second
            clock: Monotonic clock returning seconds
        """
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._requests = 0
        self._waits = 0

    @property
    def tokens(self) -> float:
        """Tokens currently available, after refilling."""
        self.refill()
        return self._tokens

    def refill(self) -> None:
        """Add the tokens accrued since the last refill."""
        now = self._clock()
        elapsed = now - self._last_refill
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def try_consume(self, n: float = 1) -> bool:
        """
        Take ``n`` tokens if available without waiting.

        Returns:
            True if the tokens were taken
        """
        self.refill()
        if self._tokens >= n:
            self._tokens -= n
            self._requests += 1
            return True
        return False

    async def consume(self, n: float = 1) -> None:
        """
        Take ``n`` tokens, waiting for the deficit to refill if needed.

        Args:
            n: Number of tokens to take
        """
        self.refill()
        if self._tokens < n:
            deficit = n - self._tokens
            wait = deficit / self.refill_rate
            logger.debug("Rate limit reached, waiting %.3fs for %s token(s)", wait, n)
            self._waits += 1
            await asyncio.sleep(wait)
            self._tokens = 0
            self.refill()
        self._tokens -= n
        self._requests += 1

    def get_stats(self) -> Dict[str, Any]:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary containing capacity, refill_rate, available tokens,
            requests served and how many of them had to wait
        """
        return {
            "capacity": self.capacity,
            "refill_rate": self.refill_rate,
            "tokens": self.tokens,
            "requests": self._requests,
            "waits": self._waits,
        }


def create_rate_limiter(
    backend_id: str,
    overrides: Optional[Mapping[str, RateLimitSettings]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> RateLimiter:
    """
    Create the rate limiter for a backend.

    Args:
        backend_id: Backend the limiter throttles
        overrides: Configured settings keyed by backend id, taking precedence
            over the built-in defaults
        clock: Monotonic clock returning seconds

    Returns:
        A full token bucket
    """
    settings = None
    if overrides:
        settings = overrides.get(backend_id)
    if settings is None:
        settings = DEFAULT_RATE_LIMITS.get(backend_id, FALLBACK_RATE_LIMIT)
    return RateLimiter(settings.capacity, settings.refill_rate, clock=clock)
