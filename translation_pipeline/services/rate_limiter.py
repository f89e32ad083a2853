"""Minimum-interval rate limiter for outbound translation batches.

One process-wide instance spaces every provider call, across all language
pairs, at least ``min_interval`` seconds apart.
"""
import asyncio
import time
import logging
from typing import Awaitable, Callable, Optional

from translation_pipeline.config import get_settings

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        min_interval: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_dispatch: Optional[float] = None

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last_dispatch

    async def await_slot(self) -> None:
        """Suspend until min_interval has passed since the previous slot."""
        if self._last_dispatch is not None:
            # Loop: timers may fire a hair early
            while True:
                elapsed = self._clock() - self._last_dispatch
                if elapsed >= self.min_interval:
                    break
                wait = self.min_interval - elapsed
                logger.debug(f"Rate limit: waiting {wait * 1000:.0f}ms before next batch")
                await self._sleep(wait)

        self._last_dispatch = self._clock()


# Singleton instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the singleton rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(min_interval=settings.translation_min_request_interval_seconds)
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Forget the singleton (tests and service rebuilds)."""
    global _rate_limiter
    _rate_limiter = None
