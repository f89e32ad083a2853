"""Translation cache hit/miss accounting.

Counts are always kept for the current process. When REDIS_URL is set they
are also mirrored into shared Redis counters so several processes report one
global hit rate. Redis failures never affect translation.
"""

from __future__ import annotations

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry
from redis.exceptions import ConnectionError, TimeoutError

from translation_pipeline.config import get_settings
from translation_pipeline.metrics import TRANSLATION_CACHE_LOOKUPS

logger = logging.getLogger(__name__)

TRANSLATION_CACHE_HITS_KEY = "stats:translation:cache_hits"
TRANSLATION_CACHE_MISSES_KEY = "stats:translation:cache_misses"


def _hit_rate(hits: int, misses: int) -> float:
    total = hits + misses
    return round(hits / total * 100, 2) if total > 0 else 0.0


class CacheStatsRecorder:
    """Process-local counters with an optional Redis mirror."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url if redis_url is not None else get_settings().redis_url
        self.hits = 0
        self.misses = 0
        self._redis: Optional[Redis] = None

    def _get_redis(self) -> Optional[Redis]:
        """Get or create the Redis connection; None when Redis is not configured."""
        if not self.redis_url:
            return None
        if self._redis is None:
            retry = Retry(ExponentialBackoff(), retries=3)
            self._redis = Redis.from_url(
                self.redis_url,
                decode_responses=True,
                retry=retry,
                retry_on_error=[ConnectionError, TimeoutError],
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            logger.info("Redis stats client initialized with retry logic")
        return self._redis

    async def _incr(self, key: str) -> None:
        client = self._get_redis()
        if client is None:
            return
        try:
            await client.incr(key)
        except Exception as e:
            logger.debug(f"Failed to increment '{key}': {e}")

    async def record_hit(self) -> None:
        self.hits += 1
        TRANSLATION_CACHE_LOOKUPS.labels(result="hit").inc()
        await self._incr(TRANSLATION_CACHE_HITS_KEY)

    async def record_miss(self) -> None:
        self.misses += 1
        TRANSLATION_CACHE_LOOKUPS.labels(result="miss").inc()
        await self._incr(TRANSLATION_CACHE_MISSES_KEY)

    async def snapshot(self) -> dict:
        """Process counters plus the global Redis counters when available."""
        stats = {
            "cache_hits": self.hits,
            "cache_misses": self.misses,
            "cache_hit_rate": _hit_rate(self.hits, self.misses),
        }
        client = self._get_redis()
        if client is None:
            return stats
        try:
            hits = int(await client.get(TRANSLATION_CACHE_HITS_KEY) or 0)
            misses = int(await client.get(TRANSLATION_CACHE_MISSES_KEY) or 0)
            stats["global"] = {
                "cache_hits": hits,
                "cache_misses": misses,
                "cache_hit_rate": _hit_rate(hits, misses),
            }
        except Exception as e:
            logger.debug(f"Failed to read global translation cache stats: {e}")
        return stats

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None
