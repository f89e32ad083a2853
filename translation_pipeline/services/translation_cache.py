"""Translation Cache Manager

TTL-bounded get/set on top of a StoreAdapter. The cache is an optimization,
never a source of truth:

- lookup() degrades every storage problem to a miss
- store() swallows every storage problem
- a translation identical to its original text is never written, and never
  served if one is found on disk
"""

import logging
import time
from typing import Callable, Optional

from translation_pipeline.services.cache_stats import CacheStatsRecorder
from translation_pipeline.services.translation_store import (
    CacheEntry,
    CorruptEntryError,
    StoreAdapter,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class TranslationCacheManager:
    def __init__(
        self,
        store: StoreAdapter,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        stats: Optional[CacheStatsRecorder] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = store
        self.ttl_seconds = ttl_seconds
        self.stats_recorder = stats or CacheStatsRecorder()
        self._clock = clock

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    async def _discard(self, key: str) -> None:
        try:
            await self.backend.delete(key)
        except Exception as e:
            logger.debug(f"Failed to delete translation cache entry '{key}': {e}")

    async def lookup(self, key: str) -> Optional[str]:
        """Return the cached translation for key, or None on any kind of miss."""
        try:
            entry = await self.backend.get(key)
        except CorruptEntryError as e:
            logger.warning(f"{e}; deleting")
            await self._discard(key)
            await self.stats_recorder.record_miss()
            return None
        except Exception as e:
            logger.warning(f"Translation cache read failed for '{key}': {type(e).__name__}: {e}")
            await self.stats_recorder.record_miss()
            return None

        if entry is None:
            await self.stats_recorder.record_miss()
            return None

        if self._is_expired(entry, self._clock()):
            logger.debug(f"Translation cache entry expired: {key}")
            await self._discard(key)
            await self.stats_recorder.record_miss()
            return None

        # Never written by store(); treat a no-op record as corrupt
        if entry.translated_text == entry.original_text:
            await self._discard(key)
            await self.stats_recorder.record_miss()
            return None

        await self.stats_recorder.record_hit()
        return entry.translated_text

    async def store(
        self,
        key: str,
        original_text: str,
        translated_text: str,
        source_lang: str,
        target_lang: str,
    ) -> None:
        """Persist a translation unless it is a no-op. Best effort."""
        if not translated_text or translated_text == original_text:
            return

        entry = CacheEntry(
            key=key,
            original_text=original_text,
            translated_text=translated_text,
            source_lang=source_lang,
            target_lang=target_lang,
            created_at=self._clock(),
        )
        try:
            await self.backend.put(entry)
        except Exception as e:
            logger.warning(f"Translation cache write failed for '{key}': {type(e).__name__}: {e}")

    async def sweep_expired(self) -> int:
        """Delete every entry older than the TTL.

        Storage errors propagate so the scheduled job can retry.

        Returns:
            Number of entries removed
        """
        cutoff = self._clock() - self.ttl_seconds
        expired_keys = await self.backend.iterate_expired(cutoff)
        for key in expired_keys:
            await self.backend.delete(key)
        if expired_keys:
            logger.info(f"Swept {len(expired_keys)} expired translation cache entries")
        return len(expired_keys)

    async def clear_all(self) -> int:
        """Delete every cached translation regardless of age."""
        try:
            count = await self.backend.clear()
        except Exception as e:
            logger.error(f"Translation cache clear failed: {type(e).__name__}: {e}")
            return 0
        logger.info(f"Cleared {count} translation cache entries")
        return count

    async def invalidate_language(self, target_lang: str) -> int:
        """Delete every cached translation into target_lang."""
        try:
            count = await self.backend.delete_by_target_lang(target_lang)
        except Exception as e:
            logger.error(
                f"Translation cache invalidation failed for '{target_lang}': {type(e).__name__}: {e}"
            )
            return 0
        if count:
            logger.info(f"Invalidated {count} translation cache entries for {target_lang}")
        return count

    async def stats(self) -> dict:
        try:
            entries = await self.backend.count()
        except Exception as e:
            logger.debug(f"Translation cache count failed: {e}")
            entries = None
        stats = {
            "backend": self.backend.name,
            "entries": entries,
            "ttl_seconds": self.ttl_seconds,
        }
        stats.update(await self.stats_recorder.snapshot())
        return stats

    async def close(self) -> None:
        await self.stats_recorder.close()
        await self.backend.close()
