"""Translation Service - the entry point for translating storefront content.

Callers use translate_text / translate_batch / translate_object /
translate_object_array, either on a TranslationService instance or through the
module-level functions backed by the process-wide singleton.

Trivial input (blank text, same source and target language) returns
immediately. Otherwise the cache is checked, and misses are handed to the
batching queue. These calls never raise; the worst case is the original text.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from translation_pipeline.config import Settings, get_settings
from translation_pipeline.jobs.sweep_translation_cache import sweep_translation_cache_job
from translation_pipeline.services.cache_keys import derive_cache_key
from translation_pipeline.services.cache_stats import CacheStatsRecorder
from translation_pipeline.services.language_utils import DEFAULT_LANGUAGE, normalize_language_code
from translation_pipeline.services.rate_limiter import RateLimiter, get_rate_limiter
from translation_pipeline.services.translation_cache import TranslationCacheManager
from translation_pipeline.services.translation_providers import (
    TranslationProvider,
    get_translation_provider,
)
from translation_pipeline.services.translation_queue import BatchingQueue
from translation_pipeline.services.translation_store import StoreAdapter, create_store

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_translation_cache"


class TranslationService:
    def __init__(
        self,
        cache: TranslationCacheManager,
        queue: BatchingQueue,
        default_source_lang: str = DEFAULT_LANGUAGE,
        cleanup_interval_seconds: int = 3600,
    ):
        self.cache = cache
        self.queue = queue
        self.default_source_lang = default_source_lang
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    def _language_pair(self, target_lang: Optional[str], source_lang: Optional[str]) -> tuple[str, str]:
        source = normalize_language_code(source_lang or self.default_source_lang)
        target = normalize_language_code(target_lang)
        return source, target

    async def translate_text(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> str:
        """Translate one text; resolves once its batch has been processed."""
        if not isinstance(text, str) or not text.strip():
            return text or ""

        source, target = self._language_pair(target_lang, source_lang)
        if source == target:
            return text

        cache_key = derive_cache_key(text, source, target)
        cached = await self.cache.lookup(cache_key)
        if cached is not None:
            return cached

        return await self.queue.submit(text, source, target)

    async def translate_batch(
        self,
        texts: list[str],
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> list[str]:
        """Translate many texts concurrently; output order matches input order."""
        if not isinstance(texts, list) or not texts:
            return []
        return list(
            await asyncio.gather(
                *(self.translate_text(text, target_lang, source_lang) for text in texts)
            )
        )

    async def translate_object(
        self,
        obj: dict[str, Any],
        keys: Optional[Iterable[str]],
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> dict[str, Any]:
        """Return a copy of obj with the listed string fields translated.

        Absent, non-string and blank fields are copied unchanged. keys=None
        selects every string field.
        """
        if not isinstance(obj, dict):
            return obj

        selected = list(obj.keys()) if keys is None else list(keys)
        keys_with_texts = [
            key for key in selected
            if key in obj and isinstance(obj[key], str) and obj[key].strip()
        ]

        translated_obj = dict(obj)
        if not keys_with_texts:
            return translated_obj

        translations = await self.translate_batch(
            [obj[key] for key in keys_with_texts],
            target_lang,
            source_lang,
        )
        for key, translation in zip(keys_with_texts, translations):
            translated_obj[key] = translation
        return translated_obj

    async def translate_object_array(
        self,
        objects: list[dict[str, Any]],
        keys: Optional[Iterable[str]],
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        if not isinstance(objects, list) or not objects:
            return []
        key_list = None if keys is None else list(keys)
        return list(
            await asyncio.gather(
                *(self.translate_object(obj, key_list, target_lang, source_lang) for obj in objects)
            )
        )

    async def clear_cache(self) -> int:
        return await self.cache.clear_all()

    async def invalidate_language(self, target_lang: str) -> int:
        return await self.cache.invalidate_language(normalize_language_code(target_lang))

    async def cache_stats(self) -> dict:
        stats = await self.cache.stats()
        stats["queue"] = {
            "state": self.queue.state.value,
            "pending": self.queue.pending_count,
        }
        return stats

    async def start(self) -> None:
        """Schedule the expiry sweep: first run right away, then on a fixed interval."""
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            sweep_translation_cache_job,
            "interval",
            seconds=self.cleanup_interval_seconds,
            args=[self.cache],
            id=SWEEP_JOB_ID,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Translation cache sweep scheduled every {self.cleanup_interval_seconds}s")

    async def close(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        await self.queue.close()
        await self.queue.provider.close()
        await self.cache.close()
        logger.info("Translation service closed")


async def create_translation_service(
    settings: Optional[Settings] = None,
    provider: Optional[TranslationProvider] = None,
    store: Optional[StoreAdapter] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> TranslationService:
    """Assemble store, cache, rate limiter, provider and queue."""
    settings = settings or get_settings()
    store = store or await create_store(settings)
    cache = TranslationCacheManager(
        store,
        ttl_seconds=settings.translation_cache_ttl_seconds,
        stats=CacheStatsRecorder(settings.redis_url),
    )
    queue = BatchingQueue(
        provider or get_translation_provider(settings),
        cache,
        rate_limiter or get_rate_limiter(),
        batch_wait=settings.translation_batch_wait_seconds,
        batch_size=settings.translation_batch_size,
    )
    logger.info(
        f"Translation service ready (store={store.name}, provider={queue.provider.name})"
    )
    return TranslationService(
        cache,
        queue,
        default_source_lang=normalize_language_code(settings.translation_default_source_lang),
        cleanup_interval_seconds=settings.translation_cache_cleanup_interval_seconds,
    )


# Global singleton shared by every caller in the process
_translation_service: Optional[TranslationService] = None
# Lock to ensure the singleton is built exactly once
_translation_service_lock = asyncio.Lock()


async def get_translation_service() -> TranslationService:
    """Build and start the process-wide service on first use."""
    global _translation_service
    async with _translation_service_lock:
        if _translation_service is None:
            service = await create_translation_service()
            await service.start()
            _translation_service = service
        return _translation_service


def set_translation_service(service: Optional[TranslationService]) -> None:
    """Install a prebuilt service (application startup, tests)."""
    global _translation_service
    _translation_service = service


async def shutdown_translation_service() -> None:
    global _translation_service
    async with _translation_service_lock:
        if _translation_service is not None:
            await _translation_service.close()
            _translation_service = None


async def translate_text(text: str, target_lang: str, source_lang: Optional[str] = None) -> str:
    service = await get_translation_service()
    return await service.translate_text(text, target_lang, source_lang)


async def translate_batch(texts: list[str], target_lang: str, source_lang: Optional[str] = None) -> list[str]:
    service = await get_translation_service()
    return await service.translate_batch(texts, target_lang, source_lang)


async def translate_object(
    obj: dict[str, Any],
    keys: Optional[Iterable[str]],
    target_lang: str,
    source_lang: Optional[str] = None,
) -> dict[str, Any]:
    service = await get_translation_service()
    return await service.translate_object(obj, keys, target_lang, source_lang)


async def translate_object_array(
    objects: list[dict[str, Any]],
    keys: Optional[Iterable[str]],
    target_lang: str,
    source_lang: Optional[str] = None,
) -> list[dict[str, Any]]:
    service = await get_translation_service()
    return await service.translate_object_array(objects, keys, target_lang, source_lang)
