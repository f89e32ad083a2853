import logging
from typing import Optional

from translation_pipeline.jobs.retry import retry
from translation_pipeline.services.translation_cache import TranslationCacheManager

logger = logging.getLogger(__name__)


@retry(max_attempts=3)
async def sweep_translation_cache_job(cache: TranslationCacheManager) -> Optional[int]:
    """Delete expired translation cache entries."""
    removed = await cache.sweep_expired()
    logger.info("Translation cache sweep removed %s expired entries (%s store)", removed, cache.backend.name)
    return removed
