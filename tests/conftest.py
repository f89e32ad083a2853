import os
from pathlib import Path

import pytest
import pytest_asyncio

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("TRANSLATION_PROVIDER", "google")
os.environ.setdefault("TRANSLATION_CACHE_DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TRANSLATION_CACHE_FLAT_PATH", "./data/test_translation_cache")
os.environ.setdefault("TRANSLATION_BATCH_WAIT_SECONDS", "0.01")
os.environ.setdefault("TRANSLATION_MIN_REQUEST_INTERVAL_SECONDS", "0")

from translation_pipeline.services.cache_stats import CacheStatsRecorder  # noqa: E402
from translation_pipeline.services.rate_limiter import RateLimiter  # noqa: E402
from translation_pipeline.services.translation_cache import TranslationCacheManager  # noqa: E402
from translation_pipeline.services.translation_providers import TranslationProvider  # noqa: E402
from translation_pipeline.services.translation_queue import BatchingQueue  # noqa: E402
from translation_pipeline.services.translation_service import TranslationService  # noqa: E402
from translation_pipeline.services.translation_store import FlatBackend  # noqa: E402


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingProvider(TranslationProvider):
    """Provider that prefixes texts with the target language and records every call."""

    name = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, list[str]]] = []
        self.fail_targets: set[str] = set()
        self.drop_last = False
        self.closed = False

    async def batch_translate(self, texts, source_lang, target_lang):
        self.calls.append((source_lang, target_lang, list(texts)))
        if target_lang in self.fail_targets:
            raise RuntimeError(f"provider unavailable for {target_lang}")
        results = [f"[{target_lang}] {text}" for text in texts]
        if self.drop_last:
            results = results[:-1]
        return results

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def flat_store(tmp_path: Path, clock: FakeClock):
    store = FlatBackend(
        tmp_path / "translation_cache",
        ttl_seconds=86400,
        max_size_bytes=50 * 1024 * 1024,
        clock=clock,
    )
    yield store
    if store._db is not None:
        store._db.close()


@pytest.fixture
def cache(flat_store: FlatBackend, clock: FakeClock) -> TranslationCacheManager:
    return TranslationCacheManager(
        flat_store,
        ttl_seconds=86400,
        stats=CacheStatsRecorder(redis_url=""),
        clock=clock,
    )


@pytest.fixture
def queue(provider: RecordingProvider, cache: TranslationCacheManager) -> BatchingQueue:
    return BatchingQueue(
        provider,
        cache,
        RateLimiter(min_interval=0),
        batch_wait=0.01,
        batch_size=10,
    )


@pytest_asyncio.fixture
async def translation_service(queue: BatchingQueue, cache: TranslationCacheManager):
    service = TranslationService(cache, queue, default_source_lang="en")
    yield service
    await service.queue.close()
