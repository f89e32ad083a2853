"""Translation Batching Queue - Coalescing Concurrent Translation Requests

Independent callers each submit one text at a time. The queue holds them for a
short collection window, groups them by language pair, and sends each group to
the provider as one batched call, spaced by the shared rate limiter. Results
are written to the cache and handed back to each caller.

State machine:
- IDLE: nothing pending, no dispatch task
- COLLECTING: first request arrived, waiting out the batch window
- DISPATCHING: a batch is being grouped, sent and distributed

Every request is settled exactly once. Provider failures, short responses and
shutdown all settle with the original text; callers never see an exception.

Groups inside one batch are sent one after another, so a provider call that
hangs also delays the groups queued behind it in that batch. Each call is
bounded by the provider's own transport timeout.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import deque
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Optional

from translation_pipeline.metrics import (
    TRANSLATION_BATCH_SIZE,
    TRANSLATION_PROVIDER_CALLS,
    TRANSLATION_PROVIDER_FAILURES,
    TRANSLATION_QUEUE_SIZE,
)
from translation_pipeline.services.cache_keys import derive_cache_key
from translation_pipeline.services.rate_limiter import RateLimiter
from translation_pipeline.services.translation_cache import TranslationCacheManager
from translation_pipeline.services.translation_providers import TranslationProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_WAIT = 0.1  # seconds
DEFAULT_BATCH_SIZE = 10


class QueueState(str, enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    DISPATCHING = "dispatching"


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_lang: str
    target_lang: str
    result: asyncio.Future = field(compare=False, repr=False)

    @property
    def settled(self) -> bool:
        return self.result.done()

    def settle(self, translated_text: str) -> None:
        """Deliver the final text. Later calls, or a caller that gave up, are ignored."""
        if not self.result.done():
            self.result.set_result(translated_text)

    def settle_original(self) -> None:
        self.settle(self.text)


@dataclass
class LanguagePairGroup:
    source_lang: str
    target_lang: str
    requests: list[TranslationRequest] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [request.text for request in self.requests]


def group_by_language_pair(batch: list[TranslationRequest]) -> list[LanguagePairGroup]:
    """Partition a batch by (source, target), in first-seen order, FIFO within each."""
    groups: dict[tuple[str, str], LanguagePairGroup] = {}
    for request in batch:
        pair = (request.source_lang, request.target_lang)
        if pair not in groups:
            groups[pair] = LanguagePairGroup(source_lang=pair[0], target_lang=pair[1])
        groups[pair].requests.append(request)
    return list(groups.values())


class BatchingQueue:
    def __init__(
        self,
        provider: TranslationProvider,
        cache: TranslationCacheManager,
        rate_limiter: RateLimiter,
        batch_wait: float = DEFAULT_BATCH_WAIT,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.provider = provider
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.batch_wait = batch_wait
        self.batch_size = batch_size
        self._pending: deque[TranslationRequest] = deque()
        self._state = QueueState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._in_flight: list[TranslationRequest] = []

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(self, text: str, source_lang: str, target_lang: str) -> asyncio.Future:
        """Create a request for already-normalized languages and enqueue it.

        Returns:
            Future resolving to the translated (or original) text
        """
        loop = asyncio.get_running_loop()
        request = TranslationRequest(
            text=text,
            source_lang=source_lang,
            target_lang=target_lang,
            result=loop.create_future(),
        )
        self.enqueue(request)
        return request.result

    def enqueue(self, request: TranslationRequest) -> None:
        self._pending.append(request)
        TRANSLATION_QUEUE_SIZE.set(len(self._pending))
        if self._task is None:
            self._state = QueueState.COLLECTING
            self._task = asyncio.create_task(self._run())

    def _take_batch(self) -> list[TranslationRequest]:
        count = min(self.batch_size, len(self._pending))
        batch = [self._pending.popleft() for _ in range(count)]
        TRANSLATION_QUEUE_SIZE.set(len(self._pending))
        return batch

    async def _run(self) -> None:
        try:
            # Batch window: let concurrent callers pile up before the first cycle
            await asyncio.sleep(self.batch_wait)

            # Overflow and late arrivals go straight into the next cycle
            while self._pending:
                self._state = QueueState.DISPATCHING
                self._in_flight = self._take_batch()
                await self._dispatch(self._in_flight)
                self._in_flight = []
                if self._pending:
                    self._state = QueueState.COLLECTING
        except asyncio.CancelledError:
            for request in self._in_flight:
                request.settle_original()
            raise
        except Exception as e:
            # _dispatch handles provider errors itself; this is a last line of defense
            logger.error(f"Translation queue cycle failed: {type(e).__name__}: {e}")
            for request in self._in_flight:
                request.settle_original()
            while self._pending:
                self._pending.popleft().settle_original()
        finally:
            self._in_flight = []
            self._state = QueueState.IDLE
            self._task = None
            TRANSLATION_QUEUE_SIZE.set(len(self._pending))

    async def _dispatch(self, batch: list[TranslationRequest]) -> None:
        for group in group_by_language_pair(batch):
            await self.rate_limiter.await_slot()
            await self._dispatch_group(group)

    async def _dispatch_group(self, group: LanguagePairGroup) -> None:
        texts = group.texts
        TRANSLATION_PROVIDER_CALLS.labels(provider=self.provider.name).inc()
        TRANSLATION_BATCH_SIZE.observe(len(texts))

        try:
            results = await self.provider.batch_translate(texts, group.source_lang, group.target_lang)
        except Exception as e:
            TRANSLATION_PROVIDER_FAILURES.labels(provider=self.provider.name).inc()
            logger.error(
                f"Batch translation failed ({group.source_lang}->{group.target_lang}, "
                f"{len(texts)} texts): {type(e).__name__}: {e}"
            )
            for request in group.requests:
                request.settle_original()
            return

        results = list(results or [])
        if len(results) != len(texts):
            logger.warning(
                f"Provider returned {len(results)} results for {len(texts)} texts "
                f"({group.source_lang}->{group.target_lang}); unmatched positions keep original text"
            )

        for index, request in enumerate(group.requests):
            translated = results[index] if index < len(results) else None
            if not isinstance(translated, str) or not translated:
                request.settle_original()
                continue
            try:
                key = derive_cache_key(request.text, group.source_lang, group.target_lang)
                await self.cache.store(key, request.text, translated, group.source_lang, group.target_lang)
            finally:
                request.settle(translated)

    async def close(self) -> None:
        """Stop dispatching and settle everything still waiting with its original text."""
        task = self._task
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        # A task cancelled before its first step never reaches its finally block
        for request in self._in_flight:
            request.settle_original()
        self._in_flight = []
        self._task = None
        self._state = QueueState.IDLE
        while self._pending:
            self._pending.popleft().settle_original()
        TRANSLATION_QUEUE_SIZE.set(0)
