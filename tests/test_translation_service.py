import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from translation_pipeline.config import Settings
from translation_pipeline.services import translation_service as service_module
from translation_pipeline.services.cache_keys import derive_cache_key
from translation_pipeline.services.rate_limiter import RateLimiter
from translation_pipeline.services.translation_service import (
    SWEEP_JOB_ID,
    create_translation_service,
    get_translation_service,
    set_translation_service,
)


# ---------------------------------------------------------------------------
# translate_text
# ---------------------------------------------------------------------------


class TestTranslateText:
    @pytest.mark.asyncio
    async def test_miss_goes_through_queue_then_hits_cache(self, translation_service, provider):
        first = await translation_service.translate_text("Add to cart", "fr")
        second = await translation_service.translate_text("Add to cart", "fr")

        assert first == second == "[fr] Add to cart"
        assert len(provider.calls) == 1
        assert translation_service.cache.stats_recorder.hits == 1

    @pytest.mark.asyncio
    async def test_same_language_short_circuits(self, translation_service, provider):
        with patch.object(translation_service.cache, "lookup", AsyncMock()) as mock_lookup:
            result = await translation_service.translate_text("Add to cart", "en-US", "en")

        assert result == "Add to cart"
        mock_lookup.assert_not_called()
        assert provider.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_blank_text_is_returned_without_translation(self, translation_service, provider, text):
        assert await translation_service.translate_text(text, "fr") == (text or "")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_language_codes_are_normalized_before_keying(self, translation_service, provider, cache):
        await translation_service.translate_text("Hello", "fr-CA", "en-GB")

        assert provider.calls == [("en", "fr", ["Hello"])]
        assert await cache.lookup(derive_cache_key("Hello", "en", "fr")) == "[fr] Hello"

    @pytest.mark.asyncio
    async def test_default_source_language_is_used(self, translation_service, provider):
        await translation_service.translate_text("Hello", "de")

        assert provider.calls[0][0] == "en"

    @pytest.mark.asyncio
    async def test_provider_failure_returns_original(self, translation_service, provider):
        provider.fail_targets.add("fr")

        assert await translation_service.translate_text("Hello", "fr") == "Hello"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_provider_call(self, translation_service, provider):
        results = await asyncio.gather(
            translation_service.translate_text("Shoes", "fr"),
            translation_service.translate_text("Bags", "fr"),
            translation_service.translate_text("Hats", "fr"),
        )

        assert results == ["[fr] Shoes", "[fr] Bags", "[fr] Hats"]
        assert provider.calls == [("en", "fr", ["Shoes", "Bags", "Hats"])]


# ---------------------------------------------------------------------------
# Batch and object helpers
# ---------------------------------------------------------------------------


class TestBatchAndObjects:
    @pytest.mark.asyncio
    async def test_translate_batch_preserves_order(self, translation_service):
        results = await translation_service.translate_batch(["One", "", "Three"], "fr")

        assert results == ["[fr] One", "", "[fr] Three"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("texts", [[], None, "not a list"])
    async def test_translate_batch_rejects_empty_or_non_list(self, translation_service, texts):
        assert await translation_service.translate_batch(texts, "fr") == []

    @pytest.mark.asyncio
    async def test_translate_object_translates_only_listed_string_fields(self, translation_service):
        product = {"id": 7, "name": "Red shoes", "description": "Leather", "sku": "RS-7", "price": 59.9}

        translated = await translation_service.translate_object(
            product, ["name", "description", "price", "missing"], "fr"
        )

        assert translated == {
            "id": 7,
            "name": "[fr] Red shoes",
            "description": "[fr] Leather",
            "sku": "RS-7",
            "price": 59.9,
        }
        assert product["name"] == "Red shoes"

    @pytest.mark.asyncio
    async def test_translate_object_without_keys_translates_every_string(self, translation_service):
        translated = await translation_service.translate_object({"a": "One", "b": 2, "c": " "}, None, "fr")

        assert translated == {"a": "[fr] One", "b": 2, "c": " "}

    @pytest.mark.asyncio
    async def test_translate_object_passes_non_dict_through(self, translation_service):
        assert await translation_service.translate_object(None, ["name"], "fr") is None

    @pytest.mark.asyncio
    async def test_translate_object_array(self, translation_service, provider):
        products = [{"name": "Shirt"}, {"name": "Socks", "stock": 3}]

        translated = await translation_service.translate_object_array(products, ["name"], "de")

        assert translated == [{"name": "[de] Shirt"}, {"name": "[de] Socks", "stock": 3}]
        assert provider.calls == [("en", "de", ["Shirt", "Socks"])]

    @pytest.mark.asyncio
    async def test_translate_object_array_rejects_empty_input(self, translation_service):
        assert await translation_service.translate_object_array([], ["name"], "de") == []


# ---------------------------------------------------------------------------
# Cache management and lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_invalidate_language_and_clear(self, translation_service):
        await translation_service.translate_batch(["One", "Two"], "fr")
        await translation_service.translate_text("One", "de")

        assert await translation_service.invalidate_language("fr-FR") == 2
        assert await translation_service.clear_cache() == 1

    @pytest.mark.asyncio
    async def test_cache_stats_include_queue_state(self, translation_service):
        stats = await translation_service.cache_stats()

        assert stats["backend"] == "flat"
        assert stats["queue"] == {"state": "idle", "pending": 0}

    @pytest.mark.asyncio
    async def test_start_sweeps_and_schedules_hourly_job(self, translation_service, cache, clock):
        await cache.store(derive_cache_key("old", "en", "fr"), "old", "vieux", "en", "fr")
        clock.advance(86400 + 1)

        await translation_service.start()
        try:
            job = translation_service._scheduler.get_job(SWEEP_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 3600

            for _ in range(200):
                if await cache.backend.count() == 0:
                    break
                await asyncio.sleep(0.01)
            assert await cache.backend.count() == 0
        finally:
            await translation_service.close()

        assert translation_service._scheduler is None

    @pytest.mark.asyncio
    async def test_start_does_not_wait_for_first_sweep(self, translation_service, cache):
        sweep_started = asyncio.Event()
        release = asyncio.Event()

        async def slow_sweep():
            sweep_started.set()
            await release.wait()
            return 0

        cache.sweep_expired = slow_sweep
        try:
            await asyncio.wait_for(translation_service.start(), timeout=1)
            await asyncio.wait_for(sweep_started.wait(), timeout=2)
        finally:
            release.set()
            await asyncio.sleep(0)
            await translation_service.close()

    @pytest.mark.asyncio
    async def test_close_releases_provider_and_store(self, translation_service, provider, flat_store):
        await translation_service.close()

        assert provider.closed
        assert flat_store._db is None


# ---------------------------------------------------------------------------
# Factory and singleton
# ---------------------------------------------------------------------------


class TestFactory:
    @pytest.mark.asyncio
    async def test_create_translation_service_uses_settings(self, tmp_path, provider):
        settings = Settings(
            redis_url="",
            translation_cache_indexed_enabled=False,
            translation_cache_flat_path=str(tmp_path / "translation_cache"),
            translation_batch_size=4,
            translation_batch_wait_seconds=0.01,
            translation_default_source_lang="en-GB",
        )

        service = await create_translation_service(
            settings, provider=provider, rate_limiter=RateLimiter(min_interval=0)
        )
        try:
            assert service.cache.backend.name == "flat"
            assert service.queue.batch_size == 4
            assert service.default_source_lang == "en"
            assert await service.translate_text("Hello", "es") == "[es] Hello"
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_get_translation_service_builds_once(self, translation_service):
        set_translation_service(None)
        try:
            with patch.object(
                service_module, "create_translation_service", AsyncMock(return_value=translation_service)
            ) as mock_create, patch.object(translation_service, "start", AsyncMock()) as mock_start:
                first, second = await asyncio.gather(get_translation_service(), get_translation_service())

            assert first is second is translation_service
            mock_create.assert_awaited_once()
            mock_start.assert_awaited_once()
        finally:
            set_translation_service(None)

    @pytest.mark.asyncio
    async def test_module_level_helpers_use_singleton(self, translation_service):
        set_translation_service(translation_service)
        try:
            assert await service_module.translate_text("Hello", "fr") == "[fr] Hello"
            assert await service_module.translate_batch(["Hi"], "fr") == ["[fr] Hi"]
            assert await service_module.translate_object({"t": "Hi"}, ["t"], "fr") == {"t": "[fr] Hi"}
            assert await service_module.translate_object_array([{"t": "Hi"}], ["t"], "fr") == [{"t": "[fr] Hi"}]
        finally:
            set_translation_service(None)
