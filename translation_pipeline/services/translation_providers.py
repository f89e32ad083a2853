"""Translation providers.

Each provider takes an ordered list of texts for one language pair and
returns a same-length list where ``results[i]`` translates ``texts[i]`` (or is
None when the provider produced nothing for that position). A failure of the
call as a whole is raised as a single exception.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from deep_translator import GoogleTranslator
from openai import AsyncOpenAI

from translation_pipeline.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Batch translation constants
BATCH_SEPARATOR = "\n\n<<<MSG_SEP>>>\n\n"


class TranslationProvider(ABC):
    name: str = "abstract"

    @abstractmethod
    async def batch_translate(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[Optional[str]]:
        """Translate texts from source_lang to target_lang, preserving order."""

    async def close(self) -> None:
        """Release network resources."""


class GoogleTranslateProvider(TranslationProvider):
    """Google Translate via deep-translator (no API key required).

    deep-translator is synchronous, so calls run in a worker thread.
    """

    name = "google"

    def _translate_sync(self, texts: list[str], source_lang: str, target_lang: str) -> list[Optional[str]]:
        translator = GoogleTranslator(source=source_lang, target=target_lang)
        return translator.translate_batch(texts)

    async def batch_translate(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[Optional[str]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._translate_sync, texts, source_lang, target_lang)


class OpenAITranslateProvider(TranslationProvider):
    """Translate a whole batch in a single chat completion.

    Texts are joined with BATCH_SEPARATOR and the response is split on it
    again; a segment-count mismatch fails the whole call.
    """

    name = "openai"

    def __init__(self, api_key: str, model: str, timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> Optional[AsyncOpenAI]:
        if not self.api_key:
            return None
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def batch_translate(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[Optional[str]]:
        if not texts:
            return []

        client = self.client
        if client is None:
            raise RuntimeError("OpenAI API key is not configured")

        combined = BATCH_SEPARATOR.join(texts)
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": (
                        "E-commerce storefront translator. Translate each segment. "
                        "Keep separator <<<MSG_SEP>>>. "
                        "Preserve brand names, model numbers, prices and URLs. "
                        "Return only translations."
                    ),
                },
                {
                    "role": "user",
                    "content": f"Translate from {source_lang} to {target_lang}:\n\n{combined}",
                },
            ],
            temperature=0.2,
        )

        content = response.choices[0].message.content or ""
        translated = content.strip().split(BATCH_SEPARATOR.strip())
        if len(translated) != len(texts):
            raise RuntimeError(
                f"OpenAI batch translation mismatch: {len(translated)} vs {len(texts)}"
            )
        return [t.strip() or None for t in translated]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class HttpTranslateProvider(TranslationProvider):
    """Remote batch endpoint speaking the /api/translate/batch JSON contract.

    Request:  {"texts": [...], "source_lang": "en", "target_lang": "fr"}
    Response: {"success": true, "data": {"translations": [{"translation": "..."}, ...]}}
    """

    name = "http"

    def __init__(self, url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def batch_translate(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[Optional[str]]:
        if not texts:
            return []

        response = await self._get_client().post(
            self.url,
            json={"texts": texts, "source_lang": source_lang, "target_lang": target_lang},
        )
        response.raise_for_status()
        payload = response.json()

        if not payload.get("success"):
            raise RuntimeError(f"Batch translation endpoint reported failure: {payload.get('error')}")
        translations = (payload.get("data") or {}).get("translations")
        if not isinstance(translations, list):
            raise RuntimeError("Batch translation endpoint returned no translations")

        results: list[Optional[str]] = []
        for item in translations:
            if isinstance(item, dict) and isinstance(item.get("translation"), str):
                results.append(item["translation"])
            elif isinstance(item, str):
                results.append(item)
            else:
                results.append(None)
        return results

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_translation_provider(settings: Optional[Settings] = None) -> TranslationProvider:
    """Build the provider selected by settings.translation_provider."""
    settings = settings or get_settings()
    provider = settings.translation_provider

    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("OpenAI provider selected but OPENAI_API_KEY is empty; using Google")
            return GoogleTranslateProvider()
        return OpenAITranslateProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.translation_api_timeout,
        )
    if provider == "http":
        if not settings.translation_api_url:
            logger.warning("HTTP provider selected but TRANSLATION_API_URL is empty; using Google")
            return GoogleTranslateProvider()
        return HttpTranslateProvider(
            url=settings.translation_api_url,
            timeout=settings.translation_api_timeout,
        )
    if provider != "google":
        logger.warning(f"Unknown translation provider '{provider}'; using Google")
    return GoogleTranslateProvider()
