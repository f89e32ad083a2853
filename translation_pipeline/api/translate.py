from fastapi import APIRouter, Depends, Query, HTTPException
from typing import Optional
import logging

from translation_pipeline.config import get_settings
from translation_pipeline.schemas.translation import (
    BatchTranslationData,
    BatchTranslationItem,
    CacheClearData,
    CacheClearResponse,
    CacheStatsResponse,
    LanguageInfo,
    LanguageListResponse,
    ObjectTranslationData,
    TextTranslation,
    TranslateBatchRequest,
    TranslateBatchResponse,
    TranslateObjectRequest,
    TranslateObjectResponse,
    TranslateTextRequest,
    TranslateTextResponse,
)
from translation_pipeline.services.language_utils import SUPPORTED_LANGUAGES, normalize_language_code
from translation_pipeline.services.translation_service import TranslationService, get_translation_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_languages(service: TranslationService, target_lang: str, source_lang: Optional[str]) -> tuple[str, str]:
    source = normalize_language_code(source_lang or service.default_source_lang)
    return source, normalize_language_code(target_lang)


@router.post("", response_model=TranslateTextResponse)
async def translate_text(
    payload: TranslateTextRequest,
    service: TranslationService = Depends(get_translation_service),
):
    source, target = _resolve_languages(service, payload.target_lang, payload.source_lang)
    translation = await service.translate_text(payload.text, target, source)
    return TranslateTextResponse(
        data=TextTranslation(
            original=payload.text,
            translation=translation,
            source_lang=source,
            target_lang=target,
        )
    )


@router.post("/batch", response_model=TranslateBatchResponse)
async def translate_batch(
    payload: TranslateBatchRequest,
    service: TranslationService = Depends(get_translation_service),
):
    max_texts = get_settings().translation_max_batch_texts
    if len(payload.texts) > max_texts:
        raise HTTPException(status_code=400, detail=f"Maximum {max_texts} texts per batch")

    source, target = _resolve_languages(service, payload.target_lang, payload.source_lang)
    translations = await service.translate_batch(payload.texts, target, source)
    items = [
        BatchTranslationItem(original=original, translation=translation)
        for original, translation in zip(payload.texts, translations)
    ]
    return TranslateBatchResponse(
        data=BatchTranslationData(
            translations=items,
            count=len(items),
            source_lang=source,
            target_lang=target,
        )
    )


@router.post("/object", response_model=TranslateObjectResponse)
async def translate_object(
    payload: TranslateObjectRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """Translate selected string fields of a JSON object.

    An empty ``keys`` list translates every string value.
    """
    source, target = _resolve_languages(service, payload.target_lang, payload.source_lang)
    keys = payload.keys or None
    translated = await service.translate_object(payload.object, keys, target, source)
    translated_keys = [
        key for key, value in translated.items()
        if key in payload.object and value != payload.object[key]
    ]
    return TranslateObjectResponse(
        data=ObjectTranslationData(
            object=translated,
            translated_keys=translated_keys,
            source_lang=source,
            target_lang=target,
        )
    )


@router.get("/languages", response_model=LanguageListResponse)
async def list_languages():
    return LanguageListResponse(
        data=[LanguageInfo(code=code, label=label) for code, label in SUPPORTED_LANGUAGES.items()]
    )


@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(service: TranslationService = Depends(get_translation_service)):
    try:
        stats = await service.cache_stats()
    except Exception as e:
        logger.error(f"Failed to read translation cache stats: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Failed to read cache stats")
    return CacheStatsResponse(data=stats)


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(
    target_lang: Optional[str] = Query(None, min_length=1),
    service: TranslationService = Depends(get_translation_service),
):
    try:
        if target_lang:
            normalized = normalize_language_code(target_lang)
            removed = await service.invalidate_language(normalized)
            logger.info(f"Cleared {removed} cached translations for {normalized}")
            return CacheClearResponse(data=CacheClearData(removed=removed, target_lang=normalized))
        removed = await service.clear_cache()
    except Exception as e:
        logger.error(f"Failed to clear translation cache: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear cache")
    logger.info(f"Cleared {removed} cached translations")
    return CacheClearResponse(data=CacheClearData(removed=removed))
