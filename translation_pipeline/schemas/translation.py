from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any


class TranslateTextRequest(BaseModel):
    text: str
    target_lang: str = Field(min_length=1)
    source_lang: Optional[str] = None


class TranslateBatchRequest(BaseModel):
    texts: List[str] = Field(min_length=1)
    target_lang: str = Field(min_length=1)
    source_lang: Optional[str] = None


class TranslateObjectRequest(BaseModel):
    object: Dict[str, Any]
    keys: List[str] = Field(default_factory=list)
    target_lang: str = Field(min_length=1)
    source_lang: Optional[str] = None

    @field_validator("keys", mode="before")
    @classmethod
    def _none_keys_to_empty(cls, value):
        return [] if value is None else value


class TextTranslation(BaseModel):
    original: str
    translation: str
    source_lang: str
    target_lang: str


class BatchTranslationItem(BaseModel):
    original: str
    translation: str


class BatchTranslationData(BaseModel):
    translations: List[BatchTranslationItem]
    count: int
    source_lang: str
    target_lang: str


class ObjectTranslationData(BaseModel):
    object: Dict[str, Any]
    translated_keys: List[str]
    source_lang: str
    target_lang: str


class LanguageInfo(BaseModel):
    code: str
    label: str


class CacheClearData(BaseModel):
    removed: int
    target_lang: Optional[str] = None


class TranslateTextResponse(BaseModel):
    success: bool = True
    data: TextTranslation


class TranslateBatchResponse(BaseModel):
    success: bool = True
    data: BatchTranslationData


class TranslateObjectResponse(BaseModel):
    success: bool = True
    data: ObjectTranslationData


class LanguageListResponse(BaseModel):
    success: bool = True
    data: List[LanguageInfo]


class CacheStatsResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]


class CacheClearResponse(BaseModel):
    success: bool = True
    data: CacheClearData
