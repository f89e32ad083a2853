"""Language code normalization.

Every source/target language is normalized before it reaches the cache key,
the queue grouping, or the provider, so regional variants share one lane.
"""

from typing import Optional

DEFAULT_LANGUAGE = "en"

# Locale codes -> provider language codes
LANGUAGE_CODE_MAP: dict[str, str] = {
    # English variants
    "en": "en",
    "en-US": "en",
    "en-GB": "en",
    "en-AU": "en",
    # Arabic variants
    "ar": "ar",
    "ar-SA": "ar",
    "ar-AE": "ar",
    "ar-KW": "ar",
    "hi": "hi",
    "hi-IN": "hi",
    # Spanish variants
    "es": "es",
    "es-ES": "es",
    "es-MX": "es",
    # French variants
    "fr": "fr",
    "fr-FR": "fr",
    "fr-CA": "fr",
    "de": "de",
    "de-DE": "de",
    # Portuguese variants
    "pt": "pt",
    "pt-BR": "pt",
    "pt-PT": "pt",
    # Chinese keeps its script distinction
    "zh": "zh-CN",
    "zh-CN": "zh-CN",
    "zh-TW": "zh-TW",
    "zh-Hans": "zh-CN",
    "zh-Hant": "zh-TW",
    "ja": "ja",
    "ja-JP": "ja",
    "ko": "ko",
    "ko-KR": "ko",
    "ru": "ru",
    "ru-RU": "ru",
    "tr": "tr",
    "tr-TR": "tr",
    "it": "it",
    "it-IT": "it",
    "nl": "nl",
    "nl-NL": "nl",
    "pl": "pl",
    "pl-PL": "pl",
    "vi": "vi",
    "vi-VN": "vi",
    "th": "th",
    "th-TH": "th",
    "id": "id",
    "id-ID": "id",
    "ms": "ms",
    "ms-MY": "ms",
    "he": "he",
    "he-IL": "he",
    "ur": "ur",
    "ur-PK": "ur",
    "fa": "fa",
    "fa-IR": "fa",
    "bn": "bn",
    "bn-BD": "bn",
    "bn-IN": "bn",
    "ta": "ta",
    "ta-IN": "ta",
    "te": "te",
    "te-IN": "te",
    "mr": "mr",
    "mr-IN": "mr",
    "gu": "gu",
    "gu-IN": "gu",
    "kn": "kn",
    "kn-IN": "kn",
    "ml": "ml",
    "ml-IN": "ml",
    "pa": "pa",
    "pa-IN": "pa",
}

_LOWERCASE_CODE_MAP = {code.lower(): canonical for code, canonical in LANGUAGE_CODE_MAP.items()}

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "ar": "العربية",
    "hi": "हिन्दी",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "pt": "Português",
    "zh-CN": "中文(简体)",
    "ja": "日本語",
    "ko": "한국어",
    "ru": "Русский",
    "tr": "Türkçe",
    "it": "Italiano",
    "nl": "Nederlands",
    "vi": "Tiếng Việt",
    "th": "ไทย",
    "id": "Bahasa Indonesia",
    "ms": "Bahasa Melayu",
    "he": "עברית",
    "ur": "اردو",
    "fa": "فارسی",
    "bn": "বাংলা",
    "ta": "தமிழ்",
    "te": "తెలుగు",
}


def normalize_language_code(code: Optional[str]) -> str:
    """Collapse a locale code to its canonical provider code.

    "en-US" -> "en", "zh-Hant" -> "zh-TW", "pt_BR" -> "pt", "" -> "en".
    Unknown codes fall back to their lower-cased primary subtag.
    """
    if not code or not code.strip():
        return DEFAULT_LANGUAGE
    code = code.strip()
    if code in LANGUAGE_CODE_MAP:
        return LANGUAGE_CODE_MAP[code]

    cleaned = code.replace("_", "-")
    canonical = _LOWERCASE_CODE_MAP.get(cleaned.lower())
    if canonical:
        return canonical

    primary = cleaned.split("-")[0].lower()
    if not primary:
        return DEFAULT_LANGUAGE
    return LANGUAGE_CODE_MAP.get(primary, primary)
