"""Deterministic cache keys for translations.

A key is ``"{source_lang}_{target_lang}_{base64(text)}"``. Normalized language
codes only ever contain letters and ``-``, so the first two ``_`` always
delimit the language pair, and base64 keeps the text reversible for any
Unicode input.
"""

import base64

KEY_SEPARATOR = "_"


def derive_cache_key(text: str, source_lang: str, target_lang: str) -> str:
    """Build the cache key for one (text, source, target) triple."""
    encoded_text = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return f"{source_lang}{KEY_SEPARATOR}{target_lang}{KEY_SEPARATOR}{encoded_text}"


def decode_cache_key(key: str) -> tuple[str, str, str]:
    """Split a cache key back into (source_lang, target_lang, text).

    Raises:
        ValueError: If the key was not produced by derive_cache_key
    """
    parts = key.split(KEY_SEPARATOR, 2)
    if len(parts) != 3 or not parts[0] or not parts[1]:
        raise ValueError(f"Malformed translation cache key: {key!r}")
    source_lang, target_lang, encoded_text = parts
    try:
        text = base64.b64decode(encoded_text.encode("ascii"), validate=True).decode("utf-8")
    except (ValueError, UnicodeError) as exc:
        raise ValueError(f"Malformed translation cache key: {key!r}") from exc
    return source_lang, target_lang, text
