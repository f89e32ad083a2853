import pytest

from translation_pipeline.services.cache_keys import decode_cache_key, derive_cache_key


def test_same_inputs_give_same_key():
    assert derive_cache_key("Add to cart", "en", "fr") == derive_cache_key("Add to cart", "en", "fr")


def test_key_format_is_pair_prefixed_base64():
    # "Hi" -> "SGk="
    assert derive_cache_key("Hi", "en", "fr") == "en_fr_SGk="


def test_language_pair_is_part_of_the_key():
    keys = {
        derive_cache_key("Checkout", "en", "fr"),
        derive_cache_key("Checkout", "en", "de"),
        derive_cache_key("Checkout", "de", "fr"),
    }
    assert len(keys) == 3


def test_distinct_texts_never_collide():
    assert derive_cache_key("Size: M", "en", "fr") != derive_cache_key("Size: L", "en", "fr")


def test_unicode_text_is_recoverable_from_key():
    text = "Livraison gratuite 🚚 dès 50€ / 送料無料"
    key = derive_cache_key(text, "fr", "zh-CN")

    assert decode_cache_key(key) == ("fr", "zh-CN", text)


def test_text_containing_separator_decodes_intact():
    key = derive_cache_key("red_shoes_42", "en", "es")
    assert decode_cache_key(key) == ("en", "es", "red_shoes_42")


@pytest.mark.parametrize("key", ["", "en_fr", "_fr_SGk=", "en_fr_not base64!"])
def test_malformed_keys_raise_value_error(key):
    with pytest.raises(ValueError):
        decode_cache_key(key)
