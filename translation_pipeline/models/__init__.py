from translation_pipeline.models.cached_translation import CachedTranslation

__all__ = ["CachedTranslation"]
