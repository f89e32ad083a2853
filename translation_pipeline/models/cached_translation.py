from sqlalchemy import Column, Float, Index, String, Text

from translation_pipeline.database import Base


class CachedTranslation(Base):
    __tablename__ = "translation_cache"

    # Derived cache key: "{source}_{target}_{base64 text}"
    key = Column(Text, primary_key=True)

    original_text = Column(Text, nullable=False)
    translated_text = Column(Text, nullable=False)
    source_lang = Column(String(16), nullable=False)
    target_lang = Column(String(16), nullable=False)

    # Epoch seconds; float keeps range queries identical across SQLite and PostgreSQL
    created_at = Column(Float, nullable=False)

    __table_args__ = (
        # For expiry sweeps
        Index("ix_translation_cache_created_at", "created_at"),
        # For per-language invalidation
        Index("ix_translation_cache_target_lang", "target_lang"),
    )
