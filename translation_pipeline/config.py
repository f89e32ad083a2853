from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from functools import lru_cache
from pathlib import Path

# Get the project root (the directory holding pyproject.toml)
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):

    # Application
    app_env: str = "development"
    app_debug: bool = False

    # API
    frontend_url: str = "http://localhost:5173"
    prometheus_enabled: bool = False

    # Redis (optional - global cache hit/miss counters)
    redis_url: str = ""

    # Translation provider
    translation_provider: str = "google"  # Options: google, openai, http
    translation_api_url: str = ""  # Required by the http provider
    translation_api_timeout: float = 30.0
    translation_default_source_lang: str = "en"
    translation_max_batch_texts: int = 100  # Per-request limit on the batch endpoint

    # OpenAI API (only used when translation_provider == "openai")
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Translation cache storage
    translation_cache_indexed_enabled: bool = True  # Set to False to force the flat store
    translation_cache_db_url: str = "sqlite+aiosqlite:///./data/translation_cache.db"
    translation_cache_flat_path: str = "./data/translation_cache_flat"
    translation_cache_ttl_seconds: int = 86400  # 24 hours
    translation_cache_cleanup_interval_seconds: int = 3600  # 1 hour
    translation_cache_max_size_mb: int = 50  # Soft cap for the flat store

    # Batching and rate limiting
    translation_batch_wait_seconds: float = 0.1  # Collection window
    translation_batch_size: int = 10  # Max texts per provider call
    translation_min_request_interval_seconds: float = 0.2  # Spacing between provider calls

    @field_validator("translation_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        if v is None or v == "":
            return "google"
        return str(v).strip().lower()

    @field_validator("translation_batch_size")
    @classmethod
    def validate_batch_size(cls, v):
        if v < 1:
            raise ValueError("translation_batch_size must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
