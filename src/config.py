from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    openai_api_key: str = ""
    gemini_api_key: str = ""

    # Supabase (service role key: the pipeline writes past RLS)
    supabase_url: str = ""
    supabase_key: str = ""
    embeddings_table: str = "course_embeddings"

    # Embeddings
    embedding_provider: str = "gemini"
    # Empty means the provider's default model (see DEFAULT_EMBEDDING_MODELS)
    embedding_model: str = ""
    embedding_dimensions: int = 768

    # Ingestion
    max_chunk_size: int = 1000
    ingest_concurrency: int = 4
    ingest_max_attempts: int = 3
    ingest_backoff_seconds: float = 0.5
    ingest_timeout_seconds: float = 300.0
    reingest_policy: str = "replace"

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
