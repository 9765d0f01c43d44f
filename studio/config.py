from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    anthropic_api_key: str = ""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_table: str = "processed_transcripts"

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    max_upload_bytes: int = 10 * 1024 * 1024
    llm_model: str = "claude-sonnet-4-20250514"

    # Pipeline
    generation_backend: str = "extractive"
    max_segment_chars: int = 1200
    max_insights: int = 8
    chapter_count: int = 3
    blog_count: int = 4
    social_count: int = 5
    social_max_chars: int = 280
    chapter_words: int = 600
    blog_words: int = 350
    creativity: float = 0.0
    stage_retries: int = 1
    stage_timeout_seconds: float = 60.0
    required_stage_timeout_seconds: float = 120.0

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
