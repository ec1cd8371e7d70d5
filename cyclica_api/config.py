"""Environment configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Mock control (opt-in feature gates for testing)
    mock_llm: bool = False  # Use canned LLM responses (don't call the OpenAI API)
    mock_supabase: bool = False  # Use in-memory tables (don't call Supabase)

    # OpenAI-compatible LLM configuration
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    scoring_model: str = "gpt-4o-mini"
    scoring_temperature: float = 0.3
    scoring_max_tokens: int = 300
    chat_model: str = "gpt-4o"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 500
    embedding_model: str = "text-embedding-3-small"
    llm_timeout_seconds: float = 60.0

    # Supabase (PostgREST) configuration
    supabase_url: str = ""
    supabase_anon_key: str = ""
    interactions_table: str = "chat_interactions"
    embeddings_table: str = "embeddings"
    match_function: str = "match_embeddings"
    match_threshold: float = 0.7
    match_count: int = 3
    max_documents: int = 100
    supabase_timeout_seconds: float = 10.0

    # Free chat history window
    history_rows: int = 10
    history_messages: int = 6

    # Questionnaire
    enforce_answer_validation: bool = False  # Score 0 without calling the model when the validator rejects
    session_lock_ttl: int = 1800  # 30 minutes
    max_session_locks: int = 1000

    # Rate limiting
    rate_limit_per_minute: int = 30

    # Server configuration
    port: int = 3000
    host: str = "0.0.0.0"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    environment: Literal["development", "production"] = "development"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def has_openai_key(self) -> bool:
        """Check if an OpenAI API key is configured."""
        return bool(self.openai_api_key and self.openai_api_key.startswith("sk-"))

    @property
    def has_supabase_config(self) -> bool:
        """Check if both the Supabase URL and key are configured."""
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def supabase_rest_url(self) -> str:
        """PostgREST base URL derived from the project URL."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
