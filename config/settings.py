"""Configuration settings loaded from .env file."""

from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    The LLM provider is chosen once here; every call site goes through
    the provider returned by tools.llm_providers.get_provider().
    """

    # LLM provider: "agent_sdk" (Claude Agent SDK) or "openai" (any OpenAI-compatible endpoint)
    llm_provider: str = "agent_sdk"
    llm_model_outline: str = "claude-sonnet-4-5"     # OutlineAgent
    llm_model_flashcards: str = "claude-haiku-4-5"   # FlashcardAgent
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None            # e.g. https://api.deepseek.com
    llm_timeout_seconds: float = 120.0
    llm_context_tokens: int = 128000

    # Tokenizer
    tokenizer_encoding: str = "cl100k_base"

    # Chunking
    chunk_max_tokens: int = 3500
    chunk_overlap_tokens: int = 200
    chunk_strategy: str = "paragraph"

    # Outline
    chars_per_page: int = 2000
    max_chapters: int = 15
    outline_output_reserve: int = 4000

    # Generation
    max_cards_per_chunk: int = 20
    chunk_concurrency: int = 5

    # Task-level concurrency ceilings
    generation_concurrency: int = 10
    analysis_concurrency: int = 20
    partition_concurrency_by_plan: bool = False

    # Step retries for transient provider errors
    step_retries: int = 2

    # Text input limits per plan
    text_char_limit_free: int = 1000
    text_char_limit_pro: int = 10000

    # Storage
    sqlite_db_path: Path = Path("./data/cardsmith.db")
    storage_dir: Path = Path("./data/uploads")
    url_reader_prefix: str = "https://r.jina.ai/"
    fetch_timeout_seconds: float = 30.0

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("llm_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("agent_sdk", "openai"):
            raise ValueError("llm_provider must be 'agent_sdk' or 'openai'")
        return v

    @field_validator("chunk_strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        if v not in ("paragraph", "sentence", "fixed"):
            raise ValueError("chunk_strategy must be paragraph, sentence or fixed")
        return v

    @field_validator(
        "chars_per_page", "max_chapters", "max_cards_per_chunk",
        "chunk_concurrency", "generation_concurrency", "analysis_concurrency",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be >= 1")
        return v

    @field_validator("step_retries", "chunk_overlap_tokens")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must be non-negative")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_chunk_window(self) -> "Settings":
        if self.chunk_overlap_tokens >= self.chunk_max_tokens:
            raise ValueError(
                f"chunk_overlap_tokens ({self.chunk_overlap_tokens}) must be less than "
                f"chunk_max_tokens ({self.chunk_max_tokens})"
            )
        if self.outline_output_reserve >= self.llm_context_tokens:
            raise ValueError("outline_output_reserve must be smaller than llm_context_tokens")
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
