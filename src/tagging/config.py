"""Configuration for the content tagger.

All settings can be overridden via TAGGING_* environment variables; the
credentials and model also honor the shared AI_API_KEY, AI_API_BASE_URL
and LLM_MODEL names.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaggingConfig(BaseSettings):
    """Configuration for LLM tag extraction.

    Example:
        AI_API_KEY=sk-...
        LLM_MODEL=gpt-4o-mini
        TAGGING_MAX_INPUT_CHARS=4000
    """

    model_config = SettingsConfigDict(
        env_prefix="TAGGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("TAGGING_API_KEY", "AI_API_KEY"),
        description="API key for the chat-completions endpoint",
    )
    api_base_url: str = Field(
        default="https://api.openai.com",
        validation_alias=AliasChoices("TAGGING_API_BASE_URL", "AI_API_BASE_URL"),
        description="Base URL without the /v1 suffix",
    )
    model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("TAGGING_MODEL", "LLM_MODEL"),
        description="Chat model used with the set_tags tool",
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tags: int = Field(default=3, ge=1, le=3, description="Upper bound on tags per item")
    max_input_chars: int = Field(
        default=6000,
        ge=100,
        description="Title + body are truncated to this many characters",
    )
    timeout: float = Field(default=30.0, gt=0.0, le=300.0)

    @property
    def llm_base_url(self) -> str:
        return self.api_base_url.rstrip("/") + "/v1"


@lru_cache
def get_tagging_config() -> TaggingConfig:
    """Get cached tagging config instance."""
    return TaggingConfig()
