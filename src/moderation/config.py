"""Configuration for the safety moderation pipeline.

Covers the external moderation classifier (credentials, model, retry
discipline), the similarity corpus used for duplicate detection, and
the labels/comments written back to the issue tracker. All settings can
be overridden via MODERATION_* environment variables; the classifier
credentials also honor the shared AI_API_KEY / AI_API_BASE_URL names.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORPUS_URL = "https://raw.githubusercontent.com/vme-im/vme-content/main/data.json"


class ModerationConfig(BaseSettings):
    """Configuration for the Safety Moderator and Duplicate Detector.

    Example:
        AI_API_KEY=sk-...
        MODERATION_MAX_ATTEMPTS=5
        CONTENT_DATA_URL=https://example.com/data.json
    """

    model_config = SettingsConfigDict(
        env_prefix="MODERATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Classifier
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("MODERATION_API_KEY", "AI_API_KEY"),
        description="API key for the moderation classifier",
    )
    api_base_url: str = Field(
        default="https://api.openai.com",
        validation_alias=AliasChoices("MODERATION_API_BASE_URL", "AI_API_BASE_URL"),
        description="Classifier base URL without the /v1 suffix",
    )
    model: str = Field(
        default="omni-moderation-latest",
        description="Multi-modal moderation model",
    )

    # Retry discipline
    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay before attempt 2; doubles for each further attempt",
    )
    attempt_timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Per-attempt timeout; expiry counts as a failed attempt",
    )

    # Similarity corpus
    corpus_url: str = Field(
        default=DEFAULT_CORPUS_URL,
        validation_alias=AliasChoices("MODERATION_CORPUS_URL", "CONTENT_DATA_URL"),
        description="JSON snapshot of accepted items used for duplicate checks",
    )
    corpus_ttl_seconds: float = Field(default=300.0, ge=0.0)
    corpus_timeout: float = Field(default=30.0, gt=0.0)
    image_fetch_timeout: float = Field(default=10.0, gt=0.0)

    # Similarity thresholds
    image_hash_threshold: int = Field(
        default=10,
        ge=1,
        le=64,
        description="Hamming distance strictly below this is a match",
    )
    text_similarity_threshold: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Normalized edit distance strictly below this is a match",
    )

    # Labels that route an issue into moderation
    trigger_labels: list[str] = Field(default_factory=lambda: ["文案", "梗图"])

    @property
    def classifier_base_url(self) -> str:
        """Base URL as the OpenAI SDK expects it (with /v1)."""
        return self.api_base_url.rstrip("/") + "/v1"


@lru_cache
def get_moderation_config() -> ModerationConfig:
    """Get cached moderation config instance."""
    return ModerationConfig()
