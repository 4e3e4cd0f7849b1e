"""Tests for environment-driven configuration."""

import pytest
from pydantic import ValidationError

from src.config.settings import Settings
from src.moderation.config import ModerationConfig
from src.tagging.config import TaggingConfig


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        settings = Settings()

        assert settings.db_pool_min_size == 2
        assert settings.github_configured is False
        assert settings.is_production is False

    def test_token_is_secret(self, test_settings):
        assert test_settings.github_configured
        assert "ghp_test" not in repr(test_settings)
        assert test_settings.github_token.get_secret_value() == "ghp_test"

    def test_invalid_database_url(self):
        with pytest.raises(ValidationError):
            Settings(database_url="not-a-url")


class TestModerationConfig:
    def test_shared_ai_key(self, monkeypatch):
        monkeypatch.delenv("MODERATION_API_KEY", raising=False)
        monkeypatch.setenv("AI_API_KEY", "sk-shared")
        monkeypatch.setenv("AI_API_BASE_URL", "https://proxy.example")

        config = ModerationConfig()

        assert config.api_key.get_secret_value() == "sk-shared"
        assert config.classifier_base_url == "https://proxy.example/v1"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CONTENT_DATA_URL", raising=False)
        monkeypatch.delenv("MODERATION_CORPUS_URL", raising=False)

        config = ModerationConfig()

        assert config.max_attempts == 3
        assert config.image_hash_threshold == 10
        assert config.text_similarity_threshold == 0.2
        assert config.corpus_ttl_seconds == 300
        assert config.trigger_labels == ["文案", "梗图"]
        assert config.corpus_url.endswith("data.json")

    def test_corpus_url_alias(self, monkeypatch):
        monkeypatch.setenv("CONTENT_DATA_URL", "https://data.example/items.json")

        assert ModerationConfig().corpus_url == "https://data.example/items.json"


class TestTaggingConfig:
    def test_model_alias(self, monkeypatch):
        monkeypatch.delenv("TAGGING_MODEL", raising=False)
        monkeypatch.setenv("LLM_MODEL", "small-model")

        config = TaggingConfig()

        assert config.model == "small-model"
        assert config.llm_base_url.endswith("/v1")

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("TAGGING_MAX_INPUT_CHARS", "4000")

        assert TaggingConfig().max_input_chars == 4000
