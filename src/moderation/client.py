"""Client for the external multi-modal moderation classifier.

Wraps the OpenAI moderation endpoint (any compatible base URL works).
One call classifies the whole input list: one text entry plus one entry
per image URL. The SDK's own retries are disabled; retry discipline
belongs to RetryPolicy.

SDK imports are deferred to first use to avoid import-time failures when
no API key is configured.
"""

import logging
from typing import Any

from src.moderation.config import ModerationConfig
from src.moderation.schemas import ClassifierVerdict

logger = logging.getLogger(__name__)


def build_inputs(text: str, image_urls: list[str]) -> list[dict[str, Any]]:
    """Multi-modal input list: text first, then each image."""
    inputs: list[dict[str, Any]] = []
    if text:
        inputs.append({"type": "text", "text": text})
    for url in image_urls:
        inputs.append({"type": "image_url", "image_url": {"url": url}})
    return inputs


def _categories_to_dict(categories: Any) -> dict[str, Any]:
    """Categories come back as an SDK model (aliased keys) or a plain dict."""
    if categories is None:
        return {}
    if isinstance(categories, dict):
        return categories
    return categories.model_dump(by_alias=True)


def merge_results(results: list[Any]) -> ClassifierVerdict:
    """OR the flagged bit and the category set across all result entries."""
    flagged = False
    categories: set[str] = set()
    for result in results:
        if getattr(result, "flagged", False):
            flagged = True
        for code, value in _categories_to_dict(getattr(result, "categories", None)).items():
            if value:
                categories.add(code)
    return ClassifierVerdict(flagged=flagged, categories=categories)


class ModerationClient:
    """Thin async client over the moderation endpoint.

    Args:
        config: Moderation configuration with API key, base URL and model.
    """

    def __init__(self, config: ModerationConfig) -> None:
        self._config = config
        self._client: Any = None

    @property
    def is_configured(self) -> bool:
        return self._config.api_key is not None and bool(
            self._config.api_key.get_secret_value()
        )

    def _get_client(self) -> Any:
        """Lazy-initialize the OpenAI async client."""
        if self._client is None:
            import openai

            api_key = self._config.api_key
            key_str = api_key.get_secret_value() if api_key else None
            self._client = openai.AsyncOpenAI(
                api_key=key_str,
                base_url=self._config.classifier_base_url,
                timeout=self._config.attempt_timeout,
                max_retries=0,
            )
        return self._client

    async def classify(self, inputs: list[dict[str, Any]]) -> ClassifierVerdict:
        """Single classifier call. Errors propagate to the retry policy."""
        client = self._get_client()
        response = await client.moderations.create(
            model=self._config.model,
            input=inputs,
        )
        verdict = merge_results(list(response.results or []))
        logger.debug(
            f"Classifier verdict flagged={verdict.flagged} categories={sorted(verdict.categories)}"
        )
        return verdict

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
