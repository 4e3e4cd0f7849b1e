"""Content tagger: 0-3 semantic tags per submission via a constrained tool call.

Tagging is enrichment only. Every failure path (missing credentials,
network errors, absent or malformed tool call, non-array payload)
returns an empty list and never raises to the caller.
"""

import json
from typing import TYPE_CHECKING, Any

import structlog

from src.observability.metrics import get_metrics
from src.tagging.config import TaggingConfig
from src.tagging.prompts import (
    SET_TAGS_TOOL,
    SET_TAGS_TOOL_NAME,
    build_system_prompt,
    build_user_prompt,
)
from src.tagging.validation import TaggingError, validate_tags

if TYPE_CHECKING:
    from src.storage.repository import ItemRepository

logger = structlog.get_logger(__name__)


def read_tool_arguments(response: Any) -> Any:
    """
    Pull the `tags` argument out of a chat-completions response.

    Raises:
        TaggingError: no choices, no `set_tags` call, or unparseable arguments
    """
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise TaggingError("Response has no choices")

    tool_calls = getattr(choices[0].message, "tool_calls", None) or []
    if not tool_calls:
        raise TaggingError("No tool call in response")

    call = tool_calls[0]
    if getattr(call, "type", None) != "function" or call.function.name != SET_TAGS_TOOL_NAME:
        raise TaggingError(f"Unexpected tool call {getattr(call, 'type', None)}")

    try:
        arguments = json.loads(call.function.arguments or "")
    except json.JSONDecodeError as e:
        raise TaggingError(f"Tool arguments are not JSON: {e}") from e

    if not isinstance(arguments, dict):
        raise TaggingError("Tool arguments are not an object")
    return arguments.get("tags")


class ContentTagger:
    """Extracts tags with a chat model restricted to the `set_tags` tool.

    Args:
        config: Tagging configuration (credentials, model, limits).
    """

    def __init__(self, config: TaggingConfig | None = None) -> None:
        self._config = config or TaggingConfig()
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
                base_url=self._config.llm_base_url,
                timeout=self._config.timeout,
            )
        return self._client

    async def extract_tags(self, title: str, body: str) -> list[str]:
        """Return 1-3 taxonomy tags, the fallback tag alone, or [] on failure."""
        metrics = get_metrics()
        if not self.is_configured:
            logger.debug("Tagging skipped, no API key configured")
            return []

        try:
            raw = await self._request_tags(title, body)
        except Exception as e:
            logger.warning("Tag extraction failed", error=str(e), error_type=type(e).__name__)
            metrics.record_tagging("error")
            return []

        validation = validate_tags(raw, max_tags=self._config.max_tags)
        metrics.record_tagging(validation.status.value)
        if not validation.usable:
            logger.warning("Model returned invalid tags", reason=validation.reason)
            return []
        if validation.dropped:
            logger.info("Dropped tags outside taxonomy", dropped=list(validation.dropped))
        return list(validation.tags)

    async def _request_tags(self, title: str, body: str) -> Any:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self._config.model,
            temperature=self._config.temperature,
            messages=[
                {"role": "system", "content": build_system_prompt()},
                {
                    "role": "user",
                    "content": build_user_prompt(title, body, self._config.max_input_chars),
                },
            ],
            tools=[SET_TAGS_TOOL],
            tool_choice={"type": "function", "function": {"name": SET_TAGS_TOOL_NAME}},
        )
        return read_tool_arguments(response)

    async def classify_stored_item(
        self,
        repository: "ItemRepository",
        item_id: str,
        force: bool = False,
    ) -> list[str]:
        """
        Tag an item already in the store and persist the result.

        Existing tags are kept unless `force` is set. An empty extraction
        result leaves the stored tags untouched.

        Raises:
            LookupError: no item with `item_id`
        """
        item = await repository.get_by_id(item_id)
        if item is None:
            raise LookupError(f"Item {item_id} not found")

        if item.tags and not force:
            return list(item.tags)

        tags = await self.extract_tags(item.title, item.body)
        if tags:
            await repository.update_tags(item_id, tags)
            logger.info("Tagged stored item", item_id=item_id, tags=tags)
        return tags

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
