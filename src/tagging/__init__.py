"""Content tagging - closed taxonomy and constrained LLM tag extraction."""

from src.tagging.config import TaggingConfig, get_tagging_config
from src.tagging.service import ContentTagger
from src.tagging.taxonomy import (
    ALL_TAGS,
    FALLBACK_TAG,
    MAX_TAGS,
    STYLE_TAGS,
    TAG_TAXONOMY,
    THEME_TAGS,
    TONE_TAGS,
    is_known_tag,
)
from src.tagging.validation import TaggingError, TagStatus, TagValidation, validate_tags

__all__ = [
    "ALL_TAGS",
    "FALLBACK_TAG",
    "MAX_TAGS",
    "STYLE_TAGS",
    "TAG_TAXONOMY",
    "THEME_TAGS",
    "TONE_TAGS",
    "ContentTagger",
    "TagStatus",
    "TagValidation",
    "TaggingConfig",
    "TaggingError",
    "get_tagging_config",
    "is_known_tag",
    "validate_tags",
]
