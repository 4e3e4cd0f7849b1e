"""Validation of model-produced tag arrays against the closed taxonomy.

The tool-call payload is untrusted. Every raw value is classified into
one of three variants before use:
- VALID: 1..MAX_TAGS known tags (deduplicated, in model order)
- FALLBACK: an array with no known tag, replaced by the fallback tag
- INVALID: not an array at all; callers treat this as a failure
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.tagging.taxonomy import FALLBACK_TAG, MAX_TAGS, is_known_tag


class TaggingError(Exception):
    """The model response could not be turned into a tag array."""


class TagStatus(str, Enum):
    VALID = "valid"
    FALLBACK = "fallback"
    INVALID = "invalid"


@dataclass(frozen=True)
class TagValidation:
    status: TagStatus
    tags: tuple[str, ...] = ()
    dropped: tuple[str, ...] = ()
    reason: str | None = None

    @property
    def usable(self) -> bool:
        return self.status is not TagStatus.INVALID


def validate_tags(raw: Any, max_tags: int = MAX_TAGS) -> TagValidation:
    """Filter `raw` down to known taxonomy members, truncated to `max_tags`."""
    if not isinstance(raw, list):
        return TagValidation(
            status=TagStatus.INVALID,
            reason=f"expected an array of tags, got {type(raw).__name__}",
        )

    accepted: list[str] = []
    dropped: list[str] = []
    for value in raw:
        tag = value.strip() if isinstance(value, str) else None
        if tag and is_known_tag(tag):
            if tag not in accepted:
                accepted.append(tag)
        else:
            dropped.append(str(value))

    if not accepted:
        return TagValidation(
            status=TagStatus.FALLBACK,
            tags=(FALLBACK_TAG,),
            dropped=tuple(dropped),
        )

    return TagValidation(
        status=TagStatus.VALID,
        tags=tuple(accepted[:max_tags]),
        dropped=tuple(dropped),
    )
