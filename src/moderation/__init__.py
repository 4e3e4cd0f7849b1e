"""Safety moderation - duplicate short-circuit, classifier verdicts, tracker side effects."""

from src.moderation.client import ModerationClient
from src.moderation.config import ModerationConfig, get_moderation_config
from src.moderation.retry import RetryExhaustedError, RetryPolicy
from src.moderation.schemas import (
    CATEGORY_LABELS,
    MODERATION_LABELS,
    ClassifierVerdict,
    IssueActions,
    ModerationDecision,
    ModerationOutcome,
    OutcomeType,
    has_moderation_label,
)
from src.moderation.service import SafetyModerator

__all__ = [
    "CATEGORY_LABELS",
    "MODERATION_LABELS",
    "ClassifierVerdict",
    "IssueActions",
    "ModerationClient",
    "ModerationConfig",
    "ModerationDecision",
    "ModerationOutcome",
    "OutcomeType",
    "RetryExhaustedError",
    "RetryPolicy",
    "SafetyModerator",
    "get_moderation_config",
    "has_moderation_label",
]
