"""
Issue-event routing.

Takes an already verified and parsed issue event and decides what it
means for the pipeline:
- a moderation trigger label was added -> Safety Moderator
- an accepted label was added, or an accepted issue was edited/closed
  -> Content Tagger + single-mode sync
- anything else -> ignored

Moderation outcomes are always returned, including when the classifier
or the tracker is unavailable.
"""

import structlog
from pydantic import BaseModel

from src.ingestion.schemas import IssueEvent
from src.moderation.config import ModerationConfig
from src.moderation.schemas import ModerationOutcome, OutcomeType, has_moderation_label
from src.moderation.service import SafetyModerator
from src.observability.logging import bind_context, clear_context
from src.observability.metrics import get_metrics
from src.sync.config import DEFAULT_TYPE_LABELS, SyncConfig
from src.sync.normalizer import detect_content_type
from src.sync.schemas import SyncResult
from src.sync.service import SyncOrchestrator
from src.tagging.service import ContentTagger

logger = structlog.get_logger(__name__)

DEFAULT_ACCEPTED_LABELS = ["收录"]


class IgnoredEvent(BaseModel):
    """An event that required no work."""

    ignored: bool = True
    reason: str


EventResult = ModerationOutcome | SyncResult | IgnoredEvent


class IssueEventHandler:
    """Routes issue events to moderation or single-issue sync."""

    def __init__(
        self,
        moderator: SafetyModerator,
        orchestrator: SyncOrchestrator,
        tagger: ContentTagger,
        sync_config: SyncConfig | None = None,
        moderation_config: ModerationConfig | None = None,
    ) -> None:
        self._moderator = moderator
        self._orchestrator = orchestrator
        self._tagger = tagger
        self._sync_config = sync_config or SyncConfig()
        self._moderation_config = moderation_config or ModerationConfig()

    async def handle(self, event: IssueEvent) -> EventResult:
        bind_context(repo=event.repo.full_name, issue_id=event.issue.id, action=event.action)
        try:
            return await self._route(event)
        finally:
            clear_context()

    async def _route(self, event: IssueEvent) -> EventResult:
        source = event.repo.full_name
        if source not in self._sync_config.allowed_repos():
            return IgnoredEvent(reason="Repository not allowed")

        issue = event.issue
        if event.action == "labeled" and event.label in self._moderation_config.trigger_labels:
            if issue.is_pull_request:
                return IgnoredEvent(reason="Pull request ignored")
            if has_moderation_label(issue.labels):
                get_metrics().record_moderation_outcome(OutcomeType.SKIPPED.value)
                return ModerationOutcome(type=OutcomeType.SKIPPED, message="Already moderated")
            if issue.number is None:
                return IgnoredEvent(reason="Issue number missing")

            logger.info("Moderation triggered", label=event.label)
            return await self._moderator.moderate(
                event.repo, issue.number, issue.body, exclude_id=issue.id
            )

        repo_config = self._sync_config.find_repo(source)
        accepted = (repo_config.labels if repo_config and repo_config.labels
                    else DEFAULT_ACCEPTED_LABELS)
        has_accepted = any(label in accepted for label in issue.labels)
        triggered = (
            (event.action == "labeled" and bool(event.label) and event.label in accepted)
            or (event.action in ("edited", "closed") and has_accepted)
        )
        if not triggered:
            return IgnoredEvent(reason="Action or label not matched")

        type_labels = repo_config.effective_type_labels if repo_config else DEFAULT_TYPE_LABELS
        content_type = detect_content_type(issue.body, issue.labels, type_labels)
        tags = await self._tagger.extract_tags(issue.title, issue.body)

        logger.info("Sync triggered", content_type=content_type.value, tags=tags)
        return await self._orchestrator.sync_single(
            issue, event.repo, content_type=content_type, tags=tags
        )
