"""Safety moderation of new submissions.

Pipeline per issue, strictly sequential:
1. Duplicate check against the similarity corpus. A match closes the
   issue as a duplicate without calling the classifier.
2. Empty submissions (no text, no images) are left open for manual review.
3. One classifier call over the whole multi-modal input list, under the
   retry policy. Exhausted retries leave the issue open for manual
   review; the pipeline never approves without a verdict.
4. Flagged with at least one mapped category -> violation (closed).
   Flagged with no mapped category -> pending (open, manual review).
   Not flagged -> approved (closed).

State machine: unmoderated -> similar-closed | violation-closed |
approved-closed | pending-open.
"""

from typing import Any

import httpx
import structlog

from src.ingestion.deduplication import DuplicateDetector
from src.ingestion.github_client import GitHubClient
from src.ingestion.http_client import HTTPClientError
from src.ingestion.markdown import extract_image_urls, extract_text
from src.ingestion.schemas import RepoRef
from src.moderation.client import ModerationClient, build_inputs
from src.moderation.config import ModerationConfig
from src.moderation.retry import RetryExhaustedError, RetryPolicy
from src.moderation.schemas import (
    COMMENT_APPROVED,
    COMMENT_EMPTY,
    COMMENT_FLAGGED_UNMAPPED,
    COMMENT_SIMILAR,
    COMMENT_UNAVAILABLE,
    COMMENT_VIOLATION,
    LABEL_APPROVED,
    LABEL_DUPLICATE,
    LABEL_PENDING,
    LABEL_VIOLATION,
    IssueActions,
    ModerationDecision,
    ModerationOutcome,
    OutcomeType,
)
from src.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class SafetyModerator:
    """
    Decides and applies the moderation outcome for a submission.

    `decide` is side-effect free apart from the classifier call;
    `moderate` also writes labels, a comment and (for terminal outcomes)
    closes the issue on the tracker.
    """

    def __init__(
        self,
        detector: DuplicateDetector,
        client: ModerationClient,
        github: GitHubClient | None = None,
        policy: RetryPolicy | None = None,
        config: ModerationConfig | None = None,
    ) -> None:
        config = config or ModerationConfig()
        self._detector = detector
        self._client = client
        self._github = github
        self._policy = policy or RetryPolicy(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            timeout=config.attempt_timeout,
        )

    async def decide(self, body: str, exclude_id: str | None = None) -> ModerationDecision:
        """Compute the outcome and the tracker actions it implies."""
        match = await self._detector.find_similar(body, exclude_id=exclude_id)
        if match is not None:
            return ModerationDecision(
                outcome=ModerationOutcome(
                    type=OutcomeType.SIMILAR,
                    message=f"查找到相似文案：{match.url}",
                ),
                actions=IssueActions(
                    labels=[LABEL_DUPLICATE],
                    comment=COMMENT_SIMILAR.format(url=match.url),
                    close=True,
                ),
            )

        inputs = build_inputs(extract_text(body), extract_image_urls(body))
        if not inputs:
            return _pending("内容为空，需要人工审核", COMMENT_EMPTY)

        if not self._client.is_configured:
            logger.warning("Moderation classifier not configured")
            return _pending("自动审核失败: classifier not configured", COMMENT_UNAVAILABLE)

        metrics = get_metrics()
        try:
            verdict = await self._policy.execute(
                lambda: self._client.classify(inputs),
                on_failure=lambda attempt, error: metrics.record_classifier_attempt(False),
            )
        except RetryExhaustedError as e:
            logger.error("Moderation classifier unavailable", error=str(e), attempts=e.attempts)
            return _pending(f"自动审核失败: {e}", COMMENT_UNAVAILABLE)
        metrics.record_classifier_attempt(True)

        if verdict.flagged:
            categories = verdict.mapped_categories()
            if categories:
                return ModerationDecision(
                    outcome=ModerationOutcome(type=OutcomeType.VIOLATION, categories=categories),
                    actions=IssueActions(
                        labels=[LABEL_VIOLATION],
                        comment=COMMENT_VIOLATION.format(categories="、".join(categories)),
                        close=True,
                    ),
                )
            # Flagged without a reviewer-facing category stays open.
            logger.warning(
                "Flagged without mapped category",
                raw_categories=sorted(verdict.categories),
            )
            return _pending("内容可能违规，需要人工审核", COMMENT_FLAGGED_UNMAPPED)

        return ModerationDecision(
            outcome=ModerationOutcome(type=OutcomeType.APPROVED, message="内容审核通过"),
            actions=IssueActions(labels=[LABEL_APPROVED], comment=COMMENT_APPROVED, close=True),
        )

    async def moderate(
        self,
        repo: RepoRef,
        issue_number: int,
        body: str,
        exclude_id: str | None = None,
    ) -> ModerationOutcome:
        """
        Moderate an issue and apply the resulting side effects.

        Tracker write failures are logged and counted; the outcome is
        returned regardless.
        """
        if self._github is None:
            raise RuntimeError("moderate() needs a GitHubClient; use decide() for dry runs")

        log = logger.bind(repo=repo.full_name, issue_number=issue_number)
        decision = await self.decide(body, exclude_id=exclude_id)
        log.info(
            "Moderation decided",
            outcome=decision.outcome.type.value,
            categories=decision.outcome.categories,
        )

        await self._apply(repo, issue_number, decision.actions)
        get_metrics().record_moderation_outcome(decision.outcome.type.value)
        return decision.outcome

    async def _apply(self, repo: RepoRef, issue_number: int, actions: IssueActions) -> None:
        steps: list[tuple[str, Any]] = []
        if actions.labels:
            steps.append(("label", lambda: self._github.add_labels(
                repo.owner, repo.name, issue_number, actions.labels
            )))
        if actions.comment:
            steps.append(("comment", lambda: self._github.add_comment(
                repo.owner, repo.name, issue_number, actions.comment
            )))
        if actions.close:
            steps.append(("close", lambda: self._github.close_issue(
                repo.owner, repo.name, issue_number
            )))

        for action, call in steps:
            try:
                await call()
            except (HTTPClientError, httpx.HTTPError) as e:
                logger.error(
                    "Tracker write failed",
                    action=action,
                    repo=repo.full_name,
                    issue_number=issue_number,
                    error=str(e),
                )
                get_metrics().record_tracker_write_error(action)


def _pending(message: str, comment: str) -> ModerationDecision:
    return ModerationDecision(
        outcome=ModerationOutcome(type=OutcomeType.PENDING, message=message),
        actions=IssueActions(labels=[LABEL_PENDING], comment=comment, close=False),
    )
