"""Tests for issue-event routing."""

from unittest.mock import AsyncMock

import pytest

from src.ingestion.schemas import ContentType, IssueEvent, RepoRef
from src.moderation.config import ModerationConfig
from src.moderation.schemas import ModerationOutcome, OutcomeType
from src.services.issue_events import IgnoredEvent, IssueEventHandler
from src.sync.config import RepoConfig, SyncConfig, TypeLabels
from src.sync.schemas import SyncMode, SyncResult

REPO = RepoRef(owner="vme-im", name="vme-content")


@pytest.fixture
def moderator():
    mod = AsyncMock()
    mod.moderate.return_value = ModerationOutcome(type=OutcomeType.APPROVED)
    return mod


@pytest.fixture
def orchestrator():
    orch = AsyncMock()
    orch.sync_single.return_value = SyncResult(mode=SyncMode.SINGLE, success=True, items_synced=1)
    return orch


@pytest.fixture
def tagger():
    tag = AsyncMock()
    tag.extract_tags.return_value = ["反转"]
    return tag


@pytest.fixture
def handler(moderator, orchestrator, tagger):
    sync_config = SyncConfig(repos=[
        RepoConfig(
            owner="vme-im",
            repo="vme-content",
            labels=["收录"],
            type_labels=TypeLabels(meme=["梗图"], text=["文案"]),
        ),
    ])
    return IssueEventHandler(
        moderator,
        orchestrator,
        tagger,
        sync_config=sync_config,
        moderation_config=ModerationConfig(trigger_labels=["文案", "梗图"]),
    )


def event(issue, action="labeled", label=None, repo=REPO) -> IssueEvent:
    return IssueEvent(action=action, label=label, issue=issue, repo=repo)


class TestModerationRouting:
    async def test_trigger_label_runs_moderation(self, handler, moderator, sample_issue):
        sample_issue.labels = ["文案"]

        result = await handler.handle(event(sample_issue, label="文案"))

        assert result.type is OutcomeType.APPROVED
        moderator.moderate.assert_awaited_once_with(
            REPO, 42, sample_issue.body, exclude_id=sample_issue.id
        )

    async def test_already_moderated_is_skipped(self, handler, moderator, sample_issue):
        sample_issue.labels = ["文案", "待审"]

        result = await handler.handle(event(sample_issue, label="文案"))

        assert result.type is OutcomeType.SKIPPED
        moderator.moderate.assert_not_called()

    async def test_pull_request_ignored(self, handler, moderator, sample_issue):
        sample_issue.is_pull_request = True

        result = await handler.handle(event(sample_issue, label="梗图"))

        assert isinstance(result, IgnoredEvent)
        moderator.moderate.assert_not_called()


class TestSyncRouting:
    async def test_accepted_label_syncs_with_tags(
        self, handler, orchestrator, tagger, meme_issue
    ):
        result = await handler.handle(event(meme_issue, label="收录"))

        assert result.success is True
        tagger.extract_tags.assert_awaited_once_with(meme_issue.title, meme_issue.body)
        kwargs = orchestrator.sync_single.await_args.kwargs
        assert kwargs["content_type"] is ContentType.MEME
        assert kwargs["tags"] == ["反转"]

    @pytest.mark.parametrize("action", ["edited", "closed"])
    async def test_edit_or_close_of_accepted_issue_syncs(self, handler, orchestrator, sample_issue, action):
        await handler.handle(event(sample_issue, action=action))

        orchestrator.sync_single.assert_awaited_once()

    async def test_edit_of_unaccepted_issue_ignored(self, handler, orchestrator, sample_issue):
        sample_issue.labels = []

        result = await handler.handle(event(sample_issue, action="edited"))

        assert result == IgnoredEvent(reason="Action or label not matched")
        orchestrator.sync_single.assert_not_called()

    async def test_other_label_ignored(self, handler, orchestrator, sample_issue):
        result = await handler.handle(event(sample_issue, label="bug"))

        assert isinstance(result, IgnoredEvent)

    async def test_repository_not_allowed(self, handler, orchestrator, moderator, sample_issue):
        result = await handler.handle(
            event(sample_issue, label="文案", repo=RepoRef(owner="evil", name="repo"))
        )

        assert result.reason == "Repository not allowed"
        moderator.moderate.assert_not_called()
        orchestrator.sync_single.assert_not_called()

    async def test_failed_tagging_still_syncs(self, handler, orchestrator, tagger, sample_issue):
        tagger.extract_tags.return_value = []

        await handler.handle(event(sample_issue, label="收录"))

        assert orchestrator.sync_single.await_args.kwargs["tags"] == []
