"""Tests for the CLI commands."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from src.cli import main
from src.ingestion.github_client import FetchError
from src.moderation.schemas import IssueActions, ModerationDecision, ModerationOutcome, OutcomeType
from src.storage.repository import SyncLogEntry
from src.sync.schemas import SyncMode, SyncResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.__aenter__.return_value = db
    db.__aexit__.return_value = None
    return db


@pytest.fixture
def pipeline(sample_issue):
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=None)
    pipe.github.get_issue = AsyncMock(return_value=sample_issue)
    pipe.orchestrator.sync = AsyncMock()
    pipe.moderator.decide = AsyncMock()
    pipe.moderator.moderate = AsyncMock()
    return pipe


class TestInitDb:
    def test_creates_tables(self, runner, mock_db):
        with patch("src.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "initialized" in result.output
        assert "CREATE TABLE IF NOT EXISTS items" in mock_db.execute.await_args.args[0]
        mock_db.__aexit__.assert_awaited_once()


class TestSync:
    def test_prints_camel_case_result(self, runner, mock_db, pipeline):
        pipeline.orchestrator.sync.return_value = SyncResult(
            mode=SyncMode.FULL, success=True, items_synced=3, duration_ms=10
        )

        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.services.pipeline.Pipeline", return_value=pipeline):
            result = runner.invoke(main, ["sync", "--mode", "full"])

        assert result.exit_code == 0, result.output
        assert '"itemsSynced": 3' in result.output
        request = pipeline.orchestrator.sync.await_args.args[0]
        assert request.mode is SyncMode.FULL

    def test_failure_exit_code(self, runner, mock_db, pipeline):
        pipeline.orchestrator.sync.return_value = SyncResult(
            mode=SyncMode.INCREMENTAL, success=False, errors=["o/r: boom"]
        )

        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.services.pipeline.Pipeline", return_value=pipeline):
            result = runner.invoke(main, ["sync", "--since", "2024-05-01"])

        assert result.exit_code == 1
        request = pipeline.orchestrator.sync.await_args.args[0]
        assert request.since == datetime(2024, 5, 1)

    def test_since_only_for_incremental(self, runner):
        result = runner.invoke(main, ["sync", "--mode", "full", "--since", "2024-05-01"])

        assert result.exit_code == 2


class TestModerate:
    def test_dry_run_shows_actions(self, runner, pipeline, sample_issue):
        pipeline.moderator.decide.return_value = ModerationDecision(
            outcome=ModerationOutcome(type=OutcomeType.APPROVED, message="内容审核通过"),
            actions=IssueActions(labels=["收录"], comment="ok", close=True),
        )

        with patch("src.storage.database.Database") as database, \
                patch("src.services.pipeline.Pipeline", return_value=pipeline) as pipeline_cls:
            result = runner.invoke(main, ["moderate", "vme-im/vme-content", "42", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Outcome: approved" in result.output
        assert "Dry run" in result.output
        database.assert_not_called()
        pipeline_cls.assert_called_once_with()
        pipeline.moderator.moderate.assert_not_called()
        pipeline.moderator.decide.assert_awaited_once_with(
            sample_issue.body, exclude_id=sample_issue.id
        )

    def test_applies_outcome(self, runner, pipeline):
        pipeline.moderator.moderate.return_value = ModerationOutcome(
            type=OutcomeType.VIOLATION, categories=["暴力"]
        )

        with patch("src.storage.database.Database") as database, \
                patch("src.services.pipeline.Pipeline", return_value=pipeline):
            result = runner.invoke(main, ["moderate", "vme-im/vme-content", "42"])

        assert result.exit_code == 0, result.output
        assert "Categories: 暴力" in result.output
        database.assert_not_called()
        repo_ref, number, _ = pipeline.moderator.moderate.await_args.args
        assert (repo_ref.full_name, number) == ("vme-im/vme-content", 42)

    def test_fetch_error(self, runner, pipeline):
        pipeline.github.get_issue.side_effect = FetchError("not found")

        with patch("src.services.pipeline.Pipeline", return_value=pipeline):
            result = runner.invoke(main, ["moderate", "vme-im/vme-content", "404"])

        assert result.exit_code == 1

    def test_bad_repo_argument(self, runner):
        result = runner.invoke(main, ["moderate", "no-slash", "1"])

        assert result.exit_code == 2


class TestClassify:
    def test_missing_key(self, runner):
        with patch("src.tagging.service.ContentTagger") as tagger_cls:
            tagger_cls.return_value.is_configured = False
            result = runner.invoke(main, ["classify", "I_1"])

        assert result.exit_code == 1

    def test_tags_item(self, runner, mock_db):
        tagger = MagicMock()
        tagger.is_configured = True
        tagger.classify_stored_item = AsyncMock(return_value=["反转", "职场"])
        tagger.close = AsyncMock()

        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.tagging.service.ContentTagger", return_value=tagger):
            result = runner.invoke(main, ["classify", "I_1", "--force"])

        assert result.exit_code == 0, result.output
        assert "反转, 职场" in result.output
        assert tagger.classify_stored_item.await_args.kwargs["force"] is True
        tagger.close.assert_awaited_once()

    def test_unknown_item(self, runner, mock_db):
        tagger = MagicMock()
        tagger.is_configured = True
        tagger.classify_stored_item = AsyncMock(side_effect=LookupError("Item I_x not found"))
        tagger.close = AsyncMock()

        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.tagging.service.ContentTagger", return_value=tagger):
            result = runner.invoke(main, ["classify", "I_x"])

        assert result.exit_code == 1
        tagger.close.assert_awaited_once()


class TestSyncLogs:
    def test_lists_runs(self, runner, mock_db):
        started = datetime(2024, 5, 1, tzinfo=timezone.utc)
        entries = [
            SyncLogEntry(1, "full", "all-repos", 120, started, started, None),
            SyncLogEntry(2, "incremental", "o/r", 0, started, None, "rate limited"),
        ]

        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.storage.repository.ItemRepository") as repo_cls:
            repo_cls.return_value.recent_sync_logs = AsyncMock(return_value=entries)
            result = runner.invoke(main, ["sync-logs", "--limit", "2"])

        assert result.exit_code == 0, result.output
        assert "all-repos" in result.output
        assert "rate limited" in result.output
        assert "running" in result.output


class TestHealth:
    @pytest.fixture
    def corpus(self):
        corpus = MagicMock()
        corpus.entries = AsyncMock(return_value=[])
        corpus.is_loaded = True
        return corpus

    def invoke(self, runner, mock_db, corpus):
        with patch("src.storage.database.Database", return_value=mock_db), \
                patch("src.services.pipeline.build_corpus", return_value=corpus):
            return runner.invoke(main, ["health"])

    def test_unhealthy_database(self, runner, mock_db, corpus):
        mock_db.health_check.return_value = False

        result = self.invoke(runner, mock_db, corpus)

        assert result.exit_code == 1
        assert "postgres: False" in result.output

    def test_unreachable_corpus(self, runner, mock_db, corpus):
        mock_db.health_check.return_value = True
        corpus.is_loaded = False

        result = self.invoke(runner, mock_db, corpus)

        assert result.exit_code == 1
        assert "corpus: False" in result.output

    def test_healthy(self, runner, mock_db, corpus):
        mock_db.health_check.return_value = True

        result = self.invoke(runner, mock_db, corpus)

        assert result.exit_code == 0, result.output
        assert "All core services healthy" in result.output
        corpus.entries.assert_awaited_once()
