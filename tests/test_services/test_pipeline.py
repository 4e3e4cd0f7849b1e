"""Tests for pipeline wiring."""

from src.moderation.config import ModerationConfig
from src.services.pipeline import Pipeline
from src.storage.repository import ItemRepository
from src.sync.config import SyncConfig
from src.sync.service import SyncOrchestrator
from src.tagging.config import TaggingConfig
from tests.conftest import StaticCorpus


def make_pipeline(test_settings, database=None) -> Pipeline:
    return Pipeline(
        database,
        settings=test_settings,
        moderation_config=ModerationConfig(),
        tagging_config=TaggingConfig(),
        sync_config=SyncConfig(),
        corpus=StaticCorpus([]),
    )


def test_moderation_only_without_database(test_settings):
    pipeline = make_pipeline(test_settings)

    assert pipeline.moderator is not None
    assert pipeline.repository is None
    assert pipeline.orchestrator is None
    assert pipeline.events is None


def test_store_backed_components_with_database(test_settings, mock_db):
    pipeline = make_pipeline(test_settings, mock_db)

    assert isinstance(pipeline.repository, ItemRepository)
    assert isinstance(pipeline.orchestrator, SyncOrchestrator)
    assert pipeline.events is not None

