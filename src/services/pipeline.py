"""
Process-level wiring of the pipeline components.

Builds one instance of each component per process and shares the
similarity corpus between every moderation pass. Used by the CLI and by
whatever transport hosts the webhook/sync endpoints.

Usage:
    async with Database() as db, Pipeline(db) as pipeline:
        result = await pipeline.orchestrator.sync(SyncRequest(mode="full"))

    # Moderation alone never touches the store
    async with Pipeline() as pipeline:
        outcome = await pipeline.moderator.moderate(repo_ref, 42, body)
"""

from typing import Any

from src.config.settings import Settings, get_settings
from src.ingestion.corpus import SimilarityCorpus
from src.ingestion.deduplication import DuplicateDetector
from src.ingestion.github_client import GitHubClient
from src.ingestion.http_client import RetryConfig
from src.ingestion.image_hash import ImageHasher
from src.moderation.client import ModerationClient
from src.moderation.config import ModerationConfig, get_moderation_config
from src.moderation.service import SafetyModerator
from src.services.issue_events import IssueEventHandler
from src.storage.database import Database
from src.storage.repository import ItemRepository
from src.sync.config import SyncConfig, get_sync_config
from src.sync.service import SyncOrchestrator
from src.tagging.config import TaggingConfig, get_tagging_config
from src.tagging.service import ContentTagger


def build_corpus(config: ModerationConfig) -> SimilarityCorpus:
    return SimilarityCorpus(
        url=config.corpus_url,
        ttl_seconds=config.corpus_ttl_seconds,
        timeout=config.corpus_timeout,
    )


class Pipeline:
    """
    Owns the long-lived clients and exposes the wired components.

    Without a database the store-backed components (repository,
    orchestrator, events) are None.
    """

    def __init__(
        self,
        database: Database | None = None,
        settings: Settings | None = None,
        moderation_config: ModerationConfig | None = None,
        tagging_config: TaggingConfig | None = None,
        sync_config: SyncConfig | None = None,
        corpus: SimilarityCorpus | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.moderation_config = moderation_config or get_moderation_config()
        self.tagging_config = tagging_config or get_tagging_config()
        self.sync_config = sync_config or get_sync_config()

        token = self.settings.github_token
        self.github = GitHubClient(
            token=token.get_secret_value() if token else None,
            api_url=self.settings.github_api_url,
            retry_config=RetryConfig(
                max_retries=self.settings.max_http_retries,
                max_backoff_seconds=self.settings.max_backoff_seconds,
            ),
            timeout=self.settings.http_timeout,
        )
        self.repository = ItemRepository(database) if database is not None else None
        self.corpus = corpus or build_corpus(self.moderation_config)
        self.detector = DuplicateDetector(
            self.corpus,
            hasher=ImageHasher(timeout=self.moderation_config.image_fetch_timeout),
            image_hash_threshold=self.moderation_config.image_hash_threshold,
            text_similarity_threshold=self.moderation_config.text_similarity_threshold,
        )
        self.moderation_client = ModerationClient(self.moderation_config)
        self.moderator = SafetyModerator(
            self.detector,
            self.moderation_client,
            github=self.github,
            config=self.moderation_config,
        )
        self.tagger = ContentTagger(self.tagging_config)

        self.orchestrator: SyncOrchestrator | None = None
        self.events: IssueEventHandler | None = None
        if self.repository is not None:
            self.orchestrator = SyncOrchestrator(self.repository, self.github, self.sync_config)
            self.events = IssueEventHandler(
                self.moderator,
                self.orchestrator,
                self.tagger,
                sync_config=self.sync_config,
                moderation_config=self.moderation_config,
            )

    async def __aenter__(self) -> "Pipeline":
        await self.github.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.moderation_client.close()
        await self.tagger.close()
        await self.github.__aexit__(exc_type, exc_val, exc_tb)
