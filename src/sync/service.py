"""
Sync orchestrator - reconciles the items table with upstream repositories.

Modes:
- single: upsert one already-fetched issue (webhook path)
- incremental: issues updated since a watermark, per configured repository
- full: every accepted issue of every configured repository

Per-repository fetches and per-chunk upserts run sequentially to bound
load on the database and the upstream API. Row failures are isolated
and counted as skipped; only a fetch failure marks a run unsuccessful.
Every run reports synced + skipped == number of normalized rows.
"""

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import asyncpg
import structlog

from src.ingestion.github_client import FetchError, GitHubClient
from src.ingestion.schemas import ContentType, IssuePayload, Item, RepoRef
from src.observability.metrics import get_metrics
from src.storage.repository import ItemRepository
from src.sync.config import SyncConfig
from src.sync.normalizer import normalize_issue
from src.sync.schemas import SyncMode, SyncRequest, SyncResult

logger = structlog.get_logger(__name__)

_LOG_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """
    Runs sync requests against the store.

    Usage:
        async with GitHubClient(token) as github:
            orchestrator = SyncOrchestrator(ItemRepository(db), github)
            result = await orchestrator.sync(SyncRequest(mode="incremental"))
    """

    def __init__(
        self,
        repository: ItemRepository,
        github: GitHubClient,
        config: SyncConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._github = github
        self._config = config or SyncConfig()
        self._clock = clock

    async def sync(self, request: SyncRequest) -> SyncResult:
        """Dispatch a request to its mode."""
        if request.mode is SyncMode.SINGLE:
            if request.issue is None or request.repo is None:
                return SyncResult(
                    mode=SyncMode.SINGLE,
                    success=False,
                    errors=["Missing issue or repo for single mode"],
                )
            return await self.sync_single(
                request.issue,
                request.repo,
                content_type=request.content_type,
                tags=request.tags,
            )
        if request.mode is SyncMode.INCREMENTAL:
            return await self.sync_incremental(since=request.since)
        return await self.sync_full()

    # ── Modes ────────────────────────────────────────────────

    async def sync_single(
        self,
        issue: IssuePayload,
        repo: RepoRef,
        content_type: ContentType | None = None,
        tags: list[str] | None = None,
    ) -> SyncResult:
        """Normalize and upsert exactly one issue."""
        started = time.monotonic()
        source = repo.full_name
        repo_config = self._config.find_repo(source)
        type_labels = repo_config.effective_type_labels if repo_config else None

        item = normalize_issue(
            issue, source, type_labels=type_labels, content_type=content_type, tags=tags
        )
        log_id = await self._open_log(SyncMode.SINGLE, source)

        errors: list[str] = []
        try:
            await self._repository.upsert(item)
            synced, skipped = 1, 0
        except (asyncpg.PostgresError, asyncpg.InterfaceError, ValueError, TypeError) as e:
            synced, skipped = 0, 1
            errors.append(f"Failed to sync issue {issue.id}: {e}")
            logger.error("Single upsert failed", item_id=issue.id, source=source, error=str(e))

        await self._close_log(log_id, synced, "; ".join(errors) or None)
        return self._finish(
            SyncMode.SINGLE, started, synced, skipped, errors, success=synced == 1
        )

    async def sync_incremental(self, since: datetime | None = None) -> SyncResult:
        """
        Upsert issues updated since the watermark, repository by repository.

        A repository that cannot be fetched is reported in `errors` and
        marks the run unsuccessful; the remaining repositories still sync.
        """
        started = time.monotonic()
        errors: list[str] = []

        try:
            watermark = await self.resolve_watermark(since)
        except _LOG_ERRORS as e:
            logger.error("Could not resolve incremental watermark", error=str(e))
            return self._finish(SyncMode.INCREMENTAL, started, 0, 0, [str(e)], success=False)

        logger.info("Starting incremental sync", since=watermark.isoformat())
        synced = skipped = 0
        fetch_failed = False

        for repo_config in self._config.repos:
            source = repo_config.full_name
            log_id = await self._open_log(SyncMode.INCREMENTAL, source)

            try:
                issues = await self._github.list_issues_since(
                    repo_config.owner,
                    repo_config.repo,
                    repo_config.labels,
                    watermark,
                    page_size=self._config.page_size,
                )
            except FetchError as e:
                fetch_failed = True
                errors.append(f"{source}: {e}")
                logger.error("Incremental fetch failed", source=source, error=str(e))
                get_metrics().record_fetch_error(SyncMode.INCREMENTAL.value, source)
                await self._close_log(log_id, 0, str(e))
                continue

            items = [
                normalize_issue(issue, source, type_labels=repo_config.effective_type_labels)
                for issue in issues
            ]
            report = await self._repository.upsert_items(items, self._config.batch_size)
            synced += report.synced
            skipped += report.skipped
            errors.extend(report.errors)
            logger.info(
                "Repository synced",
                source=source,
                fetched=len(items),
                synced=report.synced,
                skipped=report.skipped,
            )
            await self._close_log(log_id, report.synced, None)

        return self._finish(
            SyncMode.INCREMENTAL, started, synced, skipped, errors, success=not fetch_failed
        )

    async def sync_full(self) -> SyncResult:
        """
        Fetch every accepted issue of every repository, then upsert them.

        Fetching completes for all repositories before anything is
        written; any fetch failure aborts the run with nothing synced.
        """
        started = time.monotonic()
        logger.info("Starting full sync", repos=[r.full_name for r in self._config.repos])
        log_id = await self._open_log(SyncMode.FULL, "all-repos")

        items: list[Item] = []
        try:
            for repo_config in self._config.repos:
                issues = await self._github.fetch_labeled_issues(
                    repo_config.owner,
                    repo_config.repo,
                    repo_config.labels,
                    page_size=self._config.page_size,
                )
                items.extend(
                    normalize_issue(
                        issue,
                        repo_config.full_name,
                        type_labels=repo_config.effective_type_labels,
                    )
                    for issue in issues
                )
        except FetchError as e:
            logger.error("Full sync fetch failed", source=e.source, error=str(e))
            get_metrics().record_fetch_error(SyncMode.FULL.value, e.source or "unknown")
            await self._close_log(log_id, 0, str(e))
            return self._finish(SyncMode.FULL, started, 0, 0, [str(e)], success=False)

        logger.info("Fetched issues for full sync", count=len(items))
        report = await self._repository.upsert_items(items, self._config.batch_size)
        await self._close_log(log_id, report.synced, None)
        return self._finish(
            SyncMode.FULL, started, report.synced, report.skipped, report.errors, success=True
        )

    # ── Helpers ──────────────────────────────────────────────

    async def resolve_watermark(self, since: datetime | None = None) -> datetime:
        """Explicit `since`, else the newest synced_at in the store, else now minus the lookback."""
        if since is not None:
            return since if since.tzinfo else since.replace(tzinfo=timezone.utc)

        last_synced = await self._repository.get_last_synced_at()
        if last_synced is not None:
            return last_synced

        return self._clock() - timedelta(hours=self._config.default_lookback_hours)

    async def _open_log(self, mode: SyncMode, source: str) -> int | None:
        try:
            return await self._repository.start_sync_log(mode.value, source)
        except _LOG_ERRORS as e:
            logger.warning("Could not open sync log", mode=mode.value, source=source, error=str(e))
            return None

    async def _close_log(self, log_id: int | None, items_synced: int, error: str | None) -> None:
        if log_id is None:
            return
        try:
            await self._repository.finish_sync_log(log_id, items_synced, error)
        except _LOG_ERRORS as e:
            logger.warning("Could not close sync log", log_id=log_id, error=str(e))

    def _finish(
        self,
        mode: SyncMode,
        started: float,
        synced: int,
        skipped: int,
        errors: list[str],
        success: bool,
    ) -> SyncResult:
        elapsed = time.monotonic() - started
        get_metrics().record_sync(mode.value, synced, skipped, elapsed, success)
        result = SyncResult(
            mode=mode,
            success=success,
            items_synced=synced,
            items_skipped=skipped,
            errors=errors,
            duration_ms=int(elapsed * 1000),
            timestamp=self._clock(),
        )
        logger.info(
            "Sync finished",
            mode=mode.value,
            success=success,
            synced=synced,
            skipped=skipped,
            duration_ms=result.duration_ms,
        )
        return result
