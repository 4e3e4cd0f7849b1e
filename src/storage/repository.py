"""Database repository for the items and sync_logs tables.

Writes are idempotent upserts keyed by the upstream issue id:
- mutable fields (title, body, updated_at, content_type) are overwritten
- moderation_status only moves out of 'pending', never backward
- existing tags survive unless a non-empty replacement is supplied
- reactions_count is owned by another writer and never touched on conflict

`upsert_items` writes each chunk with one set-based statement over
column arrays; if a chunk fails it is retried row by row so a single
bad row only costs itself.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

import asyncpg

from src.ingestion.schemas import ContentType, Item, ModerationStatus
from src.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS items (
    id                TEXT PRIMARY KEY,
    title             TEXT NOT NULL DEFAULT '',
    url               TEXT NOT NULL DEFAULT '',
    body              TEXT NOT NULL DEFAULT '',
    created_at        TIMESTAMPTZ NOT NULL,
    updated_at        TIMESTAMPTZ NOT NULL,
    author_username   TEXT NOT NULL DEFAULT 'unknown',
    source_repo       TEXT NOT NULL,
    content_type      TEXT NOT NULL DEFAULT 'text'
        CHECK (content_type IN ('text', 'meme')),
    moderation_status TEXT NOT NULL DEFAULT 'pending'
        CHECK (moderation_status IN ('pending', 'approved', 'rejected')),
    tags              TEXT[] NOT NULL DEFAULT '{}'
        CHECK (cardinality(tags) <= 3),
    reactions_count   INTEGER NOT NULL DEFAULT 0,
    synced_at         TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_items_source_repo ON items(source_repo);
CREATE INDEX IF NOT EXISTS idx_items_synced_at ON items(synced_at DESC);
CREATE INDEX IF NOT EXISTS idx_items_created_at ON items(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_items_moderation_status ON items(moderation_status);

CREATE TABLE IF NOT EXISTS sync_logs (
    id           BIGSERIAL PRIMARY KEY,
    mode         TEXT NOT NULL,
    source       TEXT NOT NULL,
    items_synced INTEGER NOT NULL DEFAULT 0,
    started_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    finished_at  TIMESTAMPTZ,
    error        TEXT
);

CREATE INDEX IF NOT EXISTS idx_sync_logs_started_at ON sync_logs(started_at DESC);
"""

_CONFLICT_CLAUSE = """
ON CONFLICT (id) DO UPDATE SET
    title = EXCLUDED.title,
    body = EXCLUDED.body,
    updated_at = EXCLUDED.updated_at,
    content_type = EXCLUDED.content_type,
    moderation_status = CASE
        WHEN items.moderation_status = 'pending' THEN EXCLUDED.moderation_status
        ELSE items.moderation_status
    END,
    tags = CASE
        WHEN cardinality(EXCLUDED.tags) = 0 THEN items.tags
        ELSE EXCLUDED.tags
    END,
    synced_at = NOW()
"""

_UPSERT_SQL = """
INSERT INTO items (
    id, title, url, body, created_at, updated_at, author_username,
    source_repo, content_type, moderation_status, tags, reactions_count, synced_at
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11::text[], 0, NOW())
""" + _CONFLICT_CLAUSE

_BULK_UPSERT_SQL = """
INSERT INTO items (
    id, title, url, body, created_at, updated_at, author_username,
    source_repo, content_type, moderation_status, tags, reactions_count, synced_at
)
SELECT
    t.id, t.title, t.url, t.body, t.created_at, t.updated_at, t.author_username,
    t.source_repo, t.content_type, t.moderation_status,
    ARRAY(SELECT jsonb_array_elements_text(t.tags)), 0, NOW()
FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::timestamptz[], $6::timestamptz[],
    $7::text[], $8::text[], $9::text[], $10::text[], $11::jsonb[]
) AS t(
    id, title, url, body, created_at, updated_at, author_username,
    source_repo, content_type, moderation_status, tags
)
""" + _CONFLICT_CLAUSE

_PERSISTENCE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, ValueError, TypeError)


@dataclass
class UpsertReport:
    """Outcome of upserting a list of items."""

    synced: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class SyncLogEntry:
    """One row of sync_logs."""

    id: int
    mode: str
    source: str
    items_synced: int
    started_at: datetime
    finished_at: datetime | None
    error: str | None


def _record_to_item(record) -> Item:
    """Convert an asyncpg Record to an Item."""
    return Item(
        id=record["id"],
        title=record["title"],
        url=record["url"],
        body=record["body"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
        author_username=record["author_username"],
        source_repo=record["source_repo"],
        content_type=ContentType(record["content_type"]),
        moderation_status=ModerationStatus(record["moderation_status"]),
        tags=list(record["tags"] or []),
        reactions_count=record["reactions_count"],
        synced_at=record["synced_at"],
    )


def _record_to_sync_log(record) -> SyncLogEntry:
    return SyncLogEntry(
        id=record["id"],
        mode=record["mode"],
        source=record["source"],
        items_synced=record["items_synced"],
        started_at=record["started_at"],
        finished_at=record["finished_at"],
        error=record["error"],
    )


class ItemRepository:
    """Persistence for synced items and sync run logs."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create items/sync_logs tables and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Items and sync_logs tables ensured")

    # ── Items ────────────────────────────────────────────────

    async def upsert(self, item: Item) -> None:
        """
        Insert or update a single item.

        Raises:
            asyncpg.PostgresError: the row violates a constraint
        """
        await self._db.execute(
            _UPSERT_SQL,
            item.id,
            item.title,
            item.url,
            item.body,
            item.created_at,
            item.updated_at,
            item.author_username,
            item.source_repo,
            item.content_type.value,
            item.moderation_status.value,
            list(item.tags),
        )

    async def upsert_batch(self, items: list[Item]) -> int:
        """
        Insert or update items with one set-based statement.

        Raises:
            asyncpg.PostgresError: any row in the batch failed; nothing was written
        """
        if not items:
            return 0

        await self._db.execute(
            _BULK_UPSERT_SQL,
            [i.id for i in items],
            [i.title for i in items],
            [i.url for i in items],
            [i.body for i in items],
            [i.created_at for i in items],
            [i.updated_at for i in items],
            [i.author_username for i in items],
            [i.source_repo for i in items],
            [i.content_type.value for i in items],
            [i.moderation_status.value for i in items],
            [json.dumps(list(i.tags), ensure_ascii=False) for i in items],
        )
        return len(items)

    async def upsert_items(
        self, items: list[Item], batch_size: int = DEFAULT_BATCH_SIZE
    ) -> UpsertReport:
        """
        Upsert items chunk by chunk with per-row fallback.

        Chunks are written sequentially. A chunk whose set-based
        statement fails is retried one row at a time; rows that still
        fail are counted as skipped. synced + skipped == len(items).
        """
        report = UpsertReport()

        for start in range(0, len(items), batch_size):
            chunk = items[start : start + batch_size]
            chunk_number = start // batch_size + 1
            try:
                report.synced += await self.upsert_batch(chunk)
                logger.debug(f"Batch {chunk_number}: upserted {len(chunk)} items")
                continue
            except _PERSISTENCE_ERRORS as e:
                logger.warning(
                    f"Batch {chunk_number} failed ({e}); retrying {len(chunk)} rows individually"
                )

            for item in chunk:
                try:
                    await self.upsert(item)
                    report.synced += 1
                except _PERSISTENCE_ERRORS as e:
                    report.skipped += 1
                    report.errors.append(f"Failed to upsert {item.id}: {e}")
                    logger.error(f"Failed to upsert item {item.id}: {e}")

        return report

    async def get_by_id(self, item_id: str) -> Item | None:
        row = await self._db.fetchrow("SELECT * FROM items WHERE id = $1", item_id)
        return _record_to_item(row) if row else None

    async def update_tags(self, item_id: str, tags: list[str]) -> bool:
        """Replace an item's tags. Returns False if the item does not exist."""
        result = await self._db.execute(
            "UPDATE items SET tags = $2::text[] WHERE id = $1",
            item_id,
            tags,
        )
        return result.endswith(" 1")

    async def get_last_synced_at(self) -> datetime | None:
        """Most recent synced_at across all items (incremental watermark)."""
        return await self._db.fetchval("SELECT MAX(synced_at) FROM items")

    # ── Sync logs ────────────────────────────────────────────

    async def start_sync_log(self, mode: str, source: str) -> int:
        """Open a sync_logs row and return its id."""
        return await self._db.fetchval(
            """
            INSERT INTO sync_logs (mode, source, items_synced, started_at)
            VALUES ($1, $2, 0, NOW())
            RETURNING id
            """,
            mode,
            source,
        )

    async def finish_sync_log(
        self, log_id: int, items_synced: int, error: str | None = None
    ) -> None:
        await self._db.execute(
            """
            UPDATE sync_logs
            SET items_synced = $2, finished_at = NOW(), error = $3
            WHERE id = $1
            """,
            log_id,
            items_synced,
            error,
        )

    async def recent_sync_logs(self, limit: int = 20) -> list[SyncLogEntry]:
        rows = await self._db.fetch(
            """
            SELECT id, mode, source, items_synced, started_at, finished_at, error
            FROM sync_logs
            ORDER BY started_at DESC
            LIMIT $1
            """,
            limit,
        )
        return [_record_to_sync_log(r) for r in rows]
