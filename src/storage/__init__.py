"""Storage layer - asyncpg pool and item/sync-log persistence."""

from src.storage.database import Database
from src.storage.repository import ItemRepository, SyncLogEntry, UpsertReport

__all__ = ["Database", "ItemRepository", "SyncLogEntry", "UpsertReport"]
