"""Sync request/result schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.ingestion.schemas import ContentType, IssuePayload, RepoRef


class SyncMode(str, Enum):
    SINGLE = "single"
    INCREMENTAL = "incremental"
    FULL = "full"


class SyncRequest(BaseModel):
    """
    A sync invocation.

    `issue` and `repo` are required for single mode; `since` only
    applies to incremental mode; `content_type`/`tags` override the
    normalized values in single mode.
    """

    mode: SyncMode
    issue: IssuePayload | None = None
    repo: RepoRef | None = None
    since: datetime | None = None
    content_type: ContentType | None = None
    tags: list[str] | None = None


class SyncResult(BaseModel):
    """
    Report of one sync run. Not persisted.

    Serialized with camelCase keys (itemsSynced, durationMs, ...) for the
    sync endpoint response.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mode: SyncMode
    success: bool
    items_synced: int = Field(default=0, ge=0)
    items_skipped: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
