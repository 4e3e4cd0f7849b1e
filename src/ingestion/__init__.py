"""Ingestion layer - issue schemas, tracker/HTTP clients, and duplicate detection."""

from src.ingestion.schemas import (
    ContentType,
    IssueAuthor,
    IssueEvent,
    IssuePayload,
    Item,
    ModerationStatus,
    RepoRef,
)

__all__ = [
    "ContentType",
    "IssueAuthor",
    "IssueEvent",
    "IssuePayload",
    "Item",
    "ModerationStatus",
    "RepoRef",
]
