"""
Canonical item and issue schemas for the content pipeline.

CRITICAL: Item mirrors the `items` table column-for-column. Moderation,
sync and the repository all exchange these models, so field names must
stay aligned with the SQL in src/storage/repository.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _utc_now()
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class ContentType(str, Enum):
    """Kind of submission."""

    TEXT = "text"
    MEME = "meme"


class ModerationStatus(str, Enum):
    """Moderation state of a stored item. Only moves out of PENDING."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class IssueAuthor(BaseModel):
    """Author of an upstream issue."""

    login: str = "unknown"
    avatar_url: str = ""
    html_url: str = ""


class RepoRef(BaseModel):
    """Owner/name pair identifying an upstream repository."""

    owner: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "RepoRef":
        """Build from an ``owner/name`` string."""
        owner, sep, name = full_name.partition("/")
        if not sep:
            raise ValueError(f"Expected owner/name, got {full_name!r}")
        return cls(owner=owner, name=name)


class IssuePayload(BaseModel):
    """
    A validated upstream issue.

    `id` is the tracker's global node id, which is stable across
    repositories and used as the item primary key.
    """

    id: str = Field(..., min_length=1, description="Global node id of the issue")
    number: int | None = Field(default=None, description="Per-repository issue number")
    title: str = ""
    body: str = ""
    labels: list[str] = Field(default_factory=list)
    author: IssueAuthor | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    html_url: str = ""
    is_pull_request: bool = False

    @field_validator("body", mode="before")
    @classmethod
    def body_not_none(cls, v: Any) -> str:
        return v or ""

    @property
    def author_username(self) -> str:
        return self.author.login if self.author else "unknown"

    @classmethod
    def from_rest(cls, data: dict[str, Any]) -> "IssuePayload":
        """Build from a REST issue object (``GET /repos/{o}/{r}/issues``)."""
        user = data.get("user")
        return cls(
            id=data["node_id"],
            number=data.get("number"),
            title=data.get("title") or "",
            body=data.get("body"),
            labels=_label_names(data.get("labels")),
            author=IssueAuthor(
                login=user.get("login") or "unknown",
                avatar_url=user.get("avatar_url") or "",
                html_url=user.get("html_url") or "",
            )
            if user
            else None,
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            html_url=data.get("html_url") or "",
            is_pull_request="pull_request" in data,
        )

    @classmethod
    def from_graphql(cls, node: dict[str, Any]) -> "IssuePayload":
        """Build from a GraphQL ``Issue`` node."""
        author = node.get("author")
        labels = (node.get("labels") or {}).get("nodes") or []
        return cls(
            id=node["id"],
            number=node.get("number"),
            title=node.get("title") or "",
            body=node.get("body"),
            labels=_label_names(labels),
            author=IssueAuthor(
                login=author.get("login") or "unknown",
                avatar_url=author.get("avatarUrl") or "",
                html_url=author.get("url") or "",
            )
            if author
            else None,
            created_at=_parse_timestamp(node.get("createdAt")),
            updated_at=_parse_timestamp(node.get("updatedAt")),
            html_url=node.get("url") or "",
        )


def _label_names(labels: Any) -> list[str]:
    """Labels arrive as strings or as ``{"name": ...}`` objects."""
    if not isinstance(labels, list):
        return []
    names = []
    for label in labels:
        if isinstance(label, str):
            name = label
        elif isinstance(label, dict):
            name = str(label.get("name") or "")
        else:
            name = ""
        if name:
            names.append(name)
    return names


class IssueEvent(BaseModel):
    """A classified issue webhook event (signature already verified)."""

    action: str = Field(..., description="labeled, edited, closed, ...")
    label: str | None = Field(default=None, description="Label added by a 'labeled' action")
    issue: IssuePayload
    repo: RepoRef


class Item(BaseModel):
    """
    CANONICAL ITEM SCHEMA

    One row of the `items` table. `reactions_count` is owned by a
    separate collaborator and never written by this pipeline.
    """

    id: str = Field(..., min_length=1)
    title: str = ""
    url: str = ""
    body: str = ""
    created_at: datetime
    updated_at: datetime
    author_username: str = "unknown"
    source_repo: str
    content_type: ContentType = ContentType.TEXT
    moderation_status: ModerationStatus = ModerationStatus.PENDING
    tags: list[str] = Field(default_factory=list, max_length=3)
    reactions_count: int = Field(default=0, ge=0)
    synced_at: datetime | None = None
