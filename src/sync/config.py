"""Configuration for the sync orchestrator.

Source repositories come from the SYNC_REPOS environment variable as a
JSON list, for example:

    SYNC_REPOS='[{"owner": "vme-im", "repo": "vme-content", "labels": ["收录"],
                  "typeLabels": {"meme": ["梗图"], "text": ["文案"]}}]'

When unset, the hard-coded default list is used.
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TypeLabels(BaseModel):
    """Labels that pin an issue's content type regardless of its body."""

    meme: list[str] = Field(default_factory=list)
    text: list[str] = Field(default_factory=list)


# Used for repositories without an explicit mapping.
DEFAULT_TYPE_LABELS = TypeLabels(meme=["梗图"], text=["文案", "文案提供"])


class RepoConfig(BaseModel):
    """One upstream repository to sync from."""

    model_config = ConfigDict(populate_by_name=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    labels: list[str] = Field(
        default_factory=lambda: ["收录"],
        description="Issues carrying any of these labels are accepted content",
    )
    type_labels: TypeLabels | None = Field(default=None, alias="typeLabels")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def effective_type_labels(self) -> TypeLabels:
        return self.type_labels or DEFAULT_TYPE_LABELS


DEFAULT_SYNC_REPOS: list[RepoConfig] = [
    RepoConfig(owner="vme-im", repo="vme-content", labels=["收录"]),
    RepoConfig(owner="whitescent", repo="KFC-Crazy-Thursday", labels=["文案提供"]),
]


class SyncConfig(BaseSettings):
    """Settings for upstream sync.

    Example:
        SYNC_BATCH_SIZE=50
        SYNC_DEFAULT_LOOKBACK_HOURS=48
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    repos: list[RepoConfig] = Field(
        default_factory=lambda: [r.model_copy() for r in DEFAULT_SYNC_REPOS],
        description="Upstream repositories (JSON list in SYNC_REPOS)",
    )
    webhook_repos: list[str] | None = Field(
        default=None,
        description="owner/name allow-list for issue events; defaults to `repos`",
    )
    batch_size: int = Field(default=100, ge=1, le=1000)
    page_size: int = Field(default=100, ge=1, le=100)
    default_lookback_hours: int = Field(
        default=24,
        ge=1,
        description="Incremental watermark when no since and no synced rows exist",
    )

    def find_repo(self, full_name: str) -> RepoConfig | None:
        for repo in self.repos:
            if repo.full_name == full_name:
                return repo
        return None

    def allowed_repos(self) -> set[str]:
        if self.webhook_repos:
            return set(self.webhook_repos)
        return {r.full_name for r in self.repos}


@lru_cache
def get_sync_config() -> SyncConfig:
    """Get cached sync config instance."""
    return SyncConfig()
