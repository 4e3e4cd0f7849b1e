"""Upstream sync - repository config, normalization, and the sync orchestrator."""

from src.sync.config import (
    DEFAULT_SYNC_REPOS,
    DEFAULT_TYPE_LABELS,
    RepoConfig,
    SyncConfig,
    TypeLabels,
    get_sync_config,
)
from src.sync.normalizer import detect_content_type, normalize_issue
from src.sync.schemas import SyncMode, SyncRequest, SyncResult
from src.sync.service import SyncOrchestrator

__all__ = [
    "DEFAULT_SYNC_REPOS",
    "DEFAULT_TYPE_LABELS",
    "RepoConfig",
    "SyncConfig",
    "SyncMode",
    "SyncOrchestrator",
    "SyncRequest",
    "SyncResult",
    "TypeLabels",
    "detect_content_type",
    "get_sync_config",
    "normalize_issue",
]
