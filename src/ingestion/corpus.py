"""
Similarity corpus cache.

Holds an in-memory snapshot of previously accepted items, loaded from an
external JSON snapshot (not the live `items` table). The snapshot is
refetched once its TTL expires; if a refetch fails the previous snapshot
keeps being served, and with no snapshot at all the corpus is empty so
duplicate detection finds nothing instead of blocking moderation.

Construct one instance per process and pass it to every DuplicateDetector.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from src.ingestion.markdown import extract_image_urls, extract_text
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorpusEntry:
    """Projection of an accepted item used only for duplicate comparison."""

    id: str
    url: str
    text: str
    image_urls: tuple[str, ...] = ()
    image_hashes: tuple[str, ...] = ()

    @classmethod
    def from_snapshot(cls, record: dict[str, Any]) -> "CorpusEntry":
        body = record.get("body") or ""
        return cls(
            id=str(record["id"]),
            url=record.get("url") or "",
            text=extract_text(body),
            image_urls=tuple(extract_image_urls(body)),
            image_hashes=tuple(
                h for h in (record.get("imageHashes") or []) if isinstance(h, str) and h
            ),
        )


@dataclass
class _Snapshot:
    entries: list[CorpusEntry] = field(default_factory=list)
    fetched_at: float = 0.0


class SimilarityCorpus:
    """
    TTL cache over the accepted-items snapshot.

    Refresh happens on the first read after expiry (populate-on-miss).
    Concurrent readers share a single in-flight refresh.
    """

    def __init__(
        self,
        url: str,
        ttl_seconds: float = 300.0,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._url = url
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._retry_config = retry_config or RetryConfig(max_retries=1)
        self._clock = clock
        self._snapshot: _Snapshot | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    async def entries(self) -> list[CorpusEntry]:
        """Return the cached corpus, refreshing it first if the TTL expired."""
        if self._is_fresh():
            return self._snapshot.entries

        async with self._lock:
            if self._is_fresh():
                return self._snapshot.entries
            return await self._refresh()

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and (self._clock() - self._snapshot.fetched_at) < self._ttl
        )

    async def _refresh(self) -> list[CorpusEntry]:
        metrics = get_metrics()
        try:
            records = await self._fetch()
        except (HTTPClientError, httpx.HTTPError, ValueError) as e:
            if self._snapshot is not None:
                logger.warning(f"Corpus refresh failed, serving stale snapshot: {e}")
                metrics.record_corpus_refresh("stale", len(self._snapshot.entries))
                return self._snapshot.entries
            logger.error(f"Corpus unavailable and nothing cached: {e}")
            metrics.record_corpus_refresh("empty", 0)
            return []

        entries = []
        for record in records:
            if not isinstance(record, dict) or not record.get("id"):
                continue
            entries.append(CorpusEntry.from_snapshot(record))

        self._snapshot = _Snapshot(entries=entries, fetched_at=self._clock())
        metrics.record_corpus_refresh("success", len(entries))
        logger.info(f"Loaded similarity corpus with {len(entries)} entries")
        return entries

    async def _fetch(self) -> list[Any]:
        async with HTTPClient(self._retry_config, timeout=self._timeout) as client:
            response = await client.get(self._url, headers={"Cache-Control": "no-cache"})
        data = response.json()
        if not isinstance(data, list):
            logger.warning(f"Corpus snapshot is {type(data).__name__}, expected list")
            return []
        return data
