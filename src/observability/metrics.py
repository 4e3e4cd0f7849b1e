"""
Prometheus metrics for monitoring the content pipeline.

Defines and exposes metrics for:
- Sync throughput (items synced/skipped) and run duration
- Moderation outcomes and classifier reliability
- Tag extraction results
- Duplicate detection and corpus refreshes

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for sync run durations (in seconds)
SYNC_DURATION_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the content pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_moderation_outcome("approved")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Sync
        self.items_synced = Counter(
            "vme_items_synced_total",
            "Items upserted into the store",
            ["mode"],
        )

        self.items_skipped = Counter(
            "vme_items_skipped_total",
            "Items that failed to upsert individually",
            ["mode"],
        )

        self.sync_runs = Counter(
            "vme_sync_runs_total",
            "Sync runs by outcome",
            ["mode", "status"],  # status: success, failure
        )

        self.sync_fetch_errors = Counter(
            "vme_sync_fetch_errors_total",
            "Upstream repositories that could not be read during a sync",
            ["mode", "source"],
        )

        self.sync_duration = Histogram(
            "vme_sync_duration_seconds",
            "Wall time of a sync run",
            ["mode"],
            buckets=SYNC_DURATION_BUCKETS,
        )

        self.last_sync_timestamp = Gauge(
            "vme_last_sync_timestamp_seconds",
            "Unix time of the last successful sync run",
            ["mode"],
        )

        # Moderation
        self.moderation_outcomes = Counter(
            "vme_moderation_outcomes_total",
            "Moderation passes by outcome type",
            ["outcome"],  # similar, violation, approved, pending, skipped
        )

        self.moderation_attempts = Counter(
            "vme_moderation_classifier_attempts_total",
            "Classifier call attempts",
            ["status"],  # success, failure
        )

        self.tracker_write_errors = Counter(
            "vme_tracker_write_errors_total",
            "Failed label/comment/close calls against the issue tracker",
            ["action"],
        )

        # Tagging
        self.tagging_results = Counter(
            "vme_tagging_results_total",
            "Tag extraction results by validation status",
            ["status"],  # valid, fallback, invalid, error
        )

        # Duplicate detection
        self.duplicates_detected = Counter(
            "vme_duplicates_detected_total",
            "Near-duplicate submissions detected",
            ["criterion"],  # image_url, image_hash, text
        )

        self.corpus_refreshes = Counter(
            "vme_corpus_refreshes_total",
            "Similarity corpus refresh attempts",
            ["result"],  # success, stale, empty
        )

        self.corpus_size = Gauge(
            "vme_corpus_size",
            "Entries in the cached similarity corpus",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_sync(
        self,
        mode: str,
        synced: int,
        skipped: int,
        duration_seconds: float,
        success: bool,
    ) -> None:
        """
        Record the result of one sync run.

        Args:
            mode: single, incremental or full
            synced: Rows upserted
            skipped: Rows that failed individually
            duration_seconds: Wall time of the run
            success: False when the fetch phase failed
        """
        self.items_synced.labels(mode=mode).inc(synced)
        self.items_skipped.labels(mode=mode).inc(skipped)
        self.sync_runs.labels(mode=mode, status="success" if success else "failure").inc()
        self.sync_duration.labels(mode=mode).observe(duration_seconds)
        if success:
            self.last_sync_timestamp.labels(mode=mode).set_to_current_time()

    def record_fetch_error(self, mode: str, source: str) -> None:
        self.sync_fetch_errors.labels(mode=mode, source=source).inc()

    def record_moderation_outcome(self, outcome: str) -> None:
        self.moderation_outcomes.labels(outcome=outcome).inc()

    def record_classifier_attempt(self, success: bool) -> None:
        self.moderation_attempts.labels(status="success" if success else "failure").inc()

    def record_tracker_write_error(self, action: str) -> None:
        self.tracker_write_errors.labels(action=action).inc()

    def record_tagging(self, status: str) -> None:
        self.tagging_results.labels(status=status).inc()

    def record_duplicate(self, criterion: str) -> None:
        self.duplicates_detected.labels(criterion=criterion).inc()

    def record_corpus_refresh(self, result: str, size: int | None = None) -> None:
        """
        Record a corpus refresh attempt.

        Args:
            result: success, stale (served previous snapshot) or empty
            size: Number of entries now cached
        """
        self.corpus_refreshes.labels(result=result).inc()
        if size is not None:
            self.corpus_size.set(size)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get or create global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
