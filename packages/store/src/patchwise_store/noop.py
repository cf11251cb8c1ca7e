"""No-op stores, used when caching or metrics are turned off in config.

Using a no-op object rather than None lets the orchestrator and CLI call the
store interface unconditionally.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from patchwise_store.base import BaseMetricsStore, BaseReviewCache
from patchwise_store.models import CacheStats

if TYPE_CHECKING:
    from patchwise_store.models import MetricRecord


class NoOpReviewCache(BaseReviewCache):
    """Always misses, never stores: every pass reviews every file."""

    def get(self, repository_id: str, file_path: str, content_hash: str) -> str | None:
        return None

    def put(self, repository_id: str, file_path: str, content_hash: str, review: str) -> bool:
        return False

    def evict_older_than(self, repository_id: str, max_age: timedelta) -> int:
        return 0

    def stats(self, repository_id: str) -> CacheStats:
        return CacheStats()


class NoOpMetricsStore(BaseMetricsStore):
    """Silently discards all records."""

    def record(self, record: MetricRecord) -> None:
        pass  # intentional no-op

    def list_metrics(self, repository_id: str, pr_number: int | None = None) -> list[MetricRecord]:
        return []
