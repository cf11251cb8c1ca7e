"""Abstract store interfaces.

The orchestrator depends on BaseReviewCache and the CLI on BaseMetricsStore,
never on a concrete backend, so backends are swappable without touching
either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from patchwise_store.models import CacheStats, MetricRecord


class BaseReviewCache(ABC):
    """Review cache keyed by (repository_id, file_path, content_hash).

    The cache is advisory. Implementations must never raise from these
    methods: a storage failure is logged and reported as a miss, a failed
    write, zero evictions or empty stats.
    """

    @abstractmethod
    def get(self, repository_id: str, file_path: str, content_hash: str) -> str | None:
        """Return the stored review payload, or None on a miss."""

    @abstractmethod
    def put(self, repository_id: str, file_path: str, content_hash: str, review: str) -> bool:
        """Insert or overwrite the entry for this key; True if it was stored."""

    @abstractmethod
    def evict_older_than(self, repository_id: str, max_age: timedelta) -> int:
        """Delete a repository's entries created more than max_age ago."""

    @abstractmethod
    def stats(self, repository_id: str) -> CacheStats:
        """Entry count and age range for a repository."""

    def close(self) -> None:
        """Release any resources held by the cache.

        Default is a no-op so callers can always call close() safely.
        """


class BaseMetricsStore(ABC):
    """Pluggable persistence for per-pass review metrics."""

    @abstractmethod
    def record(self, record: MetricRecord) -> None:
        """Persist one pass's metrics. Must not raise on storage failure."""

    @abstractmethod
    def list_metrics(self, repository_id: str, pr_number: int | None = None) -> list[MetricRecord]:
        """Return records for a repository, oldest first.

        Returns an empty list if none exist; never raises.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles)."""
