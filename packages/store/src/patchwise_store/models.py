"""Persisted records for the review cache and run metrics.

Decoupled from patchwise_core so the store layer can be used independently;
the CLI maps core objects to these records before persisting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class CacheEntry:
    """A stored review for one file content in one repository.

    ``review`` is the JSON-encoded list of line comments for that file.
    """

    repository_id: str
    file_path: str
    content_hash: str
    review: str
    created_at: str = field(default_factory=utc_now_iso)  # ISO-8601 UTC


@dataclass
class CacheStats:
    total_entries: int = 0
    oldest_entry: str | None = None
    newest_entry: str | None = None


@dataclass
class MetricRecord:
    """Accounting for one review pass."""

    repository_id: str
    pr_number: int
    started_at: str  # ISO-8601 UTC
    success: bool
    error_message: str | None = None
    latency_ms: int = 0
    ai_call_duration_ms: int = 0
    posting_duration_ms: int = 0
    line_comment_count: int = 0
    files_total_count: int = 0
    file_cached_count: int = 0
    ai_called: bool = False

    @property
    def cache_hit(self) -> bool:
        return self.file_cached_count > 0

    @property
    def files_sent_to_ai(self) -> int:
        return max(self.files_total_count - self.file_cached_count, 0)


@dataclass
class MetricsSummary:
    total_runs: int = 0
    successful_runs: int = 0
    ai_calls: int = 0
    # Successful runs with reviewable files that were answered entirely from cache.
    ai_calls_saved: int = 0
    cache_hit_runs: int = 0
    files_total: int = 0
    files_cached: int = 0
    average_latency_ms: int = 0
    average_ai_time_ms: int = 0

    @property
    def cache_hit_ratio(self) -> float:
        """Percentage of runs that served at least one file from cache."""
        return round(self.cache_hit_runs / self.total_runs * 100, 2) if self.total_runs else 0.0

    @property
    def file_cache_ratio(self) -> float:
        return round(self.files_cached / self.files_total * 100, 2) if self.files_total else 0.0

    @property
    def success_rate(self) -> float:
        return round(self.successful_runs / self.total_runs * 100, 2) if self.total_runs else 0.0


def summarize(records: list[MetricRecord]) -> MetricsSummary:
    """Aggregate run records; averages cover successful runs only."""
    successful = [r for r in records if r.success]
    summary = MetricsSummary(
        total_runs=len(records),
        successful_runs=len(successful),
        ai_calls=sum(1 for r in records if r.ai_called),
        ai_calls_saved=sum(1 for r in successful if r.files_total_count > 0 and not r.ai_called),
        cache_hit_runs=sum(1 for r in records if r.cache_hit),
        files_total=sum(r.files_total_count for r in records),
        files_cached=sum(r.file_cached_count for r in records),
    )
    if successful:
        summary.average_latency_ms = round(sum(r.latency_ms for r in successful) / len(successful))
        summary.average_ai_time_ms = round(sum(r.ai_call_duration_ms for r in successful) / len(successful))
    return summary
