"""Tests for patchwise-store implementations."""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from patchwise_store.models import MetricRecord, summarize
from patchwise_store.noop import NoOpMetricsStore, NoOpReviewCache
from patchwise_store.sqlite import SQLiteMetricsStore, SQLiteReviewCache

REPO = "owner/repo"
HASH = "a" * 64


def _metric(pr_number=1, success=True, started_at="2025-03-01T10:00:00.000000+00:00", **kwargs):
    defaults = dict(
        latency_ms=1200,
        ai_call_duration_ms=900,
        posting_duration_ms=100,
        line_comment_count=3,
        files_total_count=4,
        file_cached_count=0,
    )
    defaults.update(kwargs)
    return MetricRecord(repository_id=REPO, pr_number=pr_number, started_at=started_at, success=success, **defaults)


@pytest.fixture
def cache(tmp_path):
    c = SQLiteReviewCache(db_path=str(tmp_path / "patchwise.db"))
    yield c
    c.close()


@pytest.fixture
def metrics_store(tmp_path):
    s = SQLiteMetricsStore(db_path=str(tmp_path / "patchwise.db"))
    yield s
    s.close()


# ---------------------------------------------------------------------------
# No-op stores
# ---------------------------------------------------------------------------


class TestNoOpStores:
    def test_cache_always_misses(self):
        cache = NoOpReviewCache()
        assert cache.put(REPO, "a.py", HASH, "[]") is False
        assert cache.get(REPO, "a.py", HASH) is None
        assert cache.evict_older_than(REPO, timedelta(days=1)) == 0
        assert cache.stats(REPO).total_entries == 0

    def test_metrics_discarded(self):
        store = NoOpMetricsStore()
        store.record(_metric())  # must not raise
        assert store.list_metrics(REPO) == []


# ---------------------------------------------------------------------------
# SQLiteReviewCache
# ---------------------------------------------------------------------------


class TestSQLiteReviewCache:
    def test_put_then_get(self, cache):
        assert cache.put(REPO, "a.py", HASH, '[{"file": "a.py", "line": 1, "comment": "x"}]') is True
        assert cache.get(REPO, "a.py", HASH) == '[{"file": "a.py", "line": 1, "comment": "x"}]'

    def test_miss_on_any_key_difference(self, cache):
        cache.put(REPO, "a.py", HASH, "[]")
        assert cache.get(REPO, "a.py", "b" * 64) is None
        assert cache.get(REPO, "b.py", HASH) is None
        assert cache.get("owner/other", "a.py", HASH) is None

    def test_put_is_idempotent_upsert(self, cache):
        cache.put(REPO, "a.py", HASH, "[]")
        cache.put(REPO, "a.py", HASH, "[]")
        cache.put(REPO, "a.py", HASH, '[{"file": "a.py", "line": 2, "comment": "y"}]')
        assert cache.stats(REPO).total_entries == 1
        assert "y" in cache.get(REPO, "a.py", HASH)

    def test_upsert_keeps_original_created_at(self, cache, monkeypatch):
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-01-01T00:00:00.000000+00:00")
        cache.put(REPO, "a.py", HASH, "[]")
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-02-01T00:00:00.000000+00:00")
        cache.put(REPO, "a.py", HASH, "[]")
        assert cache.stats(REPO).oldest_entry == "2025-01-01T00:00:00.000000+00:00"

    def test_evict_older_than(self, cache, monkeypatch):
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-01-01T00:00:00.000000+00:00")
        cache.put(REPO, "old.py", HASH, "[]")
        cache.put("owner/other", "old.py", HASH, "[]")
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-01-25T00:00:00.000000+00:00")
        cache.put(REPO, "new.py", HASH, "[]")

        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-02-05T00:00:00.000000+00:00")
        assert cache.evict_older_than(REPO, timedelta(days=30)) == 1
        assert cache.get(REPO, "old.py", HASH) is None
        assert cache.get(REPO, "new.py", HASH) == "[]"
        # Other repositories are untouched.
        assert cache.get("owner/other", "old.py", HASH) == "[]"

    def test_stats(self, cache, monkeypatch):
        assert cache.stats(REPO).total_entries == 0
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-01-01T00:00:00.000000+00:00")
        cache.put(REPO, "a.py", HASH, "[]")
        monkeypatch.setattr("patchwise_store.sqlite._now", lambda: "2025-01-03T00:00:00.000000+00:00")
        cache.put(REPO, "b.py", HASH, "[]")
        stats = cache.stats(REPO)
        assert stats.total_entries == 2
        assert stats.oldest_entry.startswith("2025-01-01")
        assert stats.newest_entry.startswith("2025-01-03")

    def test_persists_across_connections(self, tmp_path):
        db = str(tmp_path / "shared.db")
        first = SQLiteReviewCache(db_path=db)
        first.put(REPO, "a.py", HASH, "[]")
        first.close()
        second = SQLiteReviewCache(db_path=db)
        assert second.get(REPO, "a.py", HASH) == "[]"
        second.close()

    def test_unavailable_database_never_raises(self, tmp_path):
        cache = SQLiteReviewCache(db_path=str(tmp_path / "no-such-dir" / "x.db"))
        assert cache.available is False
        assert cache.get(REPO, "a.py", HASH) is None
        assert cache.put(REPO, "a.py", HASH, "[]") is False
        assert cache.evict_older_than(REPO, timedelta(days=1)) == 0
        assert cache.stats(REPO).total_entries == 0

    def test_closed_cache_behaves_as_unavailable(self, tmp_path):
        cache = SQLiteReviewCache(db_path=str(tmp_path / "x.db"))
        cache.close()
        assert cache.get(REPO, "a.py", HASH) is None
        cache.close()  # second close is harmless


# ---------------------------------------------------------------------------
# SQLiteMetricsStore
# ---------------------------------------------------------------------------


class TestSQLiteMetricsStore:
    def test_record_and_list(self, metrics_store):
        metrics_store.record(_metric(file_cached_count=2, error_message=None))
        (record,) = metrics_store.list_metrics(REPO)
        assert record.pr_number == 1
        assert record.success is True
        assert record.files_total_count == 4
        assert record.file_cached_count == 2
        assert record.cache_hit is True
        assert record.files_sent_to_ai == 2
        assert record.ai_called is False

    def test_ai_called_is_persisted(self, metrics_store):
        metrics_store.record(_metric(ai_called=True))
        (record,) = metrics_store.list_metrics(REPO)
        assert record.ai_called is True

    def test_upgrades_table_without_ai_called(self, tmp_path):
        db = str(tmp_path / "patchwise.db")
        conn = sqlite3.connect(db)
        conn.execute(
            """CREATE TABLE review_metrics (
                id INTEGER PRIMARY KEY AUTOINCREMENT, repository_id TEXT NOT NULL,
                pr_number INTEGER NOT NULL, started_at TEXT NOT NULL, success INTEGER NOT NULL,
                error_message TEXT, latency_ms INTEGER DEFAULT 0, ai_call_duration_ms INTEGER DEFAULT 0,
                posting_duration_ms INTEGER DEFAULT 0, line_comment_count INTEGER DEFAULT 0,
                files_total_count INTEGER DEFAULT 0, file_cached_count INTEGER DEFAULT 0)"""
        )
        conn.execute(
            "INSERT INTO review_metrics (repository_id, pr_number, started_at, success, files_total_count, "
            "file_cached_count) VALUES (?, 1, '2025-03-01T00:00:00.000000+00:00', 1, 2, 0)",
            (REPO,),
        )
        conn.commit()
        conn.close()

        store = SQLiteMetricsStore(db_path=db)
        store.record(_metric(pr_number=2, started_at="2025-03-02T00:00:00.000000+00:00", file_cached_count=4))
        old, new = store.list_metrics(REPO)
        assert old.ai_called is True
        assert new.ai_called is False
        store.close()

    def test_failure_record_keeps_error(self, metrics_store):
        metrics_store.record(_metric(success=False, error_message="HTTP 401"))
        (record,) = metrics_store.list_metrics(REPO)
        assert record.success is False
        assert record.error_message == "HTTP 401"

    def test_filter_by_pr_and_order(self, metrics_store):
        metrics_store.record(_metric(pr_number=2, started_at="2025-03-02T00:00:00.000000+00:00"))
        metrics_store.record(_metric(pr_number=1, started_at="2025-03-01T00:00:00.000000+00:00"))
        metrics_store.record(_metric(pr_number=2, started_at="2025-03-03T00:00:00.000000+00:00"))
        assert [r.started_at[:10] for r in metrics_store.list_metrics(REPO)] == [
            "2025-03-01",
            "2025-03-02",
            "2025-03-03",
        ]
        assert len(metrics_store.list_metrics(REPO, pr_number=2)) == 2

    def test_shares_file_with_cache(self, tmp_path):
        db = str(tmp_path / "patchwise.db")
        cache = SQLiteReviewCache(db_path=db)
        store = SQLiteMetricsStore(db_path=db)
        cache.put(REPO, "a.py", HASH, "[]")
        store.record(_metric())
        assert cache.stats(REPO).total_entries == 1
        assert len(store.list_metrics(REPO)) == 1
        cache.close()
        store.close()


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_empty(self):
        summary = summarize([])
        assert summary.total_runs == 0
        assert summary.cache_hit_ratio == 0.0
        assert summary.success_rate == 0.0

    def test_aggregates(self):
        records = [
            _metric(files_total_count=2, file_cached_count=0, latency_ms=1000, ai_call_duration_ms=800, ai_called=True),
            _metric(files_total_count=2, file_cached_count=2, latency_ms=100, ai_call_duration_ms=0),
            _metric(files_total_count=2, file_cached_count=1, latency_ms=700, ai_call_duration_ms=500, ai_called=True),
            _metric(success=False, files_total_count=2, file_cached_count=0, latency_ms=5000, ai_called=True),
        ]
        summary = summarize(records)
        assert summary.total_runs == 4
        assert summary.successful_runs == 3
        assert summary.ai_calls == 3
        assert summary.ai_calls_saved == 1
        assert summary.cache_hit_runs == 2
        assert summary.cache_hit_ratio == 50.0
        assert summary.file_cache_ratio == 37.5
        assert summary.success_rate == 75.0
        # Averages only cover successful runs.
        assert summary.average_latency_ms == 600
        assert summary.average_ai_time_ms == 433

    def test_runs_that_never_reached_the_backend_are_not_ai_calls(self):
        records = [
            # Cache unavailable or diff fetch failed before any request went out.
            _metric(success=False, files_total_count=3, file_cached_count=0, error_message="diff fetch failed"),
            # Backend was asked and rejected the request.
            _metric(success=False, files_total_count=3, file_cached_count=0, ai_called=True),
            # Nothing to review.
            _metric(files_total_count=0, file_cached_count=0),
            # Fully cached.
            _metric(files_total_count=3, file_cached_count=3),
        ]
        summary = summarize(records)
        assert summary.ai_calls == 1
        assert summary.ai_calls_saved == 1
