"""SQLite-backed review cache and metrics store.

SQLite ships with Python and handles the access pattern here well: point
lookups on a unique key and small per-repository scans. Several CI jobs can
share one database file as a persistent cache.

Schema:
  review_cache    : one row per (repository, file path, content hash); the
                    unique index makes put() an idempotent upsert, so two
                    passes writing the same key converge without locking.
  review_metrics  : one row per review pass.

Timestamps are ISO-8601 UTC strings with fixed microsecond precision, so
string comparison orders them correctly.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from patchwise_store.base import BaseMetricsStore, BaseReviewCache
from patchwise_store.models import CacheStats, MetricRecord
from patchwise_store.models import utc_now_iso as _now

logger = logging.getLogger(__name__)

_CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS review_cache (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id   TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    content_hash    TEXT NOT NULL,
    review          TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    UNIQUE (repository_id, file_path, content_hash)
);
CREATE INDEX IF NOT EXISTS idx_review_cache_created ON review_cache (repository_id, created_at);
"""

_METRICS_SCHEMA = """
CREATE TABLE IF NOT EXISTS review_metrics (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id        TEXT NOT NULL,
    pr_number            INTEGER NOT NULL,
    started_at           TEXT NOT NULL,
    success              INTEGER NOT NULL,
    error_message        TEXT,
    latency_ms           INTEGER DEFAULT 0,
    ai_call_duration_ms  INTEGER DEFAULT 0,
    posting_duration_ms  INTEGER DEFAULT 0,
    line_comment_count   INTEGER DEFAULT 0,
    files_total_count    INTEGER DEFAULT 0,
    file_cached_count    INTEGER DEFAULT 0,
    ai_called            INTEGER DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_review_metrics_repo ON review_metrics (repository_id, pr_number);
"""


def _connect(db_path: str, schema: str) -> sqlite3.Connection | None:
    try:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        conn.executescript(schema)
        conn.commit()
        return conn
    except sqlite3.Error as e:
        logger.warning("Could not open SQLite database %s: %s", db_path, e)
        return None


def _add_ai_called_column(conn: sqlite3.Connection) -> None:
    """Upgrade a metrics table created before runs recorded ai_called.

    Older rows get the value implied by their counts: a run that sent any file
    to the backend made a call.
    """
    try:
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(review_metrics)")}
        if "ai_called" in columns:
            return
        conn.execute("ALTER TABLE review_metrics ADD COLUMN ai_called INTEGER DEFAULT 0")
        conn.execute("UPDATE review_metrics SET ai_called = (file_cached_count < files_total_count)")
        conn.commit()
    except sqlite3.Error as e:
        logger.warning("Could not upgrade review_metrics table: %s", e)


class SQLiteReviewCache(BaseReviewCache):
    """Review cache in a local SQLite file (default `.patchwise.db`).

    If the database cannot be opened the cache runs in unavailable mode:
    every lookup misses and every write is skipped.
    """

    def __init__(self, db_path: str = ".patchwise.db"):
        self._db_path = db_path
        self._conn = _connect(db_path, _CACHE_SCHEMA)

    @property
    def available(self) -> bool:
        return self._conn is not None

    def get(self, repository_id: str, file_path: str, content_hash: str) -> str | None:
        if self._conn is None:
            return None
        try:
            row = self._conn.execute(
                "SELECT review FROM review_cache WHERE repository_id=? AND file_path=? AND content_hash=?",
                (repository_id, file_path, content_hash),
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Cache lookup failed for %s, treating as a miss: %s", file_path, e)
            return None

        if row is None:
            logger.debug("Cache miss: %s (hash: %s...)", file_path, content_hash[:8])
            return None
        logger.debug("Cache hit: %s (hash: %s...)", file_path, content_hash[:8])
        return row["review"]

    def put(self, repository_id: str, file_path: str, content_hash: str, review: str) -> bool:
        if self._conn is None:
            return False
        try:
            self._conn.execute(
                """
                INSERT INTO review_cache (repository_id, file_path, content_hash, review, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (repository_id, file_path, content_hash) DO UPDATE SET review = excluded.review
                """,
                (repository_id, file_path, content_hash, review, _now()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            logger.warning("Could not cache review for %s: %s", file_path, e)
            return False
        logger.debug("Cached review: %s (hash: %s...)", file_path, content_hash[:8])
        return True

    def evict_older_than(self, repository_id: str, max_age: timedelta) -> int:
        if self._conn is None:
            return 0
        cutoff = (datetime.fromisoformat(_now()) - max_age).isoformat(timespec="microseconds")
        try:
            cursor = self._conn.execute(
                "DELETE FROM review_cache WHERE repository_id=? AND created_at < ?",
                (repository_id, cutoff),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            logger.warning("Cache eviction failed for %s: %s", repository_id, e)
            return 0
        logger.info("Evicted %d cache entries older than %s for %s", cursor.rowcount, max_age, repository_id)
        return cursor.rowcount

    def stats(self, repository_id: str) -> CacheStats:
        if self._conn is None:
            return CacheStats()
        try:
            row = self._conn.execute(
                "SELECT COUNT(*) AS total, MIN(created_at) AS oldest, MAX(created_at) AS newest "
                "FROM review_cache WHERE repository_id=?",
                (repository_id,),
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Could not read cache stats for %s: %s", repository_id, e)
            return CacheStats()
        return CacheStats(total_entries=row["total"], oldest_entry=row["oldest"], newest_entry=row["newest"])

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class SQLiteMetricsStore(BaseMetricsStore):
    """Per-pass metrics in a local SQLite file (may share the cache's file)."""

    def __init__(self, db_path: str = ".patchwise.db"):
        self._conn = _connect(db_path, _METRICS_SCHEMA)
        if self._conn is not None:
            _add_ai_called_column(self._conn)

    def record(self, record: MetricRecord) -> None:
        if self._conn is None:
            return
        try:
            self._conn.execute(
                """
                INSERT INTO review_metrics
                  (repository_id, pr_number, started_at, success, error_message, latency_ms,
                   ai_call_duration_ms, posting_duration_ms, line_comment_count,
                   files_total_count, file_cached_count, ai_called)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.repository_id,
                    record.pr_number,
                    record.started_at,
                    int(record.success),
                    record.error_message,
                    record.latency_ms,
                    record.ai_call_duration_ms,
                    record.posting_duration_ms,
                    record.line_comment_count,
                    record.files_total_count,
                    record.file_cached_count,
                    int(record.ai_called),
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            # Never fail a review because bookkeeping failed.
            logger.warning("Could not record metrics for %s#%d: %s", record.repository_id, record.pr_number, e)

    def list_metrics(self, repository_id: str, pr_number: int | None = None) -> list[MetricRecord]:
        if self._conn is None:
            return []
        try:
            if pr_number is not None:
                rows = self._conn.execute(
                    "SELECT * FROM review_metrics WHERE repository_id=? AND pr_number=? ORDER BY started_at, id",
                    (repository_id, pr_number),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM review_metrics WHERE repository_id=? ORDER BY started_at, id",
                    (repository_id,),
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning("Could not read metrics for %s: %s", repository_id, e)
            return []
        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MetricRecord:
        return MetricRecord(
            repository_id=row["repository_id"],
            pr_number=row["pr_number"],
            started_at=row["started_at"],
            success=bool(row["success"]),
            error_message=row["error_message"],
            latency_ms=row["latency_ms"] or 0,
            ai_call_duration_ms=row["ai_call_duration_ms"] or 0,
            posting_duration_ms=row["posting_duration_ms"] or 0,
            line_comment_count=row["line_comment_count"] or 0,
            files_total_count=row["files_total_count"] or 0,
            file_cached_count=row["file_cached_count"] or 0,
            ai_called=bool(row["ai_called"]),
        )
