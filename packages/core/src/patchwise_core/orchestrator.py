"""Review pass orchestration with partial recompute against the review cache.

One pass over one pull-request event:

  1. segment the diff into per-file fragments
  2. fingerprint each fragment and look it up in the review cache
  3. send every cache miss to the AI backend in one batch, then write the
     per-file results back to the cache
  4. hand the merged comments to the poster
  5. report ReviewRunMetrics to the metrics sink

Each file's content reaches the AI backend at most once: a fragment whose
(repository, path, fingerprint) triple is cached is never sent again, and all
misses share a single request.

The reviewer, cache, poster and metrics sink are injected. The cache is
advisory: the stores shipped in patchwise_store never raise, so a broken cache
only turns hits into misses and write-backs into no-ops.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from patchwise_core.diff import DiffFragment, join_fragments, normalize_path, split_diff
from patchwise_core.errors import PatchwiseError
from patchwise_core.models import LineComment, ReviewOutcome, ReviewRequest, ReviewRunMetrics
from patchwise_core.utils.code import should_review
from patchwise_core.utils.hashing import fingerprint, short_hash

if TYPE_CHECKING:
    from patchwise_core.providers.base import BaseReviewer
    from patchwise_store.base import BaseReviewCache

logger = logging.getLogger(__name__)


@dataclass
class PendingFile:
    """A fragment with no cached review, waiting for the batch call."""

    fragment: DiffFragment
    content_hash: str

    @property
    def path(self) -> str:
        return self.fragment.path


@dataclass
class Partition:
    """Fragments split by cache status, both sides in diff order."""

    cached: dict[str, list[LineComment]] = field(default_factory=dict)
    pending: list[PendingFile] = field(default_factory=list)

    @property
    def cached_count(self) -> int:
        return len(self.cached)


def encode_review(comments: list[LineComment]) -> str:
    return json.dumps([c.to_dict() for c in comments])


def decode_review(raw: str) -> list[LineComment] | None:
    """Decode a cached payload; None if it is not a well-formed comment list."""
    try:
        items = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return None
    if not isinstance(items, list):
        return None
    comments = []
    for item in items:
        if not isinstance(item, dict):
            return None
        try:
            comments.append(LineComment.from_dict(item))
        except ValueError:
            return None
    return comments


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ReviewOrchestrator:
    """Runs review passes against an injected reviewer, cache and collaborators.

    ``poster`` needs publish(destination, comments, fallback_text) -> int and
    ``metrics_sink`` needs record(metrics: ReviewRunMetrics); either may be None.
    """

    def __init__(
        self,
        reviewer: BaseReviewer,
        cache: BaseReviewCache,
        poster=None,
        metrics_sink=None,
        exclude: list[str] | tuple[str, ...] = (),
    ):
        self.reviewer = reviewer
        self.cache = cache
        self.poster = poster
        self.metrics_sink = metrics_sink
        self.exclude = tuple(exclude)

    # ------------------------------------------------------------------ #
    # Pass steps                                                           #
    # ------------------------------------------------------------------ #

    def select_fragments(self, fragments: list[DiffFragment]) -> list[DiffFragment]:
        """Drop excluded and non-code files; they take no part in the pass."""
        selected = []
        for fragment in fragments:
            if should_review(fragment.path, self.exclude):
                selected.append(fragment)
            else:
                logger.debug("Skipping excluded file %s", fragment.path)
        return selected

    def partition(self, repository_id: str, fragments: list[DiffFragment]) -> Partition:
        """Split fragments into cache hits (with their comments) and misses."""
        result = Partition()
        for fragment in fragments:
            content_hash = fingerprint(fragment.raw_text)
            raw = self.cache.get(repository_id, fragment.path, content_hash)
            if raw is not None:
                comments = decode_review(raw)
                if comments is not None:
                    result.cached[fragment.path] = comments
                    continue
                logger.warning(
                    "Ignoring unreadable cached review for %s (hash: %s...)",
                    fragment.path,
                    short_hash(content_hash),
                )
            result.pending.append(PendingFile(fragment=fragment, content_hash=content_hash))
        return result

    def attribute(
        self, comments: list[LineComment], pending: list[PendingFile]
    ) -> tuple[dict[str, list[LineComment]], list[LineComment]]:
        """Assign fresh comments to the pending files they talk about.

        Returns (comments per pending path, orphans). Every pending path gets
        an entry, empty when the backend had nothing to say about it. A comment
        whose ``file`` only matches after normalisation is re-stamped with the
        fragment's path so cached and fresh comments look the same.
        """
        by_path: dict[str, list[LineComment]] = {p.path: [] for p in pending}
        normalized = {normalize_path(path): path for path in by_path}
        orphans: list[LineComment] = []

        for comment in comments:
            target = _match_path(comment.file, by_path, normalized)
            if target is None:
                orphans.append(comment)
                continue
            by_path[target].append(comment if comment.file == target else replace(comment, file=target))

        if orphans:
            logger.warning(
                "%d comment(s) name files outside the reviewed batch and will not be cached: %s",
                len(orphans),
                ", ".join(sorted({c.file for c in orphans})),
            )
        return by_path, orphans

    def write_back(self, repository_id: str, pending: list[PendingFile], by_path: dict[str, list[LineComment]]) -> int:
        """Store one cache entry per pending file; return how many were stored."""
        stored = 0
        for item in pending:
            if self.cache.put(repository_id, item.path, item.content_hash, encode_review(by_path.get(item.path, []))):
                stored += 1
            else:
                logger.debug("Review for %s was not cached", item.path)
        return stored

    @staticmethod
    def merge(
        fragments: list[DiffFragment],
        cached: dict[str, list[LineComment]],
        fresh: dict[str, list[LineComment]],
        orphans: list[LineComment],
    ) -> list[LineComment]:
        """Order comments by file in diff order, orphans last.

        Within a file, comments keep the order the backend produced them in,
        which is also the order they were cached in, so replaying a pass from
        a warm cache yields the same list.
        """
        merged: list[LineComment] = []
        for fragment in fragments:
            merged.extend(cached.get(fragment.path) or fresh.get(fragment.path) or [])
        merged.extend(orphans)
        return merged

    # ------------------------------------------------------------------ #
    # Full pass                                                            #
    # ------------------------------------------------------------------ #

    def run(self, request: ReviewRequest) -> ReviewRunMetrics:
        """Run one pass; failures are reported in the metrics, never raised."""
        metrics = ReviewRunMetrics(repository_id=request.repository.repository_id, pr_number=request.pr_number)
        start = time.monotonic()
        try:
            self._run_pass(request, metrics)
            metrics.success = True
        except PatchwiseError as e:
            metrics.error_message = str(e)
            logger.error("Review of %s#%d failed: %s", metrics.repository_id, metrics.pr_number, e)
        except Exception as e:
            metrics.error_message = str(e) or e.__class__.__name__
            logger.exception("Review of %s#%d failed unexpectedly", metrics.repository_id, metrics.pr_number)
        metrics.latency_ms = _elapsed_ms(start)
        self._record(metrics)
        return metrics

    def _run_pass(self, request: ReviewRequest, metrics: ReviewRunMetrics) -> None:
        repository = request.repository
        outcome = ReviewOutcome()
        metrics.outcome = outcome

        if not repository.enabled:
            logger.info("Reviewer disabled for %s, skipping", repository.repository_id)
            return

        fragments = self.select_fragments(split_diff(request.diff_text))
        metrics.files_total_count = len(fragments)
        if not fragments:
            logger.info("No reviewable files in the diff for %s#%d", repository.repository_id, request.pr_number)
            return

        partition = self.partition(repository.repository_id, fragments)
        metrics.file_cached_count = partition.cached_count
        outcome.cached_files = list(partition.cached)
        logger.info("Cache status: %d/%d files cached", partition.cached_count, len(fragments))

        fresh: dict[str, list[LineComment]] = {}
        if partition.pending:
            outcome.reviewed_files = [p.path for p in partition.pending]
            metrics.ai_called = True
            ai_start = time.monotonic()
            batch = self.reviewer.review_batch(
                join_fragments([p.fragment for p in partition.pending]),
                repository.custom_prompt,
            )
            metrics.ai_call_duration_ms = _elapsed_ms(ai_start)

            if batch.is_fallback:
                outcome.fallback_text = batch.fallback_text
                logger.warning(
                    "Free-text review received; %d file(s) will not be cached",
                    len(partition.pending),
                )
            else:
                fresh, outcome.orphaned_comments = self.attribute(batch.comments, partition.pending)
                self.write_back(repository.repository_id, partition.pending, fresh)
                logger.info(
                    "AI review returned %d comment(s) for %d file(s) in %dms",
                    len(batch.comments),
                    len(partition.pending),
                    metrics.ai_call_duration_ms,
                )
        else:
            logger.info("All files cached, no AI call needed")

        outcome.comments = self.merge(fragments, partition.cached, fresh, outcome.orphaned_comments)
        metrics.line_comment_count = self._publish(request, outcome, metrics)

    def _publish(self, request: ReviewRequest, outcome: ReviewOutcome, metrics: ReviewRunMetrics) -> int:
        if self.poster is None:
            return len(outcome.comments) + (1 if outcome.fallback_text else 0)
        post_start = time.monotonic()
        posted = self.poster.publish(request.destination, outcome.comments, outcome.fallback_text)
        metrics.posting_duration_ms = _elapsed_ms(post_start)
        return posted

    def _record(self, metrics: ReviewRunMetrics) -> None:
        if self.metrics_sink is None:
            return
        try:
            self.metrics_sink.record(metrics)
        except Exception as e:
            # Metrics are bookkeeping; the review itself already happened.
            logger.warning("Could not record review metrics (%s): %s", type(e).__name__, e)


def _match_path(file: str, by_path: dict, normalized: dict[str, str]) -> str | None:
    if file in by_path:
        return file
    norm = normalize_path(file)
    if norm in normalized:
        return normalized[norm]
    # Backends sometimes shorten paths ("auth.py" for "src/auth.py") or add a
    # leading directory; accept a suffix match only when it is unambiguous.
    candidates = [
        path for key, path in normalized.items() if norm and (key.endswith("/" + norm) or norm.endswith("/" + key))
    ]
    if len(candidates) == 1:
        return candidates[0]
    return None
