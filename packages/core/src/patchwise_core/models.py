"""Data carried through a review pass.

Kept as plain dataclasses (no persistence knowledge) so that patchwise_store can
map them to its own records and patchwise_core never imports the store layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class LineComment:
    """One AI comment anchored to a line of the new file."""

    file: str
    line: int
    comment: str

    def to_dict(self) -> dict:
        return {"file": self.file, "line": self.line, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict) -> LineComment:
        """Build a comment from a decoded JSON object.

        Raises ValueError when a required field is missing or has the wrong
        type, so callers decide whether to skip the entry or fail the payload.
        """
        file = data.get("file")
        line = data.get("line")
        comment = data.get("comment")
        if isinstance(line, str) and line.strip().isdigit():
            line = int(line)
        if not isinstance(file, str) or not file:
            raise ValueError(f"comment has no file: {data!r}")
        # bool is an int subclass; a JSON `true` is not a line number.
        if isinstance(line, bool) or not isinstance(line, int) or line < 1:
            raise ValueError(f"comment has no valid line: {data!r}")
        if not isinstance(comment, str) or not comment.strip():
            raise ValueError(f"comment has no text: {data!r}")
        return cls(file=file, line=line, comment=comment)


@dataclass
class RepositoryConfig:
    """Per-repository settings looked up before a pass starts."""

    repository_id: str  # "owner/name"
    custom_prompt: str | None = None
    enabled: bool = True


@dataclass
class ReviewRequest:
    """Everything the orchestrator needs for one pass.

    ``destination`` is opaque to the core: it is handed back to the poster
    unchanged (a PyGithub PullRequest in practice).
    """

    repository: RepositoryConfig
    pr_number: int
    diff_text: str
    destination: Any = None


@dataclass
class ReviewOutcome:
    """Merged result of a pass, before posting."""

    comments: list[LineComment] = field(default_factory=list)
    fallback_text: str | None = None
    cached_files: list[str] = field(default_factory=list)
    reviewed_files: list[str] = field(default_factory=list)
    orphaned_comments: list[LineComment] = field(default_factory=list)


@dataclass
class ReviewRunMetrics:
    """Per-pass accounting handed to the metrics sink."""

    repository_id: str
    pr_number: int
    files_total_count: int = 0
    file_cached_count: int = 0
    line_comment_count: int = 0
    ai_call_duration_ms: int = 0
    posting_duration_ms: int = 0
    latency_ms: int = 0
    success: bool = False
    # Set once the AI backend has been asked, even if the request then failed.
    ai_called: bool = False
    error_message: str | None = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    # Not persisted; lets the CLI print what the pass produced.
    outcome: ReviewOutcome | None = field(default=None, repr=False, compare=False)

    @property
    def cache_hit(self) -> bool:
        return self.file_cached_count > 0
