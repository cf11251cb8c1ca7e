"""Webhook boundary: signature check and payload validation.

The review pass never looks at raw webhook JSON. Fields are checked here once
and handed on as a PullRequestEvent; anything missing raises InvalidEventError
before a pass starts.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from patchwise_core.errors import InvalidEventError

REVIEWABLE_ACTIONS = ("opened", "synchronize", "reopened")


@dataclass(frozen=True)
class PullRequestEvent:
    action: str
    number: int
    repository_id: str  # "owner/name"
    github_repo_id: int
    title: str
    head_sha: str
    draft: bool
    diff_url: str
    comments_url: str


def verify_signature(secret: str | None, body: bytes, signature_header: str | None) -> bool:
    """Check GitHub's ``X-Hub-Signature-256`` header against the raw body."""
    if not secret or not signature_header:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={digest}", signature_header)


def _require(obj: dict, key: str, kind: type, where: str):
    value = obj.get(key)
    # bool is an int subclass; `"number": true` is not a PR number.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise InvalidEventError(f"pull_request event is missing {where}{key} ({kind.__name__})")
    return value


def parse_pull_request_event(payload) -> PullRequestEvent:
    if not isinstance(payload, dict):
        raise InvalidEventError("pull_request event payload must be a JSON object")

    action = _require(payload, "action", str, "")
    pr = _require(payload, "pull_request", dict, "")
    repo = _require(payload, "repository", dict, "")

    return PullRequestEvent(
        action=action,
        number=_require(pr, "number", int, "pull_request."),
        repository_id=_require(repo, "full_name", str, "repository."),
        github_repo_id=_require(repo, "id", int, "repository."),
        title=pr.get("title") or "",
        head_sha=(pr.get("head") or {}).get("sha") or "",
        draft=bool(pr.get("draft", False)),
        diff_url=_require(pr, "diff_url", str, "pull_request."),
        comments_url=_require(pr, "comments_url", str, "pull_request."),
    )


def should_review(event: PullRequestEvent, review_drafts: bool = False) -> bool:
    if event.action not in REVIEWABLE_ACTIONS:
        return False
    return review_drafts or not event.draft
