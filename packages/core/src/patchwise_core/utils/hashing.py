"""Content fingerprints used as review-cache keys."""

from __future__ import annotations

import hashlib


def fingerprint(text: str) -> str:
    """Return the SHA-256 hex digest of ``text`` encoded as UTF-8.

    Any byte difference, whitespace included, gives a different fingerprint.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def short_hash(content_hash: str, length: int = 8) -> str:
    return content_hash[:length]
