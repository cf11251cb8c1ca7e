"""Exceptions raised across the patchwise core.

Cache and metrics failures are deliberately absent here: those layers log and
degrade instead of raising. Only conditions that must end a review pass (or be
rejected at the event boundary) get an exception type.
"""

from __future__ import annotations


class PatchwiseError(Exception):
    """Base class for all patchwise errors."""


class ReviewBackendError(PatchwiseError):
    """The AI backend could not produce a usable review.

    ``retryable`` records whether the last failure was transient (rate limit,
    5xx, network): True means the retry budget ran out, False means the
    backend refused the request outright or answered with nothing usable.
    """

    def __init__(self, message: str, *, retryable: bool = False, status_code: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class InvalidEventError(PatchwiseError):
    """A webhook payload is missing a field the review pass needs."""
