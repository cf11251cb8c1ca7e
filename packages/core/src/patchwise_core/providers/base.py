"""Base reviewer implementing the Template Method pattern.

All providers share the same batch review algorithm:
    review_batch() → _build_system_prompt() + _build_user_prompt()
                   → _call_with_retry() → _call_api()   ← only this differs per provider
                   → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

and may override _status_code when their SDK reports HTTP status somewhere
other than ``exc.status_code``.

Retry decisions are a pure function of classify_error(), which tags every
failure as Retryable or Fatal. Nothing else in the retry loop inspects the
exception.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from patchwise_core.errors import ReviewBackendError
from patchwise_core.models import LineComment

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override as class attributes if needed.
_MAX_ATTEMPTS = 3
_BASE_DELAY = 1.0
_MAX_TOKENS = 8192

FALLBACK_HEADING = "### AI Code Review"

_DEFAULT_PERSONA = """You are a senior software engineer providing line-by-line code review.
Focus on: potential bugs, code clarity, best practices, security issues.
Include only lines that need improvement."""


@dataclass(frozen=True)
class Retryable:
    """A transient failure: rate limiting, a 5xx, or no HTTP status at all."""

    reason: str


@dataclass(frozen=True)
class Fatal:
    """A failure that will not go away by asking again (4xx other than 429)."""

    reason: str


def classify_status(status: int | None) -> Retryable | Fatal:
    if status is None:
        return Retryable("no HTTP status (network or client-side error)")
    if status == 429 or status >= 500:
        return Retryable(f"HTTP {status}")
    return Fatal(f"HTTP {status}")


@dataclass
class BatchReview:
    """What the backend said about a batch of diff fragments.

    Exactly one of the two shapes is meaningful: structured ``comments`` (an
    empty list means "no issues"), or ``fallback_text`` when the response could
    not be read as a comment list.
    """

    comments: list[LineComment] = field(default_factory=list)
    fallback_text: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_text is not None


class BaseReviewer(ABC):
    name: str = "base"
    MODEL: str = ""
    MAX_ATTEMPTS: int = _MAX_ATTEMPTS
    BASE_DELAY: float = _BASE_DELAY
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review_batch(self, diff_text: str, custom_prompt: str | None = None) -> BatchReview:
        """Review every file in ``diff_text`` with a single backend request.

        Raises ReviewBackendError when the backend fails non-transiently, when
        transient failures outlast MAX_ATTEMPTS, or when it answers with an
        empty body.
        """
        system = self._build_system_prompt(custom_prompt)
        user = self._build_user_prompt(diff_text)
        raw = self._call_with_retry(system, user)
        return self._parse(raw)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry classifies the exception
        and decides whether to try again.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _status_code(self, exc: Exception) -> int | None:
        """Return the HTTP status carried by an SDK exception, if any."""
        status = getattr(exc, "status_code", None)
        if isinstance(status, int):
            return status
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
        return status if isinstance(status, int) else None

    def classify_error(self, exc: Exception) -> Retryable | Fatal:
        return classify_status(self._status_code(exc))

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Call _call_api up to MAX_ATTEMPTS times with exponential backoff."""
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                verdict = self.classify_error(e)
                status = self._status_code(e)
                if isinstance(verdict, Fatal):
                    logger.error("%s API rejected the request (%s): %s", self.__class__.__name__, verdict.reason, e)
                    raise ReviewBackendError(
                        f"{self.name} request failed ({verdict.reason}): {e}",
                        retryable=False,
                        status_code=status,
                    ) from e
                if attempt == self.MAX_ATTEMPTS - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_ATTEMPTS,
                        e,
                    )
                    raise ReviewBackendError(
                        f"{self.name} request failed after {self.MAX_ATTEMPTS} attempts ({verdict.reason}): {e}",
                        retryable=True,
                        status_code=status,
                    ) from e
                delay = self.BASE_DELAY * 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d, %s): %s. Retrying in %.1fs...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_ATTEMPTS,
                    verdict.reason,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise ReviewBackendError(f"{self.name}: MAX_ATTEMPTS must be at least 1")

    def _build_system_prompt(self, custom_prompt: str | None = None) -> str:
        """A repository's custom prompt replaces the default reviewer persona."""
        if custom_prompt and custom_prompt.strip():
            return custom_prompt.strip()
        return _DEFAULT_PERSONA

    def _build_user_prompt(self, diff_text: str) -> str:
        """Build the batch prompt.

        The output format lives here rather than in the system prompt so that a
        custom prompt can never drop it: comment attribution and caching depend
        on the ``file`` field.
        """
        return f"""Review the diff below. It may touch several files; each file starts with its own
`diff --git`, `---` and `+++` header lines.

## Diff
```diff
{diff_text}
```

### Output Format:
Respond with **only** a valid JSON list:

[
  {{
    "file": "<path from the file's +++ header, without the b/ prefix>",
    "line": <line number in the new file (integer)>,
    "comment": "<specific, actionable feedback in GitHub-flavored markdown>"
  }},
  ...
]

Include only lines that need improvement.
If there are no issues, return: []
Do not return any text outside the JSON block."""

    def _parse(self, raw: str | None) -> BatchReview:
        """Turn the model's raw text into a BatchReview.

        A JSON list becomes structured comments (malformed entries are dropped);
        anything else becomes a free-text fallback review. An empty response,
        or a non-empty list without a single usable entry, is an error.
        """
        if raw is None or not raw.strip():
            raise ReviewBackendError(f"{self.name} returned an empty response", retryable=False)

        # Strip only the outer ```json ... ``` fence that the model wraps
        # the response in, NOT backticks inside comment string values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())

        items = _load_json_list(cleaned)
        if items is None:
            logger.warning(
                "%s: response is not a JSON comment list, using it as a free-text review: %s",
                self.__class__.__name__,
                raw[:200],
            )
            return BatchReview(fallback_text=f"{FALLBACK_HEADING}\n\n{raw.strip()}")

        comments = []
        for item in items:
            if not isinstance(item, dict):
                logger.debug("Skipping non-object comment entry: %r", item)
                continue
            try:
                comments.append(LineComment.from_dict(item))
            except ValueError as e:
                logger.debug("Skipping malformed comment entry: %s", e)

        # Only an empty list means "no issues".
        if items and not comments:
            raise ReviewBackendError(
                f"{self.name} returned {len(items)} comment entries, none with file, line and comment",
                retryable=False,
            )
        return BatchReview(comments=comments)


def _load_json_list(text: str) -> list | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models sometimes wrap the list in prose; take the outermost brackets,
        # but only when they hold comment objects. Prose with a "[1]" footnote
        # is a free-text review, not an empty one.
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return None
        if not isinstance(data, list) or not data or not all(isinstance(item, dict) for item in data):
            return None
    return data if isinstance(data, list) else None
