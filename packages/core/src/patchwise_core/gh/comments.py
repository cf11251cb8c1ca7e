"""Post review results to a pull request's conversation."""

from __future__ import annotations

import logging

import requests
from github import GithubException

from patchwise_core.models import LineComment

logger = logging.getLogger(__name__)

# PyGithub raises GithubException for API errors and lets requests transport
# errors (connection reset, timeout) through unchanged.
_POST_ERRORS = (GithubException, requests.RequestException)

SUMMARY_HEADING = "### AI Code Review Complete"


def format_comment_body(comment: LineComment) -> str:
    return f"**{comment.file}** (line {comment.line})\n\n{comment.comment}"


def format_summary(posted: int) -> str:
    return f"{SUMMARY_HEADING}\n\nFound and commented on {posted} line(s) that may need attention."


class GitHubCommentPoster:
    """Posts each comment as its own PR conversation comment.

    ``destination`` is a PyGithub PullRequest. A comment that fails to post is
    logged and skipped; the rest still go out. publish() never raises for
    GitHub API or transport errors.
    """

    def publish(self, destination, comments: list[LineComment], fallback_text: str | None = None) -> int:
        posted = 0
        for comment in comments:
            try:
                destination.create_issue_comment(format_comment_body(comment))
                posted += 1
                logger.debug("Posted comment for %s:%d", comment.file, comment.line)
            except _POST_ERRORS as e:
                logger.warning("Failed to post comment for %s:%d: %s", comment.file, comment.line, e)

        line_posted = posted
        if fallback_text:
            try:
                destination.create_issue_comment(fallback_text)
                posted += 1
            except _POST_ERRORS as e:
                logger.warning("Failed to post free-text review: %s", e)

        if line_posted:
            try:
                destination.create_issue_comment(format_summary(line_posted))
            except _POST_ERRORS as e:
                logger.warning("Failed to post review summary: %s", e)

        return posted
