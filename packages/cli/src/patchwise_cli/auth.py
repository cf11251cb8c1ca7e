"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. GITHUB_TOKEN, then GH_TOKEN environment variables (CI / explicit override)
  2. `gh auth token` (GitHub CLI session, works after `gh auth login`)

In GitHub Actions the workflow injects GITHUB_TOKEN, so the fallback only
matters for local runs.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises; callers check for None and emit a UsageError when a token
    is actually needed.
    """
    for env_var in _TOKEN_ENV_VARS:
        token = os.environ.get(env_var)
        if token:
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or hung; there is no other source to try.
        return None

    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None
