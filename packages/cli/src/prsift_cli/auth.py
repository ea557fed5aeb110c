"""GitHub token resolution.

Sources, first hit wins:
  1. GITHUB_TOKEN, then GH_TOKEN (the variable the gh CLI itself honours)
  2. the session stored by `gh auth login`, read with `gh auth token`
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")

_GH_TIMEOUT_SECONDS = 5


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable: %s", e)
        return None

    if result.returncode != 0:
        logger.debug("gh auth token exited with %d", result.returncode)
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one.

    Does not raise: a missing token is reported by the review command as a
    configuration error before any network call.
    """
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            logger.debug("GitHub token taken from %s", name)
            return token

    token = _token_from_gh_cli()
    if token:
        logger.debug("GitHub token taken from the gh CLI session")
    return token
