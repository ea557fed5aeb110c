"""Thin GitHub host adapter built on PyGithub and the local git checkout.

Everything here is read-only except create_inline_review and create_comment,
the only two calls that change what other people see on the pull request.
Both translate GithubException into prsift's own HostError hierarchy so the
delivery engine can branch on a classified error rather than on transport
details.
"""

from __future__ import annotations

import logging
import subprocess
from itertools import islice

from github import Github, GithubException

from prsift_core.errors import AnchorNotInDiffError, HostError

logger = logging.getLogger(__name__)

# Fragments GitHub uses in the `errors` list of a 422 when an inline comment
# points at a path/line that is not part of the diff.
_ANCHOR_ERROR_MARKERS = (
    "pull_request_review_thread",
    "line could not be resolved",
    "path could not be resolved",
    "must be part of the diff",
)
_ANCHOR_RESOURCES = {"PullRequestReviewComment", "PullRequestReviewThread"}


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, limit: int = 15, state: str = "open") -> list:
    """Return at most ``limit`` pull requests without paging past what is needed."""
    return list(islice(repo.get_pulls(state=state), limit))


def get_comparison_files(repo, base: str, head: str):
    """Return files changed between base and head using GitHub's compare API."""
    comparison = repo.compare(base, head)
    return comparison.files


def current_branch() -> str | None:
    """Return the checked-out branch name, or None when detached or outside git."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    branch = result.stdout.strip()
    return branch if branch and branch != "HEAD" else None


def detect_current_pr(repo):
    """Return the open pull request whose head is the current branch, or None."""
    branch = current_branch()
    if not branch:
        return None
    try:
        pulls = repo.get_pulls(state="open", head=f"{repo.owner.login}:{branch}")
        for pull in pulls:
            return pull
    except GithubException as e:
        logger.debug("PR detection for branch %s failed: %s", branch, e)
    return None


def detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode != 0:
            return None
        url = result.stdout.strip()
        # Handle both HTTPS and SSH remotes:
        # https://github.com/owner/repo.git  →  owner/repo
        # git@github.com:owner/repo.git      →  owner/repo
        if "github.com" not in url:
            return None
        slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
        return slug if "/" in slug else None
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None


def is_anchor_error(exc: GithubException) -> bool:
    """True when a failed review submission was rejected for its comment anchors."""
    if exc.status != 422:
        return False
    data = exc.data if isinstance(exc.data, dict) else {}
    for err in data.get("errors") or []:
        if isinstance(err, dict):
            if err.get("resource") in _ANCHOR_RESOURCES:
                return True
            text = " ".join(str(v) for v in err.values())
        else:
            text = str(err)
        if any(marker in text.lower() for marker in _ANCHOR_ERROR_MARKERS):
            return True
    return False


def create_inline_review(pull, body: str, comments: list[dict]) -> None:
    """Submit one COMMENT review carrying all inline comments."""
    try:
        pull.create_review(body=body, event="COMMENT", comments=comments)
    except GithubException as e:
        if is_anchor_error(e):
            raise AnchorNotInDiffError(f"Inline comments rejected by GitHub: {e}") from e
        raise HostError(f"Could not create review on PR #{pull.number}: {e}") from e


def create_comment(pull, body: str) -> None:
    """Post a flat, top-level comment on the pull request conversation."""
    try:
        pull.create_issue_comment(body)
    except GithubException as e:
        raise HostError(f"Could not comment on PR #{pull.number}: {e}") from e
