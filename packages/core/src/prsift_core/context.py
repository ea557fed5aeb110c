"""Repository context: which PR is under review, and what changed in it.

The diff is rebuilt from GitHub's compare API between the PR's base branch
and its head commit, so the text the model sees always matches the snapshot
named in the PullRequestRef rather than whatever happens to be checked out.
"""

from __future__ import annotations

import logging
import re

import click
from github import GithubException
from rich.console import Console
from rich.markup import escape

from prsift_core.errors import HostError, ResolutionError
from prsift_core.gh.pull_request import detect_current_pr, get_comparison_files, get_pull, get_pull_requests
from prsift_core.models import PullRequestRef

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_MAX_DIFF_CHARS = 100_000
TRUNCATION_MARKER = "\n\n... (diff truncated due to size)"

# Widest +/- histogram drawn in the stat summary, as in `git diff --stat`.
_STAT_BAR_WIDTH = 40

_DIGITS_RE = re.compile(r"(\d+)")


def parse_pr_number(ref: str) -> int:
    """Extract a PR number from "42", "#42" or a pull request URL."""
    match = _DIGITS_RE.search(ref or "")
    if not match or int(match.group(1)) <= 0:
        raise ResolutionError(f"Cannot parse PR number from: {ref}")
    return int(match.group(1))


def _to_ref(repo, pull) -> PullRequestRef:
    return PullRequestRef(
        number=pull.number,
        base_branch=pull.base.ref,
        head_commit=pull.head.sha,
        repository=repo.full_name,
        title=pull.title or "",
    )


def resolve_pr(repo, explicit_ref: str | None = None, limit: int = 15) -> PullRequestRef:
    """Decide which pull request to review.

    An explicit reference is looked up directly and any failure is fatal:
    the operator typed it, so retrying cannot help. Without one, the PR for
    the current branch is offered first, then a bounded list of open PRs.
    """
    if explicit_ref:
        number = parse_pr_number(explicit_ref)
        try:
            return _to_ref(repo, get_pull(repo, number))
        except GithubException as e:
            raise ResolutionError(f"PR #{number} not found in {repo.full_name}: {e}") from e

    detected = detect_current_pr(repo)
    if detected is not None:
        if click.confirm(f"Found PR #{detected.number}: {detected.title}. Review this one?", default=True):
            return _to_ref(repo, detected)
    else:
        logger.debug("No open PR found for the current branch")

    try:
        prs = get_pull_requests(repo, limit=limit)
    except GithubException as e:
        raise ResolutionError(f"Could not list open PRs in {repo.full_name}: {e}") from e
    if not prs:
        raise ResolutionError("No open PRs found.")

    console.print("\nOpen pull requests:")
    for pr in prs:
        console.print(f"  [bold]#{pr.number}[/bold]  {escape(pr.title or '')}  [dim]{escape(pr.head.ref)}[/dim]")
    choice = click.prompt(
        "\nSelect a PR to review",
        type=click.Choice([str(pr.number) for pr in prs]),
        show_choices=False,
    )
    selected = next(pr for pr in prs if str(pr.number) == choice)
    return _to_ref(repo, selected)


def get_changed_files(repo, pr: PullRequestRef) -> list:
    """Fetch the PR's changed files from the compare API, once per review."""
    try:
        return list(get_comparison_files(repo, pr.base_branch, pr.head_commit))
    except GithubException as e:
        raise HostError(f"Could not fetch diff for PR #{pr.number}: {e}") from e


def _file_diff(f) -> str:
    old = getattr(f, "previous_filename", None) or f.filename
    lines = [f"diff --git a/{old} b/{f.filename}"]
    lines.append("--- /dev/null" if f.status == "added" else f"--- a/{old}")
    lines.append("+++ /dev/null" if f.status == "removed" else f"+++ b/{f.filename}")
    if f.patch:
        lines.append(f.patch)
    return "\n".join(lines)


def get_diff(repo, pr: PullRequestRef, files: list | None = None) -> str:
    """Return the unified diff of the PR, or "" when nothing changed.

    Pass ``files`` from get_changed_files to avoid a second compare call.
    """
    if files is None:
        files = get_changed_files(repo, pr)
    if not files:
        return ""
    return "\n".join(_file_diff(f) for f in files) + "\n"


def get_changed_files_summary(repo, pr: PullRequestRef, files: list | None = None) -> str:
    """Return a `git diff --stat` style summary of the PR."""
    if files is None:
        files = get_changed_files(repo, pr)
    if not files:
        return ""

    width = max(len(f.filename) for f in files)
    biggest = max(f.additions + f.deletions for f in files) or 1
    scale = min(1.0, _STAT_BAR_WIDTH / biggest)

    lines = []
    for f in files:
        plus = round(f.additions * scale)
        minus = round(f.deletions * scale)
        lines.append(f" {f.filename.ljust(width)} | {f.additions + f.deletions:>4} {'+' * plus}{'-' * minus}")

    insertions = sum(f.additions for f in files)
    deletions = sum(f.deletions for f in files)
    lines.append(f" {len(files)} file(s) changed, {insertions} insertions(+), {deletions} deletions(-)")
    return "\n".join(lines)


def truncate_diff(diff: str, max_chars: int = DEFAULT_MAX_DIFF_CHARS) -> str:
    """Cap the diff to the model's budget, marking the cut instead of hiding it."""
    if len(diff) <= max_chars:
        return diff
    logger.debug("Truncating diff from %d to %d chars", len(diff), max_chars)
    return diff[:max_chars] + TRUNCATION_MARKER
