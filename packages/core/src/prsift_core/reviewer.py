"""Core PR review orchestration.

run_review() drives one invocation through a fixed sequence of phases:

    RESOLVING_PR → GATHERING_CONTEXT → ANALYZING → REPORTING
        → [APPROVAL_PENDING → POSTING] → DONE

Any phase may finish early by jumping to DONE; no phase is ever skipped or
re-entered otherwise. The bracketed phases only run when the operator asked
to post and the model reported at least one finding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import click
from github import GithubException
from rich.console import Console
from rich.markup import escape

from prsift_core.approval import approve, severity_tag
from prsift_core.config import load_guidelines
from prsift_core.context import get_changed_files, get_changed_files_summary, get_diff, resolve_pr, truncate_diff
from prsift_core.delivery import DeliveryEngine, DeliveryReport
from prsift_core.errors import ConfigError, DeliveryError, RecordError
from prsift_core.gh.pull_request import get_pull
from prsift_core.models import Finding, PullRequestRef, Review, build_summary, sort_findings
from prsift_core.providers.anthropic import AnthropicReviewer
from prsift_core.providers.openai import OpenAIReviewer

console = Console()
logger = logging.getLogger(__name__)


class Phase(str, Enum):
    RESOLVING_PR = "resolving_pr"
    GATHERING_CONTEXT = "gathering_context"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    APPROVAL_PENDING = "approval_pending"
    POSTING = "posting"
    DONE = "done"


_PHASE_ORDER = list(Phase)


class Outcome(str, Enum):
    NOTHING_TO_REVIEW = "nothing_to_review"
    NO_ISSUES = "no_issues"
    REPORTED = "reported"
    NOTHING_APPROVED = "nothing_approved"
    CANCELLED = "cancelled"
    POSTED = "posted"


@dataclass
class ReviewResult:
    """Terminal state of one invocation. Every outcome here is a success."""

    outcome: Outcome
    pr: PullRequestRef | None = None
    review: Review | None = None
    record_path: str | None = None
    delivery: DeliveryReport | None = None


class ReviewStateMachine:
    """Tracks the current phase and refuses out-of-order transitions."""

    def __init__(self):
        self.phase = Phase.RESOLVING_PR
        self.history = [self.phase]

    def advance(self, target: Phase) -> None:
        if self.phase is Phase.DONE:
            raise RuntimeError(f"Review already finished; cannot enter {target.value}")
        if target is not Phase.DONE and _PHASE_ORDER.index(target) != _PHASE_ORDER.index(self.phase) + 1:
            raise RuntimeError(f"Illegal phase transition {self.phase.value} → {target.value}")
        logger.debug("Phase %s → %s", self.phase.value, target.value)
        self.phase = target
        self.history.append(target)

    def finish(self, outcome: Outcome, **kwargs) -> ReviewResult:
        self.advance(Phase.DONE)
        return ReviewResult(outcome=outcome, **kwargs)


def get_reviewer(config: dict):
    model = config["model"]
    if model == "anthropic":
        return AnthropicReviewer(api_key=config["anthropic_api_key"], model=config.get("model_name"))
    if model == "openai":
        return OpenAIReviewer(api_key=config["openai_api_key"], model=config.get("model_name"))
    raise ConfigError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def print_findings(findings: list[Finding]) -> None:
    """Print findings with their decision mark, in the order given."""
    console.print()
    for f in findings:
        status = {True: " [green]✓[/green]", False: " [dim]✗[/dim]"}.get(f.approved, "")
        title = escape(f.title)
        console.print(f"  [bold]#{f.id}[/bold] {severity_tag(f.severity)} {title} [dim]({f.confidence}/100)[/dim]{status}")
        console.print(f"     [dim]{escape(f.location)}[/dim]")
        console.print(f"     [dim]Why: {escape(f.why)}[/dim]")
        console.print()


def _save_record(persist: Callable[[Review], str], review: Review) -> str:
    try:
        return persist(review)
    except OSError as e:
        raise RecordError(f"Could not write review record for PR #{review.pr.number}: {e}") from e


def _resave_after_failure(persist: Callable[[Review], str], review: Review) -> None:
    """Rewrite the record while a delivery error is already propagating.

    A failure here is reported but never replaces the delivery error.
    """
    try:
        _save_record(persist, review)
    except RecordError as e:
        logger.warning("%s", e)
        console.print(f"[yellow]{escape(str(e))}[/yellow]")


def run_review(
    repo_obj,
    config: dict,
    reviewer=None,
    pr_ref: str | None = None,
    post: bool = False,
    persist: Callable[[Review], str] | None = None,
    engine: DeliveryEngine | None = None,
) -> ReviewResult:
    """Run the full review workflow for one pull request.

    ``persist`` writes the review record and returns its path. It is called
    before any call that changes the pull request, and again afterwards so
    the record reflects what was actually posted. An OSError from it
    surfaces as RecordError.

    Fatal conditions raise a PrsiftError subclass; every other terminal
    state is returned as a ReviewResult.
    """
    machine = ReviewStateMachine()

    # Phase 0: Resolve PR
    console.print("[bold]Phase 0: Resolving PR...[/bold]")
    pr = resolve_pr(repo_obj, pr_ref, limit=config.get("pr_list_limit", 15))
    console.print(f"[green]Reviewing PR #{pr.number}[/green]\n")

    # Phase 1: Gather context
    machine.advance(Phase.GATHERING_CONTEXT)
    console.print("[bold]Phase 1: Gathering context...[/bold]")
    guidelines = load_guidelines(config)
    files = get_changed_files(repo_obj, pr)
    diff = get_diff(repo_obj, pr, files=files)
    if not diff.strip():
        console.print("[yellow]No changes found in PR diff.[/yellow]")
        return machine.finish(Outcome.NOTHING_TO_REVIEW, pr=pr)
    changed_files = get_changed_files_summary(repo_obj, pr, files=files)

    console.print(f"  Diff: {len(diff.splitlines())} lines")
    console.print(f"  Guidelines: {len(guidelines)} chars\n")
    truncated = truncate_diff(diff, config.get("max_diff_chars", 100_000))

    # Phase 2: AI review
    machine.advance(Phase.ANALYZING)
    console.print("[bold]Phase 2: Analyzing with AI...[/bold]")
    if reviewer is None:
        reviewer = get_reviewer(config)
    logger.debug("Using %s reviewer", getattr(reviewer, "name", type(reviewer).__name__))
    findings = reviewer.review(guidelines=guidelines, diff=truncated, changed_files=changed_files)

    if not findings:
        console.print("[green]\nNo issues found. Looks good![/green]")
        return machine.finish(Outcome.NO_ISSUES, pr=pr)

    # Reporting
    machine.advance(Phase.REPORTING)
    review = Review(pr=pr, findings=sort_findings(findings))
    review.summary = build_summary(review.findings)
    console.print(f"[bold]\n{review.summary}:[/bold]")
    print_findings(review.findings)

    if not post:
        console.print("[dim]Add --post to review and post comments to GitHub.[/dim]")
        return machine.finish(Outcome.REPORTED, pr=pr, review=review)

    # Phase 3: Interactive approval
    machine.advance(Phase.APPROVAL_PENDING)
    console.print("[bold]Phase 3: Approve findings...[/bold]\n")
    approve(review.findings)
    approved = review.approved_findings

    if not approved:
        console.print("[yellow]\nNo findings approved. Nothing to post.[/yellow]")
        return machine.finish(Outcome.NOTHING_APPROVED, pr=pr, review=review)

    # Phase 4: Post
    machine.advance(Phase.POSTING)
    console.print(f"[bold]\n{len(approved)} comment(s) approved:[/bold]")
    print_findings(approved)

    if not click.confirm(f"Post {len(approved)} comment(s) to PR #{pr.number}?", default=True):
        console.print("[yellow]Cancelled.[/yellow]")
        return machine.finish(Outcome.CANCELLED, pr=pr, review=review)

    if not pr.repository:
        raise ConfigError("Cannot determine GitHub repo. Set github_repo in .prsift.yml or GITHUB_REPO.")
    if persist is None:
        raise ValueError("A persist callback is required to post a review.")

    # The record must exist on disk before GitHub is touched, so a crash
    # mid-delivery still leaves something to reconcile by hand.
    record_path = _save_record(persist, review)
    console.print(f"[dim]\nReview saved to {record_path}[/dim]")

    console.print("[bold]\nPosting to GitHub...[/bold]")
    engine = engine or DeliveryEngine()
    try:
        try:
            pull = get_pull(repo_obj, pr.number)
        except GithubException as e:
            raise DeliveryError(f"Could not load PR #{pr.number} for posting: {e}") from e
        report = engine.deliver(pull, review, approved)
    except BaseException:
        _resave_after_failure(persist, review)
        raise
    _save_record(persist, review)

    console.print("[green]\nDone.[/green]")
    return machine.finish(Outcome.POSTED, pr=pr, review=review, record_path=record_path, delivery=report)
