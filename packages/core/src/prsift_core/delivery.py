"""Post approved findings to the pull request.

Two strategies, tried in order:

  InlineReviewStrategy  one COMMENT review with every finding anchored to its
                        file/line on the new side of the diff (all or nothing)
  FlatCommentStrategy   a summary comment plus one top-level comment per
                        finding, each attempted independently

The engine only falls back when the host adapter classifies the inline
failure as AnchorNotInDiffError. Any other host error is fatal straight away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rich.console import Console

from prsift_core.errors import AnchorNotInDiffError, DeliveryError, HostError
from prsift_core.gh.pull_request import create_comment, create_inline_review
from prsift_core.models import SEVERITIES, Finding, Review, count_by_severity

console = Console()
logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Formatting                                                                   #
# --------------------------------------------------------------------------- #


def format_comment_body(finding: Finding) -> str:
    return (
        f"**[{finding.severity.upper()}]** {finding.title} (Confidence: {finding.confidence}/100)\n\n"
        f"{finding.body}"
    )


def format_flat_comment_body(finding: Finding) -> str:
    # Flat comments are not anchored, so the location travels in the text.
    return format_comment_body(finding) + f"\n\n> File: `{finding.location}`"


def _table_cell(text: str) -> str:
    # A bare pipe would end the markdown table cell early.
    return text.replace("|", "\\|")


def format_summary_body(review: Review, approved: list[Finding], inline: bool = True) -> str:
    """Build the top-level review body: severity counts plus one row per finding."""
    lines = ["## Code Review Summary", "", review.summary, ""]

    if not approved:
        lines.append("No issues to report. Looks good!")
        return "\n".join(lines)

    counts = count_by_severity(approved)
    lines.append("| Severity | Count |")
    lines.append("|----------|:-----:|")
    for sev in SEVERITIES:
        lines.append(f"| {sev.capitalize()} | {counts[sev] or '—'} |")
    lines.append("")

    lines.append("| # | Severity | File | Issue | Confidence |")
    lines.append("|---|----------|------|-------|------------|")
    for f in approved:
        location, title = _table_cell(f.location), _table_cell(f.title)
        lines.append(f"| {f.id} | {f.severity.capitalize()} | `{location}` | {title} | {f.confidence}/100 |")

    lines.append("")
    lines.append("See inline comments for details." if inline else "Each finding is posted as a separate comment.")
    return "\n".join(lines)


# --------------------------------------------------------------------------- #
# Strategies                                                                   #
# --------------------------------------------------------------------------- #


@dataclass
class DeliveryReport:
    """What actually reached the pull request, item by item."""

    strategy: str  # "inline" | "flat"
    summary_posted: bool = False
    summary_error: str | None = None
    posted: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.summary_posted and not self.failed

    def describe(self) -> str:
        total = len(self.posted) + len(self.failed)
        summary = "summary posted" if self.summary_posted else "summary NOT posted"
        return f"{summary}, {len(self.posted)} of {total} comments posted"


class InlineReviewStrategy:
    name = "inline"

    def deliver(self, pull, review: Review, approved: list[Finding]) -> DeliveryReport:
        comments = [
            {"path": f.file, "line": f.line, "side": "RIGHT", "body": format_comment_body(f)} for f in approved
        ]
        create_inline_review(pull, format_summary_body(review, approved, inline=True), comments)
        console.print(f"Posted review with {len(comments)} inline comment(s) on PR #{review.pr.number}.")
        return DeliveryReport(strategy=self.name, summary_posted=True, posted=[f.id for f in approved])


class FlatCommentStrategy:
    name = "flat"

    def deliver(self, pull, review: Review, approved: list[Finding]) -> DeliveryReport:
        report = DeliveryReport(strategy=self.name)

        try:
            create_comment(pull, format_summary_body(review, approved, inline=False))
            report.summary_posted = True
            console.print("Posted summary comment.")
        except HostError as e:
            report.summary_error = str(e)
            console.print("[red]Failed to post summary comment.[/red]")
            logger.warning("Summary comment failed: %s", e)

        # Each finding is independent: one failure must not stop the rest.
        for f in approved:
            try:
                create_comment(pull, format_flat_comment_body(f))
                report.posted.append(f.id)
                console.print(f"  Posted comment #{f.id}: {f.title}")
            except HostError as e:
                report.failed[f.id] = str(e)
                console.print(f"  [red]Failed to post comment #{f.id}[/red]")
                logger.warning("Comment #%d failed: %s", f.id, e)

        return report


class DeliveryEngine:
    def __init__(self, primary=None, fallback=None):
        self.primary = primary or InlineReviewStrategy()
        self.fallback = fallback or FlatCommentStrategy()

    def deliver(self, pull, review: Review, approved: list[Finding]) -> DeliveryReport:
        """Deliver approved findings and set each finding's ``posted`` flag.

        Raises DeliveryError when the primary fails for any reason other than
        comment anchors, or when the fallback could not post every item.
        """
        try:
            report = self.primary.deliver(pull, review, approved)
        except AnchorNotInDiffError as e:
            logger.info("Falling back to flat comments: %s", e)
            console.print(
                "[yellow]Inline comments failed (lines may not be in diff). Falling back to PR comments...[/yellow]"
            )
            report = self.fallback.deliver(pull, review, approved)
        except HostError as e:
            for f in approved:
                f.posted = False
            raise DeliveryError(f"Error posting review: {e}") from e

        posted = set(report.posted)
        for f in approved:
            f.posted = f.id in posted

        if not report.complete:
            console.print(f"[yellow]Partial delivery: {report.describe()}.[/yellow]")
            failures = "; ".join(f"#{fid}: {err}" for fid, err in report.failed.items())
            if report.summary_error:
                failures = f"summary: {report.summary_error}" + (f"; {failures}" if failures else "")
            raise DeliveryError(f"Could not deliver every comment ({report.describe()}): {failures}")

        return report
