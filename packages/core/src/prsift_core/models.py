"""Domain models shared by every review phase."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

SEVERITIES = ("critical", "warning", "suggestion")
_SEVERITY_RANK = {s: i for i, s in enumerate(SEVERITIES)}


@dataclass(frozen=True)
class PullRequestRef:
    """The pull request under review. Built once by the context provider."""

    number: int
    base_branch: str
    head_commit: str
    repository: str  # "owner/name"
    title: str = ""


@dataclass
class Finding:
    """One reviewer observation anchored to a line on the new side of the diff."""

    id: int
    severity: str  # "critical" | "warning" | "suggestion"
    confidence: int
    title: str
    file: str
    line: int
    why: str
    body: str
    # None until the approval session visits the finding.
    approved: bool | None = None
    # None until a delivery attempt has been made.
    posted: bool | None = None

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class TicketContent:
    title: str
    description: str


def severity_rank(severity: str) -> int:
    return _SEVERITY_RANK.get(severity, len(SEVERITIES))


def sort_findings(findings: list[Finding]) -> list[Finding]:
    """Return findings ordered critical → warning → suggestion.

    sorted() is stable, so findings of equal severity keep the order the
    model produced them in.
    """
    return sorted(findings, key=lambda f: severity_rank(f.severity))


def count_by_severity(findings: list[Finding]) -> dict[str, int]:
    counts = {s: 0 for s in SEVERITIES}
    for f in findings:
        counts[f.severity] = counts.get(f.severity, 0) + 1
    return counts


def build_summary(findings: list[Finding]) -> str:
    counts = count_by_severity(findings)
    return (
        f"Found {len(findings)} issues ("
        f"{counts['critical']} critical, {counts['warning']} warning, {counts['suggestion']} suggestion)"
    )


@dataclass
class Review:
    """Aggregate for one review pass, exclusively owned by the orchestrator."""

    pr: PullRequestRef
    findings: list[Finding] = field(default_factory=list)
    summary: str = ""
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def approved_findings(self) -> list[Finding]:
        return [f for f in self.findings if f.approved is True]
