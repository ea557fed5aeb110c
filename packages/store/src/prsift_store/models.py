"""Review record data models.

Decoupled from prsift_core so the store layer can be used independently
and prsift_core has no knowledge of persistence concerns. The JSON keys
follow the on-disk record format, which other tools read.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FindingRecord:
    """A single finding as persisted in the review record."""

    id: int
    severity: str
    confidence: int
    title: str
    file: str
    line: int
    why: str
    body: str
    approved: bool | None = None
    posted: bool | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "severity": self.severity,
            "confidence": self.confidence,
            "title": self.title,
            "file": self.file,
            "line": self.line,
            "why": self.why,
            "body": self.body,
            "approved": self.approved,
        }
        # "posted" is optional in the record format: absent until a delivery attempt.
        if self.posted is not None:
            d["posted"] = self.posted
        return d

    @classmethod
    def from_dict(cls, d: dict) -> FindingRecord:
        return cls(
            id=d.get("id", 0),
            severity=d.get("severity", "suggestion"),
            confidence=d.get("confidence", 0),
            title=d.get("title", ""),
            file=d.get("file", ""),
            line=d.get("line", 0),
            why=d.get("why", ""),
            body=d.get("body", ""),
            approved=d.get("approved"),
            posted=d.get("posted"),
        )


@dataclass
class ReviewRecord:
    """One completed review pass of a pull request.

    Created by the CLI layer from the orchestrator's Review and written
    before anything is posted to GitHub.
    """

    pr: int
    repo: str
    base_branch: str
    head_sha: str
    reviewed_at: str  # ISO-8601 UTC timestamp
    summary: str
    findings: list[FindingRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "pr": self.pr,
            "repo": self.repo,
            "baseBranch": self.base_branch,
            "headSha": self.head_sha,
            "reviewedAt": self.reviewed_at,
            "summary": self.summary,
            "findings": [f.to_dict() for f in self.findings],
        }

    @classmethod
    def from_dict(cls, d: dict) -> ReviewRecord:
        return cls(
            pr=d.get("pr", 0),
            repo=d.get("repo", ""),
            base_branch=d.get("baseBranch", ""),
            head_sha=d.get("headSha", ""),
            reviewed_at=d.get("reviewedAt", ""),
            summary=d.get("summary", ""),
            findings=[FindingRecord.from_dict(f) for f in d.get("findings", [])],
        )
