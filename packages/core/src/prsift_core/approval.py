"""Interactive per-finding approval.

Pure local interaction: the session never talks to the model or to GitHub.
Each finding gets exactly one decision and there is no way back.
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from prsift_core.models import Finding

console = Console()

SEVERITY_COLORS = {"critical": "red", "warning": "yellow", "suggestion": "blue"}

APPROVE, SKIP, EDIT = "approve", "skip", "edit"


def severity_tag(severity: str) -> str:
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{escape(f'[{severity.capitalize()}]')}[/{color}]"


def approve(findings: list[Finding]) -> list[Finding]:
    """Ask the operator to approve, skip or edit every finding, in order.

    Mutates and returns the same list. Editing implies approval; a blank
    edit keeps the current body.
    """
    for f in findings:
        console.print(
            f"{severity_tag(f.severity)} [bold]#{f.id}[/bold]: {escape(f.title)}  [dim]({escape(f.location)})[/dim]"
        )
        action = click.prompt("Action", type=click.Choice([APPROVE, SKIP, EDIT]))

        if action == APPROVE:
            f.approved = True
        elif action == SKIP:
            f.approved = False
        else:
            new_body = click.prompt(
                "Enter updated comment (press Enter to keep current)",
                default=f.body,
                show_default=False,
            )
            f.body = new_body.strip() or f.body
            f.approved = True

    return findings
