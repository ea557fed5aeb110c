"""history command: display the review records saved in this project."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _flag_count(findings, attr: str) -> int:
    return sum(1 for f in findings if getattr(f, attr) is True)


@click.command("history")
@click.option("--pr", "pr_number", type=int, default=None, help="Filter by PR number.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, pr_number: int | None, limit: int):
    """Show review records saved by `prsift review --post`.

    Records are read from the reviews directory (default .prsift/reviews).
    """
    store = ctx.obj.get("store") if ctx.obj else None
    if store is None:
        raise click.ClickException("No review store available.")

    if pr_number is not None:
        record = store.load(pr_number)
        records = [record] if record is not None else []
    else:
        records = store.list_reviews()

    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    # Show most recent first, capped at --limit.
    records = list(reversed(records))[:limit]

    table = Table(title="Review History", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Repository", max_width=30)
    table.add_column("SHA", width=8)
    table.add_column("Findings", justify="right", width=9)
    table.add_column("Approved", justify="right", width=9)
    table.add_column("Posted", justify="right", width=7)
    table.add_column("Reviewed At", width=20)

    for r in records:
        approved = _flag_count(r.findings, "approved")
        posted = _flag_count(r.findings, "posted")
        posted_style = "green" if approved and posted == approved else "yellow"
        table.add_row(
            f"#{r.pr}",
            r.repo,
            r.head_sha[:7],
            str(len(r.findings)),
            str(approved),
            f"[{posted_style}]{posted}[/{posted_style}]",
            r.reviewed_at[:19].replace("T", " "),
        )

    console.print(table)
