"""review command: AI review of a pull request."""

from __future__ import annotations

import click
from github import GithubException
from rich.console import Console
from rich.markup import escape

from prsift_core.errors import ConfigError, PrsiftError
from prsift_core.gh.pull_request import detect_repo_from_git, get_repo
from prsift_core.models import Review
from prsift_core.reviewer import get_reviewer, run_review
from prsift_store.models import FindingRecord, ReviewRecord

console = Console()


def _review_to_record(review: Review) -> ReviewRecord:
    """Map the orchestrator's Review to a ReviewRecord for the store.

    The CLI owns this mapping: prsift_core has no store knowledge and
    prsift_store has no core knowledge. The CLI bridges the two.
    """
    return ReviewRecord(
        pr=review.pr.number,
        repo=review.pr.repository,
        base_branch=review.pr.base_branch,
        head_sha=review.pr.head_commit,
        reviewed_at=review.reviewed_at,
        summary=review.summary,
        findings=[
            FindingRecord(
                id=f.id,
                severity=f.severity,
                confidence=f.confidence,
                title=f.title,
                file=f.file,
                line=f.line,
                why=f.why,
                body=f.body,
                approved=f.approved,
                posted=f.posted,
            )
            for f in review.findings
        ],
    )


def _check_config(config: dict) -> None:
    """Fail before any network call when a credential is missing."""
    if not config.get("github_token"):
        raise ConfigError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first. "
            "Create a token at https://github.com/settings/tokens"
        )
    model = config.get("model")
    if model == "anthropic" and not config.get("anthropic_api_key"):
        raise ConfigError("ANTHROPIC_API_KEY environment variable is not set.")
    if model == "openai" and not config.get("openai_api_key"):
        raise ConfigError("OPENAI_API_KEY environment variable is not set.")
    if model not in ("anthropic", "openai"):
        raise ConfigError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def _fail(error: PrsiftError) -> click.ClickException:
    """Reduce an error to a one-line cause, printing any detail above it."""
    lines = str(error).strip().splitlines() or [type(error).__name__]
    if len(lines) > 1:
        detail = "\n".join(lines[1:])
        console.print(f"[dim]{escape(detail)}[/dim]")
    return click.ClickException(lines[0])


@click.command("review")
@click.argument("pr", required=False)
@click.option("--post", is_flag=True, help="Approve findings interactively and post them to GitHub.")
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--guidelines",
    "guidelines_path",
    default=None,
    help="Path to a Markdown guidelines file. Overrides config file.",
)
@click.option(
    "--repo",
    "repo_name",
    default=None,
    help="GitHub repository in owner/name format. Detected from the git remote by default.",
)
@click.pass_context
def review_cmd(
    ctx,
    pr: str | None,
    post: bool,
    model: str | None,
    guidelines_path: str | None,
    repo_name: str | None,
):
    """AI-powered code review for a pull request.

    PR may be a number or a pull request URL. Without it, the PR for the
    current branch is offered, then a list of open PRs.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    from prsift_core.config import load_config

    obj = ctx.obj or {}
    config = load_config(
        obj.get("config_path", ".prsift.yml"),
        cli_overrides={"model": model, "guidelines": guidelines_path, "github_repo": repo_name},
    )
    config["github_token"] = obj.get("config", {}).get("github_token") or config.get("github_token")
    store = obj.get("store")

    try:
        _check_config(config)
        repository = config.get("github_repo") or detect_repo_from_git()
        if not repository:
            raise ConfigError(
                "Cannot determine GitHub repo. Pass --repo, set github_repo in .prsift.yml or GITHUB_REPO."
            )
        reviewer = get_reviewer(config)

        try:
            this_repo = get_repo(repository, token=config["github_token"])
        except GithubException as e:
            raise ConfigError(f"Cannot access GitHub repository {repository}: {e}") from e

        def persist(review: Review) -> str:
            return store.save(_review_to_record(review))

        run_review(
            this_repo,
            config,
            reviewer=reviewer,
            pr_ref=pr,
            post=post,
            persist=persist if store is not None else None,
        )
    except PrsiftError as e:
        raise _fail(e) from e
