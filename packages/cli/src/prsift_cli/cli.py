"""CLI entry point for prsift.

Commands:
  review   AI review of a pull request, optionally posting approved findings
  history  list the review records saved in this project
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from prsift_cli.commands.history import history_cmd
from prsift_cli.commands.review import review_cmd


def _build_store(config: dict):
    """Instantiate the review record store from config.

    Lives in cli.py so neither prsift_core nor prsift_store know about the
    CLI config format.
    """
    from prsift_store.json_file import DEFAULT_REVIEWS_DIR, JsonFileStore

    return JsonFileStore(reviews_dir=config.get("reviews_dir") or DEFAULT_REVIEWS_DIR)


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsift"),
    prog_name="prsift",
)
@click.option(
    "--config",
    "config_path",
    default=".prsift.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSIFT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-assisted pull request review with operator approval."""
    from prsift_core.config import load_config
    from prsift_cli.auth import resolve_github_token

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(history_cmd)
