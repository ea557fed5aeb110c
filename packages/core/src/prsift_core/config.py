import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from rich.console import Console

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "model_name": None,  # None = the provider default
    "guidelines": None,  # None = search the conventional locations below
    "max_diff_chars": 100_000,
    "pr_list_limit": 15,
    "reviews_dir": ".prsift/reviews",
    "github_repo": None,  # None = detect from the git remote
}

# Searched in order after any explicitly configured path.
GUIDELINE_CANDIDATES = ("CLAUDE.md", ".claude/CLAUDE.md", "CODING_GUIDELINES.md")

FALLBACK_GUIDELINES = "No project-specific guidelines provided. Use general software engineering best practices."


def load_config(config_path: str = ".prsift.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. GITHUB_REPO / GUIDELINES_PATH environment variables
      3. .prsift.yml in the current directory
      4. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    if os.environ.get("GITHUB_REPO"):
        config["github_repo"] = os.environ["GITHUB_REPO"]
    if os.environ.get("GUIDELINES_PATH"):
        config["guidelines"] = os.environ["GUIDELINES_PATH"]

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_guidelines(config: dict, root: Optional[Path] = None) -> str:
    """
    Load review guidelines from the first existing candidate file.

    ``guidelines`` from config is tried first, then the conventional
    locations relative to ``root`` (default: cwd). A missing file is never
    fatal: the review proceeds with a generic placeholder and a warning.
    """
    base = root or Path.cwd()
    candidates = [config.get("guidelines"), *GUIDELINE_CANDIDATES]

    for candidate in candidates:
        if not candidate:
            continue
        p = base / candidate
        if p.is_file():
            logger.debug("Using guidelines from %s", p)
            return p.read_text(encoding="utf-8")

    console.print("[yellow]No coding guidelines file found. Review will use general best practices.[/yellow]")
    return FALLBACK_GUIDELINES
