"""init command: interactive setup wizard.

Writes .patchwise.yml and optionally a GitHub Actions workflow that runs
``patchwise review-event`` on every pull_request event. The workflow keeps
the SQLite review cache between runs with actions/cache, which is what makes
re-reviews of a pushed PR cheap.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from patchwise_core.providers.factory import PROVIDERS, api_key_env_var

console = Console()

_CONFIG_PATH = Path(".patchwise.yml")
_WORKFLOW_PATH = Path(".github/workflows/patchwise.yml")

_WORKFLOW_TEMPLATE = """\
name: patchwise review

on:
  pull_request:
    types: [opened, synchronize, reopened]

jobs:
  review:
    runs-on: ubuntu-latest
    permissions:
      contents: read
      pull-requests: write

    steps:
      - uses: actions/checkout@v4

      - name: Set up Python
        uses: actions/setup-python@v5
        with:
          python-version: "3.12"

      - name: Restore review cache
        uses: actions/cache@v4
        with:
          path: {db_path}
          key: patchwise-${{{{ github.event.pull_request.number }}}}-${{{{ github.run_id }}}}
          restore-keys: |
            patchwise-${{{{ github.event.pull_request.number }}}}-
            patchwise-

      - name: Install patchwise
        run: pip install "patchwise[{provider}]=={version}"

      - name: Run PR review
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
          {api_key_env}: ${{{{ secrets.{api_key_env} }}}}
        run: patchwise review-event --event "$GITHUB_EVENT_PATH"
"""


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Auto-detected from git remote.")
def init_cmd(repo: str | None):
    """Set up patchwise for a repository.

    Creates .patchwise.yml and, optionally, a GitHub Actions workflow.
    """
    console.print("\n[bold cyan]patchwise init[/bold cyan]: setup wizard\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")
        else:
            repo = click.prompt("GitHub repository (owner/name)")

    provider = click.prompt("AI provider", type=click.Choice(PROVIDERS), default="anthropic")
    api_key_env = api_key_env_var(provider)

    console.print("\nReview cache:")
    console.print("  [bold]sqlite[/bold]  local SQLite file; unchanged files are never re-reviewed (default)")
    console.print("  [bold]none[/bold]    review every file on every run")
    cache_type = click.prompt("Cache backend", type=click.Choice(["sqlite", "none"]), default="sqlite")

    config: dict = {"model": provider, "cache": cache_type}
    db_path = ".patchwise.db"
    if cache_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=db_path)
        if db_path != ".patchwise.db":
            config["cache_path"] = db_path
            config["metrics_path"] = db_path

    _write_config(config)
    console.print(f"[green]Created {_CONFIG_PATH}[/green]")

    if click.confirm(f"\nGenerate {_WORKFLOW_PATH} for GitHub Actions?", default=True):
        _write_workflow(provider, api_key_env, db_path)
        console.print(f"[green]Created {_WORKFLOW_PATH}[/green]")
        console.print(
            f"\n[yellow]Remember to add [bold]{api_key_env}[/bold] to your "
            "GitHub repository secrets (Settings → Secrets → Actions).[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"Run a review with: [bold]patchwise review --repo {repo} --pr <number>[/bold]")


def _detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def _write_config(config: dict) -> None:
    """Write or update .patchwise.yml, preserving any existing keys."""
    existing: dict = {}
    if _CONFIG_PATH.exists():
        existing = yaml.safe_load(_CONFIG_PATH.read_text()) or {}
    existing.update(config)
    _CONFIG_PATH.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def _get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("patchwise")
    except PackageNotFoundError:
        return "0.1.0"


def _write_workflow(provider: str, api_key_env: str, db_path: str) -> None:
    _WORKFLOW_PATH.parent.mkdir(parents=True, exist_ok=True)
    _WORKFLOW_PATH.write_text(
        _WORKFLOW_TEMPLATE.format(
            provider=provider,
            api_key_env=api_key_env,
            version=_get_version(),
            db_path=db_path,
        )
    )
