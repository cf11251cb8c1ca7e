"""CLI entry point for patchwise.

Commands:
  review        run a cached AI review on a pull request
  review-event  run a review from a GitHub pull_request event payload
  cache         inspect and evict review cache entries
  metrics       show per-run review metrics and their summary
  init          write .patchwise.yml and a GitHub Actions workflow
"""

from __future__ import annotations

import importlib.metadata

import click
from rich.console import Console

from patchwise_cli.commands.cache import cache_group
from patchwise_cli.commands.init import init_cmd
from patchwise_cli.commands.metrics import metrics_cmd
from patchwise_cli.commands.review import review_cmd, review_event_cmd

console = Console()


def _build_cache(config: dict):
    """Instantiate the configured review cache.

      cache: sqlite → SQLiteReviewCache at cache_path (default .patchwise.db)
      cache: none   → NoOpReviewCache (every pass reviews every file)

    This factory lives in cli.py so neither patchwise_core nor patchwise_store
    know about the config file format.
    """
    from patchwise_store.noop import NoOpReviewCache

    cache_type = config.get("cache", "sqlite")
    if cache_type == "sqlite":
        from patchwise_store.sqlite import SQLiteReviewCache

        return SQLiteReviewCache(db_path=config.get("cache_path", ".patchwise.db"))
    if cache_type not in ("none", None):
        console.print(f"[yellow]Unknown cache backend {cache_type!r}. Caching is disabled.[/yellow]")
    return NoOpReviewCache()


def _build_metrics_store(config: dict):
    from patchwise_store.noop import NoOpMetricsStore

    metrics_type = config.get("metrics", "sqlite")
    if metrics_type == "sqlite":
        from patchwise_store.sqlite import SQLiteMetricsStore

        return SQLiteMetricsStore(db_path=config.get("metrics_path", ".patchwise.db"))
    if metrics_type not in ("none", None):
        console.print(f"[yellow]Unknown metrics backend {metrics_type!r}. Metrics are disabled.[/yellow]")
    return NoOpMetricsStore()


@click.group()
@click.version_option(
    version=importlib.metadata.version("patchwise"),
    prog_name="patchwise",
)
@click.option(
    "--config",
    "config_path",
    default=".patchwise.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PATCHWISE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI pull-request reviewer that only re-reviews files whose diff changed."""
    from patchwise_cli.auth import resolve_github_token
    from patchwise_cli.logging_utils import configure_logging
    from patchwise_core.config import load_config

    configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    cache = _build_cache(config)
    metrics_store = _build_metrics_store(config)
    ctx.obj["config"] = config
    ctx.obj["cache"] = cache
    ctx.obj["metrics"] = metrics_store
    ctx.call_on_close(cache.close)
    ctx.call_on_close(metrics_store.close)


main.add_command(review_cmd)
main.add_command(review_event_cmd)
main.add_command(cache_group)
main.add_command(metrics_cmd)
main.add_command(init_cmd)
