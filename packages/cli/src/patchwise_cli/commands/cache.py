"""cache commands: inspect and evict review cache entries."""

from __future__ import annotations

from datetime import timedelta

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.group("cache")
def cache_group():
    """Inspect and maintain the review cache."""


@cache_group.command("stats")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.pass_context
def cache_stats_cmd(ctx, repo: str):
    """Show how many reviews are cached for a repository and how old they are."""
    stats = ctx.obj["cache"].stats(repo)
    if not stats.total_entries:
        console.print(f"[yellow]No cached reviews for {repo}.[/yellow]")
        return

    table = Table(title=f"Review cache for {repo}", show_header=True)
    table.add_column("Entries", justify="right")
    table.add_column("Oldest")
    table.add_column("Newest")
    table.add_row(str(stats.total_entries), stats.oldest_entry or "-", stats.newest_entry or "-")
    console.print(table)


@cache_group.command("evict")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Delete entries older than this many days. Defaults to cache_max_age_days (30).",
)
@click.pass_context
def cache_evict_cmd(ctx, repo: str, days: int | None):
    """Delete a repository's cached reviews older than the given age."""
    if days is None:
        days = int(ctx.obj["config"].get("cache_max_age_days", 30))
    deleted = ctx.obj["cache"].evict_older_than(repo, timedelta(days=days))
    console.print(f"[green]Evicted {deleted} cache entr{'y' if deleted == 1 else 'ies'} older than {days} day(s).[/green]")
