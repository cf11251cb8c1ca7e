"""metrics command: per-run review metrics and their aggregate."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("metrics")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Only show runs for this pull request.")
@click.option("--limit", default=20, show_default=True, help="Number of most recent runs to list.")
@click.pass_context
def metrics_cmd(ctx, repo: str, pr_number: int | None, limit: int):
    """Show recent review runs and how much work the cache saved."""
    from patchwise_store.models import summarize
    from patchwise_store.noop import NoOpMetricsStore

    store = ctx.obj.get("metrics") if ctx.obj else None
    if store is None or isinstance(store, NoOpMetricsStore):
        raise click.UsageError("No metrics store configured. Add 'metrics: sqlite' to .patchwise.yml.")

    records = store.list_metrics(repo, pr_number=pr_number)
    if not records:
        console.print("[yellow]No review runs recorded for this repository.[/yellow]")
        return

    table = Table(title=f"Review runs for {repo}", show_header=True)
    table.add_column("Started (UTC)", style="dim")
    table.add_column("PR", justify="right")
    table.add_column("Cached", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("AI ms", justify="right")
    table.add_column("Total ms", justify="right")
    table.add_column("Result")

    for r in reversed(records[-limit:]):
        result = "[green]ok[/green]" if r.success else f"[red]failed[/red] {r.error_message or ''}"
        table.add_row(
            r.started_at[:16].replace("T", " "),
            f"#{r.pr_number}",
            f"{r.file_cached_count}/{r.files_total_count}",
            str(r.line_comment_count),
            str(r.ai_call_duration_ms),
            str(r.latency_ms),
            result,
        )
    console.print(table)

    summary = summarize(records)
    console.print(f"\n[bold]Summary for [cyan]{repo}[/cyan][/bold]")
    console.print(f"  Runs:             {summary.total_runs} ({summary.success_rate:.1f}% successful)")
    console.print(f"  Runs calling AI:  {summary.ai_calls}")
    console.print(f"  AI calls saved:   {summary.ai_calls_saved}")
    console.print(f"  Cache hit runs:   {summary.cache_hit_runs} ({summary.cache_hit_ratio:.1f}%)")
    console.print(f"  Files from cache: {summary.files_cached}/{summary.files_total} ({summary.file_cache_ratio:.1f}%)")
    console.print(f"  Avg latency:      {summary.average_latency_ms}ms")
    console.print(f"  Avg AI time:      {summary.average_ai_time_ms}ms")
