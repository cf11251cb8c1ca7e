"""Terminal output for review passes (shadow mode and run summaries)."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown

from patchwise_core.models import LineComment, ReviewRunMetrics

console = Console()


def print_shadow_comments(comments: list[LineComment], fallback_text: str | None = None) -> None:
    """Print review comments to the terminal without posting to GitHub."""
    if not comments and not fallback_text:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    if comments:
        console.print(f"\n[bold]Shadow review: {len(comments)} comment(s) (not posted)[/bold]\n")
        for c in comments:
            console.print(f"[bold cyan]{c.file}[/bold cyan]  line [bold]{c.line}[/bold]")
            console.print(f"  {c.comment}")
            console.print()
    if fallback_text:
        console.print("[bold]Shadow review: free-text review (not posted)[/bold]\n")
        console.print(Markdown(fallback_text))


class ShadowPoster:
    """Poster that prints instead of posting; same contract as GitHubCommentPoster."""

    def publish(self, destination, comments: list[LineComment], fallback_text: str | None = None) -> int:
        print_shadow_comments(comments, fallback_text)
        return len(comments) + (1 if fallback_text else 0)


def print_run_summary(metrics: ReviewRunMetrics) -> None:
    if not metrics.success:
        console.print(f"[red]Review failed: {metrics.error_message}[/red]")
        return
    console.print(
        f"[green]Review complete.[/green] "
        f"{metrics.file_cached_count}/{metrics.files_total_count} file(s) from cache · "
        f"{metrics.line_comment_count} comment(s) · "
        f"AI {metrics.ai_call_duration_ms}ms · total {metrics.latency_ms}ms"
    )
