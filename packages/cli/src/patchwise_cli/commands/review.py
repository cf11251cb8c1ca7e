"""review and review-event commands: run one cached review pass on a pull request."""

from __future__ import annotations

import json
from pathlib import Path

import click
from rich.console import Console

from patchwise_core.gh.comments import GitHubCommentPoster
from patchwise_core.gh.pull_request import get_pull, get_pull_requests, get_repo, get_unified_diff
from patchwise_core.models import ReviewRequest, ReviewRunMetrics
from patchwise_core.providers.factory import PROVIDERS
from patchwise_core.reporting import ShadowPoster, print_run_summary
from patchwise_store.models import MetricRecord

console = Console()


def _metrics_to_record(metrics: ReviewRunMetrics) -> MetricRecord:
    """Map the orchestrator's ReviewRunMetrics to a MetricRecord for the store.

    The CLI layer owns this mapping: patchwise_core has no store knowledge and
    patchwise_store has no core knowledge. The CLI bridges the two.
    """
    return MetricRecord(
        repository_id=metrics.repository_id,
        pr_number=metrics.pr_number,
        started_at=metrics.started_at,
        success=metrics.success,
        error_message=metrics.error_message,
        latency_ms=metrics.latency_ms,
        ai_call_duration_ms=metrics.ai_call_duration_ms,
        posting_duration_ms=metrics.posting_duration_ms,
        line_comment_count=metrics.line_comment_count,
        files_total_count=metrics.files_total_count,
        file_cached_count=metrics.file_cached_count,
        ai_called=metrics.ai_called,
    )


class StoreMetricsSink:
    """Metrics sink that persists each pass to a BaseMetricsStore."""

    def __init__(self, store):
        self.store = store

    def record(self, metrics: ReviewRunMetrics) -> None:
        self.store.record(_metrics_to_record(metrics))


def _require_api_key(config: dict) -> None:
    from patchwise_core.providers.factory import missing_api_key

    env_var = missing_api_key(config)
    if env_var:
        raise click.UsageError(f"{env_var} environment variable is not set.")


def _require_token(config: dict) -> str:
    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    return token


def _run_pass(ctx, config: dict, repository, pr_number: int, diff_text: str, destination, shadow: bool):
    """Build the orchestrator from the shared context and run one pass."""
    from patchwise_core.orchestrator import ReviewOrchestrator
    from patchwise_core.providers.factory import get_reviewer

    orchestrator = ReviewOrchestrator(
        reviewer=get_reviewer(config),
        cache=ctx.obj["cache"],
        poster=ShadowPoster() if shadow else GitHubCommentPoster(),
        metrics_sink=StoreMetricsSink(ctx.obj["metrics"]),
        exclude=config.get("exclude") or [],
    )
    metrics = orchestrator.run(
        ReviewRequest(repository=repository, pr_number=pr_number, diff_text=diff_text, destination=destination)
    )
    print_run_summary(metrics)
    if not metrics.success:
        ctx.exit(1)
    return metrics


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(PROVIDERS),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--diff-file",
    "diff_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Review a local unified diff instead of fetching the PR from GitHub (requires --shadow).",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    diff_file: str | None,
    yes: bool,
    shadow: bool,
):
    """Review a pull request, sending only files whose diff changed to the AI.

    Files already reviewed with identical diff content are answered from the
    review cache; everything else goes to the AI in a single request.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
      GEMINI_API_KEY       Required when using --model gemini
    """
    from patchwise_core.config import get_repository_config

    config = dict(ctx.obj["config"])
    if model:
        config["model"] = model
    _require_api_key(config)

    if diff_file and not shadow:
        raise click.UsageError("--diff-file can only be used together with --shadow.")

    repository = get_repository_config(config, repo)

    if diff_file:
        diff_text = Path(diff_file).read_text()
        _run_pass(ctx, config, repository, pr_number or 0, diff_text, None, shadow=True)
        return

    token = _require_token(config)
    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    pull = get_pull(this_repo, pr_number)
    console.print(f"[bold]Reviewing {repo}#{pr_number}[/bold]  {pull.title or ''}")

    if not shadow and not yes:
        click.confirm("Post review comments to GitHub?", default=True, abort=True)

    _run_pass(ctx, config, repository, pr_number, get_unified_diff(pull), pull, shadow)


@click.command("review-event")
@click.option(
    "--event",
    "event_path",
    envvar="GITHUB_EVENT_PATH",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a pull_request event payload. Defaults to $GITHUB_EVENT_PATH in Actions.",
)
@click.option(
    "--signature",
    default=None,
    help="X-Hub-Signature-256 header of the delivery; verified against GITHUB_WEBHOOK_SECRET.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.pass_context
def review_event_cmd(ctx, event_path: str, signature: str | None, shadow: bool):
    """Review the pull request named in a GitHub pull_request event.

    Only opened, synchronize and reopened actions trigger a pass. Draft PRs are
    skipped unless review_draft_prs is set in the config file.
    """
    from patchwise_core.config import get_repository_config
    from patchwise_core.errors import InvalidEventError
    from patchwise_core.gh.events import parse_pull_request_event, should_review, verify_signature

    config = ctx.obj["config"]
    body = Path(event_path).read_bytes()

    if signature is not None:
        if not config.get("webhook_secret"):
            raise click.UsageError("GITHUB_WEBHOOK_SECRET must be set to verify --signature.")
        if not verify_signature(config["webhook_secret"], body, signature):
            raise click.ClickException("Webhook signature does not match the event payload.")

    try:
        event = parse_pull_request_event(json.loads(body))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Event payload is not valid JSON: {e}") from e
    except InvalidEventError as e:
        raise click.ClickException(str(e)) from e

    if not should_review(event, review_drafts=bool(config.get("review_draft_prs"))):
        console.print(f"[dim]Skipping {event.repository_id}#{event.number} (action: {event.action}).[/dim]")
        return

    _require_api_key(config)
    repository = get_repository_config(config, event.repository_id)
    if not repository.enabled:
        # The pass still runs so the skip shows up in metrics, but GitHub is not queried.
        _run_pass(ctx, config, repository, event.number, "", None, shadow)
        return

    token = _require_token(config)
    pull = get_pull(get_repo(event.repository_id, token=token), event.number)
    _run_pass(ctx, config, repository, event.number, get_unified_diff(pull), pull, shadow)
