"""Quality and categorization commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from . import app
from ._common import (
    build_orchestrator,
    console,
    display_score,
    load_commits,
    print_json,
    repository_id_for,
)

_TIMEFRAME_DAYS = {"daily": 1, "weekly": 7, "monthly": 30}

_SEVERITY_STYLE = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


@app.command()
def quality(
    path: Path = typer.Argument(
        Path("."),
        help="Repository to analyze",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    timeframe: str = typer.Option(
        "weekly",
        "--timeframe",
        "-t",
        help="Window of commits to score: daily, weekly or monthly",
    ),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    messages_only: bool = typer.Option(
        False, "--messages-only", help="Score messages only, skip code review of diffs"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached reports"),
    limit: int = typer.Option(200, "--limit", "-l", help="Max commits to read", min=1),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Errors only"),
):
    """
    Score the quality of recent commits.

    Combines a message quality score with code reviews of a small,
    prioritised selection of diffs. Reports are cached for a few hours.

    [bold cyan]Examples:[/bold cyan]

      commit-insight quality

      commit-insight quality ../service --timeframe monthly --format json
    """
    if timeframe not in _TIMEFRAME_DAYS:
        console.print(f"[red]Unknown timeframe:[/red] {timeframe}")
        raise typer.Exit(2)

    orchestrator = build_orchestrator(path, config, no_llm, verbose, quiet)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        commits = load_commits(orchestrator, path, _TIMEFRAME_DAYS[timeframe], limit)
        report = orchestrator.analyze_quality(
            commits,
            repository_id,
            timeframe=timeframe,
            repository_full_name=None if messages_only else str(path),
            force_refresh=refresh,
        )

    if fmt == "json":
        print_json(report.to_dict())
        return

    meta = report.metadata
    console.print()
    console.print(
        Panel(
            f"Quality score: {display_score(report.quality_score)}\n"
            f"Commits: {meta.commits_analyzed}  "
            f"Reviewed diffs: {meta.code_commits_analyzed}  "
            f"Lines: {meta.lines_analyzed}\n"
            f"Method: {meta.analysis_method} ({meta.backend})",
            title=f"[bold cyan]{repository_id}[/bold cyan] [dim]{timeframe}[/dim]",
            expand=False,
        )
    )

    if report.issues:
        table = Table(title="Issues", show_lines=False)
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Description")
        for issue in report.issues:
            style = _SEVERITY_STYLE.get(issue.severity, "")
            table.add_row(f"[{style}]{issue.severity}[/{style}]", issue.type, issue.description)
        console.print(table)

    for insight in report.insights:
        console.print(f"  [cyan]•[/cyan] {insight}")
    if report.recommendations:
        console.print()
        console.print("[bold]Recommendations[/bold]")
        for rec in report.recommendations:
            console.print(f"  [green]→[/green] {rec}")
    console.print()


@app.command()
def categorize(
    path: Path = typer.Argument(
        Path("."),
        help="Repository to read commits from",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    days: int = typer.Option(7, "--days", "-d", help="Look back this many days", min=1),
    limit: int = typer.Option(50, "--limit", "-l", help="Max commits", min=1),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Errors only"),
):
    """Assign a category to each recent commit."""
    orchestrator = build_orchestrator(path, config, no_llm, verbose, quiet)
    with orchestrator.store:
        commits = load_commits(orchestrator, path, days, limit)
        results = orchestrator.categorize(commits)

    if fmt == "json":
        print_json([r.to_dict() for r in results])
        return

    if not results:
        console.print("[yellow]No commits in range[/yellow]")
        raise typer.Exit(0)

    by_sha = {c.sha: c for c in commits}
    table = Table(title=f"Commit categories ({len(results)})")
    table.add_column("SHA", style="dim")
    table.add_column("Category", style="cyan")
    table.add_column("Conf.", justify="right")
    table.add_column("Subject")
    for result in results:
        commit = by_sha.get(result.sha)
        table.add_row(
            result.sha[:7],
            result.category,
            f"{result.confidence:.2f}",
            commit.subject if commit else "",
        )
    console.print(table)
