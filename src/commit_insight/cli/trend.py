"""Trend CLI commands -- show how quality scores change over time."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import build_orchestrator, console, display_score, print_json, repository_id_for

_TREND_STYLE = {
    "improving": "[green]improving ↑[/green]",
    "declining": "[red]declining ↓[/red]",
    "stable": "[blue]stable →[/blue]",
}


def _sparkline(values: list) -> str:
    """Generate an ASCII sparkline from a list of numeric values."""
    if not values:
        return ""
    blocks = " ▁▂▃▄▅▆▇█"
    mn, mx = min(values), max(values)
    if mx == mn:
        return blocks[4] * len(values)
    return "".join(
        blocks[min(8, int((v - mn) / (mx - mn) * 8))] for v in values
    )


@app.command()
def trend(
    path: Path = typer.Argument(
        Path("."),
        help="Repository root (where the cache store lives)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Look back this many days", min=1, max=365
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Show how the quality score has moved over stored reports.

    Reads cached reports only; run [bold]commit-insight quality[/bold]
    to add data points.

    [bold cyan]Examples:[/bold cyan]

      commit-insight trend

      commit-insight trend --days 90 --format json
    """
    orchestrator = build_orchestrator(path, config, verbose=verbose)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        result = orchestrator.get_trends(repository_id, days)

    if fmt == "json":
        print_json(result.to_dict())
        return

    if result.trend == "insufficient_data":
        console.print(f"[yellow]{result.message}[/yellow]")
        console.print(
            "Run [bold]commit-insight quality[/bold] on different days to build history."
        )
        raise typer.Exit(0)

    spark = _sparkline([p.score for p in result.historical_data])
    console.print()
    console.print(f"[bold cyan]{repository_id}[/bold cyan]  {spark}")
    console.print(
        f"Trend: {_TREND_STYLE.get(result.trend, result.trend)}  "
        f"Current: {display_score(result.current_score)}  "
        f"Average: {display_score(result.average_score)}  "
        f"Change: {result.score_change:+.3f}"
    )
    console.print()
    for insight in result.insights:
        console.print(f"  [cyan]•[/cyan] {insight}")
    for rec in result.recommendations:
        console.print(f"  [green]→[/green] {rec}")
    console.print()


@app.command()
def history(
    path: Path = typer.Argument(
        Path("."),
        help="Repository root (where the cache store lives)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Look back this many days", min=1, max=365
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
):
    """List stored quality reports, oldest first."""
    orchestrator = build_orchestrator(path, config)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        reports = orchestrator.quality_history(repository_id, days)

    if fmt == "json":
        print_json([r.to_dict() for r in reports])
        return

    if not reports:
        console.print(f"[yellow]No stored reports for[/yellow] {repository_id}")
        raise typer.Exit(0)

    table = Table(title=f"Quality history: {repository_id}")
    table.add_column("Date")
    table.add_column("Timeframe")
    table.add_column("Score", justify="right")
    table.add_column("Method")
    table.add_column("Commits", justify="right")
    table.add_column("Issues", justify="right")

    prev = None
    for report in reports:
        score = display_score(report.quality_score)
        if prev is not None:
            delta = report.quality_score - prev
            if abs(delta) >= 0.005:
                color = "green" if delta > 0 else "red"
                score += f" [{color}]({delta:+.2f})[/{color}]"
        prev = report.quality_score
        table.add_row(
            report.analysis_date,
            report.metadata.timeframe,
            score,
            report.analysis_method,
            str(report.metadata.commits_analyzed),
            str(len(report.issues)),
        )
    console.print(table)
