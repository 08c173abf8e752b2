"""Daily summary and task suggestion commands."""

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from . import app
from ._common import (
    build_orchestrator,
    console,
    load_commits,
    print_json,
    repository_id_for,
)
from ..exceptions import InsightError

_PRIORITY_STYLE = {"high": "red", "medium": "yellow", "low": "dim"}


@app.command()
def summary(
    path: Path = typer.Argument(
        Path("."),
        help="Repository to summarize",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    day: Optional[str] = typer.Option(
        None, "--date", help="Day to summarize, YYYY-MM-DD (default: today)"
    ),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Regenerate even if stored"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Summarize one day of commits in a short paragraph.

    Summaries are stored per day and reused on later runs.
    """
    try:
        target = date.fromisoformat(day) if day else None
    except ValueError:
        console.print(f"[red]Invalid date:[/red] {day}")
        raise typer.Exit(2)

    orchestrator = build_orchestrator(path, config, no_llm, verbose)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        target = target or orchestrator.clock().date()
        try:
            day_commits = orchestrator.source.list_commits(
                str(path), since=target, until=target
            )
        except InsightError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        day_commits = [c for c in day_commits if not c.is_merge]
        result = orchestrator.generate_daily_summary(
            day_commits, repository_id, day=target, force_refresh=refresh
        )

    if fmt == "json":
        print_json(result.to_dict())
        return

    categories = ", ".join(f"{k}: {v}" for k, v in sorted(result.categories.items()))
    console.print(
        Panel(
            f"{result.summary}\n\n[dim]{result.commit_count} commits"
            + (f" ({categories})" if categories else "")
            + f" · {result.method}[/dim]",
            title=f"[bold cyan]{repository_id}[/bold cyan] {result.date}",
            expand=False,
        )
    )


@app.command()
def tasks(
    path: Path = typer.Argument(
        Path("."),
        help="Repository to plan for",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    days: int = typer.Option(7, "--days", "-d", help="Recent work window", min=1),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached suggestions"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Suggest next tasks from the shape of recent work."""
    orchestrator = build_orchestrator(path, config, no_llm, verbose)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        recent = load_commits(orchestrator, path, days, limit=100)
        suggestions = orchestrator.suggest_tasks(recent, repository_id, force_refresh=refresh)

    if fmt == "json":
        print_json([t.to_dict() for t in suggestions])
        return

    table = Table(title=f"Suggested tasks ({len(recent)} commits in the last {days} days)")
    table.add_column("Priority")
    table.add_column("Task", style="bold")
    table.add_column("Estimate", justify="right")
    table.add_column("Based on", style="dim")
    for task in suggestions:
        style = _PRIORITY_STYLE.get(task.priority, "")
        table.add_row(
            f"[{style}]{task.priority}[/{style}]",
            f"{task.title}\n[dim]{task.description}[/dim]",
            task.estimated_time,
            task.based_on,
        )
    console.print(table)
