"""Message suggestion commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import build_orchestrator, console, print_json, repository_id_for
from ..exceptions import InsightError


@app.command()
def suggest(
    path: Path = typer.Argument(
        Path("."),
        help="Repository with staged changes",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    message: str = typer.Option(
        "", "--message", "-m", help="Draft message to improve"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Suggest a conventional commit message for the staged changes.

    [bold cyan]Examples:[/bold cyan]

      git add -p && commit-insight suggest

      commit-insight suggest -m "fixed stuff"
    """
    orchestrator = build_orchestrator(path, config, no_llm, verbose)
    with orchestrator.store:
        try:
            diff = orchestrator.source.get_staged_diff(str(path))
        except InsightError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        if not diff.strip():
            console.print("[yellow]Nothing staged.[/yellow] Stage changes with git add first.")
            raise typer.Exit(0)

        suggestion = orchestrator.suggest_message(diff, message)

    if fmt == "json":
        print_json(suggestion.to_dict())
        return

    if message:
        console.print(f"[dim]Current:[/dim]   {message}")
    if suggestion.improved:
        console.print(f"[bold green]Suggested:[/bold green] {suggestion.suggested}")
    else:
        console.print("[green]Current message already reads well.[/green]")
    console.print(f"[dim]({suggestion.method})[/dim]")


@app.command()
def commits(
    path: Path = typer.Argument(
        Path("."),
        help="Repository to list",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    page_size: int = typer.Option(10, "--count", "-n", help="Commits to show", min=1, max=50),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the cached listing"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use rule-based analysis only"),
    fmt: str = typer.Option("rich", "--format", "-f", help="Output format: rich or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """List recent commits next to a suggested rewrite of each message."""
    orchestrator = build_orchestrator(path, config, no_llm, verbose)
    with orchestrator.store:
        listing = orchestrator.list_enhanced_commits(
            str(path),
            page_size,
            force_refresh=refresh,
            repository_id=repository_id_for(path, repo_id),
        )

    if fmt == "json":
        print_json(listing.to_dict())
        return

    if not listing.commits:
        console.print("[yellow]No commits found[/yellow]")
        raise typer.Exit(0)

    source = "cache" if listing.from_cache else "fresh"
    table = Table(title=f"Recent commits ({listing.ai_enhanced}/{len(listing.commits)} enhanced, {source})")
    table.add_column("SHA", style="dim")
    table.add_column("Message")
    table.add_column("Suggested", style="green")
    table.add_column("Conf.", justify="right")
    for item in listing.commits:
        table.add_row(
            item.commit.short_sha,
            item.commit.subject,
            item.suggested_message or "[dim]-[/dim]",
            f"{item.confidence:.2f}" if item.confidence is not None else "",
        )
    console.print(table)
