"""Cache management commands."""

from pathlib import Path
from typing import Optional

import typer

from . import app
from ._common import build_orchestrator, console, repository_id_for


@app.command()
def cache_info(
    path: Path = typer.Argument(Path("."), help="Repository root", exists=True, file_okay=False),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
):
    """Show cache information and statistics."""
    orchestrator = build_orchestrator(path, config)
    with orchestrator.store:
        stats = orchestrator.cache_stats()

    console.print("[bold cyan]Commit Insight Cache Info[/bold cyan]")
    console.print()
    console.print(f"Directory: [blue]{orchestrator.store.db.db_dir}[/blue]")
    console.print(f"Retention: [yellow]{orchestrator.config.retention_days} days[/yellow]")
    for name, count in stats.items():
        console.print(f"{name.replace('_', ' ').capitalize()}: [yellow]{count}[/yellow]")


@app.command()
def cache_clear(
    path: Path = typer.Argument(Path("."), help="Repository root", exists=True, file_okay=False),
    repo_id: Optional[str] = typer.Option(
        None, "--repo-id", help="Repository identifier (default: directory name)"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
):
    """Drop a repository's cached reports, tasks and listings.

    Per-commit analyses are kept; they never change for a given SHA.
    """
    orchestrator = build_orchestrator(path, config)
    repository_id = repository_id_for(path, repo_id)
    with orchestrator.store:
        removed = orchestrator.clear_repository_cache(repository_id)

    total = sum(removed.values())
    console.print(f"[green]Cache cleared for {repository_id}[/green] ({total} entries)")


@app.command()
def cache_cleanup(
    path: Path = typer.Argument(Path("."), help="Repository root", exists=True, file_okay=False),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Remove data older than this (default: retention_days)", min=1
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
):
    """Remove cached data past the retention window."""
    orchestrator = build_orchestrator(path, config)
    with orchestrator.store:
        removed = orchestrator.cleanup_old_data(days)

    for name, count in removed.items():
        console.print(f"{name}: [yellow]{count}[/yellow] removed")
