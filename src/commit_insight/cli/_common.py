"""Shared CLI helpers."""

import json
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from ..api import open_orchestrator
from ..exceptions import CommitInsightError, InsightError
from ..logging_config import setup_logging
from ..models import CommitRecord
from ..orchestrator import AnalysisOrchestrator

console = Console()


def display_score(score: float) -> str:
    """Percentage with a colour by band."""
    pct = round(score * 100)
    color = "green" if score >= 0.7 else "yellow" if score >= 0.5 else "red"
    return f"[{color}]{pct}%[/{color}]"


def repository_id_for(path: Path, repo_id: Optional[str]) -> str:
    return repo_id or Path(path).resolve().name


def build_orchestrator(
    path: Path,
    config: Optional[Path] = None,
    no_llm: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> AnalysisOrchestrator:
    """Configure logging and open an orchestrator for ``path``; exit on config errors."""
    setup_logging(verbose=verbose, quiet=quiet)
    overrides = {"verbose": verbose, "quiet": quiet}
    if no_llm:
        overrides["use_llm"] = False
    try:
        return open_orchestrator(str(path), config_file=config, **overrides)
    except (CommitInsightError, InsightError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def load_commits(
    orchestrator: AnalysisOrchestrator, path: Path, days: int, limit: int
) -> list[CommitRecord]:
    """Non-merge commits of the last ``days`` days, newest first."""
    since = orchestrator.clock().date() - timedelta(days=days)
    try:
        commits = orchestrator.source.list_commits(str(path), since=since, limit=limit)
    except InsightError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return [c for c in commits if not c.is_merge]


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))
