"""Public API for Commit Insight.

Users should call :func:`open_orchestrator` instead of wiring the store,
backend and commit source by hand.

Example:
    >>> from commit_insight import open_orchestrator
    >>>
    >>> orchestrator = open_orchestrator(".")
    >>> commits = orchestrator.source.list_commits(".", limit=50)
    >>> report = orchestrator.analyze_quality(commits, "my-repo", repository_full_name=".")
    >>> report.quality_score
    0.74
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .backends import AnalysisBackend, create_backend
from .config import InsightConfig, load_config
from .logging_config import get_logger
from .orchestrator import AnalysisOrchestrator
from .persistence import CacheStore
from .sources import CommitSource, GitCommitSource

logger = get_logger(__name__)


def open_orchestrator(
    path: str = ".",
    config: Optional[InsightConfig] = None,
    config_file: Optional[Path] = None,
    backend: Optional[AnalysisBackend] = None,
    source: Optional[CommitSource] = None,
    **overrides,
) -> AnalysisOrchestrator:
    """Build an orchestrator for a local repository.

    The cache store lives in ``<path>/<store_dir>`` unless ``store_dir``
    is absolute.

    Args:
        path: Repository root (default: current directory)
        config: Ready configuration; when omitted it is loaded from
            TOML files and the environment
        config_file: Optional explicit config file path
        backend: Backend override (tests, custom model clients)
        source: Commit source override (default: the local git CLI)
        **overrides: Configuration overrides (e.g. model="gpt-4o")

    Raises:
        ConfigurationError: If configuration is invalid
        PersistenceError: If the store cannot be opened
    """
    if config is None:
        config = load_config(config_file=config_file, **overrides)

    store_dir = Path(config.store_dir)
    if not store_dir.is_absolute():
        store_dir = Path(path).resolve() / store_dir

    store = CacheStore.open(str(store_dir), listing_ttl_seconds=config.listing_ttl_seconds)
    logger.debug("Cache store at %s", store_dir)

    return AnalysisOrchestrator(
        store=store,
        backend=backend or create_backend(config),
        source=source or GitCommitSource(),
        config=config,
    )
