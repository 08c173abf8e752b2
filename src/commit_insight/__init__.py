"""
Commit Insight - commit quality analysis with cached language-model reviews

Categorizes commits, scores the quality of a repository's recent work from
its messages and a bounded sample of diffs, and tracks that score over
time. Works with or without a language model: without one, deterministic
keyword heuristics produce results in the same shape.
"""

__version__ = "0.1.0"

from .api import open_orchestrator
from .config import InsightConfig, ScoringConfig, load_config
from .models import (
    AnalysisResult,
    CommitRecord,
    DailySummary,
    MessageSuggestion,
    QualityReport,
    TaskSuggestion,
    TrendResult,
)
from .orchestrator import AnalysisOrchestrator

__all__ = [
    "open_orchestrator",  # Main entry point
    "AnalysisOrchestrator",  # Direct wiring (custom store/backend/source)
    "InsightConfig",
    "ScoringConfig",
    "load_config",
    "CommitRecord",
    "AnalysisResult",
    "QualityReport",
    "TrendResult",
    "MessageSuggestion",
    "DailySummary",
    "TaskSuggestion",
]
