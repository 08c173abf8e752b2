"""Classify a repository's quality history as improving, declining or stable."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..models import TrendPoint, TrendResult

IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"
INSUFFICIENT_DATA = "insufficient_data"

# classification -> (extra insight, recommendations)
TREND_RULES: dict[str, tuple[str, list[str]]] = {
    IMPROVING: (
        "Code quality has improved over the analysed period",
        [
            "Continue current development practices",
            "Monitor for any quality regressions",
            "Consider sharing best practices with team",
        ],
    ),
    DECLINING: (
        "Code quality has declined and needs attention",
        [
            "Review recent commits for quality issues",
            "Consider implementing code review practices",
            "Focus on addressing technical debt",
        ],
    ),
    STABLE: (
        "Code quality has remained consistent",
        [
            "Continue current development practices",
            "Monitor for any quality regressions",
            "Consider sharing best practices with team",
        ],
    ),
}


class TrendAnalyzer:
    """Compare the mean of the most recent scores against the older ones.

    With ``n`` points, the recent window is the last ``recent_window``
    scores and the older window is ``scores[:max(1, n - recent_window)]``.
    The two overlap when ``n <= recent_window``; the older window then is
    just the first point.
    """

    def __init__(self, recent_window: int = 7, threshold: float = 0.05):
        self.recent_window = recent_window
        self.threshold = threshold

    def classify(self, delta: float) -> str:
        if delta > self.threshold:
            return IMPROVING
        if delta < -self.threshold:
            return DECLINING
        return STABLE

    def analyze(self, points: Sequence[TrendPoint]) -> TrendResult:
        """``points`` must be ordered oldest first."""
        if len(points) < 2:
            return TrendResult(
                trend=INSUFFICIENT_DATA,
                current_score=points[-1].score if points else None,
                historical_data=list(points),
                message="Need at least 2 data points for trend analysis",
            )

        scores = np.array([p.score for p in points], dtype=float)
        recent = scores[-self.recent_window :]
        older = scores[: max(1, len(scores) - self.recent_window)]

        recent_mean = float(np.mean(recent))
        delta = recent_mean - float(np.mean(older))
        trend = self.classify(delta)
        extra_insight, recommendations = TREND_RULES[trend]

        return TrendResult(
            trend=trend,
            current_score=float(scores[-1]),
            average_score=round(recent_mean, 3),
            score_change=round(delta, 3),
            historical_data=list(points),
            insights=[
                f"Quality trend is {trend}",
                f"Average score: {round(recent_mean * 100)}%",
                extra_insight,
            ],
            recommendations=list(recommendations),
        )
