"""Merge message-level and code-level signals into one quality report."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from ..config import DEFAULT_SCORING, ScoringConfig
from ..models import AnalysisResult, CodeIssue, IssueType, QualityReport


class ScoreCombiner:
    """Weighted combination of a message score and a code-review score.

    Degraded per-commit records (diff unavailable, backend failure) are
    kept in the report for transparency but contribute nothing to the
    code score; when no record contributes the report stays ``basic``.
    """

    def __init__(self, scoring: ScoringConfig = DEFAULT_SCORING):
        self.scoring = scoring

    def code_score(self, reviews: Sequence[AnalysisResult]) -> float:
        s = self.scoring
        score = s.code_base_score
        for review in reviews:
            for issue in review.issues:
                score -= s.penalty_for(issue.severity)
            score += s.positive_bonus * len(set(review.positives))
        return max(s.score_floor, min(s.score_ceiling, score))

    def combine(self, message_report: QualityReport, reviews: Sequence[AnalysisResult]) -> QualityReport:
        """Return a new report; ``message_report`` is left untouched."""
        contributing = [r for r in reviews if not r.degraded]
        metadata = replace(
            message_report.metadata,
            code_commits_analyzed=len(contributing),
            lines_analyzed=sum(r.lines_analyzed for r in contributing),
        )

        if not contributing:
            return replace(
                message_report,
                issues=list(message_report.issues),
                insights=list(message_report.insights),
                recommendations=list(message_report.recommendations),
                metadata=replace(metadata, analysis_method="basic"),
                code_analysis=list(reviews),
            )

        s = self.scoring
        combined = s.message_weight * message_report.quality_score + s.code_weight * self.code_score(
            contributing
        )

        code_issues = [
            CodeIssue(
                type=IssueType.CODE_QUALITY.value,
                severity=issue.severity,
                description=f"Code: {issue.description}",
                suggestion=issue.suggestion,
                line=issue.line,
                example=issue.example,
            )
            for review in contributing
            for issue in review.issues
        ]
        code_insights = [
            f"Analyzed {len(contributing)} commits with {metadata.lines_analyzed} lines of code"
        ]
        code_insights += [
            f"Code review: {r.overall_assessment}" for r in contributing if r.overall_assessment
        ]
        code_recommendations = [a for r in contributing for a in r.recommended_actions]

        return replace(
            message_report,
            quality_score=max(0.0, min(1.0, combined)),
            issues=list(message_report.issues) + code_issues,
            insights=list(message_report.insights) + code_insights,
            recommendations=list(message_report.recommendations) + code_recommendations,
            metadata=replace(metadata, analysis_method="enhanced"),
            code_analysis=list(reviews),
        )
