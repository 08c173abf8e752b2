"""Deterministic commit-message heuristics.

Used in two places: the rule-based backend builds its message-level
quality report from them, and every quality report carries them under
``metrics`` regardless of which backend scored it.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Sequence

from ..models import CodeIssue, CommitCategory, CommitRecord, IssueType, Severity

CONVENTIONAL_RE = re.compile(r"^(feat|fix|docs|style|refactor|test|chore)(\(.+\))?:")
VAGUE_RE = re.compile(r"^(fix|update|change|wip)$", re.IGNORECASE)

# keyword groups, matched as case-insensitive substrings
PATTERN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "quick_fixes": ("quick", "hotfix", "urgent"),
    "technical_debt": ("todo", "fixme", "hack", "temporary"),
    "security_focus": ("security", "auth", "encrypt", "validate"),
    "testing_activity": ("test", "spec", "coverage"),
    "documentation": ("doc", "readme", "comment"),
    "refactoring": ("refactor", "cleanup", "reorganize"),
    "performance": ("performance", "optimize", "speed"),
}


@dataclass(frozen=True)
class MessageQuality:
    descriptive_percentage: int
    conventional_percentage: int
    vague_percentage: int
    average_length: int


@dataclass(frozen=True)
class CommitPatterns:
    quick_fixes: int = 0
    technical_debt: int = 0
    security_focus: int = 0
    testing_activity: int = 0
    documentation: int = 0
    refactoring: int = 0
    performance: int = 0
    health_score: float = 0.7


def _percent(count: int, total: int) -> int:
    return round(count / total * 100) if total else 0


def is_conventional(message: str) -> bool:
    return bool(CONVENTIONAL_RE.match(message))


def is_vague(message: str) -> bool:
    return len(message) < 15 or bool(VAGUE_RE.match(message.strip()))


def is_descriptive(message: str) -> bool:
    return len(message) > 20 and not VAGUE_RE.match(message.strip())


def analyze_message_quality(commits: Sequence[CommitRecord]) -> MessageQuality:
    total = len(commits)
    messages = [c.message or "" for c in commits]
    return MessageQuality(
        descriptive_percentage=_percent(sum(map(is_descriptive, messages)), total),
        conventional_percentage=_percent(sum(map(is_conventional, messages)), total),
        vague_percentage=_percent(sum(map(is_vague, messages)), total),
        average_length=round(sum(len(m) for m in messages) / total) if total else 0,
    )


def detect_commit_patterns(commits: Sequence[CommitRecord]) -> CommitPatterns:
    messages = [(c.message or "").lower() for c in commits]
    counts = {
        name: sum(1 for m in messages if any(k in m for k in keywords))
        for name, keywords in PATTERN_KEYWORDS.items()
    }
    return CommitPatterns(**counts, health_score=pattern_health_score(counts, len(commits)))


def pattern_health_score(counts: dict[str, int], total: int) -> float:
    score = 0.7
    if counts["testing_activity"] > 0:
        score += 0.1
    if counts["documentation"] > 0:
        score += 0.1
    if counts["security_focus"] > 0:
        score += 0.1
    if counts["refactoring"] > 0:
        score += 0.05
    if counts["performance"] > 0:
        score += 0.05
    if total and counts["quick_fixes"] / total > 0.3:
        score -= 0.2
    if total and counts["technical_debt"] / total > 0.2:
        score -= 0.1
    return max(0.0, min(1.0, score))


def fallback_quality_score(commits: Sequence[CommitRecord]) -> float:
    """Message-only quality score in [0.1, 1.0] without a language model."""
    if not commits:
        return 0.6
    quality = analyze_message_quality(commits)
    patterns = detect_commit_patterns(commits)

    score = 0.6
    if quality.conventional_percentage > 50:
        score += 0.1
    if quality.descriptive_percentage > 70:
        score += 0.1
    if patterns.testing_activity > 0:
        score += 0.1
    if patterns.quick_fixes / len(commits) > 0.3:
        score -= 0.2
    return max(0.1, min(1.0, score))


def category_distribution(commits: Sequence[CommitRecord]) -> dict[str, int]:
    counts = Counter(c.category or CommitCategory.OTHER.value for c in commits)
    return dict(sorted(counts.items()))


def message_issues(commits: Sequence[CommitRecord]) -> list[CodeIssue]:
    """Issues a reviewer would raise from commit messages alone."""
    if not commits:
        return []
    quality = analyze_message_quality(commits)
    patterns = detect_commit_patterns(commits)
    issues = []

    if patterns.technical_debt > 0:
        issues.append(
            CodeIssue(
                type=IssueType.TECHNICAL_DEBT.value,
                severity=Severity.MEDIUM.value,
                description=f"Found {patterns.technical_debt} commits with technical debt indicators",
                suggestion="Review TODO and FIXME comments for prioritization",
                commit_count=patterns.technical_debt,
            )
        )

    if patterns.quick_fixes / len(commits) > 0.3:
        issues.append(
            CodeIssue(
                type=IssueType.PROCESS.value,
                severity=Severity.MEDIUM.value,
                description="High percentage of quick fixes and hotfixes",
                suggestion="Consider implementing better testing and review processes",
                commit_count=patterns.quick_fixes,
            )
        )

    if quality.vague_percentage > 50:
        issues.append(
            CodeIssue(
                type=IssueType.DOCUMENTATION.value,
                severity=Severity.LOW.value,
                description="Many commit messages are too vague or short",
                suggestion="Use more descriptive commit messages following conventional format",
                commit_count=round(len(commits) * quality.vague_percentage / 100),
            )
        )
    return issues


def message_insights(commits: Sequence[CommitRecord]) -> list[str]:
    quality = analyze_message_quality(commits)
    patterns = detect_commit_patterns(commits)
    return [
        f"Analyzed {len(commits)} commits",
        f"{quality.conventional_percentage}% use conventional format",
        f"{patterns.testing_activity} commits related to testing",
        f"Average message length: {quality.average_length} characters",
    ]


def message_recommendations(commits: Sequence[CommitRecord]) -> list[str]:
    quality = analyze_message_quality(commits)
    patterns = detect_commit_patterns(commits)
    return [
        "Consider using conventional commit format"
        if quality.conventional_percentage < 50
        else "Good commit message format",
        "Consider adding more test coverage"
        if patterns.testing_activity == 0
        else "Good testing activity",
        "Consider adding documentation updates"
        if patterns.documentation == 0
        else "Good documentation activity",
        "Continue monitoring code quality metrics",
    ]


def report_metrics(commits: Sequence[CommitRecord]) -> dict:
    """Metrics block attached to every quality report."""
    return {
        "commit_distribution": category_distribution(commits),
        "message_quality": asdict(analyze_message_quality(commits)),
        "patterns": asdict(detect_commit_patterns(commits)),
    }
