"""Rule-based backend used when no language model is available.

Keyword heuristics that answer every :class:`AnalysisKind` in the same
schema the language-model prompts ask for, so the response validator
treats both backends identically. Confidence never exceeds
``MAX_FALLBACK_CONFIDENCE``.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Callable, Sequence

from ..analysis import metrics
from ..logging_config import get_logger
from ..models import AnalysisMethod, CommitRecord
from .base import AnalysisBackend, AnalysisKind, AnalysisRequest, RawResponse

logger = get_logger(__name__)

MAX_FALLBACK_CONFIDENCE = 0.65
CATEGORY_CONFIDENCE = 0.6
DESCRIPTION_CONFIDENCE = 0.4
REVIEW_CONFIDENCE = 0.5

# first matching rule wins
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("bugfix", ("fix", "bug", "error"), "Contains fix/bug/error keywords"),
    ("feature", ("feat", "add", "new"), "Contains feature/add/new keywords"),
    ("refactor", ("refactor", "clean", "improve"), "Contains refactor/clean/improve keywords"),
    ("docs", ("doc", "readme"), "Contains documentation keywords"),
    ("test", ("test", "spec"), "Contains test/spec keywords"),
)

MESSAGE_TYPE_RULES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("fix", ("fix", "bug"), "Bug fixes and corrections"),
    ("feat", ("feat", "add"), "New feature or functionality added"),
    ("refactor", ("refactor", "clean"), "Code refactoring and improvements"),
    ("docs", ("doc",), "Documentation updates"),
    ("test", ("test",), "Testing updates"),
)

_DEBUG_OUTPUT_RE = re.compile(r"\bconsole\.log\(|\bprint\(|\bdebugger\b|\bpdb\.set_trace\(")
_DEBT_MARKER_RE = re.compile(r"\b(TODO|FIXME|HACK|XXX)\b")
_SECRET_RE = re.compile(r"(password|passwd|secret|api_key|apikey|token)\s*[:=]\s*['\"][^'\"]{4,}['\"]", re.I)


def categorize_message(message: str) -> tuple[str, str]:
    """(category, reason) for a commit message."""
    lowered = message.lower()
    for category, keywords, reason in CATEGORY_RULES:
        if any(k in lowered for k in keywords):
            return category, reason
    return "other", "No category keywords found"


def diff_lines(diff: str) -> tuple[list[str], list[str]]:
    """Added and removed lines of a unified diff, without the +/- marker."""
    added, removed = [], []
    for line in diff.splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            added.append(line[1:])
        elif line.startswith("-") and not line.startswith("---"):
            removed.append(line[1:])
    return added, removed


def suggest_message_type(diff: str) -> tuple[str, str]:
    """Conventional type and a generic description guessed from diff content."""
    if "test" in diff or "spec" in diff:
        return "test", "add or update tests"
    if "README" in diff or "docs/" in diff:
        return "docs", "update documentation"
    if "fix" in diff or "bug" in diff:
        return "fix", "resolve issue"
    if "function" in diff or "class" in diff or "def " in diff:
        return "feat", "add new functionality"
    return "chore", "update code"


class RuleBasedBackend(AnalysisBackend):
    """Deterministic backend built from keyword and diff heuristics."""

    name = "fallback"

    def __init__(self) -> None:
        self._handlers: dict[AnalysisKind, Callable[[AnalysisRequest], Any]] = {
            AnalysisKind.CATEGORIZE: self._categorize,
            AnalysisKind.MESSAGE_QUALITY: self._message_quality,
            AnalysisKind.CODE_REVIEW: self._code_review,
            AnalysisKind.COMMIT_DESCRIPTION: self._commit_description,
            AnalysisKind.MESSAGE_SUGGESTION: self._message_suggestion,
            AnalysisKind.DAILY_SUMMARY: self._daily_summary,
            AnalysisKind.TASK_SUGGESTIONS: self._task_suggestions,
        }

    def run(self, request: AnalysisRequest) -> RawResponse:
        logger.debug("Rule-based %s for %d commit(s)", request.kind.value, len(request.commits))
        result = self._handlers[request.kind](request)
        if isinstance(result, str):
            return RawResponse(kind=request.kind, method=AnalysisMethod.FALLBACK.value, text=result)
        return RawResponse(kind=request.kind, method=AnalysisMethod.FALLBACK.value, payload=result)

    # ── batch kinds ──────────────────────────────────────────────

    def _categorize(self, request: AnalysisRequest) -> dict:
        analysis = []
        for index, commit in enumerate(request.commits, start=1):
            category, reason = categorize_message(commit.message)
            analysis.append(
                {
                    "index": index,
                    "category": category,
                    "confidence": CATEGORY_CONFIDENCE,
                    "reason": f"Keyword-based: {reason.lower()}",
                }
            )
        return {"analysis": analysis}

    def _message_quality(self, request: AnalysisRequest) -> dict:
        commits = request.commits
        return {
            "qualityScore": metrics.fallback_quality_score(commits),
            "issues": [
                {
                    "type": issue.type,
                    "severity": issue.severity,
                    "description": issue.description,
                    "suggestion": issue.suggestion,
                    "commitCount": issue.commit_count,
                }
                for issue in metrics.message_issues(commits)
            ],
            "insights": metrics.message_insights(commits) if commits else [],
            "recommendations": metrics.message_recommendations(commits) if commits else [],
        }

    def _daily_summary(self, request: AnalysisRequest) -> str:
        return template_summary(request.commits)

    def _task_suggestions(self, request: AnalysisRequest) -> dict:
        commits = request.commits
        repositories = sorted({c.repository for c in commits if c.repository}) or ["current"]
        messages = [c.message.lower() for c in commits]

        tasks = [
            {
                "title": "Review recent changes",
                "description": "Look over recent commits and plan next steps",
                "priority": "medium",
                "category": "chore",
                "estimatedTime": "30 minutes",
                "basedOn": "recent_commits",
                "repositories": repositories,
                "tags": ["review"],
            }
        ]
        if any("test" in m for m in messages):
            tasks.append(
                {
                    "title": "Expand test coverage",
                    "description": "Add more tests based on recent test-related commits",
                    "priority": "medium",
                    "category": "test",
                    "estimatedTime": "45 minutes",
                    "basedOn": "test_commits",
                    "repositories": repositories,
                    "tags": ["testing"],
                }
            )
        if any("fix" in m for m in messages):
            tasks.append(
                {
                    "title": "Code review and quality check",
                    "description": "Review recent fixes to prevent similar issues",
                    "priority": "high",
                    "category": "bugfix",
                    "estimatedTime": "60 minutes",
                    "basedOn": "fix_commits",
                    "repositories": repositories,
                    "tags": ["quality"],
                }
            )
        return {"tasks": tasks}

    # ── per-commit kinds ─────────────────────────────────────────

    def _code_review(self, request: AnalysisRequest) -> dict:
        added, removed = diff_lines(request.diff)
        issues = []

        if any(_DEBUG_OUTPUT_RE.search(line) for line in added):
            issues.append(
                {
                    "type": "quality",
                    "severity": "low",
                    "line": "multiple",
                    "description": "Debug output statements added",
                    "suggestion": "Remove debug output or route it through a logger",
                }
            )
        if any(_DEBT_MARKER_RE.search(line) for line in added):
            issues.append(
                {
                    "type": "maintainability",
                    "severity": "medium",
                    "line": "multiple",
                    "description": "TODO/FIXME markers added",
                    "suggestion": "Track the pending work in an issue and resolve it",
                }
            )
        if any(_SECRET_RE.search(line) for line in added):
            issues.append(
                {
                    "type": "security",
                    "severity": "high",
                    "line": "multiple",
                    "description": "Possible hardcoded credential",
                    "suggestion": "Load secrets from the environment or a secret store",
                }
            )

        positives = []
        if len(added) > len(removed):
            positives.append("Code additions detected")
        if "test" in request.diff.lower():
            positives.append("Changes touch tests")

        severity = max(
            (i["severity"] for i in issues),
            key=("low", "medium", "high", "critical").index,
            default="low",
        )
        return {
            "severity": severity,
            "issues": issues,
            "positives": positives,
            "overallAssessment": (
                f"Heuristic review: {len(added)} lines added, {len(removed)} removed, "
                f"{len(issues)} potential issue(s)"
            ),
            "recommendedActions": [i["suggestion"] for i in issues],
            "confidence": REVIEW_CONFIDENCE,
        }

    def _commit_description(self, request: AnalysisRequest) -> dict:
        commit = request.commit
        message = commit.message if commit and commit.message else "No message"
        lowered = message.lower()
        suggested_type, description = "chore", "Code changes made"
        for type_, keywords, text in MESSAGE_TYPE_RULES:
            if any(k in lowered for k in keywords):
                suggested_type, description = type_, text
                break
        diff_size = len(request.diff)
        return {
            "suggestedMessage": f"{suggested_type}: {message.splitlines()[0][:50]}",
            "description": description,
            "analysis": f"Heuristic analysis: {suggested_type} commit with {diff_size} characters of changes",
            "confidence": DESCRIPTION_CONFIDENCE,
            "impact": "medium",
            "quality": "medium",
        }

    def _message_suggestion(self, request: AnalysisRequest) -> str:
        suggested_type, description = suggest_message_type(request.diff)
        current = request.current_message.strip()
        return f"{suggested_type}: {current or description}"


def template_summary(commits: Sequence[CommitRecord]) -> str:
    total = len(commits)
    if total == 0:
        return "No commits found for this period."
    if total == 1:
        return "You made 1 commit. Keep up the good work!"
    categories = list(Counter(c.category or "other" for c in commits))
    return f"You made {total} commits across different areas: {', '.join(categories)}. Keep up the great work!"
