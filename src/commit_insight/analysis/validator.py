"""Normalise unreliable backend output into canonical result objects.

Language models return JSON wrapped in markdown fences, JSON with a
preamble, numbers as strings, lists encoded as JSON strings, or enum
values outside the allowed set. Everything here is total: each
``parse_*`` function returns a structurally valid object whatever it is
given. When nothing usable can be recovered the result carries
``confidence <= FAILURE_CONFIDENCE`` and a description saying so.

Responses produced by the rule-based backend are additionally capped at
``MAX_FALLBACK_CONFIDENCE``.
"""

from __future__ import annotations

import json
import math
import re
from enum import Enum
from typing import Any, Optional, Sequence, Type

from ..backends.base import RawResponse
from ..backends.fallback import MAX_FALLBACK_CONFIDENCE, categorize_message
from ..exceptions import ErrorCode, MalformedResponseError
from ..logging_config import get_logger
from ..models import (
    AnalysisResult,
    CodeIssue,
    CommitCategory,
    CommitDescription,
    CommitRecord,
    Impact,
    IssueType,
    MessageSuggestion,
    Priority,
    QualityMetadata,
    QualityReport,
    Severity,
    TaskSuggestion,
)

logger = get_logger(__name__)

FAILURE_CONFIDENCE = 0.3
DEFAULT_REVIEW_CONFIDENCE = 0.8
DEFAULT_MESSAGE_SCORE = 0.5
FAILED_MESSAGE_SCORE = 0.6

MAX_MESSAGE_LENGTH = 100
MIN_SUMMARY_LENGTH = 20
MAX_SUMMARY_LENGTH = 1000

CONVENTIONAL_TYPES = ("feat", "fix", "docs", "style", "refactor", "test", "chore")
CONVENTIONAL_COMMIT_RE = re.compile(
    r"^(feat|fix|docs|style|refactor|test|chore|build|ci|perf|revert)(\(.+\))?!?:\s.+"
)
_IMPROVED_FORMAT_RE = re.compile(r"^(feat|fix|docs|style|refactor|test|chore)(\(.+\))?:")
_LAZY_MESSAGE_RE = re.compile(r"^(fix|update|change|wip)$", re.IGNORECASE)
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)

CATEGORY_ALIASES = {
    "feat": "feature",
    "features": "feature",
    "enhancement": "feature",
    "fix": "bugfix",
    "bug": "bugfix",
    "bug_fix": "bugfix",
    "refactoring": "refactor",
    "optimization": "refactor",
    "documentation": "docs",
    "doc": "docs",
    "tests": "test",
    "testing": "test",
    "build": "chore",
    "ci": "chore",
    "config": "chore",
}


# ── JSON extraction ───────────────────────────────────────────────


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first ``{...}`` block with balanced braces, honouring strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : pos + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: Optional[str]) -> Any:
    """Parse JSON out of model text.

    Tried in order: the whole text, the contents of a markdown code
    fence, the first balanced ``{...}`` block.

    Raises:
        MalformedResponseError: If none of the three yields valid JSON
    """
    if not text or not text.strip():
        raise MalformedResponseError(message="Empty model response", code=ErrorCode.CI200)

    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    block = _first_balanced_object(text)
    if block:
        candidates.append(block)

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue

    raise MalformedResponseError(
        message="Model response is not valid JSON",
        code=ErrorCode.CI200,
        context={"preview": text[:120]},
    )


def _structured(raw: RawResponse) -> Any:
    if raw.payload is not None:
        return raw.payload
    return extract_json(raw.text)


def _expect_dict(data: Any, kind: str) -> dict:
    if not isinstance(data, dict):
        raise MalformedResponseError(
            message=f"Expected a JSON object for {kind}, got {type(data).__name__}",
            code=ErrorCode.CI201,
        )
    return data


# ── coercion ──────────────────────────────────────────────────────


def clamp(value: Any, default: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Float in ``[lo, hi]``; non-numeric input gives ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number):
        return default
    return max(lo, min(hi, number))


def to_int(value: Any, default: int) -> int:
    """Integer from ``value``; non-numeric, NaN or infinite input gives ``default``."""
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def coerce_enum(value: Any, enum_cls: Type[Enum], default: Enum, aliases: Optional[dict] = None) -> str:
    """Lower-cased enum value, alias-mapped; anything else becomes ``default``."""
    if not isinstance(value, str):
        return default.value
    candidate = value.strip().lower().replace("-", "_").replace(" ", "_")
    if aliases:
        candidate = aliases.get(candidate, candidate)
    allowed = {member.value for member in enum_cls}
    return candidate if candidate in allowed else default.value


def coerce_category(value: Any) -> str:
    return coerce_enum(value, CommitCategory, CommitCategory.OTHER, CATEGORY_ALIASES)


def coerce_string_list(value: Any) -> list[str]:
    """List of non-empty strings from a list, a JSON-encoded list or a string."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith(("[", "{")):
            try:
                return coerce_string_list(json.loads(stripped))
            except (json.JSONDecodeError, ValueError):
                pass
        return [stripped] if stripped else []
    if isinstance(value, dict):
        return [str(v).strip() for v in value.values() if v is not None and str(v).strip()]
    if isinstance(value, (list, tuple)):
        result = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("description") or item.get("text") or item.get("title")
                if text:
                    result.append(str(text).strip())
            elif item is not None and str(item).strip():
                result.append(str(item).strip())
        return result
    return []


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def coerce_issue(item: Any, default_type: IssueType) -> Optional[CodeIssue]:
    if isinstance(item, str):
        item = {"description": item}
    if not isinstance(item, dict):
        return None
    description = _text(item.get("description"))
    if not description:
        return None
    commit_count = max(1, to_int(item.get("commitCount", item.get("commit_count", 1)), 1))
    return CodeIssue(
        type=coerce_enum(item.get("type"), IssueType, default_type),
        severity=coerce_enum(item.get("severity"), Severity, Severity.MEDIUM),
        description=description,
        suggestion=_text(item.get("suggestion")),
        line=_text(item.get("line"), "unknown"),
        example=_text(item.get("example")),
        commit_count=commit_count,
    )


def coerce_issues(value: Any, default_type: IssueType) -> list[CodeIssue]:
    if isinstance(value, str) and value.strip().startswith(("[", "{")):
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return []
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    issues = (coerce_issue(item, default_type) for item in value)
    return [issue for issue in issues if issue is not None]


def _cap(confidence: float, raw: RawResponse) -> float:
    return min(confidence, MAX_FALLBACK_CONFIDENCE) if raw.from_fallback else confidence


def _log_malformed(error: MalformedResponseError, raw: RawResponse) -> None:
    logger.warning("Unusable %s response from %s backend: %s", raw.kind.value, raw.method, error)


# ── categorization ────────────────────────────────────────────────


def _categorization_entries(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("analysis", "analyses", "commits", "results"):
            if isinstance(data.get(key), list):
                return data[key]
    raise MalformedResponseError(
        message="Categorization response has no analysis list", code=ErrorCode.CI201
    )


def parse_categorization(raw: RawResponse, commits: Sequence[CommitRecord]) -> list[AnalysisResult]:
    """One AnalysisResult per commit, in input order."""
    try:
        entries = _categorization_entries(_structured(raw))
    except MalformedResponseError as e:
        _log_malformed(e, raw)
        entries = []

    by_index: dict[int, dict] = {}
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            continue
        index = to_int(entry.get("index", position), position)
        by_index.setdefault(index, entry)

    results = []
    for index, commit in enumerate(commits, start=1):
        entry = by_index.get(index)
        if entry is None:
            category, reason = categorize_message(commit.message)
            results.append(
                AnalysisResult(
                    sha=commit.sha,
                    category=category,
                    confidence=FAILURE_CONFIDENCE,
                    reason=f"No analysis returned for this commit; {reason.lower()}",
                    method=raw.method,
                )
            )
            continue
        results.append(
            AnalysisResult(
                sha=commit.sha,
                category=coerce_category(entry.get("category")),
                confidence=_cap(clamp(entry.get("confidence"), FAILURE_CONFIDENCE), raw),
                reason=_text(entry.get("reason")),
                method=raw.method,
            )
        )
    return results


# ── quality ───────────────────────────────────────────────────────


def parse_message_quality(raw: RawResponse, commits: Sequence[CommitRecord]) -> QualityReport:
    """Message-level quality report (``analysis_method == "basic"``)."""
    metadata = QualityMetadata(commits_analyzed=len(commits), backend=raw.method)
    try:
        data = _expect_dict(_structured(raw), "quality analysis")
    except MalformedResponseError as e:
        _log_malformed(e, raw)
        return QualityReport(
            quality_score=FAILED_MESSAGE_SCORE,
            issues=[
                CodeIssue(
                    type=IssueType.ANALYSIS_ERROR.value,
                    severity=Severity.LOW.value,
                    description="Quality analysis response could not be parsed",
                    suggestion="Re-run the analysis later",
                )
            ],
            insights=[f"Analyzed {len(commits)} commits (automated review incomplete)"],
            recommendations=["Continue monitoring code quality metrics"],
            metadata=metadata,
        )

    return QualityReport(
        quality_score=clamp(data.get("qualityScore", data.get("quality_score")), DEFAULT_MESSAGE_SCORE),
        issues=coerce_issues(data.get("issues"), IssueType.MAINTAINABILITY),
        insights=coerce_string_list(data.get("insights")),
        recommendations=coerce_string_list(data.get("recommendations")),
        metadata=metadata,
    )


def parse_code_review(raw: RawResponse, commit: CommitRecord, lines_analyzed: int = 0) -> AnalysisResult:
    """Deep per-commit review."""
    category = commit.category or CommitCategory.OTHER.value
    try:
        data = _expect_dict(_structured(raw), "code review")
    except MalformedResponseError as e:
        _log_malformed(e, raw)
        return AnalysisResult(
            sha=commit.sha,
            category=category,
            severity=Severity.LOW.value,
            confidence=FAILURE_CONFIDENCE,
            issues=(
                CodeIssue(
                    type=IssueType.ANALYSIS_ERROR.value,
                    severity=Severity.LOW.value,
                    description="Code analysis incomplete",
                    suggestion="Review this commit manually",
                ),
            ),
            overall_assessment="Code review response could not be parsed",
            method=raw.method,
            lines_analyzed=lines_analyzed,
        )

    return AnalysisResult(
        sha=commit.sha,
        category=category,
        severity=coerce_enum(data.get("severity"), Severity, Severity.MEDIUM),
        confidence=_cap(clamp(data.get("confidence"), DEFAULT_REVIEW_CONFIDENCE), raw),
        issues=tuple(coerce_issues(data.get("issues"), IssueType.QUALITY)),
        positives=tuple(coerce_string_list(data.get("positives"))),
        recommended_actions=tuple(
            coerce_string_list(data.get("recommendedActions", data.get("recommended_actions")))
        ),
        overall_assessment=_text(data.get("overallAssessment", data.get("overall_assessment"))),
        method=raw.method,
        lines_analyzed=lines_analyzed,
    )


# ── commit messages ───────────────────────────────────────────────


def is_conventional_commit(message: str) -> bool:
    return bool(CONVENTIONAL_COMMIT_RE.match(message))


def clean_commit_suggestion(suggestion: Any) -> str:
    """Single-line conventional commit message of at most 100 characters."""
    if not isinstance(suggestion, str) or not suggestion.strip():
        return "chore: update code"

    lines = [line.strip() for line in suggestion.strip().splitlines() if line.strip()]
    lines = [line for line in lines if not line.startswith("```")] or ["update code"]
    cleaned = lines[0].strip().strip("`").strip("\"'").strip()

    if len(cleaned) > MAX_MESSAGE_LENGTH:
        colon = cleaned.find(":")
        if 0 < colon < 20:
            prefix = cleaned[: colon + 1]
            description = cleaned[colon + 1 :].strip()
            cleaned = f"{prefix} {description[: MAX_MESSAGE_LENGTH - len(prefix) - 1]}"
        else:
            cleaned = cleaned[:MAX_MESSAGE_LENGTH]

    if not is_conventional_commit(cleaned):
        lowered = cleaned.lower()
        found = next((t for t in CONVENTIONAL_TYPES if re.search(rf"\b{t}\b", lowered)), None)
        if found:
            remaining = re.sub(rf"\b{found}\b", "", cleaned, count=1, flags=re.IGNORECASE)
            remaining = re.sub(r"^[\s:(),!-]+", "", remaining).strip()
            cleaned = f"{found}: {remaining or 'update code'}"
        else:
            cleaned = f"chore: {cleaned or 'update code'}"

    return cleaned[:MAX_MESSAGE_LENGTH].rstrip()


def is_message_improved(original: str, suggested: str) -> bool:
    if not original or not original.strip():
        return True
    return (
        bool(_IMPROVED_FORMAT_RE.match(suggested))
        or len(suggested) > len(original) + 10
        or bool(_LAZY_MESSAGE_RE.match(original.strip()))
    )


def parse_message_suggestion(raw: RawResponse, current_message: str) -> MessageSuggestion:
    text = raw.text
    if text is None and isinstance(raw.payload, dict):
        text = raw.payload.get("suggested") or raw.payload.get("message")
    elif text is None and isinstance(raw.payload, str):
        text = raw.payload
    suggested = clean_commit_suggestion(text)
    return MessageSuggestion(
        original=current_message,
        suggested=suggested,
        improved=is_message_improved(current_message, suggested),
        method=raw.method,
    )


def parse_commit_description(raw: RawResponse, commit: CommitRecord, diff_size: int) -> CommitDescription:
    try:
        data = _expect_dict(_structured(raw), "commit description")
    except MalformedResponseError as e:
        _log_malformed(e, raw)
        return CommitDescription(
            sha=commit.sha,
            suggested_message=clean_commit_suggestion(commit.subject),
            description="Analysis response could not be parsed",
            analysis="Automated analysis incomplete",
            confidence=FAILURE_CONFIDENCE,
            diff_size=diff_size,
            method=raw.method,
        )

    return CommitDescription(
        sha=commit.sha,
        suggested_message=clean_commit_suggestion(
            data.get("suggestedMessage", data.get("suggested_message"))
        ),
        description=_text(data.get("description"), "No description provided"),
        analysis=_text(data.get("analysis"), "No analysis provided"),
        confidence=_cap(clamp(data.get("confidence"), 0.5), raw),
        impact=coerce_enum(data.get("impact"), Impact, Impact.MEDIUM),
        quality=coerce_enum(data.get("quality"), Impact, Impact.MEDIUM),
        diff_size=diff_size,
        method=raw.method,
    )


# ── summaries and tasks ───────────────────────────────────────────


def parse_summary(raw: RawResponse) -> str:
    text = raw.text
    if text is None:
        payload = raw.payload
        text = payload.get("summary") if isinstance(payload, dict) else payload
    if not isinstance(text, str) or not text.strip():
        logger.warning("Empty %s response from %s backend", raw.kind.value, raw.method)
        return "No summary could be generated for this period."

    fenced = _FENCE_RE.search(text)
    summary = (fenced.group(1) if fenced else text).strip().strip("\"'").strip()

    if len(summary) < MIN_SUMMARY_LENGTH:
        summary = f"Daily development summary: {summary}"
    if len(summary) > MAX_SUMMARY_LENGTH:
        head = summary[:MAX_SUMMARY_LENGTH]
        end = head.rfind(". ")
        summary = head[: end + 1] if end > 0 else head[: MAX_SUMMARY_LENGTH - 3].rstrip() + "..."
    return summary


def has_required_task_fields(task: Any) -> bool:
    """A cached task is usable only with ``based_on`` and a repositories list."""
    if not isinstance(task, dict):
        return False
    return bool(task.get("based_on")) and isinstance(task.get("repositories"), list)


def _task_entries(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("tasks", "suggestions"):
            if isinstance(data.get(key), list):
                return data[key]
    raise MalformedResponseError(message="Task response has no task list", code=ErrorCode.CI201)


def parse_tasks(raw: RawResponse, commits: Sequence[CommitRecord]) -> list[TaskSuggestion]:
    repositories = sorted({c.repository for c in commits if c.repository}) or ["current"]
    try:
        entries = _task_entries(_structured(raw))
    except MalformedResponseError as e:
        _log_malformed(e, raw)
        entries = []

    tasks = []
    for entry in entries:
        if not isinstance(entry, dict) or not _text(entry.get("title")):
            continue
        task_repos = coerce_string_list(entry.get("repositories")) or repositories
        tasks.append(
            TaskSuggestion(
                title=_text(entry.get("title")),
                description=_text(entry.get("description")),
                priority=coerce_enum(entry.get("priority"), Priority, Priority.MEDIUM),
                category=coerce_enum(
                    entry.get("category"), CommitCategory, CommitCategory.FEATURE, CATEGORY_ALIASES
                ),
                estimated_time=_text(entry.get("estimatedTime", entry.get("estimated_time")), "1-2 hours"),
                based_on=_text(entry.get("basedOn", entry.get("based_on")), "recent_commits"),
                repositories=tuple(task_repos),
                tags=tuple(coerce_string_list(entry.get("tags"))),
            )
        )

    if not tasks:
        tasks.append(
            TaskSuggestion(
                title="Review recent changes",
                description="Look over recent commits and plan next steps",
                priority=Priority.MEDIUM.value,
                category=CommitCategory.CHORE.value,
                estimated_time="30 minutes",
                based_on="recent_commits",
                repositories=tuple(repositories),
            )
        )
    return tasks
