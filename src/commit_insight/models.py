"""Data models shared by the analysis, backend and persistence layers.

Everything that is cached round-trips through ``to_dict()`` /
``from_dict()`` as plain JSON-compatible data, so a report read back from
the store compares equal to the report that was written.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class CommitCategory(str, Enum):
    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class IssueType(str, Enum):
    QUALITY = "quality"
    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    BUG = "bug"
    STYLE = "style"
    TECHNICAL_DEBT = "technical_debt"
    TESTING = "testing"
    PROCESS = "process"
    DOCUMENTATION = "documentation"
    CODE_QUALITY = "code_quality"
    ANALYSIS_ERROR = "analysis_error"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnalysisMethod(str, Enum):
    LLM = "llm"
    FALLBACK = "fallback"
    DEGRADED = "degraded"  # diff or backend failure for this unit


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ── commits ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class CommitRecord:
    """A commit as delivered by a commit source. Never mutated."""

    sha: str
    message: str
    author: str = ""
    date: Optional[datetime] = None
    diff: Optional[str] = None
    category: Optional[str] = None  # set after categorization
    repository: Optional[str] = None
    parents: tuple[str, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0].strip()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1 or self.message.startswith("Merge ")

    def with_category(self, category: str) -> "CommitRecord":
        return replace(self, category=category)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": self.author,
            "date": _iso(self.date),
            "category": self.category,
            "repository": self.repository,
            "parents": list(self.parents),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommitRecord":
        return cls(
            sha=data["sha"],
            message=data.get("message", ""),
            author=data.get("author", ""),
            date=_parse_dt(data.get("date")),
            category=data.get("category"),
            repository=data.get("repository"),
            parents=tuple(data.get("parents") or ()),
        )


# ── per-commit analysis ───────────────────────────────────────────


@dataclass(frozen=True)
class CodeIssue:
    type: str
    severity: str
    description: str
    suggestion: str = ""
    line: str = "unknown"
    example: str = ""
    commit_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeIssue":
        return cls(**data)


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analysing one commit (categorization or code review).

    Write-once: once stored for a SHA it is never recomputed.
    """

    sha: str
    category: str = CommitCategory.OTHER.value
    severity: str = Severity.LOW.value
    confidence: float = 0.0  # [0, 1]
    reason: str = ""
    issues: tuple[CodeIssue, ...] = ()
    positives: tuple[str, ...] = ()
    recommended_actions: tuple[str, ...] = ()
    suggested_message: Optional[str] = None
    overall_assessment: str = ""
    method: str = AnalysisMethod.LLM.value
    lines_analyzed: int = 0

    @property
    def degraded(self) -> bool:
        return self.method == AnalysisMethod.DEGRADED.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "sha": self.sha,
            "category": self.category,
            "severity": self.severity,
            "confidence": self.confidence,
            "reason": self.reason,
            "issues": [i.to_dict() for i in self.issues],
            "positives": list(self.positives),
            "recommended_actions": list(self.recommended_actions),
            "suggested_message": self.suggested_message,
            "overall_assessment": self.overall_assessment,
            "method": self.method,
            "lines_analyzed": self.lines_analyzed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        return cls(
            sha=data["sha"],
            category=data.get("category", CommitCategory.OTHER.value),
            severity=data.get("severity", Severity.LOW.value),
            confidence=data.get("confidence", 0.0),
            reason=data.get("reason", ""),
            issues=tuple(CodeIssue.from_dict(i) for i in data.get("issues", [])),
            positives=tuple(data.get("positives", [])),
            recommended_actions=tuple(data.get("recommended_actions", [])),
            suggested_message=data.get("suggested_message"),
            overall_assessment=data.get("overall_assessment", ""),
            method=data.get("method", AnalysisMethod.LLM.value),
            lines_analyzed=data.get("lines_analyzed", 0),
        )


# ── quality reports ───────────────────────────────────────────────


@dataclass
class QualityMetadata:
    commits_analyzed: int
    analysis_method: str = "basic"  # "basic" | "enhanced"
    timeframe: str = "weekly"
    code_commits_analyzed: int = 0
    lines_analyzed: int = 0
    backend: str = AnalysisMethod.LLM.value  # which backend produced the message score


@dataclass
class QualityReport:
    quality_score: float  # [0, 1]
    issues: list[CodeIssue] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    metadata: QualityMetadata = field(default_factory=lambda: QualityMetadata(0))
    metrics: dict[str, Any] = field(default_factory=dict)
    code_analysis: list[AnalysisResult] = field(default_factory=list)
    cache_key: str = ""
    repository_id: str = ""
    analysis_date: str = ""  # YYYY-MM-DD
    created_at: Optional[datetime] = None

    @property
    def analysis_method(self) -> str:
        return self.metadata.analysis_method

    def to_dict(self) -> dict[str, Any]:
        return {
            "quality_score": self.quality_score,
            "issues": [i.to_dict() for i in self.issues],
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "metadata": asdict(self.metadata),
            "metrics": self.metrics,
            "code_analysis": [r.to_dict() for r in self.code_analysis],
            "cache_key": self.cache_key,
            "repository_id": self.repository_id,
            "analysis_date": self.analysis_date,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QualityReport":
        return cls(
            quality_score=data["quality_score"],
            issues=[CodeIssue.from_dict(i) for i in data.get("issues", [])],
            insights=list(data.get("insights", [])),
            recommendations=list(data.get("recommendations", [])),
            metadata=QualityMetadata(**data.get("metadata", {"commits_analyzed": 0})),
            metrics=data.get("metrics", {}),
            code_analysis=[AnalysisResult.from_dict(r) for r in data.get("code_analysis", [])],
            cache_key=data.get("cache_key", ""),
            repository_id=data.get("repository_id", ""),
            analysis_date=data.get("analysis_date", ""),
            created_at=_parse_dt(data.get("created_at")),
        )


# ── trends ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TrendPoint:
    date: str  # YYYY-MM-DD
    score: float
    issue_count: int


@dataclass
class TrendResult:
    trend: str  # "improving" | "declining" | "stable" | "insufficient_data"
    current_score: Optional[float] = None
    average_score: Optional[float] = None
    score_change: Optional[float] = None
    historical_data: list[TrendPoint] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── suggestions and summaries ─────────────────────────────────────


@dataclass(frozen=True)
class MessageSuggestion:
    original: str
    suggested: str
    improved: bool
    method: str = AnalysisMethod.LLM.value

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CommitDescription:
    """Suggested message plus a short review for one commit diff."""

    sha: str
    suggested_message: str
    description: str
    analysis: str
    confidence: float
    impact: str = Impact.MEDIUM.value
    quality: str = Impact.MEDIUM.value
    diff_size: int = 0
    method: str = AnalysisMethod.LLM.value

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailySummary:
    repository_id: str
    date: str  # YYYY-MM-DD
    summary: str
    commit_count: int
    categories: dict[str, int] = field(default_factory=dict)
    method: str = AnalysisMethod.LLM.value
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailySummary":
        values = dict(data)
        values["created_at"] = _parse_dt(values.get("created_at"))
        return cls(**values)


@dataclass(frozen=True)
class TaskSuggestion:
    title: str
    description: str
    priority: str = Priority.MEDIUM.value
    category: str = CommitCategory.FEATURE.value
    estimated_time: str = "1-2 hours"
    based_on: str = ""
    repositories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["repositories"] = list(self.repositories)
        data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskSuggestion":
        values = dict(data)
        values["repositories"] = tuple(values.get("repositories") or ())
        values["tags"] = tuple(values.get("tags") or ())
        return cls(**values)


# ── enhanced listings ─────────────────────────────────────────────


@dataclass(frozen=True)
class EnhancedCommit:
    commit: CommitRecord
    suggested_message: Optional[str] = None  # None when analysis failed
    description: Optional[str] = None
    confidence: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "commit": self.commit.to_dict(),
            "suggested_message": self.suggested_message,
            "description": self.description,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnhancedCommit":
        return cls(
            commit=CommitRecord.from_dict(data["commit"]),
            suggested_message=data.get("suggested_message"),
            description=data.get("description"),
            confidence=data.get("confidence"),
        )


@dataclass
class CommitListing:
    repository: str
    commits: list[EnhancedCommit]
    ai_enhanced: int = 0
    from_cache: bool = False
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "commits": [c.to_dict() for c in self.commits],
            "ai_enhanced": self.ai_enhanced,
            "from_cache": self.from_cache,
            "expires_at": _iso(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommitListing":
        return cls(
            repository=data["repository"],
            commits=[EnhancedCommit.from_dict(c) for c in data.get("commits", [])],
            ai_enhanced=data.get("ai_enhanced", 0),
            from_cache=data.get("from_cache", False),
            expires_at=_parse_dt(data.get("expires_at")),
        )
