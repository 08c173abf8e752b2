"""Analysis backend interface.

A backend turns an :class:`AnalysisRequest` into a :class:`RawResponse`.
It does not interpret model output: that is the response validator's job,
so both backends go through the same normalisation and produce
structurally identical results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from ..models import AnalysisMethod, CommitRecord


class AnalysisKind(str, Enum):
    CATEGORIZE = "categorize"  # batch
    MESSAGE_QUALITY = "message_quality"  # batch
    CODE_REVIEW = "code_review"  # one commit + diff
    COMMIT_DESCRIPTION = "commit_description"  # one commit + diff
    MESSAGE_SUGGESTION = "message_suggestion"  # diff + current message
    DAILY_SUMMARY = "daily_summary"  # batch
    TASK_SUGGESTIONS = "task_suggestions"  # batch


@dataclass(frozen=True)
class AnalysisRequest:
    kind: AnalysisKind
    commits: tuple[CommitRecord, ...] = ()
    diff: str = ""
    current_message: str = ""
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def commit(self) -> Optional[CommitRecord]:
        """The single commit of a per-commit request."""
        return self.commits[0] if self.commits else None

    @classmethod
    def batch(cls, kind: AnalysisKind, commits: Sequence[CommitRecord], **context) -> "AnalysisRequest":
        return cls(kind=kind, commits=tuple(commits), context=context)

    @classmethod
    def for_commit(cls, kind: AnalysisKind, commit: CommitRecord, diff: str) -> "AnalysisRequest":
        return cls(kind=kind, commits=(commit,), diff=diff)


@dataclass(frozen=True)
class RawResponse:
    """Unvalidated backend output.

    ``text`` holds what a language model returned. The rule-based backend
    fills ``payload`` with an already-structured value instead, in the same
    schema the prompts ask the model for.
    """

    kind: AnalysisKind
    method: str
    text: Optional[str] = None
    payload: Any = None

    @property
    def from_fallback(self) -> bool:
        return self.method == AnalysisMethod.FALLBACK.value


class AnalysisBackend(ABC):
    """Produce raw analyses for every :class:`AnalysisKind`.

    Implementations must not raise for analysis failures: a backend that
    cannot answer returns a response the validator can still turn into a
    low-confidence result.
    """

    name: str = "backend"

    @abstractmethod
    def run(self, request: AnalysisRequest) -> RawResponse:
        ...
