"""Runtime error taxonomy with error codes and recovery hints.

None of these errors reach the caller of the orchestrator: each one is
raised at the boundary where it happens and absorbed one layer up, where
it turns into a lower-confidence result. The codes exist so that the
degradation shows up in logs in a greppable form.

Error Code Convention:
    CI1xx - Analysis backend errors
    CI2xx - Model response errors
    CI3xx - Commit source errors
    CI4xx - Persistence errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Structured error codes for observability and debugging."""

    # Analysis backend errors (CI1xx)
    CI100 = "CI100"  # Language model client not configured
    CI101 = "CI101"  # Language model request failed (network, timeout, auth)
    CI102 = "CI102"  # Language model returned no content

    # Model response errors (CI2xx)
    CI200 = "CI200"  # Response is not parseable JSON
    CI201 = "CI201"  # Response JSON has the wrong shape

    # Commit source errors (CI3xx)
    CI300 = "CI300"  # Commit listing failed
    CI301 = "CI301"  # Diff fetch failed
    CI302 = "CI302"  # git subprocess timeout

    # Persistence errors (CI4xx)
    CI400 = "CI400"  # SQLite read failed
    CI401 = "CI401"  # SQLite write failed
    CI402 = "CI402"  # Listing cache failed
    CI403 = "CI403"  # Stored payload could not be decoded


@dataclass
class InsightError(Exception):
    """Base exception with structured context for logging.

    Attributes:
        message: Human-readable error description
        code: Structured error code for categorization
        context: Additional context (repository, sha, cache key, ...)
        recoverable: Whether the caller can continue with degraded output
        recovery_hint: Suggested fix for the user
    """

    message: str
    code: ErrorCode
    context: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = True
    recovery_hint: str | None = None

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def to_json(self) -> dict[str, Any]:
        """Structured logging format."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
        }


class BackendUnavailableError(InsightError):
    """The language model cannot be reached or is not configured (CI1xx)."""

    pass


class MalformedResponseError(InsightError):
    """The language model answered with something we cannot use (CI2xx)."""

    pass


class UpstreamFetchError(InsightError):
    """Listing commits or fetching a diff failed (CI3xx)."""

    pass


class PersistenceError(InsightError):
    """The cache store could not be read or written (CI4xx)."""

    pass
