"""Exception hierarchy for Commit Insight."""

from .base import CommitInsightError
from .config import ConfigFileError, ConfigurationError, InvalidConfigError
from .taxonomy import (
    BackendUnavailableError,
    ErrorCode,
    InsightError,
    MalformedResponseError,
    PersistenceError,
    UpstreamFetchError,
)

__all__ = [
    "CommitInsightError",
    "ConfigurationError",
    "ConfigFileError",
    "InvalidConfigError",
    "ErrorCode",
    "InsightError",
    "BackendUnavailableError",
    "MalformedResponseError",
    "UpstreamFetchError",
    "PersistenceError",
]
