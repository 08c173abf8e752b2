"""Commit sources: where commits and diffs come from."""

from datetime import date
from typing import Optional, Protocol

from ..models import CommitRecord
from .git import GitCommitSource


class CommitSource(Protocol):
    """Lists commits and fetches diffs; raises UpstreamFetchError on failure."""

    def list_commits(
        self,
        repo: str,
        since: Optional[date] = None,
        until: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[CommitRecord]:
        ...

    def get_diff(self, repo: str, sha: str) -> str:
        ...


__all__ = ["CommitSource", "GitCommitSource"]
