"""Deterministic keys for cached analysis work.

Two kinds of key are produced here:

- a *work signature*, describing what kind of work a batch of commits
  contains (``bugfix:2|feature:3``), used to decide whether cached task
  suggestions still describe the current work;
- *cache keys* for bucketed and TTL tiers, where small changes in commit
  count (a bucket of ten) do not invalidate a day's quality report.

All functions are pure.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Iterable

from ..models import CommitCategory, CommitRecord

BUCKET_SIZE = 10


def work_signature(commits: Iterable[CommitRecord]) -> str:
    """Canonical ``category:count`` string for a set of commits.

    Order independent: categories are sorted before joining. Commits
    without a category count as ``other``.
    """
    counts = Counter(c.category or CommitCategory.OTHER.value for c in commits)
    return "|".join(f"{category}:{counts[category]}" for category in sorted(counts))


def commit_count_bucket(count: int) -> int:
    """Round a commit count to the nearest multiple of ten (5 rounds up)."""
    return ((count + BUCKET_SIZE // 2) // BUCKET_SIZE) * BUCKET_SIZE


def quality_cache_key(repository_id: str, timeframe: str, day: date, commit_count: int) -> str:
    """Key for the bucketed-daily quality report tier.

    >>> quality_cache_key("octo/repo", "weekly", date(2024, 3, 1), 14)
    'quality-octo-repo-weekly-2024-03-01-10'
    """
    repo = repository_id.replace("/", "-")
    return f"quality-{repo}-{timeframe}-{day.isoformat()}-{commit_count_bucket(commit_count)}"


def listing_cache_key(repository: str, page_size: int) -> str:
    """Key for the TTL tier holding enhanced commit listings."""
    return f"{repository}:enhanced-commits:{page_size}"
