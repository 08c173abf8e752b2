"""Pick the few commits worth an expensive code review."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from ..models import CommitRecord

CONCERNING_KEYWORDS = ("quick", "hotfix", "urgent", "todo", "fixme", "hack", "temporary")
SECURITY_KEYWORDS = ("security", "auth", "encrypt", "validate", "permission", "token")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(commit: CommitRecord) -> datetime:
    if commit.date is None:
        return _EPOCH
    if commit.date.tzinfo is None:
        return commit.date.replace(tzinfo=timezone.utc)
    return commit.date


def _matches(commit: CommitRecord, keywords: Sequence[str]) -> bool:
    message = commit.message.lower()
    return any(keyword in message for keyword in keywords)


class CommitSelector:
    """Bounded, deduplicated selection of commits for deep analysis.

    Selection runs in priority order and stops at ``budget``:

    1. the ``recent`` most recent commits;
    2. up to ``concerning_cap`` commits whose message contains a
       concerning keyword (quick fixes, hacks, TODOs);
    3. up to ``security_cap`` commits whose message touches security.

    A commit chosen by an earlier rule is not chosen again. Within each
    rule, input order breaks ties.
    """

    def __init__(
        self,
        budget: int = 5,
        recent: int = 3,
        concerning_cap: int = 3,
        security_cap: int = 2,
        concerning_keywords: Sequence[str] = CONCERNING_KEYWORDS,
        security_keywords: Sequence[str] = SECURITY_KEYWORDS,
    ):
        self.budget = budget
        self.recent = recent
        self.concerning_cap = concerning_cap
        self.security_cap = security_cap
        self.concerning_keywords = tuple(k.lower() for k in concerning_keywords)
        self.security_keywords = tuple(k.lower() for k in security_keywords)

    @classmethod
    def from_config(cls, config) -> "CommitSelector":
        return cls(
            budget=config.selection_budget,
            recent=config.recent_commits,
            concerning_cap=config.concerning_cap,
            security_cap=config.security_cap,
        )

    def select(self, commits: Sequence[CommitRecord]) -> list[CommitRecord]:
        # sorted() is stable, so equal dates keep their input order
        newest_first = sorted(commits, key=_sort_key, reverse=True)
        candidates = list(newest_first[: self.recent])
        candidates += [c for c in commits if _matches(c, self.concerning_keywords)][
            : self.concerning_cap
        ]
        candidates += [c for c in commits if _matches(c, self.security_keywords)][
            : self.security_cap
        ]

        selected: list[CommitRecord] = []
        seen: set[str] = set()
        for commit in candidates:
            if commit.sha in seen:
                continue
            seen.add(commit.sha)
            selected.append(commit)
            if len(selected) >= self.budget:
                break
        return selected
