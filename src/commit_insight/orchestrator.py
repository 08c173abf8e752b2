"""Public entry point: cache-first analysis of commits.

Every operation follows the same shape: look in the cache store, and on
a miss select, analyse, validate and combine, then write the result
back. Failures along the way lower the confidence of the answer; they
never abort it. Cache failures in particular are logged and ignored, so
a broken store only costs recomputation.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence, TypeVar

from .analysis import metrics, validator
from .analysis.combiner import ScoreCombiner
from .analysis.fingerprint import listing_cache_key, quality_cache_key, work_signature
from .analysis.selector import CommitSelector
from .analysis.trends import TrendAnalyzer
from .backends.base import AnalysisBackend, AnalysisKind, AnalysisRequest
from .backends.fallback import template_summary
from .config import InsightConfig
from .exceptions import CommitInsightError, PersistenceError
from .logging_config import get_logger
from .models import (
    AnalysisMethod,
    AnalysisResult,
    CommitDescription,
    CommitListing,
    CommitRecord,
    DailySummary,
    EnhancedCommit,
    MessageSuggestion,
    QualityReport,
    Severity,
    TaskSuggestion,
    TrendPoint,
    TrendResult,
)
from .persistence.store import CacheStore, utcnow
from .sources import CommitSource

logger = get_logger(__name__)

T = TypeVar("T")

DIFF_TRUNCATION_MARKER = "\n\n... (diff truncated for analysis)"


def truncate_diff(diff: str, limit: int) -> str:
    if len(diff) <= limit:
        return diff
    return diff[:limit] + DIFF_TRUNCATION_MARKER


class AnalysisOrchestrator:
    """Sequences cache lookups, analysis and cache writes.

    Args:
        store: Cache store shared by all requests
        backend: Analysis backend (language model or rule-based)
        source: Commit source for diffs and listings; without one,
            quality reports are message-only and listings are unavailable
        config: Selection budgets, cache windows and scoring weights
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        store: CacheStore,
        backend: AnalysisBackend,
        source: Optional[CommitSource] = None,
        config: Optional[InsightConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.backend = backend
        self.source = source
        self.config = config or InsightConfig()
        self.clock = clock

        self.selector = CommitSelector.from_config(self.config)
        self.combiner = ScoreCombiner(self.config.scoring)
        self.trends = TrendAnalyzer(
            recent_window=self.config.trend_recent_window,
            threshold=self.config.trend_threshold,
        )

    # ── cache access ─────────────────────────────────────────────

    def _cache_read(self, read: Callable[..., T], *args, default: T = None) -> T:
        try:
            return read(*args)
        except PersistenceError as e:
            logger.warning("%s; treating as cache miss", e)
            return default

    def _cache_write(self, write: Callable[..., T], *args) -> Optional[T]:
        try:
            return write(*args)
        except PersistenceError as e:
            logger.warning("%s; result not cached", e)
            return None

    def _today(self) -> date:
        return self.clock().date()

    # ── categorization ───────────────────────────────────────────

    def categorize(self, commits: Sequence[CommitRecord]) -> list[AnalysisResult]:
        """Category per commit, in input order. Cached forever per SHA."""
        if not commits:
            return []

        known = self._cache_read(
            self.store.get_commit_analyses, [c.sha for c in commits], default={}
        )
        missing: dict[str, CommitRecord] = {}
        for commit in commits:
            if commit.sha not in known:
                missing.setdefault(commit.sha, commit)

        if missing:
            pending = list(missing.values())
            logger.debug("Categorizing %d of %d commits", len(pending), len(commits))
            raw = self.backend.run(AnalysisRequest.batch(AnalysisKind.CATEGORIZE, pending))
            fresh = validator.parse_categorization(raw, pending)
            # placeholder answers for commits the model skipped are not made permanent
            durable = [r for r in fresh if r.confidence > validator.FAILURE_CONFIDENCE]
            self._cache_write(self.store.put_commit_analyses, durable)
            known.update({r.sha: r for r in fresh})
        else:
            logger.debug("All %d categorizations served from cache", len(commits))

        return [known[c.sha] for c in commits]

    def _with_categories(self, commits: Sequence[CommitRecord]) -> list[CommitRecord]:
        if all(c.category for c in commits):
            return list(commits)
        results = self.categorize(commits)
        return [c if c.category else c.with_category(r.category) for c, r in zip(commits, results)]

    # ── quality ──────────────────────────────────────────────────

    def analyze_quality(
        self,
        commits: Sequence[CommitRecord],
        repository_id: str,
        timeframe: str = "weekly",
        repository_full_name: Optional[str] = None,
        force_refresh: bool = False,
    ) -> QualityReport:
        """Quality report for a repository's commits over a timeframe.

        When ``repository_full_name`` is given and a commit source is
        configured, a bounded selection of commits also gets a code
        review of its diff and the report becomes ``enhanced``.
        """
        now = self.clock()
        cache_key = quality_cache_key(repository_id, timeframe, now.date(), len(commits))

        if not force_refresh:
            cached = self._cache_read(
                self.store.get_quality_report,
                repository_id,
                cache_key,
                self.config.quality_cache_seconds,
            )
            if cached is not None:
                logger.debug("Quality report cache hit: %s", cache_key)
                return cached

        categorized = self._with_categories(commits)
        raw = self.backend.run(AnalysisRequest.batch(AnalysisKind.MESSAGE_QUALITY, categorized))
        message_report = validator.parse_message_quality(raw, categorized)

        reviews: list[AnalysisResult] = []
        if repository_full_name and self.source is not None:
            reviews = self._review_commits(categorized, repository_full_name)

        report = self.combiner.combine(message_report, reviews)
        report = replace(
            report,
            metadata=replace(report.metadata, timeframe=timeframe),
            metrics=metrics.report_metrics(categorized),
            cache_key=cache_key,
            repository_id=repository_id,
            analysis_date=now.date().isoformat(),
            created_at=now,
        )
        logger.info(
            "Quality for %s: %.2f (%s, %d commits)",
            repository_id,
            report.quality_score,
            report.analysis_method,
            len(commits),
        )

        stored = self._cache_write(self.store.put_quality_report, report)
        return stored if stored is not None else report

    def _review_commits(self, commits: Sequence[CommitRecord], repository: str) -> list[AnalysisResult]:
        """Sequential code review of the selected commits, isolated per commit."""
        reviews = []
        for commit in self.selector.select(commits):
            try:
                diff = self.source.get_diff(repository, commit.sha)
            except Exception as e:
                logger.warning("Diff for %s unavailable: %s", commit.short_sha, e)
                reviews.append(self._degraded_review(commit, f"Diff unavailable: {e}"))
                continue
            if not diff or not diff.strip():
                reviews.append(self._degraded_review(commit, "Empty diff"))
                continue

            diff = truncate_diff(diff, self.config.max_diff_chars)
            raw = self.backend.run(AnalysisRequest.for_commit(AnalysisKind.CODE_REVIEW, commit, diff))
            reviews.append(validator.parse_code_review(raw, commit, lines_analyzed=len(diff.splitlines())))
        return reviews

    @staticmethod
    def _degraded_review(commit: CommitRecord, reason: str) -> AnalysisResult:
        return AnalysisResult(
            sha=commit.sha,
            category=commit.category or "other",
            severity=Severity.LOW.value,
            confidence=0.0,
            overall_assessment=reason,
            method=AnalysisMethod.DEGRADED.value,
        )

    # ── trends ───────────────────────────────────────────────────

    def get_trends(self, repository_id: str, days: Optional[int] = None) -> TrendResult:
        """Trend over stored quality reports; never triggers analysis."""
        since = self._today() - timedelta(days=days or self.config.trend_days)
        reports = self._cache_read(self.store.quality_history, repository_id, since, default=[])
        points = [TrendPoint(r.analysis_date, r.quality_score, len(r.issues)) for r in reports]
        return self.trends.analyze(points)

    def quality_history(self, repository_id: str, days: Optional[int] = None) -> list[QualityReport]:
        since = self._today() - timedelta(days=days or self.config.trend_days)
        return self._cache_read(self.store.quality_history, repository_id, since, default=[])

    # ── messages ─────────────────────────────────────────────────

    def suggest_message(self, diff: str, current_message: str = "") -> MessageSuggestion:
        request = AnalysisRequest(
            kind=AnalysisKind.MESSAGE_SUGGESTION,
            diff=truncate_diff(diff, self.config.max_diff_chars),
            current_message=current_message,
        )
        return validator.parse_message_suggestion(self.backend.run(request), current_message)

    def analyze_commit_diff(self, commit: CommitRecord, diff: str) -> CommitDescription:
        truncated = truncate_diff(diff, self.config.max_diff_chars)
        raw = self.backend.run(AnalysisRequest.for_commit(AnalysisKind.COMMIT_DESCRIPTION, commit, truncated))
        return validator.parse_commit_description(raw, commit, diff_size=len(diff))

    # ── summaries and tasks ──────────────────────────────────────

    def generate_daily_summary(
        self,
        commits: Sequence[CommitRecord],
        repository_id: str,
        day: Optional[date] = None,
        force_refresh: bool = False,
    ) -> DailySummary:
        day = day or self._today()
        if not force_refresh:
            cached = self._cache_read(self.store.get_daily_summary, repository_id, day)
            if cached is not None:
                logger.debug("Daily summary cache hit: %s %s", repository_id, day)
                return cached

        categorized = self._with_categories(commits)
        if categorized:
            raw = self.backend.run(AnalysisRequest.batch(AnalysisKind.DAILY_SUMMARY, categorized))
            text, method = validator.parse_summary(raw), raw.method
        else:
            text, method = template_summary(categorized), AnalysisMethod.FALLBACK.value

        summary = DailySummary(
            repository_id=repository_id,
            date=day.isoformat(),
            summary=text,
            commit_count=len(categorized),
            categories=metrics.category_distribution(categorized),
            method=method,
            created_at=self.clock(),
        )
        self._cache_write(self.store.put_daily_summary, summary)
        return summary

    def summary_history(self, repository_id: str, days: int = 30) -> list[DailySummary]:
        since = self._today() - timedelta(days=days)
        return self._cache_read(self.store.summary_history, repository_id, since, default=[])

    def suggest_tasks(
        self,
        commits: Sequence[CommitRecord],
        repository_id: str,
        force_refresh: bool = False,
    ) -> list[TaskSuggestion]:
        """Next-step tasks; reused while the work signature is unchanged."""
        categorized = self._with_categories(commits)
        signature = work_signature(categorized)

        if not force_refresh:
            cached = self._cache_read(
                self.store.get_task_suggestions,
                repository_id,
                signature,
                self.config.task_cache_seconds,
            )
            if cached is not None:
                logger.debug("Task suggestions cache hit: %s [%s]", repository_id, signature)
                return cached

        raw = self.backend.run(AnalysisRequest.batch(AnalysisKind.TASK_SUGGESTIONS, categorized))
        tasks = validator.parse_tasks(raw, categorized)
        self._cache_write(self.store.put_task_suggestions, repository_id, signature, tasks)
        return tasks

    # ── enhanced listings ────────────────────────────────────────

    def list_enhanced_commits(
        self,
        repository: str,
        page_size: int = 10,
        force_refresh: bool = False,
        repository_id: Optional[str] = None,
    ) -> CommitListing:
        """Recent non-merge commits, each with a suggested message.

        ``repository`` is handed to the commit source; ``repository_id``
        (default: ``repository``) names the cached listing, so it must match
        what ``clear_repository_cache`` is called with.
        """
        repository_id = repository_id or repository
        if self.source is None:
            raise CommitInsightError("Enhanced listings need a commit source")

        page_size = max(1, min(page_size, self.config.max_listing_page_size))
        key = listing_cache_key(repository_id, page_size)

        if not force_refresh:
            cached = self._cache_read(self.store.get_listing, key)
            if cached is not None:
                logger.debug("Listing cache hit: %s", key)
                return replace(cached, from_cache=True)

        now = self.clock()
        try:
            # merges are dropped after fetching, so over-fetch
            commits = self.source.list_commits(repository, limit=page_size * 2)
        except Exception as e:
            logger.warning("Cannot list commits for %s: %s", repository, e)
            return CommitListing(repository=repository_id, commits=[])

        enhanced = []
        for commit in [c for c in commits if not c.is_merge][:page_size]:
            try:
                diff = self.source.get_diff(repository, commit.sha)
                described = self.analyze_commit_diff(commit, diff)
            except Exception as e:
                logger.warning("No suggestion for %s: %s", commit.short_sha, e)
                enhanced.append(EnhancedCommit(commit=commit))
                continue
            enhanced.append(
                EnhancedCommit(
                    commit=commit,
                    suggested_message=described.suggested_message,
                    description=described.description,
                    confidence=described.confidence,
                )
            )

        listing = CommitListing(
            repository=repository_id,
            commits=enhanced,
            ai_enhanced=sum(1 for e in enhanced if e.suggested_message is not None),
            from_cache=False,
            expires_at=now + timedelta(seconds=self.config.listing_ttl_seconds),
        )
        self._cache_write(self.store.put_listing, key, listing, self.config.listing_ttl_seconds)
        return listing

    # ── maintenance ──────────────────────────────────────────────

    def clear_repository_cache(self, repository_id: str) -> dict[str, int]:
        removed = self.store.clear_repository(repository_id)
        logger.info("Cleared cache for %s: %s", repository_id, removed)
        return removed

    def cleanup_old_data(self, days: Optional[int] = None) -> dict[str, int]:
        removed = self.store.cleanup(days or self.config.retention_days)
        logger.info("Removed cached data older than %s days: %s", days or self.config.retention_days, removed)
        return removed

    def cache_stats(self) -> dict[str, int]:
        return self.store.stats()
