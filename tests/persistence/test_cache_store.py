"""Tests for the cache store tiers."""

import sqlite3
import time
from datetime import date

import pytest
from conftest import make_commit

from commit_insight.exceptions import ErrorCode, PersistenceError
from commit_insight.models import (
    AnalysisResult,
    CodeIssue,
    CommitListing,
    DailySummary,
    EnhancedCommit,
    QualityMetadata,
    QualityReport,
    TaskSuggestion,
)


def _report(key="k1", score=0.7, day="2024-03-15", repo="octo/app"):
    return QualityReport(
        quality_score=score,
        issues=[CodeIssue(type="process", severity="low", description="d")],
        insights=["i"],
        metadata=QualityMetadata(commits_analyzed=3),
        cache_key=key,
        repository_id=repo,
        analysis_date=day,
    )


def _task(**overrides):
    values = dict(
        title="Write docs",
        description="Explain the cache",
        based_on="recent_commits",
        repositories=("octo/app",),
    )
    values.update(overrides)
    return TaskSuggestion(**values)


class TestCommitAnalyses:
    def test_roundtrip(self, store):
        result = AnalysisResult(sha="a" * 40, category="docs", confidence=0.9, reason="readme")
        store.put_commit_analyses([result])
        assert store.get_commit_analyses(["a" * 40, "b" * 40]) == {"a" * 40: result}

    def test_write_once(self, store):
        """A second write for the same SHA does not replace the first."""
        first = AnalysisResult(sha="a", category="docs", confidence=0.9)
        second = AnalysisResult(sha="a", category="feature", confidence=0.95)
        store.put_commit_analyses([first])
        store.put_commit_analyses([second])
        assert store.get_commit_analyses(["a"])["a"].category == "docs"

    def test_empty_lookup(self, store):
        assert store.get_commit_analyses([]) == {}


class TestQualityReports:
    def test_put_returns_stored_form(self, store, clock):
        stored = store.put_quality_report(_report())
        assert stored.quality_score == 0.7
        assert stored == store.get_quality_report("octo/app", "k1", max_age_seconds=3600)

    def test_stale_report_is_a_miss(self, store, clock):
        store.put_quality_report(_report())
        clock.advance(hours=5)
        assert store.get_quality_report("octo/app", "k1", max_age_seconds=4 * 3600) is None

    def test_upsert_by_key(self, store):
        store.put_quality_report(_report(score=0.5))
        store.put_quality_report(_report(score=0.9))
        assert store.get_quality_report("octo/app", "k1", 3600).quality_score == 0.9
        assert store.stats()["quality_reports"] == 1

    def test_history_oldest_first(self, store):
        store.put_quality_report(_report("k3", 0.8, "2024-03-14"))
        store.put_quality_report(_report("k1", 0.6, "2024-03-01"))
        store.put_quality_report(_report("k2", 0.7, "2024-03-10"))
        store.put_quality_report(_report("other", 0.1, "2024-03-11", repo="octo/else"))

        history = store.quality_history("octo/app", since=date(2024, 3, 5))
        assert [r.quality_score for r in history] == [0.7, 0.8]


class TestSummaries:
    def test_one_per_day(self, store):
        summary = DailySummary(repository_id="octo/app", date="2024-03-15", summary="s1", commit_count=2)
        store.put_daily_summary(summary)
        store.put_daily_summary(DailySummary(repository_id="octo/app", date="2024-03-15", summary="s2", commit_count=3))
        assert store.get_daily_summary("octo/app", date(2024, 3, 15)).summary == "s2"
        assert store.get_daily_summary("octo/app", date(2024, 3, 14)) is None

    def test_history_newest_first(self, store):
        for day in ("2024-03-13", "2024-03-15", "2024-03-14"):
            store.put_daily_summary(DailySummary(repository_id="r", date=day, summary=day, commit_count=1))
        history = store.summary_history("r", since=date(2024, 3, 14))
        assert [s.date for s in history] == ["2024-03-15", "2024-03-14"]


class TestTaskSuggestions:
    def test_roundtrip(self, store):
        store.put_task_suggestions("octo/app", "feature:2", [_task()])
        tasks = store.get_task_suggestions("octo/app", "feature:2", max_age_seconds=3600)
        assert tasks == [_task()]

    def test_other_signature_is_a_miss(self, store):
        store.put_task_suggestions("octo/app", "feature:2", [_task()])
        assert store.get_task_suggestions("octo/app", "feature:3", 3600) is None

    def test_expired(self, store, clock):
        store.put_task_suggestions("octo/app", "feature:2", [_task()])
        clock.advance(hours=25)
        assert store.get_task_suggestions("octo/app", "feature:2", 24 * 3600) is None

    def test_missing_required_fields_is_a_miss(self, store):
        """Rows written without based_on are regenerated rather than served."""
        store.put_task_suggestions("octo/app", "feature:2", [_task(based_on="")])
        assert store.get_task_suggestions("octo/app", "feature:2", 3600) is None


class TestListings:
    def _listing(self):
        commit = make_commit(1, "fix: x")
        return CommitListing(
            repository="octo/app",
            commits=[EnhancedCommit(commit=commit, suggested_message="fix: x", confidence=0.4)],
            ai_enhanced=1,
        )

    def test_roundtrip(self, store):
        listing = self._listing()
        store.put_listing("octo/app:enhanced-commits:10", listing, ttl_seconds=60)
        cached = store.get_listing("octo/app:enhanced-commits:10")
        assert cached.commits[0].commit.sha == listing.commits[0].commit.sha
        assert cached.ai_enhanced == 1

    def test_absent_after_ttl(self, store):
        store.put_listing("octo/app:enhanced-commits:10", self._listing(), ttl_seconds=0.2)
        time.sleep(0.4)
        assert store.get_listing("octo/app:enhanced-commits:10") is None


class TestMaintenance:
    def test_clear_repository_keeps_commit_analyses(self, store):
        store.put_commit_analyses([AnalysisResult(sha="a", category="docs", confidence=0.9)])
        store.put_quality_report(_report())
        store.put_task_suggestions("octo/app", "docs:1", [_task()])
        store.put_listing("octo/app:enhanced-commits:10", TestListings()._listing(), 60)

        removed = store.clear_repository("octo/app")

        assert removed == {"quality_reports": 1, "task_suggestions": 1, "listings": 1}
        assert store.stats()["commit_analyses"] == 1

    def test_cleanup_removes_old_rows(self, store, clock):
        store.put_quality_report(_report("old"))
        clock.advance(days=100)
        store.put_quality_report(_report("new"))
        removed = store.cleanup(older_than_days=90)
        assert removed["quality_reports"] == 1
        assert store.stats()["quality_reports"] == 1

    def test_read_failure_is_wrapped(self, store):
        store.db.conn.execute("DROP TABLE quality_reports")
        with pytest.raises(PersistenceError) as exc_info:
            store.get_quality_report("octo/app", "k1", 3600)
        assert exc_info.value.code == ErrorCode.CI400
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_write_failure_is_wrapped(self, store):
        store.db.conn.execute("DROP TABLE daily_summaries")
        summary = DailySummary(repository_id="r", date="2024-03-15", summary="s", commit_count=0)
        with pytest.raises(PersistenceError) as exc_info:
            store.put_daily_summary(summary)
        assert exc_info.value.code == ErrorCode.CI401
