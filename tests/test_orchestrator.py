"""Tests for cache-first orchestration."""

from datetime import date

import pytest
from conftest import SAMPLE_DIFF, FakeCommitSource, make_commit

from commit_insight.backends import AnalysisKind
from commit_insight.config import InsightConfig
from commit_insight.exceptions import CommitInsightError, ErrorCode, PersistenceError
from commit_insight.models import QualityReport
from commit_insight.orchestrator import DIFF_TRUNCATION_MARKER, AnalysisOrchestrator, truncate_diff


class BrokenStore:
    """Store whose every call fails like a locked database."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise PersistenceError(message=f"{name} failed", code=ErrorCode.CI400)

        return fail


class TestCategorize:
    def test_one_result_per_commit(self, orchestrator, commits):
        results = orchestrator.categorize(commits)
        assert [r.sha for r in results] == [c.sha for c in commits]

    def test_second_call_served_from_cache(self, orchestrator, backend, commits):
        """Categorizations are stored per SHA and never recomputed."""
        first = orchestrator.categorize(commits)
        second = orchestrator.categorize(commits)
        assert first == second
        assert backend.calls(AnalysisKind.CATEGORIZE) == 1

    def test_only_new_commits_analysed(self, orchestrator, backend, commits):
        orchestrator.categorize(commits[:5])
        orchestrator.categorize(commits)
        second_request = [r for r in backend.requests if r.kind == AnalysisKind.CATEGORIZE][1]
        assert [c.sha for c in second_request.commits] == [c.sha for c in commits[5:]]

    def test_duplicate_shas(self, orchestrator, commits):
        results = orchestrator.categorize([commits[0], commits[0]])
        assert len(results) == 2

    def test_empty(self, orchestrator, backend):
        assert orchestrator.categorize([]) == []
        assert backend.requests == []


class TestAnalyzeQuality:
    def test_enhanced_report(self, orchestrator, commits, source):
        report = orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")
        assert 0.0 <= report.quality_score <= 1.0
        assert report.analysis_method == "enhanced"
        assert report.metadata.code_commits_analyzed == 4  # 3 most recent + 1 security match
        assert len(source.diff_requests) == 4
        assert report.cache_key == "quality-octo-app-weekly-2024-03-15-10"
        assert report.analysis_date == "2024-03-15"
        assert any(i.description.startswith("Code: ") for i in report.issues)

    def test_message_only_without_repository(self, orchestrator, commits, source):
        report = orchestrator.analyze_quality(commits, "octo/app")
        assert report.analysis_method == "basic"
        assert source.diff_requests == []

    def test_cache_idempotence(self, orchestrator, backend, commits):
        """A second call within the window returns the identical report with no new analysis."""
        first = orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")
        calls = len(backend.requests)
        second = orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")
        assert second == first
        assert second.to_dict() == first.to_dict()
        assert len(backend.requests) == calls

    def test_bucket_absorbs_small_changes(self, orchestrator, backend, commits):
        orchestrator.analyze_quality(commits, "octo/app")
        calls = len(backend.requests)
        orchestrator.analyze_quality(commits[:-1], "octo/app")  # 9 commits, still bucket 10
        assert len(backend.requests) == calls

    def test_force_refresh(self, orchestrator, backend, commits):
        orchestrator.analyze_quality(commits, "octo/app")
        orchestrator.analyze_quality(commits, "octo/app", force_refresh=True)
        assert backend.calls(AnalysisKind.MESSAGE_QUALITY) == 2

    def test_stale_cache_recomputed(self, orchestrator, backend, commits, clock):
        orchestrator.analyze_quality(commits, "octo/app")
        clock.advance(hours=5)
        orchestrator.analyze_quality(commits, "octo/app")
        assert backend.calls(AnalysisKind.MESSAGE_QUALITY) == 2

    def test_diff_failure_is_isolated(self, store, backend, commits, config, clock):
        """One unfetchable diff degrades that commit only."""
        failing = commits[0].sha
        source = FakeCommitSource(commits, diffs={c.sha: SAMPLE_DIFF for c in commits}, failing={failing})
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)

        report = orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")

        degraded = [r for r in report.code_analysis if r.degraded]
        assert [r.sha for r in degraded] == [failing]
        assert report.metadata.code_commits_analyzed == 3
        assert report.analysis_method == "enhanced"

    def test_all_diffs_failing_stays_basic(self, store, backend, commits, config, clock):
        source = FakeCommitSource(commits, failing={c.sha for c in commits})
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)
        report = orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")
        assert report.analysis_method == "basic"
        assert report.code_analysis and all(r.degraded for r in report.code_analysis)

    def test_persistence_failure_still_returns_report(self, backend, commits, config, clock):
        """A broken store costs recomputation, never the answer."""
        orchestrator = AnalysisOrchestrator(BrokenStore(), backend, None, config, clock)
        report = orchestrator.analyze_quality(commits, "octo/app")
        assert isinstance(report, QualityReport)
        assert 0.0 <= report.quality_score <= 1.0

    def test_metrics_attached(self, orchestrator, commits):
        report = orchestrator.analyze_quality(commits, "octo/app")
        assert sum(report.metrics["commit_distribution"].values()) == len(commits)


class TestTrends:
    def test_insufficient_without_history(self, orchestrator):
        assert orchestrator.get_trends("octo/app").trend == "insufficient_data"

    def test_trend_over_days(self, orchestrator, commits, clock):
        for _ in range(3):
            orchestrator.analyze_quality(commits, "octo/app")
            clock.advance(days=1)
        result = orchestrator.get_trends("octo/app")
        assert len(result.historical_data) == 3
        assert result.trend == "stable"

    def test_trends_do_not_analyse(self, orchestrator, backend):
        orchestrator.get_trends("octo/app")
        assert backend.requests == []

    def test_quality_history(self, orchestrator, commits, clock):
        orchestrator.analyze_quality(commits, "octo/app")
        clock.advance(days=1)
        orchestrator.analyze_quality(commits, "octo/app")
        history = orchestrator.quality_history("octo/app")
        assert [r.analysis_date for r in history] == ["2024-03-15", "2024-03-16"]


class TestMessages:
    def test_suggest_message(self, orchestrator):
        suggestion = orchestrator.suggest_message("+++ b/README.md\n+Setup steps", "docs")
        assert suggestion.suggested.startswith("docs:")

    def test_long_diff_truncated(self, orchestrator, backend):
        orchestrator.suggest_message("+x\n" * 5000, "")
        diff = backend.requests[-1].diff
        assert diff.endswith(DIFF_TRUNCATION_MARKER)
        assert len(diff) == orchestrator.config.max_diff_chars + len(DIFF_TRUNCATION_MARKER)

    def test_truncate_diff_short(self):
        assert truncate_diff("abc", 10) == "abc"

    def test_analyze_commit_diff(self, orchestrator, commits):
        described = orchestrator.analyze_commit_diff(commits[1], SAMPLE_DIFF)
        assert described.sha == commits[1].sha
        assert described.suggested_message.startswith("fix:")
        assert described.diff_size == len(SAMPLE_DIFF)


class TestDailySummary:
    def test_generated_and_stored(self, orchestrator, backend, commits):
        summary = orchestrator.generate_daily_summary(commits, "octo/app")
        again = orchestrator.generate_daily_summary(commits, "octo/app")
        assert summary.date == "2024-03-15"
        assert summary.commit_count == len(commits)
        assert again.summary == summary.summary
        assert backend.calls(AnalysisKind.DAILY_SUMMARY) == 1

    def test_no_commits_uses_template(self, orchestrator, backend):
        summary = orchestrator.generate_daily_summary([], "octo/app", day=date(2024, 3, 1))
        assert summary.summary == "No commits found for this period."
        assert backend.calls(AnalysisKind.DAILY_SUMMARY) == 0

    def test_summary_history(self, orchestrator, commits):
        orchestrator.generate_daily_summary(commits, "octo/app", day=date(2024, 3, 14))
        orchestrator.generate_daily_summary(commits, "octo/app", day=date(2024, 3, 15))
        history = orchestrator.summary_history("octo/app", days=7)
        assert [s.date for s in history] == ["2024-03-15", "2024-03-14"]


class TestTaskSuggestions:
    def test_reused_for_same_signature(self, orchestrator, backend, commits):
        first = orchestrator.suggest_tasks(commits, "octo/app")
        second = orchestrator.suggest_tasks(list(reversed(commits)), "octo/app")
        assert first == second
        assert backend.calls(AnalysisKind.TASK_SUGGESTIONS) == 1

    def test_new_signature_regenerates(self, orchestrator, backend, commits):
        orchestrator.suggest_tasks(commits, "octo/app")
        orchestrator.suggest_tasks(commits[:3], "octo/app")
        assert backend.calls(AnalysisKind.TASK_SUGGESTIONS) == 2

    def test_tasks_have_required_fields(self, orchestrator, commits):
        for task in orchestrator.suggest_tasks(commits, "octo/app"):
            assert task.based_on
            assert task.repositories


class TestEnhancedListing:
    def test_listing_and_cache(self, orchestrator, source, commits):
        first = orchestrator.list_enhanced_commits("octo/app", page_size=3)
        second = orchestrator.list_enhanced_commits("octo/app", page_size=3)
        assert len(first.commits) == 3
        assert first.ai_enhanced == 3
        assert not first.from_cache
        assert second.from_cache
        assert source.list_requests == 1

    def test_merges_filtered(self, store, backend, config, clock):
        commits = [
            make_commit(1, "Merge branch 'main'"),
            make_commit(2, "feat: x", parents=("a", "b")),
            make_commit(3, "fix: y"),
        ]
        source = FakeCommitSource(commits, diffs={c.sha: SAMPLE_DIFF for c in commits})
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)
        listing = orchestrator.list_enhanced_commits("octo/app", page_size=5)
        assert [e.commit.sha for e in listing.commits] == [commits[2].sha]

    def test_diff_failure_keeps_commit(self, store, backend, config, clock, commits):
        source = FakeCommitSource(commits, failing={commits[0].sha})
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)
        listing = orchestrator.list_enhanced_commits("octo/app", page_size=2)
        assert listing.commits[0].suggested_message is None
        assert listing.ai_enhanced == 1

    def test_listing_failure_returns_empty_and_is_not_cached(self, store, backend, config, clock):
        source = FakeCommitSource(list_error=ConnectionError("api down"))
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)
        assert orchestrator.list_enhanced_commits("octo/app").commits == []
        source.list_error = None
        orchestrator.list_enhanced_commits("octo/app")
        assert source.list_requests == 2

    def test_page_size_bounded(self, orchestrator, source):
        orchestrator.list_enhanced_commits("octo/app", page_size=500)
        assert len(orchestrator.store.listings) == 1
        assert orchestrator.store.get_listing("octo/app:enhanced-commits:50") is not None

    def test_requires_source(self, store, backend, config):
        orchestrator = AnalysisOrchestrator(store, backend, None, config)
        with pytest.raises(CommitInsightError):
            orchestrator.list_enhanced_commits("octo/app")


class TestMaintenance:
    def test_clear_repository_cache(self, orchestrator, backend, commits):
        orchestrator.analyze_quality(commits, "octo/app")
        removed = orchestrator.clear_repository_cache("octo/app")
        assert removed["quality_reports"] == 1
        orchestrator.analyze_quality(commits, "octo/app")
        assert backend.calls(AnalysisKind.MESSAGE_QUALITY) == 2

    def test_clear_removes_listing_fetched_by_path(self, orchestrator, source):
        """Listings read from a checkout path are cleared by repository id."""
        listing = orchestrator.list_enhanced_commits("/work/app", page_size=3, repository_id="app")
        assert listing.repository == "app"

        removed = orchestrator.clear_repository_cache("app")

        assert removed["listings"] == 1
        orchestrator.list_enhanced_commits("/work/app", page_size=3, repository_id="app")
        assert source.list_requests == 2

    def test_cleanup_old_data(self, orchestrator, commits, clock):
        orchestrator.analyze_quality(commits, "octo/app")
        clock.advance(days=91)
        removed = orchestrator.cleanup_old_data()
        assert removed["quality_reports"] == 1
        assert removed["commit_analyses"] == len(commits)

    def test_cache_stats(self, orchestrator, commits):
        orchestrator.categorize(commits)
        assert orchestrator.cache_stats()["commit_analyses"] == len(commits)


class TestConfiguredBudget:
    def test_selection_budget_from_config(self, store, backend, source, commits, clock):
        config = InsightConfig(use_llm=False, selection_budget=2)
        orchestrator = AnalysisOrchestrator(store, backend, source, config, clock)
        orchestrator.analyze_quality(commits, "octo/app", repository_full_name="octo/app")
        assert len(source.diff_requests) == 2
