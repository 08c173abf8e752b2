"""Shared test fixtures for Commit Insight tests."""

from datetime import datetime, timedelta, timezone

import pytest

from commit_insight.backends import AnalysisBackend, RuleBasedBackend
from commit_insight.config import InsightConfig
from commit_insight.models import CommitRecord
from commit_insight.orchestrator import AnalysisOrchestrator
from commit_insight.persistence import CacheStore

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def make_commit(index, message, hours_ago=None, **kwargs):
    """Commit with a predictable SHA; ``hours_ago`` defaults to ``index``."""
    hours = index if hours_ago is None else hours_ago
    return CommitRecord(
        sha=f"{index:040x}",
        message=message,
        author="dev",
        date=NOW - timedelta(hours=hours),
        repository=kwargs.pop("repository", "octo/app"),
        **kwargs,
    )


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)


class CountingBackend(AnalysisBackend):
    """Wraps another backend and records every request it sees."""

    name = "counting"

    def __init__(self, inner=None):
        self.inner = inner or RuleBasedBackend()
        self.requests = []

    def run(self, request):
        self.requests.append(request)
        return self.inner.run(request)

    def calls(self, kind):
        return sum(1 for r in self.requests if r.kind == kind)


class FakeCompletionClient:
    """Completion client returning canned text or raising."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.prompts = []

    def complete(self, prompt, model_id, options):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if not self.replies:
            return "{}"
        return self.replies.pop(0)


class FakeCommitSource:
    """In-memory commit source; diffs by SHA, failures by SHA."""

    def __init__(self, commits=(), diffs=None, failing=(), list_error=None):
        self.commits = list(commits)
        self.diffs = dict(diffs or {})
        self.failing = set(failing)
        self.list_error = list_error
        self.diff_requests = []
        self.list_requests = 0

    def list_commits(self, repo, since=None, until=None, limit=None):
        self.list_requests += 1
        if self.list_error is not None:
            raise self.list_error
        return self.commits[:limit] if limit else list(self.commits)

    def get_diff(self, repo, sha):
        self.diff_requests.append(sha)
        if sha in self.failing:
            raise ConnectionError(f"cannot fetch {sha}")
        return self.diffs.get(sha, "")

    def get_staged_diff(self, repo):
        return self.diffs.get("staged", "")


SAMPLE_DIFF = """\
diff --git a/app/service.py b/app/service.py
--- a/app/service.py
+++ b/app/service.py
@@ -1,3 +1,6 @@
 def handler(request):
-    return None
+    # TODO: validate input
+    print(request)
+    return process(request)
"""


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def commits():
    """Ten commits, newest first, with a mix of message styles."""
    return [
        make_commit(1, "feat(api): add pagination to the commit listing endpoint"),
        make_commit(2, "fix: handle empty diff responses"),
        make_commit(3, "quick hotfix for login"),
        make_commit(4, "docs: update README with setup steps"),
        make_commit(5, "test: cover the selection budget"),
        make_commit(6, "update"),
        make_commit(7, "refactor: clean up the cache layer"),
        make_commit(8, "security: validate token expiry"),
        make_commit(9, "wip"),
        make_commit(10, "chore: bump dependencies"),
    ]


@pytest.fixture
def store(tmp_path, clock):
    with CacheStore.open(str(tmp_path / "store"), listing_ttl_seconds=60, clock=clock) as s:
        yield s


@pytest.fixture
def backend():
    return CountingBackend()


@pytest.fixture
def config():
    return InsightConfig(use_llm=False)


@pytest.fixture
def source(commits):
    return FakeCommitSource(commits, diffs={c.sha: SAMPLE_DIFF for c in commits})


@pytest.fixture
def orchestrator(store, backend, source, config, clock):
    return AnalysisOrchestrator(store=store, backend=backend, source=source, config=config, clock=clock)
