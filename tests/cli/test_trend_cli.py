"""Tests for the trend and cache CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from commit_insight.cli import app
from commit_insight.cli.trend import _sparkline

runner = CliRunner()


@pytest.fixture
def repo_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("COMMIT_INSIGHT_USE_LLM", "false")
    repo = tmp_path / "app"
    repo.mkdir()
    monkeypatch.chdir(repo)
    return repo


class TestSparkline:
    def test_empty(self):
        assert _sparkline([]) == ""

    def test_flat(self):
        assert _sparkline([0.5, 0.5, 0.5]) == "▄▄▄"

    def test_rising(self):
        line = _sparkline([0.1, 0.5, 0.9])
        assert len(line) == 3
        assert line[0] == " "
        assert line[-1] == "█"


class TestTrendCommand:
    def test_no_history(self, repo_dir):
        result = runner.invoke(app, ["trend", str(repo_dir)])
        assert result.exit_code == 0
        assert "insufficient" in result.output.lower() or "history" in result.output.lower()

    def test_json_output(self, repo_dir):
        result = runner.invoke(app, ["trend", str(repo_dir), "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["trend"] == "insufficient_data"

    def test_creates_store(self, repo_dir):
        runner.invoke(app, ["history", str(repo_dir)])
        assert (repo_dir / ".commit-insight" / ".gitignore").exists()


class TestCacheCommands:
    def test_cache_info(self, repo_dir):
        result = runner.invoke(app, ["cache-info", str(repo_dir)])
        assert result.exit_code == 0
        assert "Commit Insight Cache Info" in result.output

    def test_cache_clear(self, repo_dir):
        result = runner.invoke(app, ["cache-clear", str(repo_dir)])
        assert result.exit_code == 0
        assert "Cache cleared for app" in result.output

    def test_bad_config_exits_nonzero(self, repo_dir):
        bad = repo_dir / "bad.toml"
        bad.write_text("selection_budget = 0\n")
        result = runner.invoke(app, ["cache-info", str(repo_dir), "--config", str(bad)])
        assert result.exit_code == 1
