"""Tests for the runtime error taxonomy."""

import pytest

from commit_insight.exceptions import (
    BackendUnavailableError,
    CommitInsightError,
    ConfigFileError,
    ConfigurationError,
    ErrorCode,
    InsightError,
    InvalidConfigError,
    MalformedResponseError,
    PersistenceError,
    UpstreamFetchError,
)


class TestErrorCode:
    """Test ErrorCode enum."""

    def test_backend_error_codes(self):
        """Backend errors are CI1xx."""
        assert ErrorCode.CI100.value == "CI100"  # Client not configured
        assert ErrorCode.CI101.value == "CI101"  # Request failed
        assert ErrorCode.CI102.value == "CI102"  # Empty response

    def test_response_error_codes(self):
        """Response errors are CI2xx."""
        assert ErrorCode.CI200.value == "CI200"  # Not JSON
        assert ErrorCode.CI201.value == "CI201"  # Wrong shape

    def test_source_error_codes(self):
        """Commit source errors are CI3xx."""
        assert ErrorCode.CI300.value == "CI300"  # Listing failed
        assert ErrorCode.CI301.value == "CI301"  # Diff failed
        assert ErrorCode.CI302.value == "CI302"  # git timeout

    def test_persistence_error_codes(self):
        """Persistence errors are CI4xx."""
        assert ErrorCode.CI400.value == "CI400"
        assert ErrorCode.CI401.value == "CI401"
        assert ErrorCode.CI402.value == "CI402"
        assert ErrorCode.CI403.value == "CI403"


class TestInsightError:
    """Test InsightError base exception."""

    def test_basic_creation(self):
        """Can create with message and code."""
        err = InsightError(message="Test error", code=ErrorCode.CI101)
        assert err.message == "Test error"
        assert err.code == ErrorCode.CI101
        assert err.recoverable is True  # default
        assert err.context == {}
        assert err.recovery_hint is None

    def test_str_includes_code(self):
        """String representation includes error code."""
        err = InsightError(message="Diff fetch failed", code=ErrorCode.CI301)
        assert str(err) == "[CI301] Diff fetch failed"

    def test_with_context(self):
        err = InsightError(
            message="Cache read failed",
            code=ErrorCode.CI400,
            context={"sql": "SELECT", "repository": "octo/app"},
        )
        assert err.context["repository"] == "octo/app"

    def test_to_json(self):
        """Structured logging format."""
        err = InsightError(
            message="Test",
            code=ErrorCode.CI100,
            context={"model": "gpt-4o-mini"},
            recoverable=False,
            recovery_hint="Set OPENAI_API_KEY",
        )
        json_data = err.to_json()
        assert json_data["error_code"] == "CI100"
        assert json_data["message"] == "Test"
        assert json_data["context"] == {"model": "gpt-4o-mini"}
        assert json_data["recoverable"] is False
        assert json_data["recovery_hint"] == "Set OPENAI_API_KEY"

    def test_is_exception(self):
        err = InsightError(message="test", code=ErrorCode.CI200)
        with pytest.raises(InsightError) as exc_info:
            raise err
        assert exc_info.value.code == ErrorCode.CI200


class TestDomainExceptions:
    """Test domain-specific exception subclasses."""

    @pytest.mark.parametrize(
        "cls, code",
        [
            (BackendUnavailableError, ErrorCode.CI101),
            (MalformedResponseError, ErrorCode.CI200),
            (UpstreamFetchError, ErrorCode.CI300),
            (PersistenceError, ErrorCode.CI401),
        ],
    )
    def test_subclasses(self, cls, code):
        err = cls(message="failed", code=code)
        assert isinstance(err, InsightError)
        assert str(err) == f"[{code.value}] failed"

    def test_catch_by_base(self):
        with pytest.raises(InsightError):
            raise PersistenceError(message="locked", code=ErrorCode.CI401)


class TestConfigExceptions:
    def test_config_file_error(self, tmp_path):
        err = ConfigFileError(tmp_path / "x.toml", "file not found")
        assert isinstance(err, ConfigurationError)
        assert isinstance(err, CommitInsightError)
        assert "file not found" in str(err)
        assert err.details["reason"] == "file not found"

    def test_invalid_config_error(self):
        err = InvalidConfigError("COMMIT_INSIGHT_USE_LLM", "maybe", "expected true/false")
        assert err.key == "COMMIT_INSIGHT_USE_LLM"
        assert "maybe" in str(err)
