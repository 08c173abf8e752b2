"""Tests for the language-model backend and its degradation path."""

from unittest.mock import MagicMock

import openai
import pytest
from conftest import FakeCompletionClient, make_commit

from commit_insight.analysis import validator
from commit_insight.backends import (
    AnalysisKind,
    AnalysisRequest,
    LLMBackend,
    OpenAIChatClient,
    RuleBasedBackend,
    create_backend,
)
from commit_insight.backends.prompts import PROMPT_OPTIONS, build_prompt
from commit_insight.config import InsightConfig
from commit_insight.exceptions import BackendUnavailableError, ErrorCode
from commit_insight.orchestrator import AnalysisOrchestrator


class TestLLMBackend:
    def test_returns_model_text(self):
        client = FakeCompletionClient(replies=['{"analysis": []}'])
        backend = LLMBackend(client, model_id="test-model")
        raw = backend.run(AnalysisRequest.batch(AnalysisKind.CATEGORIZE, [make_commit(1, "x")]))
        assert raw.method == "llm"
        assert raw.text == '{"analysis": []}'
        assert "1. x" in client.prompts[0]

    def test_backend_unavailable_uses_fallback(self):
        error = BackendUnavailableError(message="down", code=ErrorCode.CI101)
        backend = LLMBackend(FakeCompletionClient(error=error))
        raw = backend.run(AnalysisRequest.batch(AnalysisKind.CATEGORIZE, [make_commit(1, "fix")]))
        assert raw.from_fallback
        assert raw.payload["analysis"][0]["category"] == "bugfix"

    @pytest.mark.parametrize("error", [ConnectionError("reset"), TimeoutError("slow"), RuntimeError("boom")])
    def test_any_client_error_uses_fallback(self, error):
        backend = LLMBackend(FakeCompletionClient(error=error))
        raw = backend.run(AnalysisRequest(kind=AnalysisKind.MESSAGE_SUGGESTION, diff="+x"))
        assert raw.from_fallback

    def test_prompt_error_uses_fallback(self, monkeypatch):
        """A failure while building the prompt degrades like a transport failure."""

        def broken(request):
            raise KeyError("missing template field")

        monkeypatch.setattr("commit_insight.backends.llm.build_prompt", broken)
        client = FakeCompletionClient(replies=["never used"])
        raw = LLMBackend(client).run(AnalysisRequest.batch(AnalysisKind.CATEGORIZE, [make_commit(1, "fix")]))
        assert raw.from_fallback
        assert client.prompts == []

    def test_network_error_during_categorize(self, store, clock):
        """A network failure still yields one valid result per commit, capped at 0.65."""
        commits = [make_commit(i, m) for i, m in enumerate(["fix crash", "add export", "tidy", "docs"])]
        backend = LLMBackend(FakeCompletionClient(error=ConnectionError("network unreachable")))
        orchestrator = AnalysisOrchestrator(store=store, backend=backend, clock=clock)

        results = orchestrator.categorize(commits)

        assert len(results) == len(commits)
        assert [r.sha for r in results] == [c.sha for c in commits]
        valid = {"feature", "bugfix", "refactor", "docs", "test", "chore", "other"}
        for result in results:
            assert result.category in valid
            assert result.confidence <= 0.65

    def test_garbage_reply_validated_into_placeholders(self):
        commits = [make_commit(1, "fix crash")]
        backend = LLMBackend(FakeCompletionClient(replies=["I am not sure."]))
        raw = backend.run(AnalysisRequest.batch(AnalysisKind.CATEGORIZE, commits))
        result = validator.parse_categorization(raw, commits)[0]
        assert result.confidence == validator.FAILURE_CONFIDENCE


class TestPrompts:
    def test_every_kind_has_a_prompt(self):
        commit = make_commit(1, "feat: add export", category="feature")
        for kind in AnalysisKind:
            request = AnalysisRequest(kind=kind, commits=(commit,), diff="+x = 1", current_message="wip")
            assert build_prompt(request)
            assert kind in PROMPT_OPTIONS

    def test_json_prompts_state_schema(self):
        request = AnalysisRequest.batch(AnalysisKind.TASK_SUGGESTIONS, [make_commit(1, "x")])
        prompt = build_prompt(request)
        assert '"basedOn"' in prompt
        assert '"repositories"' in prompt


def _chat_response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestOpenAIChatClient:
    def _client(self, monkeypatch, create):
        client = OpenAIChatClient(api_key="sk-test")
        monkeypatch.setattr(client._client.chat.completions, "create", create)
        return client

    def test_returns_stripped_content(self, monkeypatch):
        client = self._client(monkeypatch, MagicMock(return_value=_chat_response("  hello \n")))
        options = PROMPT_OPTIONS[AnalysisKind.DAILY_SUMMARY]
        assert client.complete("prompt", "gpt-4o-mini", options) == "hello"

    def test_empty_content(self, monkeypatch):
        client = self._client(monkeypatch, MagicMock(return_value=_chat_response("")))
        with pytest.raises(BackendUnavailableError) as exc_info:
            client.complete("prompt", "m", PROMPT_OPTIONS[AnalysisKind.CATEGORIZE])
        assert exc_info.value.code == ErrorCode.CI102

    def test_sdk_error_mapped(self, monkeypatch):
        create = MagicMock(side_effect=openai.OpenAIError("connection reset"))
        client = self._client(monkeypatch, create)
        with pytest.raises(BackendUnavailableError) as exc_info:
            client.complete("prompt", "m", PROMPT_OPTIONS[AnalysisKind.CATEGORIZE])
        assert exc_info.value.code == ErrorCode.CI101


class TestCreateBackend:
    def test_rule_based_when_disabled(self):
        assert isinstance(create_backend(InsightConfig(use_llm=False)), RuleBasedBackend)

    def test_rule_based_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert isinstance(create_backend(InsightConfig()), RuleBasedBackend)

    def test_llm_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        backend = create_backend(InsightConfig(model="gpt-4o"))
        assert isinstance(backend, LLMBackend)
        assert backend.model_id == "gpt-4o"
