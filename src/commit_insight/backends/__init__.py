"""Analysis backends: language model and rule-based fallback."""

from .base import AnalysisBackend, AnalysisKind, AnalysisRequest, RawResponse
from .factory import create_backend
from .fallback import MAX_FALLBACK_CONFIDENCE, RuleBasedBackend
from .llm import CompletionClient, LLMBackend, OpenAIChatClient

__all__ = [
    "AnalysisBackend",
    "AnalysisKind",
    "AnalysisRequest",
    "RawResponse",
    "CompletionClient",
    "LLMBackend",
    "OpenAIChatClient",
    "RuleBasedBackend",
    "MAX_FALLBACK_CONFIDENCE",
    "create_backend",
]
