"""Language-model backed analysis, degrading to the rule-based backend."""

from __future__ import annotations

from typing import Optional, Protocol

import openai
from openai import OpenAI

from ..exceptions import BackendUnavailableError, ErrorCode
from ..logging_config import get_logger
from ..models import AnalysisMethod
from .base import AnalysisBackend, AnalysisRequest, RawResponse
from .fallback import RuleBasedBackend
from .prompts import PROMPT_OPTIONS, PromptOptions, build_prompt

logger = get_logger(__name__)


class CompletionClient(Protocol):
    """Anything that can turn a prompt into text."""

    def complete(self, prompt: str, model_id: str, options: PromptOptions) -> str:
        ...


class OpenAIChatClient:
    """Chat-completions client on the OpenAI SDK.

    Retries are disabled: a failed request is a failure, and the backend
    answers it with the rule-based analysis instead.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self._client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def complete(self, prompt: str, model_id: str, options: PromptOptions) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model_id,
                messages=[
                    {"role": "system", "content": options.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
        except openai.AuthenticationError as e:
            raise BackendUnavailableError(
                message="Language model rejected the API key",
                code=ErrorCode.CI100,
                context={"model": model_id, "status": getattr(e, "status_code", None)},
                recovery_hint="Check the OPENAI_API_KEY environment variable",
            ) from e
        except openai.OpenAIError as e:
            raise BackendUnavailableError(
                message=f"Language model request failed: {e}",
                code=ErrorCode.CI101,
                context={"model": model_id, "error_type": type(e).__name__},
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise BackendUnavailableError(
                message="Language model returned an empty response",
                code=ErrorCode.CI102,
                context={"model": model_id},
            )
        return content.strip()


class LLMBackend(AnalysisBackend):
    """Prompt a language model; on any failure answer with the fallback.

    The substitution is transparent to callers: the returned
    :class:`RawResponse` carries ``method="fallback"`` and the validator
    caps its confidence accordingly.
    """

    name = "llm"

    def __init__(
        self,
        client: CompletionClient,
        model_id: str = "gpt-4o-mini",
        fallback: Optional[AnalysisBackend] = None,
    ):
        self.client = client
        self.model_id = model_id
        self.fallback = fallback or RuleBasedBackend()

    def run(self, request: AnalysisRequest) -> RawResponse:
        try:
            prompt = build_prompt(request)
            text = self.client.complete(prompt, self.model_id, PROMPT_OPTIONS[request.kind])
        except BackendUnavailableError as e:
            logger.warning("%s; using rule-based %s", e, request.kind.value)
            return self.fallback.run(request)
        except Exception as e:
            # prompt building or transport errors from custom clients
            logger.warning(
                "Language model call failed for %s (%s: %s); using rule-based analysis",
                request.kind.value,
                type(e).__name__,
                e,
            )
            return self.fallback.run(request)

        logger.debug("Language model answered %s with %d chars", request.kind.value, len(text))
        return RawResponse(kind=request.kind, method=AnalysisMethod.LLM.value, text=text)
