"""Choose the analysis backend for a configuration."""

from __future__ import annotations

from ..config import InsightConfig
from ..logging_config import get_logger
from .base import AnalysisBackend
from .fallback import RuleBasedBackend
from .llm import LLMBackend, OpenAIChatClient

logger = get_logger(__name__)


def create_backend(config: InsightConfig) -> AnalysisBackend:
    """LLM backend when an API key is available, rule-based otherwise.

    A missing key is not an error: analysis proceeds with the
    deterministic heuristics.
    """
    if not config.use_llm:
        logger.info("Language model disabled by configuration; using rule-based analysis")
        return RuleBasedBackend()

    api_key = config.resolved_api_key
    if not api_key:
        logger.info("No API key in %s; using rule-based analysis", config.api_key_env)
        return RuleBasedBackend()

    client = OpenAIChatClient(
        api_key=api_key,
        base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
    )
    logger.debug("Using language model %s", config.model)
    return LLMBackend(client, model_id=config.model)
