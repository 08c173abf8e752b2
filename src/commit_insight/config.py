"""Configuration loading and management for Commit Insight.

Configuration sources are merged in priority order:
    1. Defaults (defined in InsightConfig)
    2. Global config (~/.commit-insight.toml)
    3. Project config (./commit-insight.toml)
    4. Explicit config file
    5. Environment variables (COMMIT_INSIGHT_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(verbose=True, selection_budget=8)
    >>> config.verbosity
    'verbose'
    >>> config.selection_budget
    8
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigFileError, ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

ENV_PREFIX = "COMMIT_INSIGHT_"


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and penalties used when message and code signals are combined.

    The code-level score starts at ``code_base_score``, loses a fixed amount
    per issue according to its severity, gains ``positive_bonus`` per
    distinct positive practice and is clamped to
    ``[score_floor, score_ceiling]``. The combined score is the weighted
    sum of the message-level and code-level scores.

    Attributes:
        message_weight: Weight of the commit-message score
        code_weight: Weight of the code-review score
        code_base_score: Starting point for the code-review score
        critical_penalty: Deduction per critical issue
        high_penalty: Deduction per high issue
        medium_penalty: Deduction per medium issue
        low_penalty: Deduction per low issue
        positive_bonus: Bonus per distinct positive practice
        score_floor: Lower clamp for the code-review score
        score_ceiling: Upper clamp for the code-review score
    """

    message_weight: float = 0.4
    code_weight: float = 0.6

    code_base_score: float = 0.8
    critical_penalty: float = 0.30
    high_penalty: float = 0.20
    medium_penalty: float = 0.10
    low_penalty: float = 0.05
    positive_bonus: float = 0.05

    score_floor: float = 0.1
    score_ceiling: float = 1.0

    def __post_init__(self) -> None:
        """Validate scoring configuration."""
        for field_name in ("message_weight", "code_weight", "code_base_score"):
            value = getattr(self, field_name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{field_name} must be between 0.0 and 1.0")

        weight_sum = self.message_weight + self.code_weight
        if not 0.99 <= weight_sum <= 1.01:
            raise ValueError(f"Score weights must sum to 1.0, got {weight_sum:.3f}")

        for field_name in (
            "critical_penalty",
            "high_penalty",
            "medium_penalty",
            "low_penalty",
            "positive_bonus",
        ):
            if getattr(self, field_name) < 0:
                raise ValueError(f"{field_name} must be non-negative")

        if not 0.0 <= self.score_floor <= self.score_ceiling <= 1.0:
            raise ValueError("score_floor and score_ceiling must satisfy 0 <= floor <= ceiling <= 1")

    def penalty_for(self, severity: str) -> float:
        """Deduction for a single issue of the given severity (0 if unknown)."""
        return {
            "critical": self.critical_penalty,
            "high": self.high_penalty,
            "medium": self.medium_penalty,
            "low": self.low_penalty,
        }.get(severity, 0.0)


DEFAULT_SCORING = ScoringConfig()


@dataclass(frozen=True)
class InsightConfig:
    """Configuration for analysis execution.

    Attributes:
        Language model:
            model: Chat model id sent to the provider
            api_key: Explicit API key (normally left empty, see api_key_env)
            api_key_env: Environment variable holding the API key
            api_base_url: Alternative OpenAI-compatible endpoint
            request_timeout_seconds: Per-request timeout for model calls
            use_llm: Set False to always use the rule-based backend

        Storage:
            store_dir: Directory holding the SQLite store and listing cache
            retention_days: Age after which cleanup removes cached data

        Commit selection:
            selection_budget: Maximum commits sent to deep code review
            recent_commits: Most recent commits always selected
            concerning_cap: Maximum commits picked for concerning keywords
            security_cap: Maximum commits picked for security keywords
            max_diff_chars: Diffs longer than this are truncated

        Cache windows:
            quality_cache_hours: Recency window for quality reports
            task_cache_hours: Validity of task suggestions
            listing_ttl_minutes: Expiry of enhanced commit listings
            max_listing_page_size: Upper bound on listing page size

        Trends:
            trend_days: Default history window
            trend_recent_window: Points in the "recent" window
            trend_threshold: Minimum mean change to call a trend

        Output control:
            verbosity: Logging verbosity level
    """

    # Language model
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    api_key_env: str = "OPENAI_API_KEY"
    api_base_url: Optional[str] = None
    request_timeout_seconds: float = 30.0
    use_llm: bool = True

    # Storage
    store_dir: str = ".commit-insight"
    retention_days: int = 90

    # Commit selection
    selection_budget: int = 5
    recent_commits: int = 3
    concerning_cap: int = 3
    security_cap: int = 2
    max_diff_chars: int = 5000

    # Cache windows
    quality_cache_hours: float = 4.0
    task_cache_hours: float = 24.0
    listing_ttl_minutes: int = 30
    max_listing_page_size: int = 50

    # Trends
    trend_days: int = 30
    trend_recent_window: int = 7
    trend_threshold: float = 0.05

    # Output control
    verbosity: Verbosity = "normal"

    # Score combination (nested config)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if self.retention_days < 1:
            raise ValueError("retention_days must be at least 1")

        if self.selection_budget < 1:
            raise ValueError("selection_budget must be at least 1")
        for field_name in ("recent_commits", "concerning_cap", "security_cap"):
            if getattr(self, field_name) < 0:
                raise ValueError(f"{field_name} must be non-negative")
        if self.max_diff_chars < 100:
            raise ValueError("max_diff_chars must be at least 100")

        if self.quality_cache_hours < 0 or self.task_cache_hours < 0:
            raise ValueError("cache windows must be non-negative")
        if self.listing_ttl_minutes < 1:
            raise ValueError("listing_ttl_minutes must be at least 1")
        if self.max_listing_page_size < 1:
            raise ValueError("max_listing_page_size must be at least 1")

        if self.trend_days < 1:
            raise ValueError("trend_days must be at least 1")
        if self.trend_recent_window < 1:
            raise ValueError("trend_recent_window must be at least 1")
        if not 0.0 <= self.trend_threshold <= 1.0:
            raise ValueError("trend_threshold must be between 0.0 and 1.0")

        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise ValueError("verbosity must be one of quiet, normal, verbose")

    @property
    def resolved_api_key(self) -> Optional[str]:
        """API key from the explicit field, else from ``api_key_env``."""
        return self.api_key or os.environ.get(self.api_key_env) or None

    @property
    def quality_cache_seconds(self) -> float:
        return self.quality_cache_hours * 3600

    @property
    def task_cache_seconds(self) -> float:
        return self.task_cache_hours * 3600

    @property
    def listing_ttl_seconds(self) -> int:
        return self.listing_ttl_minutes * 60


def load_config(config_file: Optional[Path] = None, **overrides) -> InsightConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated InsightConfig instance

    Raises:
        ConfigFileError: If a config file is invalid or missing
        InvalidConfigError: If an environment variable cannot be parsed
        ConfigurationError: If the merged values are rejected
    """
    merged: dict = {}

    global_config = Path.home() / ".commit-insight.toml"
    if global_config.exists():
        merged.update(_load_toml_file(global_config))

    project_config = Path.cwd() / "commit-insight.toml"
    if project_config.exists():
        merged.update(_load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigFileError(config_file, "file not found")
        merged.update(_load_toml_file(config_file))

    merged.update(_load_env_vars())

    # Convert verbosity boolean flags to string
    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    scoring = merged.pop("scoring", None)
    if scoring is not None:
        if isinstance(scoring, dict):
            try:
                merged["scoring"] = ScoringConfig(**scoring)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid [scoring] config: {e}")
        elif isinstance(scoring, ScoringConfig):
            merged["scoring"] = scoring

    try:
        return InsightConfig(**merged)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from COMMIT_INSIGHT_* environment variables.

    Every scalar field of InsightConfig has a matching variable, e.g.
    COMMIT_INSIGHT_MODEL, COMMIT_INSIGHT_SELECTION_BUDGET,
    COMMIT_INSIGHT_USE_LLM (true/false/1/0) or COMMIT_INSIGHT_STORE_DIR.

    Returns:
        Dict of field_name -> parsed_value for any variables found.
    """
    type_hints = get_type_hints(InsightConfig)

    result: dict[str, Any] = {}

    for field_name in InsightConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Returns None for types that cannot come from the environment
    (nested configs).

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigFileError: If the file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigFileError(path, str(e))
