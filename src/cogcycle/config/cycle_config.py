# src/cogcycle/config/cycle_config.py
"""
Cognitive cycle configuration models.

This module defines Pydantic models for every configuration section of
the scheduler. These models are used for:
1. Type-safe configuration loading
2. Validation with sensible defaults
3. Runtime configuration updates

The configuration hierarchy:
    CognitiveCycleConfig (root)
    ├── WakeConfig           - Wake timer settings
    ├── GoalsConfig          - Goal store thresholds
    ├── BudgetConfig         - Per-cycle time budget
    ├── RiskConfig           - Failure history and mitigation thresholds
    ├── SchedulerConfig      - Priority scoring weights
    ├── EvidenceConfig       - Goal progress evidence gathering
    ├── ExecutorConfig       - Task handler settings
    ├── PersistenceConfig    - Goal snapshot and cycle journal paths
    └── logging              - Passed to cogcycle.logging_config

Loading order (later layers win):
    defaults -> TOML ``[cogcycle]`` table -> ``COGCYCLE_<SECTION>_<KEY>``
    environment variables -> explicit overrides

Usage:
    >>> from cogcycle.config.cycle_config import CognitiveCycleConfig
    >>> config = CognitiveCycleConfig()  # All defaults
    >>> config.budget.total_budget
    500.0

    >>> config = load_config(overrides={"wake": {"interval_seconds": 60}})
    >>> config.wake.interval_seconds
    60.0
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "COGCYCLE_"

DEFAULT_CONFIG_PATH = Path("~/.config/cogcycle/config.toml")


# =============================================================================
# WAKE CONFIGURATION
# =============================================================================


class WakeConfig(BaseModel):
    """
    Configuration for the wake scheduler that triggers cognitive cycles.

    Examples:
        >>> WakeConfig().interval_seconds
        300.0
    """

    enabled: bool = Field(
        default=True,
        description="Run cycles automatically on the wake timer",
    )
    interval_seconds: float = Field(
        default=300.0,
        ge=1.0,
        le=86400.0,
        description="Seconds between automatic wake cycles",
    )
    history_limit: int = Field(
        default=100,
        ge=1,
        description="Number of cycle summaries kept by the wake scheduler",
    )


# =============================================================================
# GOALS CONFIGURATION
# =============================================================================


class GoalsConfig(BaseModel):
    """Thresholds for goal hierarchy, stall detection and autonomy."""

    max_sub_goals: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of child goals per parent goal",
    )
    stall_threshold_days: float = Field(
        default=7.0,
        gt=0.0,
        description="Days without a progress evaluation before an active goal stalls",
    )
    urgent_window_days: float = Field(
        default=7.0,
        gt=0.0,
        description="Goals with a deadline inside this window are urgent",
    )
    evaluation_delta: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Minimum progress change that records a goal evaluation",
    )
    autonomy_step: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Autonomy increase/decrease applied per adjustment",
    )
    default_autonomy: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Autonomy level assigned to newly created goals",
    )
    min_autonomy_for_tasks: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Goals below this autonomy level never generate tasks",
    )


# =============================================================================
# BUDGET CONFIGURATION
# =============================================================================


class BudgetConfig(BaseModel):
    """
    Per-cycle time budget.

    Examples:
        >>> config = BudgetConfig()
        >>> config.total_budget * (1 - config.reserved_fraction)
        400.0
    """

    total_budget: float = Field(
        default=500.0,
        gt=0.0,
        description="Total time-units granted to one cycle",
    )
    reserved_fraction: float = Field(
        default=0.2,
        ge=0.0,
        lt=1.0,
        description="Share of the total budget held back from task execution",
    )
    per_task_limit: float = Field(
        default=100.0,
        gt=0.0,
        description="Soft execution limit for a single task",
    )
    warn_threshold: float = Field(
        default=0.70,
        gt=0.0,
        le=1.0,
        description="Utilization at which the scheduler becomes selective",
    )
    abort_threshold: float = Field(
        default=0.90,
        gt=0.0,
        le=1.0,
        description="Utilization at which no more tasks are admitted",
    )
    keep_last_cycles: int = Field(
        default=10,
        ge=1,
        description="Closed cycle ledgers retained for inspection",
    )

    @model_validator(mode="after")
    def check_thresholds(self) -> BudgetConfig:
        """The warning threshold must not exceed the abort threshold."""
        if self.warn_threshold > self.abort_threshold:
            raise ValueError("warn_threshold must be <= abort_threshold")
        return self


# =============================================================================
# RISK CONFIGURATION
# =============================================================================


class RiskConfig(BaseModel):
    """Failure history windows and mitigation thresholds (percentages)."""

    history_window: int = Field(
        default=20,
        ge=1,
        description="Recent outcomes and failures retained per task type",
    )
    trend_window: int = Field(
        default=8,
        ge=4,
        description="Outcomes compared when computing the failure trend",
    )
    skip_failure_rate: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Failure rate above which a task type is skipped",
    )
    throttle_failure_rate: float = Field(
        default=40.0,
        ge=0.0,
        le=100.0,
        description="Failure rate at which a task type is throttled",
    )
    escalate_failure_rate: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Failure rate above which risk is at least 'high'",
    )
    failure_weight: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Share of the risk score taken from the failure rate",
    )


# =============================================================================
# SCHEDULER CONFIGURATION
# =============================================================================


class SchedulerConfig(BaseModel):
    """Priority scoring weights and success-rate smoothing."""

    impact_weight: float = Field(default=0.40, ge=0.0, le=1.0)
    urgency_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    success_weight: float = Field(default=0.25, ge=0.0, le=1.0)
    risk_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    smoothing: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Weight of the newest outcome in the success-rate average",
    )
    initial_success_rate: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Success rate assumed for task types never seen before",
    )
    score_history_limit: int = Field(default=100, ge=1)


# =============================================================================
# EVIDENCE CONFIGURATION
# =============================================================================


class EvidenceConfig(BaseModel):
    """How goal progress is estimated from memory evidence."""

    search_limit: int = Field(default=10, ge=1)
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    max_criteria_queries: int = Field(default=3, ge=0)
    max_progress_delta: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Largest progress increase one cycle may grant a goal",
    )
    mention_window_minutes: float = Field(default=60.0, gt=0.0)
    completion_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    completion_progress: float = Field(default=0.95, ge=0.0, le=1.0)
    evaluation_interval_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Minimum spacing reported by should_evaluate()",
    )


# =============================================================================
# EXECUTOR CONFIGURATION
# =============================================================================


class ExecutorConfig(BaseModel):
    """Task executor settings."""

    maintenance_tasks: list[str] = Field(
        default_factory=lambda: [
            "memory_consolidation",
            "entity_extraction",
            "pattern_analysis",
            "kb_maintenance",
            "user_model_update",
        ],
        description="Task types proposed every cycle in addition to goal tasks",
    )
    history_limit: int = Field(default=100, ge=1)


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================


class PersistenceConfig(BaseModel):
    """Durable goal snapshot and cycle journal."""

    enabled: bool = Field(
        default=False,
        description="Persist goals and append cycle results to the journal",
    )
    goals_path: str = Field(default="~/.local/share/cogcycle/goals.json")
    journal_path: str = Field(default="~/.local/share/cogcycle/cycles.jsonl")

    @field_validator("goals_path", "journal_path")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in storage paths."""
        return os.path.expanduser(os.path.expandvars(v))


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class CognitiveCycleConfig(BaseModel):
    """
    Root configuration for the cognitive cycle scheduler.

    Usage:
        >>> config = CognitiveCycleConfig()
        >>> config.goals.max_sub_goals
        10

        >>> config = CognitiveCycleConfig(budget=BudgetConfig(total_budget=1000))
        >>> config.budget.total_budget
        1000.0
    """

    wake: WakeConfig = Field(default_factory=WakeConfig)
    goals: GoalsConfig = Field(default_factory=GoalsConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    evidence: EvidenceConfig = Field(default_factory=EvidenceConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    logging: dict[str, Any] = Field(
        default_factory=dict,
        description="Logging section forwarded to configure_logging()",
    )


# =============================================================================
# LOADING HELPERS
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in override take precedence. Nested dictionaries are merged recursively.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _parse_env_value(value: str) -> Any:
    """
    Parse environment variable value to appropriate type.

    Returns:
        Parsed value (bool, int, float, list, or string)
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    # List (comma-separated)
    if "," in value:
        return [v.strip() for v in value.split(",") if v.strip()]

    return value


def _apply_env_overrides(
    config: dict[str, Any],
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
        COGCYCLE_<SECTION>_<KEY>=value

    Examples:
        COGCYCLE_WAKE_INTERVAL_SECONDS=60
        COGCYCLE_BUDGET_TOTAL_BUDGET=800
        COGCYCLE_PERSISTENCE_ENABLED=true

    Only sections known to CognitiveCycleConfig are considered; unknown
    keys are ignored with a debug message.
    """
    env = os.environ if environ is None else environ
    sections = set(CognitiveCycleConfig.model_fields)

    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue

        parts = key[len(ENV_PREFIX) :].lower().split("_", 1)
        if len(parts) != 2 or parts[0] not in sections or not parts[1]:
            logger.debug("Ignoring unrecognised environment override %s", key)
            continue

        section, nested_key = parts
        config.setdefault(section, {})
        if isinstance(config[section], dict):
            config[section][nested_key] = _parse_env_value(value)

    return config


def load_toml_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """
    Load the ``[cogcycle]`` table from a TOML file.

    A missing default file yields an empty dict; a missing explicit file
    is an error.

    Raises:
        ConfigError: If an explicit path does not exist or cannot be parsed.
    """
    explicit = config_path is not None
    path = Path(config_path if explicit else DEFAULT_CONFIG_PATH).expanduser()

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with open(path, "rb") as f:
            full_config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    logger.debug("Loaded cogcycle config from %s", path)
    return full_config.get("cogcycle", {})


def load_config(
    config_path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> CognitiveCycleConfig:
    """
    Build a validated CognitiveCycleConfig from all configuration layers.

    Args:
        config_path: TOML file to read (default: ~/.config/cogcycle/config.toml).
        overrides: Runtime overrides, deep-merged last.
        environ: Environment mapping (default: ``os.environ``).

    Returns:
        Validated configuration.

    Raises:
        ConfigError: If the file is unreadable or any value fails validation.
    """
    data = load_toml_config(config_path)
    data = _apply_env_overrides(data, environ)
    if overrides:
        data = _deep_merge(data, overrides)

    try:
        return CognitiveCycleConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid cogcycle configuration: {e}") from e
