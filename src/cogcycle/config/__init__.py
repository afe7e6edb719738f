# src/cogcycle/config/__init__.py
"""
Configuration module for cogcycle.

Settings are validated by the Pydantic models in ``cycle_config`` and
loaded from, in order of precedence:
    - Runtime overrides passed to ``load_config``
    - Environment variables: prefix ``COGCYCLE_``, e.g. COGCYCLE_BUDGET_TOTAL_BUDGET
    - The ``[cogcycle]`` table of a TOML file (default: ~/.config/cogcycle/config.toml)
    - Model defaults
"""

from .cycle_config import (
    BudgetConfig,
    CognitiveCycleConfig,
    EvidenceConfig,
    ExecutorConfig,
    GoalsConfig,
    PersistenceConfig,
    RiskConfig,
    SchedulerConfig,
    WakeConfig,
    load_config,
)

__all__ = [
    "BudgetConfig",
    "CognitiveCycleConfig",
    "EvidenceConfig",
    "ExecutorConfig",
    "GoalsConfig",
    "PersistenceConfig",
    "RiskConfig",
    "SchedulerConfig",
    "WakeConfig",
    "load_config",
]
