# src/cogcycle/__init__.py
"""
cogcycle - An autonomous cognitive cycle scheduler.

Periodically wakes an agent, reviews its goals against what its memory
tiers have seen, and spends a bounded time budget on the background tasks
(memory consolidation, entity extraction, goal research, ...) that look
most worthwhile and least risky right now.
"""

from importlib.metadata import PackageNotFoundError, version

from .autonomous import (
    Collaborators,
    CycleOrchestrator,
    CycleResult,
    Goal,
    GoalPriority,
    GoalSource,
    GoalStatus,
    GoalStore,
    TaskType,
    WakeScheduler,
)
from .config import CognitiveCycleConfig, load_config
from .exceptions import (
    CogCycleError,
    CollaboratorUnavailableError,
    ConfigError,
    CycleInProgressError,
    PersistenceError,
    TaskExecutionError,
    UnknownTaskTypeError,
)

try:
    __version__ = version("cogcycle")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "CognitiveCycleConfig",
    "CogCycleError",
    "CollaboratorUnavailableError",
    "Collaborators",
    "ConfigError",
    "CycleInProgressError",
    "CycleOrchestrator",
    "CycleResult",
    "Goal",
    "GoalPriority",
    "GoalSource",
    "GoalStatus",
    "GoalStore",
    "PersistenceError",
    "TaskExecutionError",
    "TaskType",
    "UnknownTaskTypeError",
    "WakeScheduler",
    "load_config",
    "__version__",
]
