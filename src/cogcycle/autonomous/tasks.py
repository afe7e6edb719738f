# src/cogcycle/autonomous/tasks.py
"""
Task types known to the scheduler and the candidate task record.

The handler set is closed: every TaskType has exactly one profile here and
one handler in ``handlers.TaskExecutor``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskType(str, Enum):
    """Background task types."""

    MEMORY_CONSOLIDATION = "memory_consolidation"
    PATTERN_ANALYSIS = "pattern_analysis"
    ENTITY_EXTRACTION = "entity_extraction"
    GOAL_RESEARCH = "goal_research"
    GOAL_ANALYSIS = "goal_analysis"
    KB_MAINTENANCE = "kb_maintenance"
    USER_MODEL_UPDATE = "user_model_update"

    @classmethod
    def parse(cls, value: TaskType | str) -> TaskType | None:
        """Return the matching member, or None for unknown strings."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class TaskProfile:
    """
    Static scheduling properties of a task type.

    Attributes:
        impact: Base value of running the task (0-1).
        default_duration: Estimated time-units when the candidate gives none.
        goal_directed: Whether the task works on a specific goal.
        maintenance: Whether the task is housekeeping.
    """

    impact: float
    default_duration: float
    goal_directed: bool = False
    maintenance: bool = False


TASK_PROFILES: dict[TaskType, TaskProfile] = {
    TaskType.MEMORY_CONSOLIDATION: TaskProfile(0.5, 50, maintenance=True),
    TaskType.PATTERN_ANALYSIS: TaskProfile(0.6, 60),
    TaskType.ENTITY_EXTRACTION: TaskProfile(0.7, 40),
    TaskType.GOAL_RESEARCH: TaskProfile(0.9, 80, goal_directed=True),
    TaskType.GOAL_ANALYSIS: TaskProfile(0.9, 70, goal_directed=True),
    TaskType.KB_MAINTENANCE: TaskProfile(0.4, 50, maintenance=True),
    TaskType.USER_MODEL_UPDATE: TaskProfile(0.8, 40),
}


@dataclass
class CandidateTask:
    """A proposed unit of background work, not yet scored or admitted."""

    task_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    task_id: str = field(default_factory=lambda: f"task-{uuid.uuid4().hex[:12]}")
    estimated_duration: float | None = None
