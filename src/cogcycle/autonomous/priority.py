# src/cogcycle/autonomous/priority.py
"""
Priority Scheduler for candidate background tasks.

Scores candidates from four factors and packs the best of them into an
execution queue that fits the cycle's available budget.

    score = clamp01(w_impact * impact + w_urgency * urgency
                    + w_success * success_rate - w_risk * risk_score)

- impact: fixed per task type, boosted for goal-directed work when goals
  are stalled and reduced for maintenance when the budget is tight
- urgency: rises with the number of stalled goals and the payload priority
- success_rate: exponential moving average of past outcomes per task type
- risk_score: from the matching RiskAssessment (0 when none is supplied)

Queue building drops tasks whose mitigation is ``skip``, sorts the rest by
score, and admits greedily.  A task that would overflow the remaining
budget is skipped, and admission continues with the smaller tasks behind it.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .risk import MitigationStrategy, RiskAssessment, RiskLevel
from .tasks import TASK_PROFILES, CandidateTask, TaskProfile, TaskType

logger = logging.getLogger(__name__)

HIGH_PRIORITY_SCORE = 0.7
MEDIUM_PRIORITY_SCORE = 0.4

# Tight-budget threshold for demoting maintenance work.
LOW_BUDGET = 150.0

_FALLBACK_PROFILE = TaskProfile(impact=0.5, default_duration=50)

_PAYLOAD_PRIORITY_BONUS = {"critical": 0.2, "high": 0.1, "medium": 0.0, "low": -0.1}


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class SchedulingContext:
    """Goal and budget state the scores depend on."""

    active_goal_count: int = 0
    stalled_goal_count: int = 0
    budget_available: float = 0.0
    risk_assessments: dict[str, RiskAssessment] = field(default_factory=dict)


@dataclass
class ScoredTask:
    """A candidate with its computed score.  Rebuilt every cycle."""

    task_id: str
    task_type: str
    payload: dict[str, Any]
    score: float
    impact: float
    urgency: float
    risk_score: float
    success_rate: float
    estimated_duration: float
    risk_level: RiskLevel = RiskLevel.LOW
    mitigation: MitigationStrategy = MitigationStrategy.NONE
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_type": self.task_type,
            "payload": self.payload,
            "score": round(self.score, 4),
            "impact": round(self.impact, 4),
            "urgency": round(self.urgency, 4),
            "risk_score": round(self.risk_score, 4),
            "success_rate": round(self.success_rate, 4),
            "estimated_duration": self.estimated_duration,
            "risk_level": self.risk_level.value,
            "mitigation": self.mitigation.value,
            "reason": self.reason,
        }


@dataclass
class ExecutionQueue:
    """Ordered tasks to run within a budget, plus what was left out and why."""

    tasks: list[ScoredTask] = field(default_factory=list)
    tasks_skipped: list[ScoredTask] = field(default_factory=list)
    skipped_due_to_risk: list[ScoredTask] = field(default_factory=list)
    estimated_total_time: float = 0.0
    risk_summary: str = ""

    def __len__(self) -> int:
        return len(self.tasks)


# =============================================================================
# Priority Scheduler
# =============================================================================


class PriorityScheduler:
    """
    Scores candidate tasks and builds budget-fitting execution queues.

    Args:
        impact_weight: Weight of the task type's impact.
        urgency_weight: Weight of the urgency factor.
        success_weight: Weight of the running success rate.
        risk_weight: Penalty weight of the risk score.
        smoothing: Weight of the newest outcome in the success-rate average.
        initial_success_rate: Estimate for task types never seen before.
        score_history_limit: Scores remembered per task type for stats.
    """

    def __init__(
        self,
        impact_weight: float = 0.40,
        urgency_weight: float = 0.35,
        success_weight: float = 0.25,
        risk_weight: float = 0.30,
        smoothing: float = 0.2,
        initial_success_rate: float = 0.5,
        score_history_limit: int = 100,
    ) -> None:
        self.impact_weight = impact_weight
        self.urgency_weight = urgency_weight
        self.success_weight = success_weight
        self.risk_weight = risk_weight
        self.smoothing = smoothing
        self.initial_success_rate = initial_success_rate
        self.score_history_limit = score_history_limit

        self._success_rates: dict[str, float] = {}
        self._scores: dict[str, deque[float]] = {}

    @classmethod
    def from_config(cls, config: Any) -> PriorityScheduler:
        """Create a PriorityScheduler from a ``cogcycle.config.SchedulerConfig``."""
        return cls(
            impact_weight=config.impact_weight,
            urgency_weight=config.urgency_weight,
            success_weight=config.success_weight,
            risk_weight=config.risk_weight,
            smoothing=config.smoothing,
            initial_success_rate=config.initial_success_rate,
            score_history_limit=config.score_history_limit,
        )

    # ----- success rates ------------------------------------------------------

    def get_success_rate(self, task_type: str) -> float:
        return self._success_rates.get(task_type, self.initial_success_rate)

    def update_success_rate(self, task_type: str, success: bool) -> float:
        """Nudge the running estimate toward 1 (success) or 0 (failure)."""
        old = self.get_success_rate(task_type)
        new = old * (1 - self.smoothing) + (1.0 if success else 0.0) * self.smoothing
        self._success_rates[task_type] = new
        return new

    # ----- scoring ------------------------------------------------------------

    def score_tasks(
        self, candidates: list[CandidateTask], context: SchedulingContext
    ) -> list[ScoredTask]:
        """Score every candidate.  Order of the input is preserved."""
        scored = [self._score(c, context) for c in candidates]
        for task in scored:
            history = self._scores.setdefault(
                task.task_type, deque(maxlen=self.score_history_limit)
            )
            history.append(task.score)
        return scored

    def _score(self, candidate: CandidateTask, context: SchedulingContext) -> ScoredTask:
        task_type = TaskType.parse(candidate.task_type)
        profile = TASK_PROFILES[task_type] if task_type is not None else _FALLBACK_PROFILE
        type_key = task_type.value if task_type is not None else candidate.task_type

        impact = self._impact(profile, context)
        urgency = self._urgency(task_type, profile, candidate.payload, context)
        success_rate = self.get_success_rate(type_key)

        assessment = context.risk_assessments.get(type_key)
        risk_score = assessment.risk_score if assessment else 0.0

        parts = {
            "impact": self.impact_weight * impact,
            "urgency": self.urgency_weight * urgency,
            "success": self.success_weight * success_rate,
            "risk": self.risk_weight * risk_score,
        }
        score = _clamp01(parts["impact"] + parts["urgency"] + parts["success"] - parts["risk"])

        return ScoredTask(
            task_id=candidate.task_id,
            task_type=type_key,
            payload=dict(candidate.payload),
            score=score,
            impact=impact,
            urgency=urgency,
            risk_score=risk_score,
            success_rate=success_rate,
            estimated_duration=(
                candidate.estimated_duration
                if candidate.estimated_duration is not None
                else profile.default_duration
            ),
            risk_level=assessment.risk_level if assessment else RiskLevel.LOW,
            mitigation=assessment.mitigation.strategy if assessment else MitigationStrategy.NONE,
            reason=self._reason(parts, impact, urgency, success_rate, risk_score),
        )

    @staticmethod
    def _impact(profile: TaskProfile, context: SchedulingContext) -> float:
        impact = profile.impact
        if profile.goal_directed and context.stalled_goal_count > 0:
            impact += 0.2
        if profile.maintenance and context.budget_available < LOW_BUDGET:
            impact -= 0.2
        return _clamp01(impact)

    @staticmethod
    def _urgency(
        task_type: TaskType | None,
        profile: TaskProfile,
        payload: dict[str, Any],
        context: SchedulingContext,
    ) -> float:
        if profile.goal_directed:
            if context.stalled_goal_count > 0:
                urgency = 0.8 + 0.05 * context.stalled_goal_count
            elif context.active_goal_count > 0:
                urgency = 0.6
            else:
                urgency = 0.3
        elif task_type in (TaskType.PATTERN_ANALYSIS, TaskType.ENTITY_EXTRACTION):
            urgency = 0.5
        elif task_type is TaskType.USER_MODEL_UPDATE:
            urgency = 0.6
        elif profile.maintenance:
            urgency = 0.3
        else:
            urgency = 0.4

        priority = payload.get("priority")
        if isinstance(priority, str):
            urgency += _PAYLOAD_PRIORITY_BONUS.get(priority.lower(), 0.0)
        return _clamp01(urgency)

    @staticmethod
    def _reason(
        parts: dict[str, float],
        impact: float,
        urgency: float,
        success_rate: float,
        risk_score: float,
    ) -> str:
        dominant = max(parts, key=lambda k: parts[k])
        if dominant == "risk":
            return f"high risk ({risk_score:.2f}) lowers priority"
        if dominant == "impact":
            return f"high impact ({impact:.2f})"
        if dominant == "urgency":
            return f"urgent ({urgency:.2f})"
        return f"reliable (success rate {success_rate:.2f})"

    # ----- queue --------------------------------------------------------------

    def build_execution_queue(
        self, scored: list[ScoredTask], budget_available: float
    ) -> ExecutionQueue:
        """
        Pack the best-scoring tasks into *budget_available*.

        Tasks with mitigation ``skip`` are excluded before sorting.  Task
        types under ``throttle`` are admitted at most once per queue.
        """
        queue = ExecutionQueue()
        eligible = []
        for task in scored:
            if task.mitigation is MitigationStrategy.SKIP:
                queue.skipped_due_to_risk.append(task)
            else:
                eligible.append(task)

        eligible.sort(key=lambda t: t.score, reverse=True)

        throttled: set[str] = set()
        for task in eligible:
            if task.mitigation is MitigationStrategy.THROTTLE:
                if task.task_type in throttled:
                    queue.tasks_skipped.append(task)
                    continue
                throttled.add(task.task_type)

            if queue.estimated_total_time + task.estimated_duration > budget_available:
                queue.tasks_skipped.append(task)
                continue

            queue.tasks.append(task)
            queue.estimated_total_time += task.estimated_duration

        queue.risk_summary = self._risk_summary(queue)
        logger.debug(
            "Execution queue: %d admitted, %d skipped, %d skipped for risk (%.0f/%.0f)",
            len(queue.tasks),
            len(queue.tasks_skipped),
            len(queue.skipped_due_to_risk),
            queue.estimated_total_time,
            budget_available,
        )
        return queue

    @staticmethod
    def _risk_summary(queue: ExecutionQueue) -> str:
        high_risk = sum(
            1 for t in queue.tasks if t.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        )
        summary = f"{len(queue.tasks)} queued ({high_risk} high-risk)"
        if queue.skipped_due_to_risk:
            types = sorted({t.task_type for t in queue.skipped_due_to_risk})
            summary += f", {len(queue.skipped_due_to_risk)} skipped for risk ({', '.join(types)})"
        if queue.tasks_skipped:
            summary += f", {len(queue.tasks_skipped)} deferred"
        return summary

    # ----- stats --------------------------------------------------------------

    def get_task_stats(self) -> dict[str, Any]:
        """Running scores and success rates per task type."""
        by_type = {}
        bands = {"high": 0, "medium": 0, "low": 0}
        for task_type, history in self._scores.items():
            for s in history:
                if s >= HIGH_PRIORITY_SCORE:
                    bands["high"] += 1
                elif s >= MEDIUM_PRIORITY_SCORE:
                    bands["medium"] += 1
                else:
                    bands["low"] += 1
            by_type[task_type] = {
                "average_score": round(sum(history) / len(history), 4) if history else 0.0,
                "times_scored": len(history),
                "success_rate": round(self.get_success_rate(task_type), 4),
            }

        for task_type, rate in self._success_rates.items():
            by_type.setdefault(
                task_type,
                {"average_score": 0.0, "times_scored": 0, "success_rate": round(rate, 4)},
            )

        return {
            "task_types": by_type,
            "total_scored": sum(len(h) for h in self._scores.values()),
            "priority_bands": bands,
        }

    def reset(self) -> None:
        self._success_rates.clear()
        self._scores.clear()
