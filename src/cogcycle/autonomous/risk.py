# src/cogcycle/autonomous/risk.py
"""
Risk Assessor for autonomous task types.

Tracks per-task-type success/failure history and turns it into a risk
score, a trend, and a recommended mitigation.  The history for each task
type is a FailurePattern owned by the assessor; callers only ever receive
computed RiskAssessment snapshots or copies of a pattern.

Scoring:
    intrinsic = 0.4 * execution + 0.35 * data + 0.25 * system
    risk_score = failure_weight * failure_rate + (1 - failure_weight) * intrinsic

Levels: low < 0.25 <= medium < 0.5 <= high < 0.75 <= critical, escalated
to at least ``high`` when the failure rate exceeds 50%.

Mitigation (first match wins):
    failure rate > 70% or critical   -> skip
    failure rate >= 40%              -> throttle
    mutates shared knowledge         -> isolation
    medium risk or worse             -> timeout
    otherwise                        -> none

Example:
    assessor = RiskAssessor()
    assessor.record_failure("kb_maintenance", "merge conflict")
    assessment = assessor.assess_task("kb_maintenance")
    if assessment.mitigation.strategy is MitigationStrategy.SKIP:
        ...
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================


class RiskLevel(Enum):
    """Risk buckets, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return list(RiskLevel).index(self)


class MitigationStrategy(Enum):
    """Policy response to an assessed risk."""

    NONE = "none"
    TIMEOUT = "timeout"
    THROTTLE = "throttle"
    ISOLATION = "isolation"
    SKIP = "skip"


class Trend(Enum):
    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"


# Intrinsic hazard tags per task type.
_EXECUTION_HEAVY = {"entity_extraction", "pattern_analysis", "goal_analysis"}
_MUTATING = {"memory_consolidation", "entity_extraction", "kb_maintenance"}
_DATA_MUTATION = {"kb_maintenance", "entity_extraction"}
_DATA_SENSITIVE = {"kb_maintenance", "entity_extraction", "user_model_update"}
_MEMORY_INTENSIVE = {"memory_consolidation", "pattern_analysis"}

_RECOMMENDATIONS = {
    RiskLevel.LOW: "Safe to execute",
    RiskLevel.MEDIUM: "Execute with monitoring",
    RiskLevel.HIGH: "Execute with caution; limit frequency",
    RiskLevel.CRITICAL: "Do not execute until failures are investigated",
}


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class FailureRecord:
    timestamp: datetime
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "error": self.error}


@dataclass
class FailurePattern:
    """
    Outcome history for one task type.

    Attributes:
        task_type: Task type this pattern describes.
        total_attempts: Successes plus failures ever recorded.
        total_failures: Failures ever recorded.
        failure_rate: Percentage of attempts that failed (0-100).
        trend: Direction of recent outcomes.
        recent_failures: Bounded ring of the latest failures.
        outcomes: Bounded ring of recent outcomes (True = success).
        last_failure: When the latest failure happened.
    """

    task_type: str
    total_attempts: int = 0
    total_failures: int = 0
    failure_rate: float = 0.0
    trend: Trend = Trend.STABLE
    recent_failures: deque[FailureRecord] = field(default_factory=lambda: deque(maxlen=20))
    outcomes: deque[bool] = field(default_factory=lambda: deque(maxlen=20))
    last_failure: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_type": self.task_type,
            "total_attempts": self.total_attempts,
            "total_failures": self.total_failures,
            "failure_rate": round(self.failure_rate, 2),
            "trend": self.trend.value,
            "recent_failures": [f.to_dict() for f in self.recent_failures],
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
        }


@dataclass(frozen=True)
class RiskFactor:
    type: str
    description: str
    severity: float


@dataclass(frozen=True)
class Mitigation:
    strategy: MitigationStrategy
    reason: str


@dataclass(frozen=True)
class RiskAssessment:
    """On-demand snapshot of a task type's risk.  Never persisted."""

    task_type: str
    risk_level: RiskLevel
    risk_score: float
    failure_rate: float
    trend: Trend
    risks: tuple[RiskFactor, ...]
    mitigation: Mitigation
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_type": self.task_type,
            "risk_level": self.risk_level.value,
            "risk_score": round(self.risk_score, 4),
            "failure_rate": round(self.failure_rate, 2),
            "trend": self.trend.value,
            "risks": [
                {"type": r.type, "description": r.description, "severity": r.severity}
                for r in self.risks
            ],
            "mitigation": {
                "strategy": self.mitigation.strategy.value,
                "reason": self.mitigation.reason,
            },
            "recommendation": self.recommendation,
        }


# =============================================================================
# Risk Assessor
# =============================================================================


class RiskAssessor:
    """
    Converts per-task-type outcome history into risk assessments.

    Args:
        history_window: Size of the recent-outcome and recent-failure rings.
        trend_window: Number of latest outcomes compared for the trend.
        skip_failure_rate: Failure rate (%) above which tasks are skipped.
        throttle_failure_rate: Failure rate (%) at which tasks are throttled.
        escalate_failure_rate: Failure rate (%) above which risk is at least high.
        failure_weight: Share of the score driven by the failure rate.
    """

    def __init__(
        self,
        history_window: int = 20,
        trend_window: int = 8,
        skip_failure_rate: float = 70.0,
        throttle_failure_rate: float = 40.0,
        escalate_failure_rate: float = 50.0,
        failure_weight: float = 0.6,
    ) -> None:
        self.history_window = history_window
        self.trend_window = trend_window
        self.skip_failure_rate = skip_failure_rate
        self.throttle_failure_rate = throttle_failure_rate
        self.escalate_failure_rate = escalate_failure_rate
        self.failure_weight = failure_weight

        self._patterns: dict[str, FailurePattern] = {}
        self._assessments_performed = 0

    @classmethod
    def from_config(cls, config: Any) -> RiskAssessor:
        """Create a RiskAssessor from a ``cogcycle.config.RiskConfig``."""
        return cls(
            history_window=config.history_window,
            trend_window=config.trend_window,
            skip_failure_rate=config.skip_failure_rate,
            throttle_failure_rate=config.throttle_failure_rate,
            escalate_failure_rate=config.escalate_failure_rate,
            failure_weight=config.failure_weight,
        )

    # ----- recording ----------------------------------------------------------

    def _pattern(self, task_type: str) -> FailurePattern:
        pattern = self._patterns.get(task_type)
        if pattern is None:
            pattern = FailurePattern(
                task_type=task_type,
                recent_failures=deque(maxlen=self.history_window),
                outcomes=deque(maxlen=self.history_window),
            )
            self._patterns[task_type] = pattern
        return pattern

    def record_success(self, task_type: str) -> None:
        self._record(task_type, success=True)

    def record_failure(self, task_type: str, error: str) -> None:
        pattern = self._record(task_type, success=False)
        now = datetime.now(timezone.utc)
        pattern.recent_failures.append(FailureRecord(now, error))
        pattern.last_failure = now
        logger.debug(
            "Recorded failure for %s (rate %.1f%%): %s", task_type, pattern.failure_rate, error
        )

    def _record(self, task_type: str, success: bool) -> FailurePattern:
        pattern = self._pattern(task_type)
        pattern.total_attempts += 1
        if not success:
            pattern.total_failures += 1
        pattern.failure_rate = pattern.total_failures / pattern.total_attempts * 100
        pattern.outcomes.append(success)
        pattern.trend = self._compute_trend(pattern)
        return pattern

    def _compute_trend(self, pattern: FailurePattern) -> Trend:
        """Compare the earliest and latest quarter of the last ``trend_window`` outcomes."""
        window = list(pattern.outcomes)[-self.trend_window :]
        if len(window) < 4:
            return Trend.STABLE

        quarter = max(1, len(window) // 4)
        early = sum(window[:quarter]) / quarter
        late = sum(window[-quarter:]) / quarter
        diff = late - early
        if diff > 0.2:
            return Trend.IMPROVING
        if diff < -0.2:
            return Trend.DEGRADING
        return Trend.STABLE

    # ----- assessment ---------------------------------------------------------

    def assess_task(self, task_type: str, payload: dict[str, Any] | None = None) -> RiskAssessment:
        """
        Assess the current risk of running *task_type*.

        Unseen task types get an empty pattern (zero failure rate).
        """
        self._assessments_performed += 1
        return self._assess(task_type, payload or {})

    def _assess(self, task_type: str, payload: dict[str, Any]) -> RiskAssessment:
        pattern = self._pattern(task_type)
        failure_rate = pattern.failure_rate

        intrinsic = self._intrinsic_risk(task_type, payload)
        score = self.failure_weight * failure_rate / 100 + (1 - self.failure_weight) * intrinsic
        score = max(0.0, min(1.0, score))

        level = self._level_for(score)
        if failure_rate > self.escalate_failure_rate and level.severity < RiskLevel.HIGH.severity:
            level = RiskLevel.HIGH

        risks = self._risk_factors(pattern)
        mitigation = self._mitigation_for(task_type, failure_rate, level)

        return RiskAssessment(
            task_type=task_type,
            risk_level=level,
            risk_score=score,
            failure_rate=failure_rate,
            trend=pattern.trend,
            risks=tuple(risks),
            mitigation=mitigation,
            recommendation=_RECOMMENDATIONS[level],
        )

    @staticmethod
    def _intrinsic_risk(task_type: str, payload: dict[str, Any]) -> float:
        execution = 0.0
        if task_type in _EXECUTION_HEAVY:
            execution += 0.3
        if task_type in _MUTATING:
            execution += 0.3
        batch_size = payload.get("batch_size")
        if isinstance(batch_size, (int, float)) and batch_size > 100:
            execution += 0.2

        data = 0.0
        if task_type in _DATA_SENSITIVE:
            data += 0.4
        if task_type == "goal_analysis":
            data += 0.2

        system = 0.0
        if task_type == "memory_consolidation":
            system += 0.2
        if task_type in ("pattern_analysis", "goal_analysis"):
            system += 0.15

        return min(1.0, 0.4 * execution + 0.35 * data + 0.25 * system)

    @staticmethod
    def _level_for(score: float) -> RiskLevel:
        if score >= 0.75:
            return RiskLevel.CRITICAL
        if score >= 0.5:
            return RiskLevel.HIGH
        if score >= 0.25:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def _risk_factors(pattern: FailurePattern) -> list[RiskFactor]:
        risks = []
        if pattern.failure_rate > 30:
            risks.append(
                RiskFactor(
                    "known_failures",
                    f"{pattern.failure_rate:.1f}% of {pattern.total_attempts} attempts failed",
                    round(pattern.failure_rate / 100, 4),
                )
            )
        if pattern.task_type in _DATA_MUTATION:
            risks.append(
                RiskFactor("data_mutation", "Task modifies shared knowledge-base state", 0.7)
            )
        if pattern.task_type in _MEMORY_INTENSIVE:
            risks.append(
                RiskFactor("memory_intensive", "Task scans large amounts of memory", 0.5)
            )
        if pattern.trend is Trend.DEGRADING:
            risks.append(
                RiskFactor("degrading_trend", "Recent outcomes are worse than earlier ones", 0.4)
            )
        return risks

    def _mitigation_for(self, task_type: str, failure_rate: float, level: RiskLevel) -> Mitigation:
        if failure_rate > self.skip_failure_rate or level is RiskLevel.CRITICAL:
            return Mitigation(
                MitigationStrategy.SKIP,
                f"Failure rate {failure_rate:.1f}% or critical risk",
            )
        if failure_rate >= self.throttle_failure_rate:
            return Mitigation(
                MitigationStrategy.THROTTLE,
                f"Failure rate {failure_rate:.1f}% is elevated",
            )
        if task_type in _DATA_MUTATION:
            return Mitigation(MitigationStrategy.ISOLATION, "Task mutates shared data")
        if level.severity >= RiskLevel.MEDIUM.severity:
            return Mitigation(MitigationStrategy.TIMEOUT, f"{level.value} intrinsic risk")
        return Mitigation(MitigationStrategy.NONE, "Low risk")

    # ----- reporting ----------------------------------------------------------

    def get_failure_pattern(self, task_type: str) -> FailurePattern | None:
        """Copy of the pattern for *task_type*, or None if never seen."""
        pattern = self._patterns.get(task_type)
        return copy.deepcopy(pattern) if pattern is not None else None

    def get_system_health(self) -> dict[str, Any]:
        """
        Aggregate health across every tracked task type.

        Returns:
            Dict with ``overall_health`` (1 - mean risk score), ``critical_issues``,
            ``task_types_at_risk`` and ``recommendations``.
        """
        assessments = [self._assess(t, {}) for t in self._patterns]
        if not assessments:
            return {
                "overall_health": 1.0,
                "critical_issues": [],
                "task_types_at_risk": [],
                "recommendations": [],
            }

        mean_risk = sum(a.risk_score for a in assessments) / len(assessments)
        critical = [a.task_type for a in assessments if a.risk_level is RiskLevel.CRITICAL]
        at_risk = [
            a.task_type
            for a in assessments
            if a.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        ]

        recommendations = []
        for a in assessments:
            if a.risk_level is RiskLevel.CRITICAL:
                recommendations.append(f"Investigate {a.task_type}: {a.recommendation.lower()}")
            elif a.risk_level is RiskLevel.HIGH:
                recommendations.append(f"Reduce frequency of {a.task_type}")
            if a.trend is Trend.DEGRADING:
                recommendations.append(f"{a.task_type} is degrading; review recent errors")

        return {
            "overall_health": round(max(0.0, 1.0 - mean_risk), 4),
            "critical_issues": critical,
            "task_types_at_risk": at_risk,
            "recommendations": recommendations,
        }

    def get_stats(self) -> dict[str, Any]:
        """Assessed-type count, mean risk score and counts per risk level."""
        assessments = [self._assess(t, {}) for t in self._patterns]
        by_level = {level.value: 0 for level in RiskLevel}
        for a in assessments:
            by_level[a.risk_level.value] += 1

        return {
            "assessed_types": len(assessments),
            "assessments_performed": self._assessments_performed,
            "average_risk_score": (
                round(sum(a.risk_score for a in assessments) / len(assessments), 4)
                if assessments
                else 0.0
            ),
            "by_level": by_level,
        }

    def reset(self) -> None:
        """Forget all history (test/debug use)."""
        self._patterns.clear()
        self._assessments_performed = 0
