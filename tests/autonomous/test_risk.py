# tests/autonomous/test_risk.py
"""
Test suite for the Risk Assessor.

Tests cover:
    - Failure rate bookkeeping and bounded failure history
    - Trend detection over recent outcomes
    - Risk level, escalation and mitigation strategy selection
    - Snapshot isolation of failure patterns
    - System health and stats reporting
"""

import pytest

from cogcycle.autonomous.risk import (
    MitigationStrategy,
    RiskAssessor,
    RiskLevel,
    Trend,
)


def _record(assessor, task_type, failures=0, successes=0):
    for _ in range(failures):
        assessor.record_failure(task_type, "boom")
    for _ in range(successes):
        assessor.record_success(task_type)


# =============================================================================
# Recording
# =============================================================================


class TestRecording:
    """Tests for outcome recording."""

    def test_unseen_type_has_zero_failure_rate(self, risk_assessor):
        """A task type with no attempts assesses with failure_rate 0."""
        assessment = risk_assessor.assess_task("goal_research")
        assert assessment.failure_rate == 0.0
        assert assessment.trend == Trend.STABLE

    def test_failure_rate(self, risk_assessor):
        """failure_rate is failures / attempts as a percentage."""
        _record(risk_assessor, "pattern_analysis", failures=1, successes=3)
        pattern = risk_assessor.get_failure_pattern("pattern_analysis")

        assert pattern.total_attempts == 4
        assert pattern.total_failures == 1
        assert pattern.failure_rate == 25.0
        assert pattern.last_failure is not None

    def test_failure_history_bounded(self):
        """Only the latest history_window failures are kept."""
        assessor = RiskAssessor(history_window=5)
        _record(assessor, "kb_maintenance", failures=12)

        pattern = assessor.get_failure_pattern("kb_maintenance")
        assert len(pattern.recent_failures) == 5
        assert pattern.total_failures == 12

    def test_pattern_is_a_copy(self, risk_assessor):
        """Mutating a returned pattern does not touch the assessor."""
        _record(risk_assessor, "goal_analysis", failures=1)
        pattern = risk_assessor.get_failure_pattern("goal_analysis")
        pattern.total_failures = 99
        pattern.recent_failures.clear()

        fresh = risk_assessor.get_failure_pattern("goal_analysis")
        assert fresh.total_failures == 1
        assert len(fresh.recent_failures) == 1

    def test_unknown_pattern(self, risk_assessor):
        assert risk_assessor.get_failure_pattern("never_seen") is None


# =============================================================================
# Trend
# =============================================================================


class TestTrend:
    """Tests for trend detection."""

    def test_stable_with_few_outcomes(self, risk_assessor):
        """Fewer than four outcomes are always stable."""
        _record(risk_assessor, "goal_research", failures=3)
        assert risk_assessor.assess_task("goal_research").trend == Trend.STABLE

    def test_improving(self, risk_assessor):
        """Failures followed by successes is improving."""
        _record(risk_assessor, "goal_research", failures=4, successes=4)
        assert risk_assessor.assess_task("goal_research").trend == Trend.IMPROVING

    def test_degrading(self, risk_assessor):
        """Successes followed by failures is degrading and adds a risk factor."""
        _record(risk_assessor, "goal_research", successes=4, failures=4)
        assessment = risk_assessor.assess_task("goal_research")

        assert assessment.trend == Trend.DEGRADING
        assert "degrading_trend" in [r.type for r in assessment.risks]

    def test_only_recent_window_counts(self, risk_assessor):
        """Old outcomes outside trend_window do not affect the trend."""
        _record(risk_assessor, "goal_research", failures=10, successes=8)
        assert risk_assessor.assess_task("goal_research").trend == Trend.STABLE


# =============================================================================
# Assessment
# =============================================================================


class TestAssessment:
    """Tests for risk levels and mitigation strategies."""

    def test_kb_maintenance_skip_scenario(self, risk_assessor):
        """8 failures then 2 successes: 80% failure, high risk, skip."""
        _record(risk_assessor, "kb_maintenance", failures=8, successes=2)
        assessment = risk_assessor.assess_task("kb_maintenance")

        assert assessment.failure_rate == 80.0
        assert assessment.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        assert assessment.mitigation.strategy == MitigationStrategy.SKIP

    @pytest.mark.parametrize("task_type", ["goal_research", "memory_consolidation", "kb_maintenance"])
    def test_above_skip_rate_always_skipped(self, risk_assessor, task_type):
        """Any task type above 70% failures is skipped."""
        _record(risk_assessor, task_type, failures=8, successes=3)
        assert risk_assessor.assess_task(task_type).mitigation.strategy == MitigationStrategy.SKIP

    def test_throttle_band(self, risk_assessor):
        """Failure rates from 40% up to 70% throttle."""
        _record(risk_assessor, "goal_research", failures=5, successes=5)
        assessment = risk_assessor.assess_task("goal_research")

        assert assessment.mitigation.strategy == MitigationStrategy.THROTTLE
        assert assessment.risk_level == RiskLevel.MEDIUM

    def test_escalation_above_fifty_percent(self, risk_assessor):
        """More than 50% failures is at least high risk."""
        _record(risk_assessor, "goal_research", failures=6, successes=4)
        assessment = risk_assessor.assess_task("goal_research")
        assert assessment.risk_level == RiskLevel.HIGH

    def test_data_mutation_isolated(self, risk_assessor):
        """Healthy data-mutating tasks run isolated."""
        assessment = risk_assessor.assess_task("entity_extraction")
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.mitigation.strategy == MitigationStrategy.ISOLATION

    @pytest.mark.parametrize(
        "task_type,isolated",
        [
            ("kb_maintenance", True),
            ("entity_extraction", True),
            ("goal_analysis", False),
            ("user_model_update", False),
            ("goal_research", False),
        ],
    )
    def test_isolation_only_for_knowledge_mutations(self, risk_assessor, task_type, isolated):
        """Only tasks that rewrite knowledge-base entries are isolated."""
        strategy = risk_assessor.assess_task(task_type).mitigation.strategy
        assert (strategy == MitigationStrategy.ISOLATION) is isolated

    def test_medium_risk_gets_timeout(self, risk_assessor):
        """Medium risk without data mutation runs under a timeout."""
        _record(risk_assessor, "pattern_analysis", failures=7, successes=13)
        assessment = risk_assessor.assess_task("pattern_analysis")

        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.mitigation.strategy == MitigationStrategy.TIMEOUT

    def test_low_risk_no_mitigation(self, risk_assessor):
        """A clean read-only task needs no mitigation."""
        _record(risk_assessor, "goal_research", successes=10)
        assessment = risk_assessor.assess_task("goal_research")

        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.mitigation.strategy == MitigationStrategy.NONE
        assert assessment.risks == ()

    def test_critical_is_skipped(self):
        """Critical risk is skipped even below the skip failure rate."""
        assessor = RiskAssessor(failure_weight=1.0, skip_failure_rate=100.0)
        _record(assessor, "goal_research", failures=8, successes=2)
        assessment = assessor.assess_task("goal_research")

        assert assessment.risk_level == RiskLevel.CRITICAL
        assert assessment.mitigation.strategy == MitigationStrategy.SKIP

    def test_large_batch_raises_score(self, risk_assessor):
        """A payload batch_size over 100 adds execution risk."""
        small = risk_assessor.assess_task("kb_maintenance", {"batch_size": 10})
        large = risk_assessor.assess_task("kb_maintenance", {"batch_size": 500})
        assert large.risk_score > small.risk_score

    def test_risk_factors(self, risk_assessor):
        """Known failures, data mutation and memory use are reported."""
        _record(risk_assessor, "kb_maintenance", failures=4, successes=6)
        types = [r.type for r in risk_assessor.assess_task("kb_maintenance").risks]
        assert types == ["known_failures", "data_mutation"]

        types = [r.type for r in risk_assessor.assess_task("memory_consolidation").risks]
        assert types == ["memory_intensive"]

    def test_to_dict(self, risk_assessor):
        """Assessments serialize enum values."""
        data = risk_assessor.assess_task("entity_extraction").to_dict()
        assert data["risk_level"] == "low"
        assert data["mitigation"]["strategy"] == "isolation"


# =============================================================================
# Reporting
# =============================================================================


class TestReporting:
    """Tests for system health and stats."""

    def test_health_with_no_history(self, risk_assessor):
        """An assessor with nothing recorded is fully healthy."""
        health = risk_assessor.get_system_health()
        assert health["overall_health"] == 1.0
        assert health["critical_issues"] == []

    def test_health_lists_types_at_risk(self, risk_assessor):
        """High-risk types appear with a recommendation."""
        _record(risk_assessor, "kb_maintenance", failures=9, successes=1)
        _record(risk_assessor, "goal_research", successes=5)

        health = risk_assessor.get_system_health()
        assert health["task_types_at_risk"] == ["kb_maintenance"]
        assert health["overall_health"] < 1.0
        assert any("kb_maintenance" in r for r in health["recommendations"])

    def test_stats(self, risk_assessor):
        """Stats count assessed types and assessments performed."""
        _record(risk_assessor, "goal_research", successes=2)
        risk_assessor.assess_task("goal_research")
        risk_assessor.assess_task("goal_research")

        stats = risk_assessor.get_stats()
        assert stats["assessed_types"] == 1
        assert stats["assessments_performed"] == 2
        assert stats["by_level"]["low"] == 1

    def test_reset(self, risk_assessor):
        _record(risk_assessor, "goal_research", failures=2)
        risk_assessor.reset()
        assert risk_assessor.get_failure_pattern("goal_research") is None
