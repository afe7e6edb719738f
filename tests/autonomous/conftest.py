# tests/autonomous/conftest.py
"""
Shared fixtures for autonomous module tests.

Provides pre-configured component instances wired to the fake clock and
fake collaborators from the top-level conftest.
"""

import pytest


@pytest.fixture
def risk_assessor():
    """RiskAssessor with default thresholds."""
    from cogcycle.autonomous.risk import RiskAssessor

    return RiskAssessor()


@pytest.fixture
def budget_allocator():
    """BudgetAllocator with the default 500 / 20% reserve envelope."""
    from cogcycle.autonomous.budget import BudgetAllocator

    return BudgetAllocator()


@pytest.fixture
def scheduler():
    """PriorityScheduler with default weights."""
    from cogcycle.autonomous.priority import PriorityScheduler

    return PriorityScheduler()


@pytest.fixture
def executor(goal_store, collaborators):
    """TaskExecutor with every collaborator available."""
    from cogcycle.autonomous.handlers import TaskExecutor

    return TaskExecutor(goal_store, collaborators)


@pytest.fixture
def orchestrator(goal_store, risk_assessor, budget_allocator, scheduler, executor, clock):
    """CycleOrchestrator over in-memory components and no maintenance tasks."""
    from cogcycle.autonomous.orchestrator import CycleOrchestrator

    return CycleOrchestrator(
        goal_store=goal_store,
        risk_assessor=risk_assessor,
        budget_allocator=budget_allocator,
        scheduler=scheduler,
        executor=executor,
        clock=clock,
    )


@pytest.fixture
def tmp_goals_path(tmp_path):
    """Temporary path for the goal snapshot."""
    return tmp_path / "goals.json"


@pytest.fixture
def tmp_journal_path(tmp_path):
    """Temporary path for the cycle journal."""
    return tmp_path / "cycles.jsonl"
