# src/cogcycle/autonomous/orchestrator.py
"""
Cycle Orchestrator: one full evaluate-then-execute pass.

States::

    idle -> evaluating -> executing -> idle
                 \\            \\
                  +------------+--> idle (error recorded in the result)

``evaluate_cycle`` performs, in order:

1. fetch active goals
2. gather evidence per goal (semantic search hits, entity mentions in
   recent working memory) and raise progress by at most 0.15; complete
   goals with confidence >= 0.9 and progress >= 0.95
3. run the goal store's stall sweep
4. adjust autonomy per goal
5. allocate a budget
6. generate task candidates from urgent and low-progress goals whose
   autonomy is at least 0.4, plus supported maintenance tasks
7. assess risk per candidate type
8. score candidates and build the execution queue
9. execute queued tasks one at a time while the budget allows it,
   recording cost and outcome after each
10. close the budget cycle
11. return an aggregate CycleResult

Nothing raises out of ``evaluate_cycle``; failures end up in
``CycleResult.errors``.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from ..exceptions import CycleInProgressError, PersistenceError
from .budget import BudgetAllocator, TaskCost
from .collaborators import Collaborators, MemoryHit
from .goals import Goal, GoalSource, GoalStatus, GoalStore
from .handlers import TaskExecutor
from .priority import (
    MEDIUM_PRIORITY_SCORE,
    ExecutionQueue,
    PriorityScheduler,
    SchedulingContext,
)
from .risk import RiskAssessment, RiskAssessor
from .state import CycleJournal, GoalSnapshotStore
from .tasks import CandidateTask, TaskType

logger = logging.getLogger(__name__)

LOW_PROGRESS = 0.3
MENTION_WEIGHT = 0.3


class CycleState(Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    EXECUTING = "executing"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class Evidence:
    """What memory says about one goal this cycle."""

    hits: list[MemoryHit] = field(default_factory=list)
    mention_count: int = 0

    @property
    def count(self) -> int:
        return len(self.hits) + self.mention_count

    @property
    def average(self) -> float:
        """Mean evidence strength; a hit weighs its similarity, a mention MENTION_WEIGHT."""
        if not self.count:
            return 0.0
        weight = sum(h.similarity for h in self.hits) + self.mention_count * MENTION_WEIGHT
        return weight / self.count


@dataclass
class CycleResult:
    """Aggregate outcome of one cognitive cycle."""

    cycle_id: str
    evaluated_at: datetime
    goals_evaluated: int = 0
    goals_completed: int = 0
    goals_stalled: int = 0
    progress_updates: list[dict[str, Any]] = field(default_factory=list)
    autonomy_adjustments: list[dict[str, Any]] = field(default_factory=list)
    candidates: int = 0
    tasks_executed: int = 0
    tasks_failed: int = 0
    tasks_skipped_due_to_risk: int = 0
    tasks_skipped_due_to_budget: int = 0
    risks_assessed: int = 0
    risk_summary: str = ""
    budget_allocated: float = 0.0
    budget_used: float = 0.0
    budget_utilization: float = 0.0
    task_results: list[dict[str, Any]] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "evaluated_at": self.evaluated_at.isoformat(),
            "goals_evaluated": self.goals_evaluated,
            "goals_completed": self.goals_completed,
            "goals_stalled": self.goals_stalled,
            "progress_updates": list(self.progress_updates),
            "autonomy_adjustments": list(self.autonomy_adjustments),
            "candidates": self.candidates,
            "tasks_executed": self.tasks_executed,
            "tasks_failed": self.tasks_failed,
            "tasks_skipped_due_to_risk": self.tasks_skipped_due_to_risk,
            "tasks_skipped_due_to_budget": self.tasks_skipped_due_to_budget,
            "risks_assessed": self.risks_assessed,
            "risk_summary": self.risk_summary,
            "budget_allocated": self.budget_allocated,
            "budget_used": round(self.budget_used, 3),
            "budget_utilization": round(self.budget_utilization, 2),
            "task_results": list(self.task_results),
            "recommendations": list(self.recommendations),
            "errors": list(self.errors),
            "duration_ms": round(self.duration_ms, 3),
        }


# =============================================================================
# Cycle Orchestrator
# =============================================================================


class CycleOrchestrator:
    """
    Runs cognitive cycles over the goal store, risk assessor, budget
    allocator, priority scheduler and task executor.

    Args:
        goal_store: Goal store (owned goals).
        risk_assessor: Per-task-type risk history.
        budget_allocator: Per-cycle budgets.
        scheduler: Candidate scoring and queueing.
        executor: Task handlers.
        collaborators: Evidence sources; defaults to the executor's.
        journal: Optional append-only cycle journal.
        evidence: A ``cogcycle.config.EvidenceConfig`` (defaults apply if None).
        min_autonomy_for_tasks: Goals below this autonomy generate no tasks.
        maintenance_tasks: Task types proposed every cycle when supported.
        keep_last_cycles: Budget ledgers retained after each cycle.
        history_limit: Cycle results kept in memory.
        clock: Returns the current (timezone-aware) time.

    Example:
        orchestrator = CycleOrchestrator.from_config(load_config(), collaborators)
        await orchestrator.initialize()
        result = await orchestrator.evaluate_cycle()
        print(result.risk_summary)
    """

    def __init__(
        self,
        goal_store: GoalStore,
        risk_assessor: RiskAssessor,
        budget_allocator: BudgetAllocator,
        scheduler: PriorityScheduler,
        executor: TaskExecutor,
        collaborators: Collaborators | None = None,
        journal: CycleJournal | None = None,
        evidence: Any | None = None,
        min_autonomy_for_tasks: float = 0.4,
        maintenance_tasks: list[str] | None = None,
        keep_last_cycles: int = 10,
        history_limit: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        from ..config.cycle_config import EvidenceConfig

        self.goal_store = goal_store
        self.risk_assessor = risk_assessor
        self.budget_allocator = budget_allocator
        self.scheduler = scheduler
        self.executor = executor
        self.collaborators = collaborators or executor.collaborators
        self.journal = journal
        self.evidence = evidence or EvidenceConfig()
        self.min_autonomy_for_tasks = min_autonomy_for_tasks
        self.maintenance_tasks = list(maintenance_tasks or [])
        self.keep_last_cycles = keep_last_cycles
        self._now = clock or (lambda: datetime.now(timezone.utc))

        self._state = CycleState.IDLE
        self._current_cycle_id: str | None = None
        self._history: deque[CycleResult] = deque(maxlen=history_limit)
        self._totals = {"cycles": 0, "tasks_executed": 0, "tasks_failed": 0, "errors": 0}

    @classmethod
    def from_config(
        cls,
        config: Any,
        collaborators: Collaborators | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> CycleOrchestrator:
        """
        Build every component from a ``CognitiveCycleConfig``.

        Persistence (goal snapshot + journal) is wired only when
        ``config.persistence.enabled`` is set.
        """
        storage = None
        journal = None
        if config.persistence.enabled:
            storage = GoalSnapshotStore(config.persistence.goals_path)
            journal = CycleJournal(config.persistence.journal_path)

        goal_store = GoalStore.from_config(config.goals, storage=storage, clock=clock)
        return cls(
            goal_store=goal_store,
            risk_assessor=RiskAssessor.from_config(config.risk),
            budget_allocator=BudgetAllocator.from_config(config.budget),
            scheduler=PriorityScheduler.from_config(config.scheduler),
            executor=TaskExecutor(
                goal_store, collaborators, history_limit=config.executor.history_limit
            ),
            collaborators=collaborators,
            journal=journal,
            evidence=config.evidence,
            min_autonomy_for_tasks=config.goals.min_autonomy_for_tasks,
            maintenance_tasks=config.executor.maintenance_tasks,
            keep_last_cycles=config.budget.keep_last_cycles,
            history_limit=config.wake.history_limit,
            clock=clock,
        )

    async def initialize(self) -> None:
        """Load persisted goals, if a storage backend is configured."""
        await self.goal_store.initialize()

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def current_cycle_id(self) -> str | None:
        return self._current_cycle_id

    # ----- main entry point ---------------------------------------------------

    async def evaluate_cycle(self) -> CycleResult | None:
        """
        Run one full cycle.

        Returns:
            The cycle result, or None if a cycle is already in progress.
        """
        if self._state is not CycleState.IDLE:
            error = CycleInProgressError(self._current_cycle_id or "unknown")
            logger.warning("%s", error)
            return None

        cycle_id = f"cycle-{uuid.uuid4().hex[:12]}"
        started = self._now()
        result = CycleResult(cycle_id=cycle_id, evaluated_at=started)
        self._current_cycle_id = cycle_id
        logger.info("Starting cycle %s", cycle_id)

        try:
            self._state = CycleState.EVALUATING
            active = await self._evaluate_goals(result)

            report = self.goal_store.evaluate_all()
            result.goals_stalled = len(report.stalled_goal_ids)
            result.recommendations.extend(report.recommendations)

            for goal in active:
                adjustment = self.goal_store.adjust_autonomy(goal.id)
                if adjustment is not None:
                    result.autonomy_adjustments.append(
                        {"goal_id": goal.id, "previous": adjustment[0], "current": adjustment[1]}
                    )

            allocation = self.budget_allocator.allocate_budget(cycle_id)
            result.budget_allocated = allocation.available_budget

            candidates = self._generate_candidates()
            result.candidates = len(candidates)

            assessments = self._assess_candidates(candidates)
            result.risks_assessed = len(assessments)

            context = SchedulingContext(
                active_goal_count=len(self.goal_store.get_active_goals()),
                stalled_goal_count=len(self.goal_store.get_goals(status=GoalStatus.STALLED)),
                budget_available=allocation.available_budget,
                risk_assessments=assessments,
            )
            scored = self.scheduler.score_tasks(candidates, context)
            queue = self.scheduler.build_execution_queue(scored, allocation.available_budget)
            result.tasks_skipped_due_to_risk = len(queue.skipped_due_to_risk)
            result.tasks_skipped_due_to_budget = len(queue.tasks_skipped)
            result.risk_summary = queue.risk_summary

            self._state = CycleState.EXECUTING
            await self._execute_queue(cycle_id, queue, result)
        except Exception as e:
            logger.error("Cycle %s failed: %s", cycle_id, e, exc_info=True)
            result.errors.append(f"{type(e).__name__}: {e}")
        finally:
            self._close_budget(cycle_id, result)
            self._state = CycleState.IDLE
            self._current_cycle_id = None

        await self._persist(result)

        result.duration_ms = (self._now() - started).total_seconds() * 1000
        self._history.append(result)
        self._totals["cycles"] += 1
        self._totals["tasks_executed"] += result.tasks_executed
        self._totals["tasks_failed"] += result.tasks_failed
        self._totals["errors"] += len(result.errors)

        logger.info(
            "Cycle %s done: %d goals, %d/%d tasks ok, %.1f%% budget, %s",
            cycle_id,
            result.goals_evaluated,
            result.tasks_executed - result.tasks_failed,
            result.tasks_executed,
            result.budget_utilization,
            result.risk_summary or "no tasks",
        )
        return result

    # ----- steps ----------------------------------------------------------------

    async def _evaluate_goals(self, result: CycleResult) -> list[Goal]:
        active = self.goal_store.get_active_goals()
        result.goals_evaluated = len(active)

        for goal in active:
            evidence = await self._gather_evidence(goal)
            increase, confidence = await self._progress_from_evidence(goal, evidence)

            previous = goal.progress
            if evidence.hits:
                self.goal_store.link_memories(goal.id, [h.id for h in evidence.hits])
            if increase > 0:
                self.goal_store.update_progress(
                    goal.id,
                    previous + increase,
                    note=(
                        f"Evidence: {len(evidence.hits)} memories, "
                        f"{evidence.mention_count} entity mentions"
                    ),
                )
                result.progress_updates.append(
                    {
                        "goal_id": goal.id,
                        "previous": previous,
                        "current": goal.progress,
                        "confidence": round(confidence, 4),
                    }
                )

            if (
                goal.status != GoalStatus.COMPLETED
                and confidence >= self.evidence.completion_confidence
                and goal.progress >= self.evidence.completion_progress
            ):
                self.goal_store.complete(
                    goal.id, note=f"Completed on evidence (confidence {confidence:.2f})"
                )

            if goal.status == GoalStatus.COMPLETED:
                result.goals_completed += 1

        return active

    async def _gather_evidence(self, goal: Goal) -> Evidence:
        """
        Semantic hits for the goal's title, description and success
        criteria, plus related-entity mentions in recent working memory.

        Any collaborator failure degrades this goal's evidence to empty.
        """
        evidence = Evidence()
        semantic = self.collaborators.semantic_memory
        working = self.collaborators.working_memory

        queries = [goal.title, goal.description]
        queries += goal.success_criteria[: self.evidence.max_criteria_queries]
        queries = list(dict.fromkeys(q.strip() for q in queries if q and q.strip()))

        try:
            if semantic is not None:
                best: dict[str, MemoryHit] = {}
                for query in queries:
                    for hit in await semantic.search_semantic(
                        query, self.evidence.search_limit, self.evidence.min_similarity
                    ):
                        if hit.id not in best or hit.similarity > best[hit.id].similarity:
                            best[hit.id] = hit
                evidence.hits = list(best.values())

            if working is not None and goal.related_entities:
                window_ms = self.evidence.mention_window_minutes * 60 * 1000
                since = self._now().timestamp() * 1000 - window_ms
                entities = [e.lower() for e in goal.related_entities]
                for item in await working.recent_items(since):
                    content = item.content.lower()
                    evidence.mention_count += sum(1 for e in entities if e in content)
        except Exception as e:
            logger.warning("Evidence gathering failed for goal %s: %s", goal.id, e)
            return Evidence()

        return evidence

    async def _progress_from_evidence(self, goal: Goal, evidence: Evidence) -> tuple[float, float]:
        """Return ``(progress increase, confidence)``; the increase is capped per cycle."""
        cap = self.evidence.max_progress_delta
        avg = evidence.average
        increase = min(cap, avg * 0.1 + evidence.count * 0.01)
        confidence = min(1.0, avg)

        user_model = self.collaborators.user_model
        if goal.source == GoalSource.USER and user_model is not None:
            try:
                reported = await user_model.get_preference(f"goal_{goal.id}_progress")
            except Exception as e:
                logger.warning("User model lookup failed for goal %s: %s", goal.id, e)
                reported = None
            if isinstance(reported, (int, float)) and reported > goal.progress:
                increase = max(increase, min(cap, float(reported) - goal.progress))

        return increase, confidence

    def _generate_candidates(self) -> list[CandidateTask]:
        candidates = []
        seen: set[str] = set()
        low_progress = [
            g for g in self.goal_store.get_active_goals() if 0.0 < g.progress < LOW_PROGRESS
        ]

        for goal in self.goal_store.urgent_goals() + low_progress:
            if goal.id in seen or goal.autonomy_level < self.min_autonomy_for_tasks:
                continue
            seen.add(goal.id)

            task_type = (
                TaskType.GOAL_RESEARCH if goal.source == GoalSource.USER else TaskType.GOAL_ANALYSIS
            )
            if not self.executor.supports(task_type):
                logger.debug("Skipping %s for goal %s: unsupported", task_type.value, goal.id)
                continue
            candidates.append(
                CandidateTask(
                    task_type=task_type.value,
                    payload={
                        "goal_id": goal.id,
                        "goal_title": goal.title,
                        "progress_target": round(min(1.0, goal.progress + 0.1), 4),
                        "priority": goal.priority.value,
                    },
                )
            )

        for name in self.maintenance_tasks:
            if self.executor.supports(name):
                candidates.append(CandidateTask(task_type=name))

        return candidates

    def _assess_candidates(self, candidates: list[CandidateTask]) -> dict[str, RiskAssessment]:
        assessments: dict[str, RiskAssessment] = {}
        for candidate in candidates:
            if candidate.task_type not in assessments:
                assessments[candidate.task_type] = self.risk_assessor.assess_task(
                    candidate.task_type, candidate.payload
                )
        return assessments

    async def _execute_queue(
        self, cycle_id: str, queue: ExecutionQueue, result: CycleResult
    ) -> None:
        for index, task in enumerate(queue.tasks):
            if not self.budget_allocator.should_continue_executing(cycle_id):
                remaining = len(queue.tasks) - index
                result.tasks_skipped_due_to_budget += remaining
                logger.info("Budget exhausted in %s; %d queued tasks not run", cycle_id, remaining)
                break

            if self.budget_allocator.is_selective(cycle_id) and task.score < MEDIUM_PRIORITY_SCORE:
                result.tasks_skipped_due_to_budget += 1
                logger.debug("Budget tight; deferring low-priority task %s", task.task_id)
                continue

            outcome = await self.executor.execute_task(task.task_id, task.task_type, task.payload)
            self.budget_allocator.record_task_cost(
                cycle_id,
                TaskCost(
                    task_id=task.task_id,
                    task_type=task.task_type,
                    execution_time_ms=outcome.duration_ms,
                    memory_peak_mb=outcome.memory_peak_mb,
                    db_queries_count=outcome.db_queries,
                    service_calls_count=outcome.service_calls,
                    success=outcome.success,
                ),
            )
            self.scheduler.update_success_rate(task.task_type, outcome.success)
            if outcome.success:
                self.risk_assessor.record_success(task.task_type)
            else:
                self.risk_assessor.record_failure(
                    task.task_type, "; ".join(outcome.errors) or "unknown error"
                )
                result.tasks_failed += 1

            result.tasks_executed += 1
            result.task_results.append(
                {
                    "task_id": task.task_id,
                    "task_type": task.task_type,
                    "score": round(task.score, 4),
                    "success": outcome.success,
                    "duration_ms": round(outcome.duration_ms, 3),
                    "insights": list(outcome.insights_generated),
                    "errors": list(outcome.errors),
                }
            )

    def _close_budget(self, cycle_id: str, result: CycleResult) -> None:
        if self.budget_allocator.get_allocation(cycle_id) is None:
            return
        stats = self.budget_allocator.close_cycle(cycle_id)
        if stats is not None:
            result.budget_used = stats.budget_used
            result.budget_utilization = stats.utilization_percent
        self.budget_allocator.clear_old_cycles(self.keep_last_cycles)

    async def _persist(self, result: CycleResult) -> None:
        """Flush goals and journal the cycle; failures of either are recorded, not raised."""
        steps = [self.goal_store.flush]
        if self.journal is not None:
            steps.append(lambda: self.journal.append(result.to_dict()))

        for step in steps:
            try:
                await step()
            except PersistenceError as e:
                logger.error("Failed to persist cycle %s: %s", result.cycle_id, e)
                result.errors.append(str(e))
            except Exception as e:
                logger.error(
                    "Failed to persist cycle %s: %s", result.cycle_id, e, exc_info=True
                )
                result.errors.append(f"{type(e).__name__}: {e}")

    # ----- reporting ----------------------------------------------------------

    def should_evaluate(self) -> bool:
        """True if no cycle ran within the evaluation interval."""
        if self._state is not CycleState.IDLE:
            return False
        last = self.get_last_evaluation()
        if last is None:
            return True
        interval = timedelta(seconds=self.evidence.evaluation_interval_seconds)
        return self._now() - last.evaluated_at >= interval

    def get_last_evaluation(self) -> CycleResult | None:
        return self._history[-1] if self._history else None

    def get_evaluation_history(self, limit: int = 10) -> list[CycleResult]:
        history = list(self._history)
        return history[-limit:] if limit > 0 else []

    def get_stats(self) -> dict[str, Any]:
        history = list(self._history)
        return {
            "state": self._state.value,
            "total_cycles": self._totals["cycles"],
            "total_tasks_executed": self._totals["tasks_executed"],
            "total_tasks_failed": self._totals["tasks_failed"],
            "total_errors": self._totals["errors"],
            "average_utilization": (
                round(sum(r.budget_utilization for r in history) / len(history), 2)
                if history
                else 0.0
            ),
            "last_cycle_id": history[-1].cycle_id if history else None,
            "goals": self.goal_store.stats(),
        }

    def clear(self) -> None:
        """Forget cycle history (goals, risk and budgets are untouched)."""
        self._history.clear()
        self._totals = {"cycles": 0, "tasks_executed": 0, "tasks_failed": 0, "errors": 0}
