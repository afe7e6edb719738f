# src/cogcycle/autonomous/budget.py
"""
Per-cycle time budget allocation and tracking.

Each cognitive cycle gets a fixed budget envelope.  Part of it is held in
reserve; the rest is available to tasks.  Tasks report their cost after
running, and the executor loop asks ``should_continue_executing`` before
admitting the next one.

Thresholds (fractions of the available budget):
    warn  (0.70): the scheduler should be selective; execution continues
    abort (0.90): no further tasks are admitted for the rest of the cycle

The per-task limit is soft: a task that runs longer is logged as
"budget exceeded" and counted, never cancelled.

Example:
    allocator = BudgetAllocator()
    allocation = allocator.allocate_budget("cycle-1")
    allocator.record_task_cost("cycle-1", TaskCost("t1", "goal_research", 50.0))
    allocator.get_remaining_budget("cycle-1")   # 350.0
    allocator.close_cycle("cycle-1")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================


@dataclass(frozen=True)
class BudgetAllocation:
    """
    Budget envelope for one cycle.

    Immutable except for ``end_time``, which ``close_cycle`` sets by
    replacing the allocation.
    """

    cycle_id: str
    total_budget: float
    reserved_budget: float
    available_budget: float
    per_task_limit: float
    start_time: datetime
    end_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "total_budget": self.total_budget,
            "reserved_budget": self.reserved_budget,
            "available_budget": self.available_budget,
            "per_task_limit": self.per_task_limit,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


@dataclass(frozen=True)
class TaskCost:
    """Resources one task consumed."""

    task_id: str
    task_type: str
    execution_time_ms: float
    memory_peak_mb: float = 0.0
    db_queries_count: int = 0
    service_calls_count: int = 0
    success: bool = True


@dataclass
class _CycleLedger:
    allocation: BudgetAllocation
    costs: list[TaskCost] = field(default_factory=list)
    aborted: bool = False

    @property
    def used(self) -> float:
        return sum(c.execution_time_ms for c in self.costs)


@dataclass(frozen=True)
class CycleStats:
    """Aggregated costs of one cycle."""

    cycle_id: str
    tasks_executed: int
    tasks_failed: int
    success_rate: float
    budget_used: float
    utilization_percent: float
    average_task_time: float
    max_task_time: float
    peak_memory_mb: float
    total_db_queries: int
    total_service_calls: int
    closed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "tasks_executed": self.tasks_executed,
            "tasks_failed": self.tasks_failed,
            "success_rate": self.success_rate,
            "budget_used": self.budget_used,
            "utilization_percent": self.utilization_percent,
            "average_task_time": self.average_task_time,
            "max_task_time": self.max_task_time,
            "peak_memory_mb": self.peak_memory_mb,
            "total_db_queries": self.total_db_queries,
            "total_service_calls": self.total_service_calls,
            "closed": self.closed,
        }


# =============================================================================
# Budget Allocator
# =============================================================================


class BudgetAllocator:
    """
    Issues per-cycle budgets and tracks their consumption.

    Args:
        total_budget: Time-units granted per cycle.
        reserved_fraction: Share of the total held back from tasks.
        per_task_limit: Soft limit for a single task.
        warn_threshold: Utilization fraction that signals "be selective".
        abort_threshold: Utilization fraction that stops admission.
    """

    def __init__(
        self,
        total_budget: float = 500.0,
        reserved_fraction: float = 0.2,
        per_task_limit: float = 100.0,
        warn_threshold: float = 0.70,
        abort_threshold: float = 0.90,
    ) -> None:
        self.total_budget = total_budget
        self.reserved_fraction = reserved_fraction
        self.per_task_limit = per_task_limit
        self.warn_threshold = warn_threshold
        self.abort_threshold = abort_threshold

        self._ledgers: dict[str, _CycleLedger] = {}
        self._totals = self._empty_totals()

    @classmethod
    def from_config(cls, config: Any) -> BudgetAllocator:
        """Create a BudgetAllocator from a ``cogcycle.config.BudgetConfig``."""
        return cls(
            total_budget=config.total_budget,
            reserved_fraction=config.reserved_fraction,
            per_task_limit=config.per_task_limit,
            warn_threshold=config.warn_threshold,
            abort_threshold=config.abort_threshold,
        )

    @staticmethod
    def _empty_totals() -> dict[str, float]:
        return {
            "cycles_allocated": 0,
            "total_allocated": 0.0,
            "total_used": 0.0,
            "peak_utilization": 0.0,
            "tasks_exceeded_budget": 0,
        }

    # ----- allocation ---------------------------------------------------------

    def allocate_budget(self, cycle_id: str) -> BudgetAllocation:
        """
        Open a budget envelope and an empty cost ledger for *cycle_id*.

        Allocating an id that already has a ledger is a programming error;
        it is logged and the existing allocation is returned unchanged.
        """
        existing = self._ledgers.get(cycle_id)
        if existing is not None:
            logger.error("Budget already allocated for cycle %s; reusing it", cycle_id)
            return existing.allocation

        reserved = self.total_budget * self.reserved_fraction
        allocation = BudgetAllocation(
            cycle_id=cycle_id,
            total_budget=self.total_budget,
            reserved_budget=reserved,
            available_budget=self.total_budget - reserved,
            per_task_limit=self.per_task_limit,
            start_time=datetime.now(timezone.utc),
        )
        self._ledgers[cycle_id] = _CycleLedger(allocation)
        self._totals["cycles_allocated"] += 1
        self._totals["total_allocated"] += allocation.available_budget

        logger.debug(
            "Allocated budget for %s: %.0f available, %.0f reserved",
            cycle_id,
            allocation.available_budget,
            reserved,
        )
        return allocation

    def get_allocation(self, cycle_id: str) -> BudgetAllocation | None:
        ledger = self._ledgers.get(cycle_id)
        return ledger.allocation if ledger else None

    def record_task_cost(self, cycle_id: str, cost: TaskCost) -> bool:
        """
        Append *cost* to the cycle's ledger.

        Returns:
            False (with a warning) if the cycle id is unknown.
        """
        ledger = self._ledgers.get(cycle_id)
        if ledger is None:
            logger.warning("Cannot record cost for unknown cycle %s", cycle_id)
            return False

        ledger.costs.append(cost)
        self._totals["total_used"] += cost.execution_time_ms

        if cost.execution_time_ms > ledger.allocation.per_task_limit:
            self._totals["tasks_exceeded_budget"] += 1
            logger.warning(
                "Task %s (%s) budget exceeded: %.1f > %.1f",
                cost.task_id,
                cost.task_type,
                cost.execution_time_ms,
                ledger.allocation.per_task_limit,
            )

        utilization = self.get_utilization_percent(cycle_id)
        if utilization > self._totals["peak_utilization"]:
            self._totals["peak_utilization"] = utilization
        if utilization >= self.abort_threshold * 100:
            ledger.aborted = True
        return True

    # ----- queries ------------------------------------------------------------

    def get_remaining_budget(self, cycle_id: str) -> float:
        """Available budget minus time used, floored at 0 (0 for unknown cycles)."""
        ledger = self._ledgers.get(cycle_id)
        if ledger is None:
            return 0.0
        return max(0.0, ledger.allocation.available_budget - ledger.used)

    def get_utilization_percent(self, cycle_id: str) -> float:
        """Used / available x 100, capped at 100 (0 for unknown cycles)."""
        ledger = self._ledgers.get(cycle_id)
        if ledger is None or ledger.allocation.available_budget <= 0:
            return 0.0
        return min(100.0, ledger.used / ledger.allocation.available_budget * 100)

    def should_continue_executing(self, cycle_id: str) -> bool:
        """
        False once utilization reaches the abort threshold.

        Stays False for the rest of the cycle.
        """
        ledger = self._ledgers.get(cycle_id)
        if ledger is None:
            return False
        if ledger.aborted:
            return False
        if self.get_utilization_percent(cycle_id) >= self.abort_threshold * 100:
            ledger.aborted = True
            logger.info("Cycle %s budget exhausted; stopping task admission", cycle_id)
            return False
        return True

    def is_selective(self, cycle_id: str) -> bool:
        """True once utilization passes the warning threshold."""
        return self.get_utilization_percent(cycle_id) >= self.warn_threshold * 100

    def can_fit_task(self, cycle_id: str, estimated_time: float) -> bool:
        return estimated_time <= self.get_remaining_budget(cycle_id)

    def get_cycle_stats(self, cycle_id: str) -> CycleStats | None:
        """Aggregate costs for a cycle, or None if the id is unknown."""
        ledger = self._ledgers.get(cycle_id)
        if ledger is None:
            return None

        costs = ledger.costs
        executed = len(costs)
        failed = sum(1 for c in costs if not c.success)
        times = [c.execution_time_ms for c in costs]

        return CycleStats(
            cycle_id=cycle_id,
            tasks_executed=executed,
            tasks_failed=failed,
            success_rate=round((executed - failed) / executed * 100, 2) if executed else 0.0,
            budget_used=ledger.used,
            utilization_percent=round(self.get_utilization_percent(cycle_id), 2),
            average_task_time=sum(times) / executed if executed else 0.0,
            max_task_time=max(times, default=0.0),
            peak_memory_mb=max((c.memory_peak_mb for c in costs), default=0.0),
            total_db_queries=sum(c.db_queries_count for c in costs),
            total_service_calls=sum(c.service_calls_count for c in costs),
            closed=ledger.allocation.end_time is not None,
        )

    # ----- lifecycle ----------------------------------------------------------

    def close_cycle(self, cycle_id: str) -> CycleStats | None:
        """Stamp the cycle's end time and return its final stats."""
        ledger = self._ledgers.get(cycle_id)
        if ledger is None:
            logger.warning("Cannot close unknown cycle %s", cycle_id)
            return None

        if ledger.allocation.end_time is None:
            ledger.allocation = replace(ledger.allocation, end_time=datetime.now(timezone.utc))
        stats = self.get_cycle_stats(cycle_id)
        logger.debug(
            "Closed cycle %s: %d tasks, %.1f used",
            cycle_id,
            stats.tasks_executed,
            stats.budget_used,
        )
        return stats

    def clear_old_cycles(self, keep_last_n: int = 10) -> int:
        """
        Drop the oldest ledgers beyond *keep_last_n*.

        Returns:
            Number of ledgers evicted.
        """
        excess = len(self._ledgers) - max(0, keep_last_n)
        if excess <= 0:
            return 0

        # Ledgers are kept in allocation order.
        for cycle_id in list(self._ledgers)[:excess]:
            del self._ledgers[cycle_id]
        return excess

    def get_stats(self) -> dict[str, Any]:
        """Cross-cycle totals."""
        return {
            **self._totals,
            "cycles_tracked": len(self._ledgers),
            "total_budget_per_cycle": self.total_budget,
            "per_task_limit": self.per_task_limit,
        }

    def reset(self) -> None:
        self._ledgers.clear()
        self._totals = self._empty_totals()
