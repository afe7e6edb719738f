# src/cogcycle/autonomous/handlers.py
"""
Task Executor for autonomous background tasks.

Dispatches a task to the handler registered for its TaskType.  Each
handler reads from one or two collaborators, does a bounded amount of
work (always capped to the most recent N items) and reports what it did.

Handlers raise freely; ``execute_task`` is the boundary that turns every
exception into a failed TaskExecutionResult.  Recording the failure with
the Risk Assessor is the caller's job.

Handlers:
    memory_consolidation   working memory -> semantic memory
    pattern_analysis       word frequencies over recent memories
    entity_extraction      run the extractor over recent memories
    goal_research          evidence search for one goal, nudges its progress
    goal_analysis          health summary of active goals
    kb_maintenance         merge knowledge-base entities with the same name
    user_model_update      recent topics become user interests
"""

from __future__ import annotations

import logging
import re
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import psutil

from ..exceptions import CollaboratorUnavailableError, TaskExecutionError, UnknownTaskTypeError
from .collaborators import Collaborators
from .goals import GoalStatus, GoalStore
from .tasks import TaskType

logger = logging.getLogger(__name__)

CONSOLIDATION_WINDOW_MS = 60 * 60 * 1000
ANALYSIS_WINDOW_MS = 24 * 60 * 60 * 1000
CONSOLIDATION_LIMIT = 50
CONSOLIDATION_MIN_CONFIDENCE = 0.6
PATTERN_LIMIT = 50
EXTRACTION_LIMIT = 30
GOAL_ANALYSIS_LIMIT = 50
KB_SCAN_LIMIT = 20
USER_MODEL_LIMIT = 30
RESEARCH_SEARCH_LIMIT = 20
RESEARCH_MIN_SIMILARITY = 0.4
RESEARCH_MAX_PROGRESS = 0.1

_STOPWORDS = frozenset(
    """a an and are as at be but by for from has have i in is it its of on or
    that the this to was were will with you your we our they their not can
    been more into than then there these those what when which who""".split()
)

_WORD_RE = re.compile(r"[a-z][a-z0-9_-]{2,}")


def _now_ms() -> float:
    return time.time() * 1000


def _top_words(texts: list[str], limit: int) -> list[tuple[str, int]]:
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS)
    return counts.most_common(limit)


# =============================================================================
# Result
# =============================================================================


@dataclass
class TaskExecutionResult:
    """
    Outcome of one task execution.

    Attributes:
        task_id: Task identifier.
        handler_type: Task type string as requested.
        success: Whether the handler finished without error.
        duration_ms: Wall-clock execution time.
        items_processed: Number of items the handler touched.
        insights_generated: Short human-readable findings.
        errors: Error messages when ``success`` is False.
        results_summary: Handler-specific structured summary.
        service_calls: Collaborator calls made.
        db_queries: Persistence queries made.
        memory_peak_mb: Highest process RSS sampled before and after the
            handler ran.
    """

    task_id: str
    handler_type: str
    success: bool = True
    duration_ms: float = 0.0
    items_processed: int = 0
    insights_generated: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    results_summary: dict[str, Any] = field(default_factory=dict)
    service_calls: int = 0
    db_queries: int = 0
    memory_peak_mb: float = 0.0
    executed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "handler_type": self.handler_type,
            "success": self.success,
            "duration_ms": round(self.duration_ms, 3),
            "items_processed": self.items_processed,
            "insights_generated": list(self.insights_generated),
            "errors": list(self.errors),
            "results_summary": dict(self.results_summary),
            "service_calls": self.service_calls,
            "db_queries": self.db_queries,
            "memory_peak_mb": round(self.memory_peak_mb, 2),
            "executed_at": self.executed_at.isoformat(),
        }


# =============================================================================
# Task Executor
# =============================================================================


Handler = Callable[[TaskExecutionResult, dict[str, Any]], Awaitable[None]]


class TaskExecutor:
    """
    Runs background tasks against the configured collaborators.

    Args:
        goal_store: Goal store for goal_research and goal_analysis.
        collaborators: External services; any member may be None.
        history_limit: Execution results kept for ``get_execution_history``.

    Example:
        executor = TaskExecutor(store, Collaborators(semantic_memory=memory))
        result = await executor.execute_task(
            "task-1", "goal_research", {"goal_id": goal.id}
        )
        if not result.success:
            print(result.errors)
    """

    # Collaborators each handler cannot run without.
    REQUIREMENTS: dict[TaskType, tuple[str, ...]] = {
        TaskType.MEMORY_CONSOLIDATION: ("working_memory", "semantic_memory"),
        TaskType.PATTERN_ANALYSIS: ("semantic_memory",),
        TaskType.ENTITY_EXTRACTION: ("semantic_memory", "entity_extractor"),
        TaskType.GOAL_RESEARCH: ("semantic_memory",),
        TaskType.GOAL_ANALYSIS: (),
        TaskType.KB_MAINTENANCE: ("entity_extractor", "knowledge_base"),
        TaskType.USER_MODEL_UPDATE: ("working_memory", "user_model"),
    }

    def __init__(
        self,
        goal_store: GoalStore,
        collaborators: Collaborators | None = None,
        history_limit: int = 100,
    ) -> None:
        self.goal_store = goal_store
        self.collaborators = collaborators or Collaborators()
        self._history: deque[TaskExecutionResult] = deque(maxlen=history_limit)
        self._process = psutil.Process()

        self._handlers: dict[TaskType, Handler] = {
            TaskType.MEMORY_CONSOLIDATION: self._memory_consolidation,
            TaskType.PATTERN_ANALYSIS: self._pattern_analysis,
            TaskType.ENTITY_EXTRACTION: self._entity_extraction,
            TaskType.GOAL_RESEARCH: self._goal_research,
            TaskType.GOAL_ANALYSIS: self._goal_analysis,
            TaskType.KB_MAINTENANCE: self._kb_maintenance,
            TaskType.USER_MODEL_UPDATE: self._user_model_update,
        }
        missing = set(TaskType) - set(self._handlers)
        if missing:
            raise TypeError(f"No handler for task types: {sorted(t.value for t in missing)}")

    def supports(self, task_type: TaskType | str) -> bool:
        """True if *task_type* is known and its collaborators are configured."""
        parsed = TaskType.parse(task_type)
        if parsed is None:
            return False
        return all(
            getattr(self.collaborators, name) is not None for name in self.REQUIREMENTS[parsed]
        )

    def _require(self, task_type: TaskType, name: str) -> Any:
        collaborator = getattr(self.collaborators, name)
        if collaborator is None:
            raise CollaboratorUnavailableError(task_type.value, name)
        return collaborator

    async def execute_task(
        self, task_id: str, handler_type: TaskType | str, payload: dict[str, Any] | None = None
    ) -> TaskExecutionResult:
        """
        Run one task.  Never raises.

        Returns:
            The execution result; ``success`` is False and ``errors`` is
            filled when the task type is unknown or the handler failed.
        """
        type_name = handler_type.value if isinstance(handler_type, TaskType) else str(handler_type)
        result = TaskExecutionResult(task_id=task_id, handler_type=type_name)
        rss_before = self._rss_mb()
        started = time.perf_counter()

        try:
            task_type = TaskType.parse(handler_type)
            if task_type is None:
                raise UnknownTaskTypeError(type_name)
            await self._handlers[task_type](result, dict(payload or {}))
        except TaskExecutionError as e:
            result.success = False
            result.errors.append(str(e))
            logger.warning("Task %s (%s) failed: %s", task_id, type_name, e)
        except Exception as e:
            result.success = False
            result.errors.append(f"{type(e).__name__}: {e}")
            logger.error("Task %s (%s) raised: %s", task_id, type_name, e, exc_info=True)

        result.duration_ms = (time.perf_counter() - started) * 1000
        result.memory_peak_mb = max(rss_before, self._rss_mb())
        self._history.append(result)
        logger.debug(
            "Task %s (%s) finished in %.1fms: success=%s, items=%d",
            task_id,
            type_name,
            result.duration_ms,
            result.success,
            result.items_processed,
        )
        return result

    def _rss_mb(self) -> float:
        return self._process.memory_info().rss / (1024 * 1024)

    # ----- handlers -----------------------------------------------------------

    async def _memory_consolidation(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        working = self._require(TaskType.MEMORY_CONSOLIDATION, "working_memory")
        semantic = self._require(TaskType.MEMORY_CONSOLIDATION, "semantic_memory")

        items = await working.recent_items(_now_ms() - CONSOLIDATION_WINDOW_MS)
        result.service_calls += 1
        items = items[-CONSOLIDATION_LIMIT:]

        consolidated = 0
        for item in items:
            if item.confidence < CONSOLIDATION_MIN_CONFIDENCE:
                continue
            await semantic.store(item.content, item.confidence, ["consolidated"])
            result.service_calls += 1
            consolidated += 1

        result.items_processed = len(items)
        result.results_summary = {"consolidated": consolidated, "skipped": len(items) - consolidated}
        if consolidated:
            result.insights_generated.append(
                f"Consolidated {consolidated} of {len(items)} working-memory items"
            )

    async def _pattern_analysis(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        semantic = self._require(TaskType.PATTERN_ANALYSIS, "semantic_memory")

        items = await semantic.recent_items(_now_ms() - ANALYSIS_WINDOW_MS)
        result.service_calls += 1
        items = items[-PATTERN_LIMIT:]

        top = _top_words([i.content for i in items], 5)
        result.items_processed = len(items)
        result.results_summary = {"top_terms": dict(top)}
        if top:
            result.insights_generated.append(
                "Recurring topics: " + ", ".join(f"{w} ({n})" for w, n in top)
            )

    async def _entity_extraction(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        semantic = self._require(TaskType.ENTITY_EXTRACTION, "semantic_memory")
        extractor = self._require(TaskType.ENTITY_EXTRACTION, "entity_extractor")

        items = await semantic.recent_items(_now_ms() - ANALYSIS_WINDOW_MS)
        result.service_calls += 1
        items = items[-EXTRACTION_LIMIT:]

        found = added = 0
        for item in items:
            extraction = await extractor.extract_from_text(item.content)
            result.service_calls += 1
            found += extraction.entities_found
            added += extraction.new_entities_added

        top = await extractor.top_entities(5)
        result.service_calls += 1

        result.items_processed = len(items)
        result.results_summary = {
            "entities_found": found,
            "new_entities_added": added,
            "top_entities": [e.name for e in top],
        }
        if added:
            result.insights_generated.append(f"Added {added} new entities ({found} mentions)")

    async def _goal_research(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        goal_id = payload.get("goal_id")
        goal = self.goal_store.get(goal_id) if goal_id else None
        if goal is None:
            raise TaskExecutionError(TaskType.GOAL_RESEARCH.value, f"Goal not found: {goal_id}")
        semantic = self._require(TaskType.GOAL_RESEARCH, "semantic_memory")

        hits = await semantic.search_semantic(
            goal.title, RESEARCH_SEARCH_LIMIT, RESEARCH_MIN_SIMILARITY
        )
        result.service_calls += 1
        result.items_processed = len(hits)

        increase = min(RESEARCH_MAX_PROGRESS, len(hits) * 0.02)
        if hits and goal.status == GoalStatus.ACTIVE:
            self.goal_store.link_memories(goal.id, [h.id for h in hits])
            self.goal_store.update_progress(
                goal.id,
                goal.progress + increase,
                note=f"Research found {len(hits)} related memories",
            )

        for hit in sorted(hits, key=lambda h: h.similarity, reverse=True)[:3]:
            result.insights_generated.append(hit.content[:100])
        result.results_summary = {
            "goal_id": goal.id,
            "memories_found": len(hits),
            "progress_increase": increase if hits else 0.0,
        }

    async def _goal_analysis(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        goals = self.goal_store.get_active_goals()[:GOAL_ANALYSIS_LIMIT]
        target = payload.get("goal_id")
        if target:
            goals = [g for g in goals if g.id == target] or goals

        health: dict[str, str] = {}
        for goal in goals:
            history = self.goal_store.get_evaluation_history(goal.id, limit=3)
            if goal.progress >= 0.8:
                state = "near completion"
            elif history and history[-1].delta < 0:
                state = "regressing"
            elif not history:
                state = "no recorded progress"
            else:
                state = "progressing"
            health[goal.id] = state
            if state in ("regressing", "no recorded progress"):
                result.insights_generated.append(
                    f"Goal '{goal.title}' is {state} ({goal.progress:.0%})"
                )

        result.items_processed = len(goals)
        result.results_summary = {"goal_health": health}

    async def _kb_maintenance(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        extractor = self._require(TaskType.KB_MAINTENANCE, "entity_extractor")
        kb = self._require(TaskType.KB_MAINTENANCE, "knowledge_base")

        top = await extractor.top_entities(KB_SCAN_LIMIT)
        result.service_calls += 1

        merged = 0
        seen: set[str] = set()
        for entity in top:
            key = entity.name.strip().lower()
            if key in seen:
                continue
            seen.add(key)

            matches = await kb.search(entity.name, 5)
            result.db_queries += 1
            same = [m for m in matches if m.name.strip().lower() == key]
            if len(same) < 2:
                continue

            keeper = max(same, key=lambda m: m.confidence)
            for duplicate in same:
                if duplicate.id == keeper.id:
                    continue
                await kb.merge_entities(duplicate.id, keeper.id)
                result.db_queries += 1
                merged += 1

        result.items_processed = len(seen)
        result.results_summary = {"entities_checked": len(seen), "entities_merged": merged}
        if merged:
            result.insights_generated.append(f"Merged {merged} duplicate entities")

    async def _user_model_update(self, result: TaskExecutionResult, payload: dict[str, Any]) -> None:
        working = self._require(TaskType.USER_MODEL_UPDATE, "working_memory")
        user_model = self._require(TaskType.USER_MODEL_UPDATE, "user_model")

        items = await working.recent_items(_now_ms() - ANALYSIS_WINDOW_MS)
        result.service_calls += 1
        items = items[-USER_MODEL_LIMIT:]

        top = _top_words([i.content for i in items], 5)
        for word, count in top:
            await user_model.add_interest(word, min(1.0, 0.3 + 0.1 * count))
            result.service_calls += 1

        result.items_processed = len(items)
        result.results_summary = {"interests_updated": [w for w, _ in top]}
        if top:
            result.insights_generated.append(
                "Updated interests: " + ", ".join(w for w, _ in top)
            )

    # ----- reporting ----------------------------------------------------------

    def get_execution_history(self, limit: int = 20) -> list[TaskExecutionResult]:
        history = list(self._history)
        return history[-limit:] if limit > 0 else []

    def get_stats(self) -> dict[str, Any]:
        """Totals and per-type breakdown of recent executions."""
        history = list(self._history)
        by_type: dict[str, dict[str, Any]] = {}
        for r in history:
            entry = by_type.setdefault(r.handler_type, {"executed": 0, "failed": 0, "items": 0})
            entry["executed"] += 1
            entry["items"] += r.items_processed
            if not r.success:
                entry["failed"] += 1

        successes = sum(1 for r in history if r.success)
        return {
            "total_executions": len(history),
            "success_rate": round(successes / len(history) * 100, 2) if history else 0.0,
            "average_duration_ms": (
                round(sum(r.duration_ms for r in history) / len(history), 3) if history else 0.0
            ),
            "by_type": by_type,
        }

    def clear_history(self) -> None:
        self._history.clear()
