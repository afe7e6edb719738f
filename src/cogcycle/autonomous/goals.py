# src/cogcycle/autonomous/goals.py
"""
Goal Store for the Cognitive Cycle.

Holds hierarchical goal records and their lifecycle state.  The store is
pure data plus state-transition logic; it knows nothing about scheduling.

Provides:
- Goal creation with source, priority, deadline and autonomy level
- Progress updates with an evaluation audit trail
- Lifecycle transitions (complete, abandon, pause, resume)
- Stall sweep for goals without recent progress or with missed deadlines
- Autonomy adjustment driven by the evaluation trail
- Optional persistence through a GoalStorageProtocol backend

Goals live in an arena keyed by id; parent/child relationships are id
lists, never object references.

Example:
    from cogcycle.autonomous.goals import GoalStore, GoalPriority, GoalSource

    store = GoalStore()
    goal = store.create(
        "Learn the project's deployment process",
        source=GoalSource.USER,
        priority=GoalPriority.HIGH,
    )
    store.update_progress(goal.id, 0.3, note="Read the runbook")

    report = store.evaluate_all()
    for rec in report.recommendations:
        print(rec)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MAX_EVALUATIONS_PER_GOAL = 100

# Tolerance for float progress deltas such as 0.3 - 0.2.
_EPSILON = 1e-9


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-format string or pass through a datetime unchanged."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return _as_utc(datetime.fromisoformat(value))


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


# =============================================================================
# Enums
# =============================================================================


class GoalSource(Enum):
    """Where a goal came from."""

    USER = "user"
    """Explicitly requested by the user."""

    AGENT = "agent"
    """Set by the agent itself."""

    DERIVED = "derived"
    """Broken out of a parent goal."""

    INFERRED = "inferred"
    """Inferred from conversation or memory."""


class GoalStatus(Enum):
    """Goal lifecycle states."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    STALLED = "stalled"
    """Active goal with no recent progress or a missed deadline."""

    BLOCKED = "blocked"


class GoalPriority(Enum):
    """
    Goal priority levels.

    ``rank`` orders priorities for sorting (lower rank = more important).
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    GoalPriority.CRITICAL: 0,
    GoalPriority.HIGH: 1,
    GoalPriority.MEDIUM: 2,
    GoalPriority.LOW: 3,
}


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class Goal:
    """
    A unit of pursuit for the autonomous scheduler.

    Attributes:
        id: Unique identifier (``goal-<hex>``).
        title: Short name, also used as the primary evidence query.
        description: Longer description.
        source: Who created the goal.
        status: Current lifecycle state.
        priority: Scheduling priority.
        progress: Current progress (0.0 to 1.0).
        autonomy_level: How much the scheduler may act without confirmation.
        parent_goal_id: Parent goal ID (for hierarchy).
        sub_goal_ids: Child goal IDs.
        related_entities: Knowledge-base entity IDs (lookup only).
        related_memories: Memory IDs (lookup only).
        progress_notes: Timestamped free-text notes.
        success_criteria: Natural-language completion criteria.
        deadline: Optional deadline.
        tags: Categorization tags.
        context: Arbitrary metadata.
    """

    id: str
    title: str
    description: str = ""
    source: GoalSource = GoalSource.AGENT
    status: GoalStatus = GoalStatus.ACTIVE
    priority: GoalPriority = GoalPriority.MEDIUM
    progress: float = 0.0
    autonomy_level: float = 0.5

    # Hierarchy and weak references
    parent_goal_id: str | None = None
    sub_goal_ids: list[str] = field(default_factory=list)
    related_entities: list[str] = field(default_factory=list)
    related_memories: list[str] = field(default_factory=list)

    progress_notes: list[str] = field(default_factory=list)
    success_criteria: list[str] = field(default_factory=list)

    # Temporal
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deadline: datetime | None = None
    completed_at: datetime | None = None

    tags: list[str] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new_id() -> str:
        return f"goal-{uuid.uuid4().hex[:12]}"

    def is_terminal(self) -> bool:
        """Completed and abandoned goals never change state again."""
        return self.status in (GoalStatus.COMPLETED, GoalStatus.ABANDONED)

    def to_dict(self) -> dict[str, Any]:
        """Serialize goal to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "source": self.source.value,
            "status": self.status.value,
            "priority": self.priority.value,
            "progress": self.progress,
            "autonomy_level": self.autonomy_level,
            "parent_goal_id": self.parent_goal_id,
            "sub_goal_ids": list(self.sub_goal_ids),
            "related_entities": list(self.related_entities),
            "related_memories": list(self.related_memories),
            "progress_notes": list(self.progress_notes),
            "success_criteria": list(self.success_criteria),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "tags": list(self.tags),
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Goal:
        """Deserialize goal from dictionary."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            source=GoalSource(data.get("source", "agent")),
            status=GoalStatus(data.get("status", "active")),
            priority=GoalPriority(data.get("priority", "medium")),
            progress=_clamp01(float(data.get("progress", 0.0))),
            autonomy_level=_clamp01(float(data.get("autonomy_level", 0.5))),
            parent_goal_id=data.get("parent_goal_id"),
            sub_goal_ids=data.get("sub_goal_ids", []),
            related_entities=data.get("related_entities", []),
            related_memories=data.get("related_memories", []),
            progress_notes=data.get("progress_notes", []),
            success_criteria=data.get("success_criteria", []),
            created_at=_parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or utcnow(),
            deadline=_parse_datetime(data.get("deadline")),
            completed_at=_parse_datetime(data.get("completed_at")),
            tags=data.get("tags", []),
            context=data.get("context", {}),
        )


@dataclass(frozen=True)
class GoalEvaluation:
    """Immutable audit record of a significant progress change."""

    goal_id: str
    timestamp: datetime
    previous_progress: float
    current_progress: float
    notes: str = ""

    @property
    def delta(self) -> float:
        return self.current_progress - self.previous_progress

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "timestamp": self.timestamp.isoformat(),
            "previous_progress": self.previous_progress,
            "current_progress": self.current_progress,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoalEvaluation:
        return cls(
            goal_id=data["goal_id"],
            timestamp=_parse_datetime(data["timestamp"]) or utcnow(),
            previous_progress=float(data["previous_progress"]),
            current_progress=float(data["current_progress"]),
            notes=data.get("notes", ""),
        )


@dataclass
class StallReport:
    """Result of a stall sweep."""

    stalled_goal_ids: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class GoalSnapshot:
    """Everything the store needs to survive a restart."""

    goals: list[Goal] = field(default_factory=list)
    evaluations: list[GoalEvaluation] = field(default_factory=list)


# =============================================================================
# Goal Persistence
# =============================================================================


@runtime_checkable
class GoalStorageProtocol(Protocol):
    """Protocol for goal storage backends."""

    async def load_snapshot(self) -> GoalSnapshot: ...
    async def save_snapshot(self, snapshot: GoalSnapshot) -> None: ...


# =============================================================================
# Goal Store
# =============================================================================


class GoalStore:
    """
    Owns every goal and its evaluation trail.

    All mutation goes through the methods below.  Operations on an unknown
    id return ``None``/``False`` and change nothing.

    Args:
        storage: Optional persistence backend; see ``initialize``/``flush``.
        max_sub_goals: Fan-out cap for a single parent.
        stall_threshold: Time without an evaluation before an active goal stalls.
        urgent_window: Deadline horizon that makes a goal urgent.
        evaluation_delta: Minimum progress change that records an evaluation.
        autonomy_step: Autonomy change per adjustment.
        default_autonomy: Autonomy assigned to new goals.
        clock: Returns the current (timezone-aware) time.
    """

    def __init__(
        self,
        storage: GoalStorageProtocol | None = None,
        *,
        max_sub_goals: int = 10,
        stall_threshold: timedelta = timedelta(days=7),
        urgent_window: timedelta = timedelta(days=7),
        evaluation_delta: float = 0.1,
        autonomy_step: float = 0.05,
        default_autonomy: float = 0.5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.storage = storage
        self.max_sub_goals = max_sub_goals
        self.stall_threshold = stall_threshold
        self.urgent_window = urgent_window
        self.evaluation_delta = evaluation_delta
        self.autonomy_step = autonomy_step
        self.default_autonomy = default_autonomy
        self._now = clock or utcnow

        self._goals: dict[str, Goal] = {}
        self._evaluations: dict[str, list[GoalEvaluation]] = {}
        # Evaluation count at the last autonomy adjustment, per goal.
        self._autonomy_marks: dict[str, int] = {}
        self._dirty = False

    @classmethod
    def from_config(
        cls,
        config: Any,
        storage: GoalStorageProtocol | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> GoalStore:
        """
        Create a GoalStore from a GoalsConfig.

        Args:
            config: A ``cogcycle.config.GoalsConfig`` instance.
            storage: Optional persistence backend.
            clock: Optional time source (tests).
        """
        return cls(
            storage=storage,
            max_sub_goals=config.max_sub_goals,
            stall_threshold=timedelta(days=config.stall_threshold_days),
            urgent_window=timedelta(days=config.urgent_window_days),
            evaluation_delta=config.evaluation_delta,
            autonomy_step=config.autonomy_step,
            default_autonomy=config.default_autonomy,
            clock=clock,
        )

    # ----- persistence --------------------------------------------------------

    async def initialize(self) -> None:
        """Load goals and evaluations from the storage backend, if any."""
        if self.storage is None:
            return

        snapshot = await self.storage.load_snapshot()
        self._goals = {g.id: g for g in snapshot.goals}
        self._evaluations = {}
        for evaluation in snapshot.evaluations:
            if evaluation.goal_id in self._goals:
                self._evaluations.setdefault(evaluation.goal_id, []).append(evaluation)
        self._dirty = False
        logger.debug(
            "GoalStore initialized with %d goals, %d evaluations",
            len(self._goals),
            len(snapshot.evaluations),
        )

    async def flush(self) -> bool:
        """
        Write the full snapshot to storage when something changed.

        Returns:
            True if a snapshot was written.
        """
        if self.storage is None or not self._dirty:
            return False

        await self.storage.save_snapshot(self.snapshot())
        self._dirty = False
        return True

    def snapshot(self) -> GoalSnapshot:
        """Copy of all goals and evaluations, for persistence."""
        evaluations = [e for trail in self._evaluations.values() for e in trail]
        return GoalSnapshot(
            goals=[Goal.from_dict(g.to_dict()) for g in self._goals.values()],
            evaluations=evaluations,
        )

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    # ----- creation and lookup ------------------------------------------------

    def create(
        self,
        title: str,
        description: str = "",
        source: GoalSource | str = GoalSource.AGENT,
        priority: GoalPriority | str = GoalPriority.MEDIUM,
        *,
        parent_goal_id: str | None = None,
        deadline: datetime | None = None,
        success_criteria: list[str] | None = None,
        autonomy_level: float | None = None,
        tags: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> Goal:
        """
        Create a new active goal with zero progress.

        If *parent_goal_id* names an unknown goal or a parent that already
        has ``max_sub_goals`` children, the goal is still created but left
        without a parent and a warning is logged.

        Returns:
            The created Goal.
        """
        now = self._now()
        goal = Goal(
            id=Goal.new_id(),
            title=title,
            description=description,
            source=GoalSource(source),
            priority=GoalPriority(priority),
            autonomy_level=_clamp01(
                self.default_autonomy if autonomy_level is None else autonomy_level
            ),
            success_criteria=list(success_criteria or []),
            created_at=now,
            updated_at=now,
            deadline=_as_utc(deadline) if deadline else None,
            tags=list(tags or []),
            context=dict(context or {}),
        )
        self._goals[goal.id] = goal
        self._dirty = True

        if parent_goal_id is not None and not self.add_sub_goal(parent_goal_id, goal.id):
            logger.warning(
                "Goal %s created without parent: cannot attach to %s",
                goal.id,
                parent_goal_id,
            )

        logger.info("Created goal %s: %s (%s)", goal.id, title, goal.priority.value)
        return goal

    def get(self, goal_id: str) -> Goal | None:
        """Get a goal by ID."""
        return self._goals.get(goal_id)

    def get_goals(
        self,
        status: GoalStatus | str | None = None,
        source: GoalSource | str | None = None,
        priority: GoalPriority | str | None = None,
    ) -> list[Goal]:
        """Goals matching every supplied filter, in creation order."""
        status = GoalStatus(status) if status is not None else None
        source = GoalSource(source) if source is not None else None
        priority = GoalPriority(priority) if priority is not None else None

        return [
            g
            for g in self._goals.values()
            if (status is None or g.status == status)
            and (source is None or g.source == source)
            and (priority is None or g.priority == priority)
        ]

    def get_active_goals(self) -> list[Goal]:
        return self.get_goals(status=GoalStatus.ACTIVE)

    def __len__(self) -> int:
        return len(self._goals)

    def __contains__(self, goal_id: object) -> bool:
        return goal_id in self._goals

    # ----- hierarchy ----------------------------------------------------------

    def add_sub_goal(self, parent_id: str, child_id: str) -> bool:
        """
        Attach *child_id* under *parent_id*.

        Returns:
            False if either goal is unknown, the link would be a self-loop,
            or the parent already has ``max_sub_goals`` children.
        """
        parent = self._goals.get(parent_id)
        child = self._goals.get(child_id)
        if parent is None or child is None or parent_id == child_id:
            return False
        if child_id in parent.sub_goal_ids:
            return True
        if len(parent.sub_goal_ids) >= self.max_sub_goals:
            logger.warning(
                "Goal %s already has %d sub-goals", parent_id, len(parent.sub_goal_ids)
            )
            return False

        if child.parent_goal_id and child.parent_goal_id in self._goals:
            previous = self._goals[child.parent_goal_id]
            previous.sub_goal_ids = [i for i in previous.sub_goal_ids if i != child_id]

        parent.sub_goal_ids.append(child_id)
        child.parent_goal_id = parent_id
        if child.source == GoalSource.AGENT:
            child.source = GoalSource.DERIVED
        parent.updated_at = child.updated_at = self._now()
        self._dirty = True
        return True

    def get_sub_goals(self, goal_id: str) -> list[Goal]:
        goal = self._goals.get(goal_id)
        if goal is None:
            return []
        return [self._goals[i] for i in goal.sub_goal_ids if i in self._goals]

    # ----- progress -----------------------------------------------------------

    def update_progress(
        self, goal_id: str, value: float, note: str | None = None
    ) -> Goal | None:
        """
        Set a goal's progress.

        The value is clamped to [0, 1].  A change of at least
        ``evaluation_delta`` (in either direction) appends a GoalEvaluation.
        Reaching 1.0 completes the goal; progress on a stalled goal
        reactivates it.

        Returns:
            The updated goal, or None if the id is unknown or the goal is
            already completed or abandoned.
        """
        goal = self._goals.get(goal_id)
        if goal is None:
            logger.debug("update_progress: goal not found: %s", goal_id)
            return None
        if goal.is_terminal():
            logger.debug("update_progress: goal %s is %s", goal_id, goal.status.value)
            return None

        now = self._now()
        previous = goal.progress
        goal.progress = _clamp01(value)
        goal.updated_at = now
        if note:
            goal.progress_notes.append(f"[{now.isoformat()}] {note}")

        if abs(goal.progress - previous) >= self.evaluation_delta - _EPSILON:
            self._record_evaluation(goal_id, now, previous, goal.progress, note or "")

        if goal.progress >= 1.0:
            if goal.status != GoalStatus.COMPLETED:
                self._mark_completed(goal, now)
        elif goal.status == GoalStatus.STALLED and goal.progress > previous:
            goal.status = GoalStatus.ACTIVE
            logger.info("Goal %s reactivated by new progress", goal_id)

        self._dirty = True
        return goal

    def _record_evaluation(
        self,
        goal_id: str,
        timestamp: datetime,
        previous: float,
        current: float,
        notes: str,
    ) -> None:
        trail = self._evaluations.setdefault(goal_id, [])
        trail.append(GoalEvaluation(goal_id, timestamp, previous, current, notes))
        if len(trail) > MAX_EVALUATIONS_PER_GOAL:
            del trail[: len(trail) - MAX_EVALUATIONS_PER_GOAL]
            self._autonomy_marks.pop(goal_id, None)

    def _mark_completed(self, goal: Goal, now: datetime) -> None:
        goal.status = GoalStatus.COMPLETED
        goal.progress = 1.0
        goal.completed_at = now
        goal.updated_at = now
        logger.info("Goal completed: %s (%s)", goal.title, goal.id)

    # ----- lifecycle ----------------------------------------------------------

    def complete(self, goal_id: str, note: str | None = None) -> bool:
        """Mark a goal completed (progress 1.0).  Finished goals are left alone."""
        goal = self._goals.get(goal_id)
        if goal is None or goal.is_terminal():
            return False

        self.update_progress(goal_id, 1.0, note=note or "Marked complete")
        return True

    def abandon(self, goal_id: str, reason: str | None = None) -> bool:
        """Abandon a goal.  Completed or already abandoned goals are left alone."""
        goal = self._goals.get(goal_id)
        if goal is None or goal.is_terminal():
            return False

        now = self._now()
        goal.status = GoalStatus.ABANDONED
        goal.updated_at = now
        goal.progress_notes.append(f"[{now.isoformat()}] Abandoned: {reason or 'no reason given'}")
        self._dirty = True
        logger.info("Goal abandoned: %s (%s)", goal.title, reason or "no reason")
        return True

    def pause(self, goal_id: str) -> bool:
        """Pause an active goal."""
        return self._transition(goal_id, GoalStatus.ACTIVE, GoalStatus.PAUSED)

    def resume(self, goal_id: str) -> bool:
        """Resume a paused goal."""
        return self._transition(goal_id, GoalStatus.PAUSED, GoalStatus.ACTIVE)

    def block(self, goal_id: str, reason: str | None = None) -> bool:
        """Mark an active goal as blocked by something outside the agent's control."""
        if not self._transition(goal_id, GoalStatus.ACTIVE, GoalStatus.BLOCKED):
            return False
        if reason:
            goal = self._goals[goal_id]
            goal.progress_notes.append(f"[{goal.updated_at.isoformat()}] Blocked: {reason}")
        return True

    def unblock(self, goal_id: str) -> bool:
        return self._transition(goal_id, GoalStatus.BLOCKED, GoalStatus.ACTIVE)

    def _transition(self, goal_id: str, expected: GoalStatus, target: GoalStatus) -> bool:
        goal = self._goals.get(goal_id)
        if goal is None or goal.status != expected:
            return False

        goal.status = target
        goal.updated_at = self._now()
        self._dirty = True
        logger.debug("Goal %s: %s -> %s", goal_id, expected.value, target.value)
        return True

    # ----- linking ------------------------------------------------------------

    def link_entities(self, goal_id: str, entity_ids: list[str]) -> bool:
        """Append knowledge-base entity ids, skipping duplicates."""
        return self._link(goal_id, "related_entities", entity_ids)

    def link_memories(self, goal_id: str, memory_ids: list[str]) -> bool:
        """Append memory ids, skipping duplicates."""
        return self._link(goal_id, "related_memories", memory_ids)

    def _link(self, goal_id: str, attr: str, ids: list[str]) -> bool:
        goal = self._goals.get(goal_id)
        if goal is None:
            return False

        existing: list[str] = getattr(goal, attr)
        added = False
        for item in ids:
            if item not in existing:
                existing.append(item)
                added = True
        if added:
            goal.updated_at = self._now()
            self._dirty = True
        return True

    # ----- evaluation ---------------------------------------------------------

    def evaluate_all(self) -> StallReport:
        """
        Stall sweep over every active goal.

        An active goal stalls when its deadline has passed with progress
        below 1, or when its last evaluation (or creation, if it has none)
        is older than ``stall_threshold``.

        Returns:
            Newly stalled goal ids and human-readable recommendations.
        """
        now = self._now()
        report = StallReport()

        for goal in self.get_active_goals():
            if goal.deadline is not None and now > goal.deadline and goal.progress < 1.0:
                self._stall(goal, now)
                report.stalled_goal_ids.append(goal.id)
                report.recommendations.append(
                    f"Goal '{goal.title}' missed its deadline at "
                    f"{goal.progress:.0%} progress; extend the deadline or abandon it."
                )
                continue

            trail = self._evaluations.get(goal.id)
            reference = trail[-1].timestamp if trail else goal.created_at
            if now - reference > self.stall_threshold:
                self._stall(goal, now)
                report.stalled_goal_ids.append(goal.id)
                days = (now - reference).days
                report.recommendations.append(
                    f"Goal '{goal.title}' has made no progress in {days} days; "
                    "consider breaking it into sub-goals."
                )
                continue

            if goal.deadline is not None and goal.deadline - now <= self.urgent_window:
                if goal.progress < 0.5:
                    report.recommendations.append(
                        f"Goal '{goal.title}' is due in "
                        f"{max(0, (goal.deadline - now).days)} days at "
                        f"{goal.progress:.0%} progress."
                    )

        if report.stalled_goal_ids:
            logger.info("Stall sweep: %d goals stalled", len(report.stalled_goal_ids))
        return report

    def _stall(self, goal: Goal, now: datetime) -> None:
        goal.status = GoalStatus.STALLED
        goal.updated_at = now
        self._dirty = True

    def adjust_autonomy(self, goal_id: str) -> tuple[float, float] | None:
        """
        Adjust a goal's autonomy from its last three evaluations.

        Three non-decreasing evaluations raise autonomy by ``autonomy_step``;
        any decrease among them lowers it.  Only evaluations recorded since
        the previous adjustment trigger a new one.

        Returns:
            ``(previous, current)`` autonomy, or None if nothing changed.
        """
        goal = self._goals.get(goal_id)
        trail = self._evaluations.get(goal_id, [])
        if goal is None or len(trail) < 3:
            return None
        if len(trail) <= self._autonomy_marks.get(goal_id, 0):
            return None

        self._autonomy_marks[goal_id] = len(trail)
        recent = trail[-3:]
        step = self.autonomy_step
        if any(e.delta < 0 for e in recent):
            step = -step

        previous = goal.autonomy_level
        goal.autonomy_level = round(_clamp01(previous + step), 4)
        if goal.autonomy_level == previous:
            return None

        goal.updated_at = self._now()
        self._dirty = True
        logger.debug("Goal %s autonomy %.2f -> %.2f", goal_id, previous, goal.autonomy_level)
        return previous, goal.autonomy_level

    def get_evaluation_history(self, goal_id: str, limit: int = 20) -> list[GoalEvaluation]:
        """Most recent evaluations for a goal, oldest first."""
        trail = self._evaluations.get(goal_id, [])
        return list(trail[-limit:]) if limit > 0 else []

    # ----- queries ------------------------------------------------------------

    def urgent_goals(self) -> list[Goal]:
        """
        Active goals that are critical or due within ``urgent_window``.

        Sorted by priority, then nearest deadline (goals without one last).
        """
        now = self._now()
        urgent = [
            g
            for g in self.get_active_goals()
            if g.priority == GoalPriority.CRITICAL
            or (g.deadline is not None and g.deadline - now <= self.urgent_window)
        ]
        far_future = datetime.max.replace(tzinfo=timezone.utc)
        urgent.sort(key=lambda g: (g.priority.rank, g.deadline or far_future))
        return urgent

    def get_recommended_goals(self, limit: int = 5) -> list[Goal]:
        """In-progress active goals, most important and furthest along first."""
        in_progress = [g for g in self.get_active_goals() if 0.0 < g.progress < 1.0]
        in_progress.sort(key=lambda g: (g.priority.rank, -g.progress))
        return in_progress[:limit]

    def stats(self) -> dict[str, Any]:
        """Counts by status/source/priority and mean progress."""
        goals = list(self._goals.values())
        by_status = {s.value: 0 for s in GoalStatus}
        by_source = {s.value: 0 for s in GoalSource}
        by_priority = {p.value: 0 for p in GoalPriority}
        for g in goals:
            by_status[g.status.value] += 1
            by_source[g.source.value] += 1
            by_priority[g.priority.value] += 1

        return {
            "total_goals": len(goals),
            "by_status": by_status,
            "by_source": by_source,
            "by_priority": by_priority,
            "average_progress": (
                round(sum(g.progress for g in goals) / len(goals), 4) if goals else 0.0
            ),
            "evaluations_recorded": sum(len(t) for t in self._evaluations.values()),
        }

    def clear(self) -> None:
        """Remove every goal and evaluation."""
        self._goals.clear()
        self._evaluations.clear()
        self._autonomy_marks.clear()
        self._dirty = True
        logger.info("GoalStore cleared")
