# src/cogcycle/autonomous/__init__.py
"""
Autonomous cognitive cycle for cogcycle.

Provides the pieces of the periodic background loop:
- Goal store with progress trails, stall detection and autonomy levels
- Risk assessment from per-task-type failure history
- Per-cycle time budgets with warn/abort thresholds
- Priority scoring and budget-bounded execution queues
- Task handlers that call out to memory, knowledge and user-model services
- The cycle orchestrator and its wake scheduler

Example:
    from cogcycle.autonomous import CycleOrchestrator, WakeScheduler
    from cogcycle.config import load_config

    config = load_config()
    orchestrator = CycleOrchestrator.from_config(config, collaborators)
    await orchestrator.initialize()

    scheduler = WakeScheduler.from_config(orchestrator, config.wake)
    await scheduler.start()
"""

from .budget import (
    BudgetAllocation,
    BudgetAllocator,
    CycleStats,
    TaskCost,
)
from .collaborators import (
    Collaborators,
    EntityExtractor,
    ExtractionResult,
    KnowledgeBase,
    KnowledgeEntity,
    MemoryHit,
    MemoryItem,
    SemanticMemory,
    UserModel,
    WorkingMemory,
)
from .goals import (
    Goal,
    GoalEvaluation,
    GoalPriority,
    GoalSnapshot,
    GoalSource,
    GoalStatus,
    GoalStorageProtocol,
    GoalStore,
    StallReport,
)
from .handlers import TaskExecutionResult, TaskExecutor
from .heartbeat import WakeScheduler
from .orchestrator import CycleOrchestrator, CycleResult, CycleState
from .priority import (
    ExecutionQueue,
    PriorityScheduler,
    SchedulingContext,
    ScoredTask,
)
from .risk import (
    FailurePattern,
    Mitigation,
    MitigationStrategy,
    RiskAssessment,
    RiskAssessor,
    RiskLevel,
    Trend,
)
from .state import CycleJournal, GoalSnapshotStore
from .tasks import TASK_PROFILES, CandidateTask, TaskProfile, TaskType

__all__ = [
    # Goals
    "Goal",
    "GoalEvaluation",
    "GoalPriority",
    "GoalSnapshot",
    "GoalSource",
    "GoalStatus",
    "GoalStorageProtocol",
    "GoalStore",
    "StallReport",
    # Risk
    "FailurePattern",
    "Mitigation",
    "MitigationStrategy",
    "RiskAssessment",
    "RiskAssessor",
    "RiskLevel",
    "Trend",
    # Budget
    "BudgetAllocation",
    "BudgetAllocator",
    "CycleStats",
    "TaskCost",
    # Scheduling
    "CandidateTask",
    "ExecutionQueue",
    "PriorityScheduler",
    "SchedulingContext",
    "ScoredTask",
    "TASK_PROFILES",
    "TaskProfile",
    "TaskType",
    # Execution
    "TaskExecutionResult",
    "TaskExecutor",
    # Collaborators
    "Collaborators",
    "EntityExtractor",
    "ExtractionResult",
    "KnowledgeBase",
    "KnowledgeEntity",
    "MemoryHit",
    "MemoryItem",
    "SemanticMemory",
    "UserModel",
    "WorkingMemory",
    # Cycle
    "CycleJournal",
    "CycleOrchestrator",
    "CycleResult",
    "CycleState",
    "GoalSnapshotStore",
    "WakeScheduler",
]
