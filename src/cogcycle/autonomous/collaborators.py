# src/cogcycle/autonomous/collaborators.py
"""
Contracts for the external collaborators the scheduler consumes.

The scheduler never implements memory search, knowledge-base storage,
entity extraction or user modelling itself.  It talks to them through the
narrow async protocols below, and any object with matching methods can be
plugged in (a database-backed service in production, a small fake in tests).

Collaborators:
    - SemanticMemory: long-lived, semantically searchable memory store
    - WorkingMemory: short-lived per-task reasoning buffer
    - KnowledgeBase: entity store with search and merge
    - EntityExtractor: text pattern matcher that feeds the knowledge base
    - UserModel: interests, capabilities and preferences of the user
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# =============================================================================
# Value Types
# =============================================================================


@dataclass
class MemoryHit:
    """A semantic-search result from long-lived memory."""

    id: str
    content: str
    similarity: float
    timestamp: float = 0.0
    confidence: float = 1.0


@dataclass
class MemoryItem:
    """A recent memory item (either tier). ``timestamp`` is epoch milliseconds."""

    content: str
    confidence: float = 1.0
    timestamp: float = 0.0


@dataclass
class KnowledgeEntity:
    """An entity stored in the knowledge base."""

    id: str
    name: str
    entity_type: str = "concept"
    description: str = ""
    confidence: float = 1.0
    source_tags: list[str] = field(default_factory=list)


@dataclass
class ExtractionResult:
    """Outcome of running the entity extractor over one text."""

    entities_found: int = 0
    new_entities_added: int = 0


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class SemanticMemory(Protocol):
    """Long-lived memory tier searched for goal evidence."""

    async def search_semantic(
        self, query: str, limit: int, min_similarity: float
    ) -> list[MemoryHit]: ...

    async def recent_items(self, since_ms: float) -> list[MemoryItem]: ...

    async def store(
        self, content: str, confidence: float, source_tags: list[str]
    ) -> str: ...


@runtime_checkable
class WorkingMemory(Protocol):
    """Short-lived reasoning buffer."""

    async def recent_items(self, since_ms: float) -> list[MemoryItem]: ...


@runtime_checkable
class KnowledgeBase(Protocol):
    """Entity store maintained by the kb_maintenance task."""

    async def search(self, name: str, limit: int) -> list[KnowledgeEntity]: ...

    async def add_entity(
        self,
        entity_type: str,
        name: str,
        description: str,
        confidence: float,
        source_tags: list[str],
    ) -> KnowledgeEntity: ...

    async def merge_entities(self, source_id: str, target_id: str) -> None: ...


@runtime_checkable
class EntityExtractor(Protocol):
    """Text pattern matcher that populates the knowledge base."""

    async def extract_from_text(self, text: str) -> ExtractionResult: ...

    async def top_entities(self, limit: int) -> list[KnowledgeEntity]: ...


@runtime_checkable
class UserModel(Protocol):
    """Profile of the user the agent works for."""

    async def add_interest(self, topic: str, confidence: float) -> None: ...

    async def add_capability(self, skill: str, proficiency: float) -> None: ...

    async def add_preference(self, key: str, value: Any, confidence: float) -> None: ...

    async def get_preference(self, key: str) -> Any | None: ...


@dataclass
class Collaborators:
    """
    Bundle of optional collaborators handed to the executor and orchestrator.

    Any member may be None; handlers that need a missing collaborator fail
    with CollaboratorUnavailableError and evidence gathering degrades to empty.
    """

    semantic_memory: SemanticMemory | None = None
    working_memory: WorkingMemory | None = None
    knowledge_base: KnowledgeBase | None = None
    entity_extractor: EntityExtractor | None = None
    user_model: UserModel | None = None
