# tests/conftest.py
"""
Shared fixtures for cogcycle tests.

Provides a controllable clock, in-memory fakes for every external
collaborator, and pre-configured component instances.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Add source to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cogcycle.autonomous.collaborators import (  # noqa: E402
    Collaborators,
    ExtractionResult,
    KnowledgeEntity,
    MemoryHit,
    MemoryItem,
)


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# =============================================================================
# Fake Collaborators
# =============================================================================


class FakeSemanticMemory:
    def __init__(self, hits=None, items=None, fail: bool = False):
        self.hits: list[MemoryHit] = list(hits or [])
        self.items: list[MemoryItem] = list(items or [])
        self.stored: list[tuple[str, float, list[str]]] = []
        self.queries: list[str] = []
        self.fail = fail

    async def search_semantic(self, query, limit, min_similarity):
        if self.fail:
            raise RuntimeError("semantic memory offline")
        self.queries.append(query)
        return [h for h in self.hits if h.similarity >= min_similarity][:limit]

    async def recent_items(self, since_ms):
        if self.fail:
            raise RuntimeError("semantic memory offline")
        return list(self.items)

    async def store(self, content, confidence, source_tags):
        self.stored.append((content, confidence, list(source_tags)))
        return f"mem-{len(self.stored)}"


class FakeWorkingMemory:
    def __init__(self, items=None, fail: bool = False):
        self.items: list[MemoryItem] = list(items or [])
        self.fail = fail

    async def recent_items(self, since_ms):
        if self.fail:
            raise RuntimeError("working memory offline")
        return list(self.items)


class FakeKnowledgeBase:
    def __init__(self, entities=None):
        self.entities: list[KnowledgeEntity] = list(entities or [])
        self.merged: list[tuple[str, str]] = []

    async def search(self, name, limit):
        key = name.strip().lower()
        return [e for e in self.entities if key in e.name.strip().lower()][:limit]

    async def add_entity(self, entity_type, name, description, confidence, source_tags):
        entity = KnowledgeEntity(
            id=f"ent-{len(self.entities) + 1}",
            name=name,
            entity_type=entity_type,
            description=description,
            confidence=confidence,
            source_tags=list(source_tags),
        )
        self.entities.append(entity)
        return entity

    async def merge_entities(self, source_id, target_id):
        self.merged.append((source_id, target_id))
        self.entities = [e for e in self.entities if e.id != source_id]


class FakeEntityExtractor:
    def __init__(self, per_text: ExtractionResult | None = None, top=None):
        self.per_text = per_text or ExtractionResult(entities_found=2, new_entities_added=1)
        self.top: list[KnowledgeEntity] = list(top or [])
        self.texts: list[str] = []

    async def extract_from_text(self, text):
        self.texts.append(text)
        return self.per_text

    async def top_entities(self, limit):
        return self.top[:limit]


class FakeUserModel:
    def __init__(self, preferences: dict[str, Any] | None = None):
        self.preferences: dict[str, Any] = dict(preferences or {})
        self.interests: dict[str, float] = {}
        self.capabilities: dict[str, float] = {}

    async def add_interest(self, topic, confidence):
        self.interests[topic] = confidence

    async def add_capability(self, skill, proficiency):
        self.capabilities[skill] = proficiency

    async def add_preference(self, key, value, confidence):
        self.preferences[key] = value

    async def get_preference(self, key):
        return self.preferences.get(key)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Controllable clock starting at 2025-06-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def goal_store(clock):
    """In-memory GoalStore driven by the fake clock."""
    from cogcycle.autonomous.goals import GoalStore

    return GoalStore(clock=clock)


@pytest.fixture
def semantic_memory():
    return FakeSemanticMemory()


@pytest.fixture
def working_memory():
    return FakeWorkingMemory()


@pytest.fixture
def knowledge_base():
    return FakeKnowledgeBase()


@pytest.fixture
def entity_extractor():
    return FakeEntityExtractor()


@pytest.fixture
def user_model():
    return FakeUserModel()


@pytest.fixture
def collaborators(semantic_memory, working_memory, knowledge_base, entity_extractor, user_model):
    """Every collaborator configured with an in-memory fake."""
    return Collaborators(
        semantic_memory=semantic_memory,
        working_memory=working_memory,
        knowledge_base=knowledge_base,
        entity_extractor=entity_extractor,
        user_model=user_model,
    )


@pytest.fixture
def quiet_logging():
    """Logging section that keeps tests off the user's log directory."""
    return {"console_enabled": False, "file_enabled": False}
