"""Entity resolution and memory consolidation for the personal knowledge graph."""

from .batch import BatchResolver
from .merger import FactMerger
from .models import (
    Entity,
    EntityType,
    ExtractedMention,
    Fact,
    FactCategory,
    FactStatus,
    ResolvedEntity,
    Tier,
)
from .pipeline import MemoryPipeline
from .redundancy import is_redundant
from .resolver import EntityResolver
from .store import EntityStore, StoreError
from .synthesis import MemorySynthesizer

__all__ = [
    "BatchResolver",
    "Entity",
    "EntityResolver",
    "EntityStore",
    "EntityType",
    "ExtractedMention",
    "Fact",
    "FactCategory",
    "FactMerger",
    "FactStatus",
    "MemoryPipeline",
    "MemorySynthesizer",
    "ResolvedEntity",
    "StoreError",
    "Tier",
    "is_redundant",
]
