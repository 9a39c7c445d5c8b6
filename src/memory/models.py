"""Data models for the entity knowledge graph."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntityType(str, Enum):
    PERSON = "person"
    COMPANY = "company"
    PROJECT = "project"


class FactCategory(str, Enum):
    PREFERENCE = "preference"
    RELATIONSHIP = "relationship"
    STATUS = "status"
    CONTEXT = "context"
    MILESTONE = "milestone"
    METRIC = "metric"


class FactStatus(str, Enum):
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    ARCHIVED = "archived"


class Tier(str, Enum):
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class FactTransitionError(Exception):
    """Raised when a fact status change would move backwards."""


def coerce_datetime(value) -> datetime | None:
    """Best-effort timestamp parsing. Returns None for missing or malformed values.

    Aware datetimes are converted to naive local time so they compare with datetime.now().
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


@dataclass
class Fact:
    id: str
    text: str
    category: FactCategory = FactCategory.CONTEXT
    source_id: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    status: FactStatus = FactStatus.ACTIVE
    superseded_by: str | None = None
    last_accessed: datetime | None = None
    access_count: int = 0
    tier: Tier | None = None

    @property
    def is_active(self) -> bool:
        return self.status == FactStatus.ACTIVE

    def archive(self) -> bool:
        """Move an active fact to archived. Returns False if it was already archived."""
        if self.status == FactStatus.ARCHIVED:
            return False
        if self.status != FactStatus.ACTIVE:
            raise FactTransitionError(f"Cannot archive {self.status.value} fact {self.id}")
        self.status = FactStatus.ARCHIVED
        return True

    def supersede(self, new_fact_id: str) -> None:
        if self.status != FactStatus.ACTIVE:
            raise FactTransitionError(f"Cannot supersede {self.status.value} fact {self.id}")
        self.status = FactStatus.SUPERSEDED
        self.superseded_by = new_fact_id

    def touch(self, when: datetime | None = None) -> None:
        """Record one read access."""
        self.last_accessed = when or datetime.now()
        self.access_count += 1


@dataclass
class Entity:
    """A person, company or project node.

    `id` is None for entities that only exist inside one resolution batch and have not
    been persisted yet.
    """

    slug: str
    name: str
    type: EntityType
    facts: list[Fact] = field(default_factory=list)
    id: str | None = None
    summary: str = ""
    needs_summary: bool = False
    summarized_at: datetime | None = None

    @property
    def active_facts(self) -> list[Fact]:
        return [f for f in self.facts if f.is_active]

    @property
    def fact_texts(self) -> list[str]:
        return [f.text for f in self.active_facts]

    @property
    def last_accessed(self) -> datetime | None:
        stamps = [f.last_accessed for f in self.facts if f.last_accessed]
        return max(stamps) if stamps else None

    @property
    def access_count(self) -> int:
        return sum(f.access_count for f in self.facts)


@dataclass
class ExtractedMention:
    name: str
    type: EntityType
    facts: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.type, EntityType):
            self.type = EntityType(self.type)


@dataclass
class ResolutionCandidate:
    entity: Entity
    score: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class ResolvedEntity:
    mention: ExtractedMention
    match: Entity | None
    confidence: float
    is_new: bool
    reason: str


@dataclass
class MergeResult:
    added: list[Fact] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class SynthesisResult:
    processed: int = 0
    archived: int = 0
    regenerated: int = 0
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class IngestResult:
    """Outcome of ingesting one source document."""

    source_id: str
    resolved: list[ResolvedEntity] = field(default_factory=list)
    created: list[Entity] = field(default_factory=list)
    facts_added: int = 0
    facts_skipped: int = 0
