"""Similarity scoring between an extracted mention and an existing entity.

All functions here are pure. `now` can be passed explicitly to make recency deterministic.
"""

import math
import re
from datetime import datetime

from .models import Entity, ExtractedMention, ResolutionCandidate

NAME_WEIGHT = 0.5
CONTEXT_WEIGHT = 0.35
RECENCY_WEIGHT = 0.15

NEVER_ACCESSED_SCORE = 0.1

STOP_WORDS = frozenset(
    {"the", "a", "an", "is", "are", "was", "were", "at", "in", "on", "for", "to", "of", "and", "or"}
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_WORD_SPLIT_RE = re.compile(r"\W+")


def slugify(name: str) -> str:
    """'Adam Watson' -> 'adam-watson'."""
    return _SLUG_RE.sub("-", name.lower().strip()).strip("-")


def name_similarity(mention_name: str, entity_name: str) -> float:
    """Score how well a (possibly partial) mentioned name matches an entity name."""
    mention = mention_name.lower().strip()
    existing = entity_name.lower().strip()
    if not mention or not existing:
        return 0.0

    if mention == existing:
        return 1.0

    # "adam" -> "adam watson"
    if existing.startswith(mention + " "):
        return 0.7 + 0.2 * len(mention) / len(existing)

    existing_words = existing.split()
    matching = [w for w in mention.split() if w in existing_words]
    if matching:
        return min(1.0, 0.5 + 0.3 * len(matching) / len(existing_words))

    if mention in existing:
        return 0.3

    return 0.0


def recency_score(last_accessed: datetime | None, now: datetime | None = None) -> float:
    if last_accessed is None:
        return NEVER_ACCESSED_SCORE

    now = now or datetime.now()
    hours = (now - last_accessed).total_seconds() / 3600

    if hours < 1:
        return 1.0
    if hours < 24:
        return 0.8 + 0.2 * (1 - hours / 24)
    if hours < 168:
        return 0.5 + 0.3 * (1 - hours / 168)
    return max(NEVER_ACCESSED_SCORE, 0.5 * math.exp(-hours / 720))


def significant_words(text: str) -> list[str]:
    return [w for w in _WORD_SPLIT_RE.split(text.lower()) if len(w) > 2 and w not in STOP_WORDS]


def context_score(mention_facts: list[str], entity_facts: list[str]) -> float:
    """Keyword overlap between mention facts and what is already known about the entity."""
    if not mention_facts or not entity_facts:
        return 0.0

    mention_words = set(significant_words(" ".join(mention_facts)))
    entity_words = significant_words(" ".join(entity_facts))
    if not entity_words:
        return 0.0

    overlap = sum(1 for w in entity_words if w in mention_words)
    return min(1.0, overlap / math.sqrt(len(entity_words)))


def combined_score(name: float, context: float, recency: float) -> float:
    return NAME_WEIGHT * name + CONTEXT_WEIGHT * context + RECENCY_WEIGHT * recency


def score_candidate(
    mention: ExtractedMention, entity: Entity, now: datetime | None = None
) -> ResolutionCandidate | None:
    """Score one entity against a mention. None when the names share nothing."""
    name = name_similarity(mention.name, entity.name)
    if name == 0:
        return None

    recency = recency_score(entity.last_accessed, now)
    context = context_score(mention.facts, entity.fact_texts)

    reasons = []
    if name > 0.7:
        reasons.append(f"name match: {name * 100:.0f}%")
    if context > 0.3:
        reasons.append(f"context overlap: {context * 100:.0f}%")
    if recency > 0.5:
        reasons.append("recently active")

    return ResolutionCandidate(
        entity=entity, score=combined_score(name, context, recency), reasons=reasons
    )
