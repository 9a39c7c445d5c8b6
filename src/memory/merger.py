"""Append new facts to a resolved entity, skipping restatements."""

import uuid
from datetime import datetime

import structlog

from observability import metrics

from .models import Entity, Fact, FactCategory, MergeResult
from .redundancy import is_redundant

logger = structlog.get_logger()


class FactMerger:
    """Merges candidate facts into an entity.

    Every merge that adds facts flags the entity for summary regeneration; it never
    regenerates the summary itself.
    """

    def __init__(self, store=None):
        self.store = store

    def merge_facts(
        self,
        entity: Entity,
        candidate_facts: list[str],
        source: str,
        category: FactCategory = FactCategory.CONTEXT,
    ) -> MergeResult:
        result = MergeResult()
        known = entity.fact_texts
        now = datetime.now()

        for text in candidate_facts:
            text = text.strip()
            if not text:
                continue
            if is_redundant(text, known, entity.name):
                result.skipped.append(text)
                continue

            fact = Fact(
                id=uuid.uuid4().hex[:16],
                text=text,
                category=category,
                source_id=source,
                created_at=now,
            )
            result.added.append(fact)
            known.append(text)

        if result.added:
            if self.store is not None and entity.id is not None:
                self.store.add_facts(entity.id, result.added)
                self.store.mark_summary_stale(entity.id)
            entity.facts.extend(result.added)
            entity.needs_summary = True

        metrics.counter("merge.added", len(result.added))
        metrics.counter("merge.redundant", len(result.skipped))
        logger.debug(
            "merge.done",
            entity=entity.slug,
            added=len(result.added),
            skipped=len(result.skipped),
            source=source,
        )
        return result
