"""Memory decay and summary synthesis.

A full-graph sweep meant for a slow schedule (weekly). For every entity: retier active
facts by how recently they were read, archive the cold ones, and rewrite the summary from
what is left. Each entity is handled as a unit; a failure or cancellation never leaves an
entity half-retiered.
"""

import threading
from dataclasses import replace
from datetime import datetime

import structlog

from observability import events, metrics

from .models import Entity, Fact, SynthesisResult, Tier
from .summarizer import ConcatSummarizer, Summarizer

logger = structlog.get_logger()

HOT_DAYS = 7
WARM_DAYS = 30
HIGH_ACCESS_THRESHOLD = 10


def compute_tier(
    fact: Fact,
    now: datetime | None = None,
    hot_days: int = HOT_DAYS,
    warm_days: int = WARM_DAYS,
    high_access_threshold: int = HIGH_ACCESS_THRESHOLD,
) -> Tier:
    now = now or datetime.now()
    reference = fact.last_accessed or fact.created_at
    days = int((now - reference).total_seconds() // 86400)

    # Frequently read facts never go cold
    if fact.access_count >= high_access_threshold:
        return Tier.HOT if days <= warm_days else Tier.WARM

    if days <= hot_days:
        return Tier.HOT
    if days <= warm_days:
        return Tier.WARM
    return Tier.COLD


class MemorySynthesizer:
    def __init__(
        self,
        store=None,
        summarizer: Summarizer | None = None,
        hot_days: int = HOT_DAYS,
        warm_days: int = WARM_DAYS,
        high_access_threshold: int = HIGH_ACCESS_THRESHOLD,
    ):
        self.store = store
        self.summarizer = summarizer or ConcatSummarizer()
        self.hot_days = hot_days
        self.warm_days = warm_days
        self.high_access_threshold = high_access_threshold

    def tier(self, fact: Fact, now: datetime | None = None) -> Tier:
        return compute_tier(
            fact,
            now,
            hot_days=self.hot_days,
            warm_days=self.warm_days,
            high_access_threshold=self.high_access_threshold,
        )

    def run(self, cancel: threading.Event | None = None) -> SynthesisResult:
        """Sweep every entity in the store."""
        if self.store is None:
            raise ValueError("MemorySynthesizer.run needs a store")
        return self.synthesize(self.store.list_entities(), cancel=cancel)

    def synthesize(
        self,
        entities: list[Entity],
        cancel: threading.Event | None = None,
        now: datetime | None = None,
    ) -> SynthesisResult:
        now = now or datetime.now()
        result = SynthesisResult()
        logger.info(
            "synthesis.started",
            entities=len(entities),
            summarizer=type(self.summarizer).__name__,
        )

        with metrics.timer("synthesis.run"):
            for entity in entities:
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    logger.info("synthesis.cancelled", processed=result.processed)
                    break
                try:
                    archived = self.process_entity(entity, now)
                except Exception as e:
                    # One bad entity must not stop the sweep
                    msg = f"Failed to process {entity.type.value}/{entity.slug}: {e}"
                    logger.warning("synthesis.entity_failed", entity=entity.slug, error=str(e))
                    result.errors.append(msg)
                    result.processed += 1
                    continue

                result.processed += 1
                result.archived += archived
                result.regenerated += 1

        metrics.counter("synthesis.archived", result.archived)
        metrics.counter("synthesis.regenerated", result.regenerated)
        logger.info(
            "synthesis.complete",
            processed=result.processed,
            archived=result.archived,
            regenerated=result.regenerated,
            errors=len(result.errors),
        )
        events.emit(
            "synthesize",
            f"Processed {result.processed} entities, archived {result.archived} facts",
            payload={"errors": result.errors, "cancelled": result.cancelled},
        )
        return result

    def process_entity(self, entity: Entity, now: datetime | None = None) -> int:
        """Retier, archive and resummarize one entity. Returns the number of facts archived.

        Work happens on copies; the entity is only updated after the store accepted it.
        """
        now = now or datetime.now()
        facts = [replace(f) for f in entity.facts]
        archived = 0

        for fact in facts:
            if not fact.is_active:
                continue
            fact.tier = self.tier(fact, now)
            if fact.tier == Tier.COLD and fact.archive():
                archived += 1

        remaining = [
            f.text for f in facts if f.is_active and f.tier in (Tier.HOT, Tier.WARM)
        ]
        summary = self.summarizer.summarize(entity.name, entity.type.value, remaining)

        updated = replace(
            entity, facts=facts, summary=summary, needs_summary=False, summarized_at=now
        )
        if self.store is not None and updated.id is not None:
            self.store.save_entity(updated)

        entity.facts = updated.facts
        entity.summary = updated.summary
        entity.needs_summary = False
        entity.summarized_at = now
        return archived

    def refresh_summary(self, entity: Entity) -> str:
        """Regenerate one summary without retiering."""
        texts = [f.text for f in entity.active_facts if f.tier != Tier.COLD]
        summary = self.summarizer.summarize(entity.name, entity.type.value, texts)
        now = datetime.now()
        if self.store is not None and entity.id is not None:
            self.store.update_summary(entity.id, summary, now)
        entity.summary = summary
        entity.needs_summary = False
        entity.summarized_at = now
        return summary

    def refresh_stale(self) -> int:
        """Regenerate summaries the merger flagged since the last sweep."""
        if self.store is None:
            raise ValueError("MemorySynthesizer.refresh_stale needs a store")
        count = 0
        for entity in self.store.list_entities():
            if entity.needs_summary:
                self.refresh_summary(entity)
                count += 1
        logger.info("synthesis.stale_refreshed", count=count)
        return count

    def decay_stats(self, entity: Entity, now: datetime | None = None) -> dict[str, int]:
        """Counts per tier. Facts never tiered are classified on the fly."""
        stats = {"hot": 0, "warm": 0, "cold": 0, "total": len(entity.facts)}
        for fact in entity.facts:
            tier = fact.tier or self.tier(fact, now)
            stats[tier.value] += 1
        return stats
