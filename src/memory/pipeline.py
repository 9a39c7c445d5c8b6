"""Memory pipeline: orchestrates extract -> resolve -> create/merge, and the decay sweep."""

import threading
import time

import structlog

from observability import events, metrics

from .batch import BatchResolver
from .extractor import MentionExtractor
from .merger import FactMerger
from .models import Entity, EntityType, ExtractedMention, IngestResult, SynthesisResult
from .store import EntityStore
from .synthesis import MemorySynthesizer

logger = structlog.get_logger()


class MemoryPipeline:
    """Ingests one source document at a time.

    Store errors propagate and abort the current document only; nothing is rolled back
    for mentions already merged, since facts are append-only and deduplicated on merge.
    """

    def __init__(
        self,
        store: EntityStore,
        resolver: BatchResolver | None = None,
        merger: FactMerger | None = None,
        synthesizer: MemorySynthesizer | None = None,
        extractor: MentionExtractor | None = None,
        regenerate_on_merge: bool = False,
    ):
        self.store = store
        self.resolver = resolver or BatchResolver(store)
        self.merger = merger or FactMerger(store)
        self.synthesizer = synthesizer or MemorySynthesizer(store)
        self._extractor = extractor
        self.regenerate_on_merge = regenerate_on_merge

    @property
    def extractor(self) -> MentionExtractor:
        if self._extractor is None:
            self._extractor = MentionExtractor()
        return self._extractor

    def process_text(self, source_id: str, text: str) -> IngestResult:
        """Extract mentions from raw text, then ingest them."""
        mentions = self.extractor.extract(text, source_id=source_id)
        events.emit("extract", f"Extracted {len(mentions)} mentions from {source_id}")
        if not mentions:
            return IngestResult(source_id=source_id)
        return self.ingest(mentions, source_id, source_text=text)

    def ingest(
        self,
        mentions: list[ExtractedMention],
        source_id: str,
        source_text: str | None = None,
    ) -> IngestResult:
        start = time.time()
        result = IngestResult(source_id=source_id)

        with metrics.timer("pipeline.ingest"):
            result.resolved = self.resolver.resolve_batch(mentions, source_text)

            created: dict[tuple[EntityType, str], Entity] = {}
            for resolved in result.resolved:
                entity = self._target_entity(resolved, created, result)
                if entity is None:
                    logger.warning(
                        "memory.unresolved_provisional",
                        mention=resolved.mention.name,
                        source_id=source_id,
                    )
                    continue

                merged = self.merger.merge_facts(entity, resolved.mention.facts, source_id)
                result.facts_added += len(merged.added)
                result.facts_skipped += len(merged.skipped)

                if self.regenerate_on_merge and merged.added:
                    self.synthesizer.refresh_summary(entity)

        logger.info(
            "memory.source_processed",
            source_id=source_id,
            mentions=len(mentions),
            created=len(result.created),
            facts_added=result.facts_added,
            facts_skipped=result.facts_skipped,
        )
        events.emit(
            "save",
            f"{source_id}: {result.facts_added} facts, {len(result.created)} new entities",
            payload={
                "created": [e.slug for e in result.created],
                "skipped_facts": result.facts_skipped,
            },
            duration_ms=(time.time() - start) * 1000,
        )
        return result

    def _target_entity(self, resolved, created, result) -> Entity | None:
        if resolved.is_new:
            mention = resolved.mention
            entity = self.store.create_entity(mention.name, mention.type)
            created[(entity.type, entity.slug)] = entity
            result.created.append(entity)
            return entity

        match = resolved.match
        if match.id is None:
            # Resolved to an entity created earlier in this batch
            return created.get((match.type, match.slug))
        return match

    def run_synthesis(self, cancel: threading.Event | None = None) -> SynthesisResult:
        return self.synthesizer.run(cancel=cancel)

    def record_access(self, entity_id: str, fact_ids: list[str] | None = None) -> int:
        touched = self.store.record_access(entity_id, fact_ids)
        events.emit("access", f"Accessed {touched} facts", payload={"entity_id": entity_id})
        return touched
