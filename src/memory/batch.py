"""Batch resolution of all mentions extracted from one source document."""

from datetime import datetime

import structlog

from .models import Entity, EntityType, ExtractedMention, Fact, ResolvedEntity
from .resolver import EntityResolver
from .scoring import slugify

logger = structlog.get_logger()

CROSS_TYPE_CONFIDENCE = 0.9


class BatchResolver:
    """Resolves one document's mentions consistently.

    Candidate pools are loaded once per type when the batch starts. Entities the batch
    decides to create are appended to the in-memory pool so later mentions resolve to
    them. Pools live only for one `resolve_batch` call; run concurrent batches on
    separate pools.
    """

    def __init__(self, store=None, resolver: EntityResolver | None = None):
        self.store = store
        self.resolver = resolver or EntityResolver()

    def load_pools(self) -> dict[EntityType, list[Entity]]:
        if self.store is None:
            return {t: [] for t in EntityType}
        return {t: list(self.store.list_entities(t)) for t in EntityType}

    def resolve_batch(
        self,
        mentions: list[ExtractedMention],
        source_text: str | None = None,
        pools: dict[EntityType, list[Entity]] | None = None,
    ) -> list[ResolvedEntity]:
        """Resolve mentions in input order. Repeats of a name created earlier in the batch are dropped."""
        if pools is None:
            pools = self.load_pools()
        else:
            pools = {t: list(pools.get(t, [])) for t in EntityType}

        pending: set[str] = set()
        results: list[ResolvedEntity] = []
        now = datetime.now()

        for mention in mentions:
            slug = slugify(mention.name)
            if not slug:
                logger.warning("resolution.empty_name", mention=mention.name)
                continue

            if slug in pending:
                logger.info(
                    "resolution.skip_pending",
                    mention=mention.name,
                    type=mention.type.value,
                )
                continue

            cross = _find_cross_type(mention, slug, pools)
            if cross is not None:
                logger.info(
                    "resolution.cross_type",
                    mention=mention.name,
                    claimed=mention.type.value,
                    existing=cross.type.value,
                )
                results.append(
                    ResolvedEntity(
                        mention=mention,
                        match=cross,
                        confidence=CROSS_TYPE_CONFIDENCE,
                        is_new=False,
                        reason=f"Cross-type match: exists as {cross.type.value}",
                    )
                )
                continue

            pool = pools[mention.type]
            resolved = self.resolver.resolve(mention, pool, source_text, now=now)
            results.append(resolved)

            if resolved.is_new:
                pending.add(slug)
                pool.append(_provisional_entity(mention, slug, now))

        logger.info(
            "memory.batch_resolved",
            mentions=len(mentions),
            resolved=len(results),
            new=sum(1 for r in results if r.is_new),
        )
        return results


def _find_cross_type(mention: ExtractedMention, slug: str, pools) -> Entity | None:
    name = mention.name.lower().strip()
    for entity_type, entities in pools.items():
        if entity_type == mention.type:
            continue
        for entity in entities:
            if entity.name.lower().strip() == name or entity.slug == slug:
                return entity
    return None


def _provisional_entity(mention: ExtractedMention, slug: str, now: datetime) -> Entity:
    """Stand-in for an entity the batch will create. No id and no access history."""
    facts = [
        Fact(id=f"pending-{slug}-{i}", text=text, created_at=now)
        for i, text in enumerate(mention.facts)
    ]
    return Entity(slug=slug, name=mention.name.strip(), type=mention.type, facts=facts)
