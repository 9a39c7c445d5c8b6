"""Entity resolution: decide whether a mention refers to an existing entity or a new one."""

from datetime import datetime

import structlog

from observability import metrics

from .arbiter import Arbiter, ArbitrationError, NullArbiter
from .models import Entity, ExtractedMention, ResolutionCandidate, ResolvedEntity
from .scoring import score_candidate

logger = structlog.get_logger()

# Tuned decision boundaries. Change only against a calibration set.
STRONG_MATCH = 0.8
CLEAR_MARGIN_FLOOR = 0.5
CLEAR_MARGIN_GAP = 0.2
ARBITRATION_FLOOR = 0.3
NEW_ENTITY_CEILING = 0.4
ARBITRATION_FALLBACK_FLOOR = 0.6
LOW_CONFIDENCE = 0.6


class EntityResolver:
    """Scores candidates for a mention and applies the resolution thresholds.

    Only ambiguous cases reach the arbiter. Without one (or when it is unavailable) the
    decision is fully deterministic.
    """

    def __init__(self, arbiter: Arbiter | None = None):
        self.arbiter = arbiter or NullArbiter()

    def score_candidates(
        self, mention: ExtractedMention, pool: list[Entity], now: datetime | None = None
    ) -> list[ResolutionCandidate]:
        """Candidates sharing any part of the name, best first."""
        now = now or datetime.now()
        candidates = []
        for entity in pool:
            candidate = score_candidate(mention, entity, now)
            if candidate is not None:
                candidates.append(candidate)
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    def resolve(
        self,
        mention: ExtractedMention,
        pool: list[Entity],
        source_text: str | None = None,
        now: datetime | None = None,
    ) -> ResolvedEntity:
        result = self._resolve(mention, pool, source_text, now)
        metrics.counter("resolution.new" if result.is_new else "resolution.matched")
        logger.debug(
            "resolution.decided",
            mention=mention.name,
            type=mention.type.value,
            is_new=result.is_new,
            match=result.match.name if result.match else None,
            confidence=round(result.confidence, 3),
            reason=result.reason,
        )
        return result

    def _resolve(self, mention, pool, source_text, now) -> ResolvedEntity:
        if not pool:
            return _new(mention, 1.0, "No existing entities of this type")

        candidates = self.score_candidates(mention, pool, now)
        if not candidates:
            return _new(mention, 0.9, "No name matches found")

        top = candidates[0]
        if top.score > STRONG_MATCH:
            return _matched(mention, top, f"Strong match: {', '.join(top.reasons)}")

        if len(candidates) > 1 and top.score > CLEAR_MARGIN_FLOOR:
            if top.score - candidates[1].score > CLEAR_MARGIN_GAP:
                return _matched(
                    mention, top, f"Best match with clear margin: {', '.join(top.reasons)}"
                )

        if top.score > ARBITRATION_FLOOR and self.arbiter.is_available():
            return self._arbitrate(mention, candidates, source_text)

        if top.score < NEW_ENTITY_CEILING:
            return _new(
                mention,
                LOW_CONFIDENCE,
                f"Low match confidence ({top.score * 100:.0f}%), creating new",
            )

        return _matched(mention, top, f"Best available match: {', '.join(top.reasons)}")

    def _arbitrate(self, mention, candidates, source_text) -> ResolvedEntity:
        top = candidates[0]
        try:
            decision = self.arbiter.decide(mention, candidates, source_text)
        except ArbitrationError as e:
            metrics.counter("resolution.arbitration_failed")
            logger.warning("resolution.arbitration_failed", mention=mention.name, error=str(e))
            if top.score > ARBITRATION_FALLBACK_FLOOR:
                return ResolvedEntity(
                    mention=mention,
                    match=top.entity,
                    confidence=top.score,
                    is_new=False,
                    reason="Highest scoring candidate (arbitration unavailable)",
                )
            return _new(mention, 0.3, "No confident match found")

        metrics.counter("resolution.arbitrated")
        if 0 < decision.match_index <= len(candidates):
            chosen = candidates[decision.match_index - 1]
            return ResolvedEntity(
                mention=mention,
                match=chosen.entity,
                confidence=decision.confidence,
                is_new=False,
                reason=f"LLM resolved: {decision.reason}",
            )
        return _new(mention, decision.confidence, f"LLM decided new entity: {decision.reason}")


def _new(mention: ExtractedMention, confidence: float, reason: str) -> ResolvedEntity:
    return ResolvedEntity(
        mention=mention, match=None, confidence=confidence, is_new=True, reason=reason
    )


def _matched(mention: ExtractedMention, candidate: ResolutionCandidate, reason: str):
    return ResolvedEntity(
        mention=mention,
        match=candidate.entity,
        confidence=candidate.score,
        is_new=False,
        reason=reason.rstrip(": "),
    )
