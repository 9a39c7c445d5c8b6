"""Arbitration between closely scored resolution candidates.

The resolver talks to an `Arbiter`. `LLMArbiter` asks a text-generation model to pick a
candidate; `NullArbiter` is used when no model is configured and always reports itself
unavailable.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from llm import LLMError

from .models import ExtractedMention, ResolutionCandidate

logger = structlog.get_logger()

MAX_ARBITRATION_CANDIDATES = 3

_ARBITRATION_PROMPT = """You are resolving an entity mention to an existing entity in a personal knowledge base.

EXTRACTED MENTION:
Name: "{name}"
Type: {type}
Extracted facts: {facts}
{context}
CANDIDATE MATCHES:
{candidates}

0. None of the above (create new entity)

Which candidate is the SAME entity as the extracted mention?

IMPORTANT CONSIDERATIONS:
- Partial names often match full names (e.g., "Adam" -> "Adam Watson" if context matches)
- Context matters: if the text mentions a company/project and a candidate has related facts, that's a strong signal
- Recently accessed entities are more likely to be mentioned again
- Only create new if you're confident this is truly a different entity

Respond with ONLY a JSON object:
{{"match": <number 0-{count}>, "confidence": <0.0-1.0>, "reason": "<brief explanation>"}}"""

_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_]\w*)\s*:")
_MATCH_FIELD_RE = re.compile(r"""["']?match["']?\s*:\s*(\d+)""")
_CONFIDENCE_FIELD_RE = re.compile(r"""["']?confidence["']?\s*:\s*([\d.]+)""")
_REASON_FIELD_RE = re.compile(r"""["']?reason["']?\s*:\s*["']([^"']+)["']""")


class ArbitrationError(Exception):
    """Arbitration could not produce a decision."""


@dataclass
class ArbitrationDecision:
    """`match_index` is 1-based into the presented candidates; 0 means "none of them"."""

    match_index: int
    confidence: float
    reason: str


class Arbiter(ABC):
    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    def decide(
        self,
        mention: ExtractedMention,
        candidates: list[ResolutionCandidate],
        source_text: str | None = None,
    ) -> ArbitrationDecision:
        """Pick among the top candidates. Raises ArbitrationError on failure."""
        ...


class NullArbiter(Arbiter):
    """No arbitration service configured."""

    def is_available(self) -> bool:
        return False

    def decide(self, mention, candidates, source_text=None) -> ArbitrationDecision:
        raise ArbitrationError("No arbitration service configured")


class LLMArbiter(Arbiter):
    """Asks an LLM which candidate a mention refers to."""

    def __init__(
        self,
        provider=None,
        max_tokens: int = 150,
        max_source_chars: int = 500,
    ):
        self._provider = provider
        self.max_tokens = max_tokens
        self.max_source_chars = max_source_chars

    def _get_provider(self):
        if self._provider:
            return self._provider
        from llm.factory import create_cheap_provider

        self._provider = create_cheap_provider()
        return self._provider

    def is_available(self) -> bool:
        try:
            return self._get_provider().is_available()
        except LLMError as e:
            logger.debug("arbiter.unavailable", error=str(e))
            return False

    def decide(self, mention, candidates, source_text=None) -> ArbitrationDecision:
        shown = candidates[:MAX_ARBITRATION_CANDIDATES]
        prompt = build_prompt(mention, shown, source_text, self.max_source_chars)

        try:
            response = self._get_provider().generate(
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=0,
            )
        except LLMError as e:
            raise ArbitrationError(f"Arbitration call failed: {e}") from e

        decision = parse_decision(response or "")
        if decision is None:
            raise ArbitrationError(f"Unparseable arbitration response: {(response or '')[:200]!r}")
        if not 0 <= decision.match_index <= len(shown):
            raise ArbitrationError(f"Arbitration picked unknown candidate {decision.match_index}")
        return decision


def _describe(index: int, candidate: ResolutionCandidate) -> str:
    entity = candidate.entity
    if entity.last_accessed:
        recency = f"Last accessed: {entity.last_accessed.strftime('%Y-%m-%d')}"
    else:
        recency = "Never accessed"
    facts = "; ".join(entity.fact_texts[:5]) or "None"
    return (
        f'{index}. "{entity.name}" ({entity.type.value})\n'
        f"   Known facts: {facts}\n"
        f"   {recency}, {entity.access_count} total accesses"
    )


def build_prompt(
    mention: ExtractedMention,
    candidates: list[ResolutionCandidate],
    source_text: str | None = None,
    max_source_chars: int = 500,
) -> str:
    context = ""
    if source_text:
        snippet = source_text[:max_source_chars]
        ellipsis = "..." if len(source_text) > max_source_chars else ""
        context = f'\nORIGINAL TEXT:\n"{snippet}{ellipsis}"\n'

    return _ARBITRATION_PROMPT.format(
        name=mention.name,
        type=mention.type.value,
        facts="; ".join(mention.facts) or "None",
        context=context,
        candidates="\n\n".join(_describe(i + 1, c) for i, c in enumerate(candidates)),
        count=len(candidates),
    )


def _clean_json(raw: str) -> str:
    text = _TRAILING_COMMA_RE.sub(r"\1", raw)
    text = text.replace("'", '"')
    return _UNQUOTED_KEY_RE.sub(r'\1"\2":', text)


def _as_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _from_dict(data: dict) -> ArbitrationDecision:
    match = _as_int(data.get("match"))
    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.5
    return ArbitrationDecision(
        match_index=match if match is not None else 0,
        confidence=max(0.0, min(1.0, float(confidence))),
        reason=str(data.get("reason") or "LLM resolution"),
    )


def parse_decision(response: str) -> ArbitrationDecision | None:
    """Pull `{match, confidence, reason}` out of free text.

    Tries strict JSON, then JSON with common model mistakes repaired (trailing commas,
    single quotes, unquoted keys), then per-field patterns. None if no match index is found.
    """
    found = _OBJECT_RE.search(response)
    if found:
        raw = found.group(0)
        for candidate in (raw, _clean_json(raw)):
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and "match" in data:
                return _from_dict(data)

    match_num = _MATCH_FIELD_RE.search(response)
    if not match_num:
        return None
    confidence = _CONFIDENCE_FIELD_RE.search(response)
    reason = _REASON_FIELD_RE.search(response)
    try:
        conf_value = float(confidence.group(1)) if confidence else 0.5
    except ValueError:
        conf_value = 0.5
    return ArbitrationDecision(
        match_index=int(match_num.group(1)),
        confidence=max(0.0, min(1.0, conf_value)),
        reason=reason.group(1) if reason else "LLM resolution (parsed)",
    )
