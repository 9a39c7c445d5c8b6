"""LLM-powered extraction of entity mentions from source documents."""

import json
import re

import structlog

from cli.retry import llm_retry
from llm import LLMError

from .models import EntityType, ExtractedMention

logger = structlog.get_logger()

_EXTRACTION_PROMPT = """You are an entity extraction system. Extract ONLY people, companies, and projects from the following text.

IMPORTANT RULES:
- "person" = actual human beings with names (first+last preferred, or recognizable single names)
- "company" = businesses, organizations, corporations, startups
- "project" = named software projects, products, initiatives
- DO NOT extract: cities, countries, locations, generic terms, abbreviations

For each entity, provide:
- name: The entity's name (use full name for people when available)
- type: One of "person", "company", or "project"
- facts: Array of specific facts about this entity from the text

Output ONLY valid JSON array. No explanation, no markdown, just JSON.

Example output:
[
  {{"name": "John Smith", "type": "person", "facts": ["Works at Acme Corp", "Based in Austin"]}},
  {{"name": "Acme Corp", "type": "company", "facts": ["John Smith works here", "Headquartered in SF"]}}
]

Text to analyze:
---
{text}
---

Extract entities (JSON array only):"""

VALID_TYPES = {t.value for t in EntityType}

_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_OBJECT_RE = re.compile(
    r'\{\s*"name"\s*:\s*"([^"]+)"\s*,\s*"type"\s*:\s*"([^"]+)"\s*,\s*"facts"\s*:\s*\[([^\]]*)\]\s*\}'
)
_CLEANUPS = [
    (re.compile(r",\s*\]"), "]"),
    (re.compile(r",\s*\}"), "}"),
    (re.compile(r"[\x00-\x1f\x7f]"), " "),
    (re.compile(r"\\'"), "'"),
    (re.compile(r"'"), '"'),
    (re.compile(r",\s*,"), ","),
]


class MentionExtractor:
    """Turns raw source text into ExtractedMention records."""

    def __init__(self, provider=None, max_chars: int = 4000, max_attempts: int = 2):
        self._provider = provider
        self.max_chars = max_chars
        self._generate = llm_retry(
            max_attempts=max_attempts, min_wait=1.0, max_wait=10.0, exceptions=(LLMError,)
        )(self._generate_once)

    def _get_provider(self):
        if self._provider:
            return self._provider
        from llm.factory import create_cheap_provider

        self._provider = create_cheap_provider()
        return self._provider

    def _generate_once(self, prompt: str) -> str:
        return self._get_provider().generate(
            messages=[{"role": "user", "content": prompt}],
            max_tokens=2000,
            temperature=0.1,
        )

    def extract(self, text: str, source_id: str = "") -> list[ExtractedMention]:
        """Extract mentions. Returns [] on empty input or any provider failure."""
        if not text or not text.strip():
            return []

        prompt = _EXTRACTION_PROMPT.format(text=text[: self.max_chars])
        try:
            response = self._generate(prompt)
        except LLMError as e:
            logger.warning("mention_extraction_failed", source_id=source_id, error=str(e))
            return []

        mentions = self._parse_response(response or "")
        logger.info("mention_extraction_done", source_id=source_id, mentions=len(mentions))
        return mentions

    def _parse_response(self, response: str) -> list[ExtractedMention]:
        found = _ARRAY_RE.search(response)
        if not found:
            logger.warning("mention_parse_failed", response=response[:200])
            return []

        raw = found.group(0)
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            cleaned = raw
            for pattern, replacement in _CLEANUPS:
                cleaned = pattern.sub(replacement, cleaned)
            try:
                items = json.loads(cleaned)
            except json.JSONDecodeError:
                items = self._salvage(cleaned)
                if not items:
                    logger.warning("mention_parse_failed", response=response[:200])
                    return []
                logger.info("mention_parse_salvaged", count=len(items))

        if not isinstance(items, list):
            return []

        mentions = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = str(item.get("name") or "").strip()
            facts = item.get("facts")
            if not name or not item.get("type") or not isinstance(facts, list):
                continue
            raw_type = item["type"]
            entity_type = "person"
            if isinstance(raw_type, str) and raw_type in VALID_TYPES:
                entity_type = raw_type
            mentions.append(
                ExtractedMention(
                    name=name,
                    type=EntityType(entity_type),
                    facts=[str(f).strip() for f in facts if str(f).strip()],
                )
            )
        return mentions

    @staticmethod
    def _salvage(text: str) -> list[dict]:
        """Recover well-formed objects from an otherwise broken array."""
        items = []
        for name, entity_type, facts_raw in _OBJECT_RE.findall(text):
            facts = [f.strip().strip('"') for f in facts_raw.split(",")]
            items.append(
                {"name": name, "type": entity_type, "facts": [f for f in facts if f]}
            )
        return items
