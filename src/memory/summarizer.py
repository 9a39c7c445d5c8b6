"""Entity summary generation."""

from abc import ABC, abstractmethod

import structlog

from llm import LLMError

logger = structlog.get_logger()

_SUMMARY_PROMPT = """Write a brief 1-2 sentence summary about {name} (a {type}) based on these facts:

{facts}

Write ONLY the summary, no introduction or explanation:"""


def archived_placeholder(name: str, entity_type: str) -> str:
    return f"{name} is a {entity_type} with archived knowledge."


class Summarizer(ABC):
    @abstractmethod
    def summarize(self, name: str, entity_type: str, facts: list[str]) -> str: ...


class ConcatSummarizer(Summarizer):
    """Joins the first few facts. Never fails."""

    def __init__(self, max_facts: int = 3):
        self.max_facts = max_facts

    def summarize(self, name, entity_type, facts):
        if not facts:
            return archived_placeholder(name, entity_type)
        return ". ".join(f.rstrip(".") for f in facts[: self.max_facts]) + "."


class LLMSummarizer(Summarizer):
    """LLM prose summary, falling back to concatenation on any provider failure."""

    def __init__(self, provider=None, max_tokens: int = 200, fallback: Summarizer | None = None):
        self._provider = provider
        self.max_tokens = max_tokens
        self.fallback = fallback or ConcatSummarizer()

    def _get_provider(self):
        if self._provider:
            return self._provider
        from llm.factory import create_cheap_provider

        self._provider = create_cheap_provider()
        return self._provider

    def summarize(self, name, entity_type, facts):
        if not facts:
            return archived_placeholder(name, entity_type)

        prompt = _SUMMARY_PROMPT.format(
            name=name, type=entity_type, facts="\n".join(f"- {f}" for f in facts)
        )
        try:
            response = self._get_provider().generate(
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=0.3,
            )
        except LLMError as e:
            logger.warning("summary_generation_failed", entity=name, error=str(e))
            return self.fallback.summarize(name, entity_type, facts)

        summary = (response or "").strip()
        return summary or self.fallback.summarize(name, entity_type, facts)
