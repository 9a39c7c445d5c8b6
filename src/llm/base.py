"""Base LLM provider abstraction."""

from abc import ABC, abstractmethod

DEFAULT_TIMEOUT = 30.0


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""


class LLMAuthError(LLMError):
    """Authentication failure."""


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    provider_name: str = "base"

    @abstractmethod
    def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float | None = None,
    ) -> str:
        """Generate a response from messages.

        Args:
            messages: List of {"role": ..., "content": ...} dicts
            system: Optional system prompt
            max_tokens: Max response tokens
            temperature: Sampling temperature (None = provider default)

        Returns:
            Generated text

        Raises:
            LLMError: on any provider failure, including timeouts
        """
        ...

    def is_available(self) -> bool:
        """Whether the backing service can currently be reached.

        Hosted APIs are assumed reachable; local runtimes override this with a probe.
        """
        return True
