"""Claude (Anthropic) LLM provider."""

from ..base import DEFAULT_TIMEOUT, LLMAuthError, LLMError, LLMProvider, LLMRateLimitError


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider."""

    provider_name = "claude"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.model = model or "claude-sonnet-4-20250514"
        self.timeout = timeout

        if client:
            self.client = client
            return

        try:
            from anthropic import Anthropic
        except ImportError:
            raise LLMError("anthropic package not installed. Run: pip install anthropic")

        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=1)

    def _get_exceptions(self):
        from anthropic import APIError, AuthenticationError, RateLimitError

        return AuthenticationError, RateLimitError, APIError

    def _handle_error(self, e: Exception):
        AuthenticationError, RateLimitError, APIError = self._get_exceptions()
        if isinstance(e, AuthenticationError):
            raise LLMAuthError(f"Claude auth failed: {e}") from e
        if isinstance(e, RateLimitError):
            raise LLMRateLimitError(f"Claude rate limit: {e}") from e
        if isinstance(e, APIError):
            raise LLMError(f"Claude API error: {e}") from e
        raise LLMError(f"Claude error: {e}") from e

    def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float | None = None,
    ) -> str:
        try:
            self._get_exceptions()
        except ImportError:
            raise LLMError("anthropic package not installed")

        # Anthropic takes the system prompt out of band
        api_messages = []
        for msg in messages:
            if msg.get("role") == "system":
                system = f"{system}\n\n{msg['content']}" if system else msg["content"]
            else:
                api_messages.append(msg)

        try:
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "messages": api_messages,
            }
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature

            response = self.client.messages.create(**kwargs)
            return response.content[0].text
        except Exception as e:
            self._handle_error(e)
