"""Ollama provider for local models over HTTP."""

import httpx
import structlog

from cli.retry import http_retry

from ..base import DEFAULT_TIMEOUT, LLMError, LLMProvider

logger = structlog.get_logger()

DEFAULT_OLLAMA_URL = "http://localhost:11434"
PROBE_TIMEOUT = 2.0


class OllamaProvider(LLMProvider):
    """Local Ollama runtime (`/api/generate`)."""

    provider_name = "ollama"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = 2,
        min_wait: float = 0.5,
        max_wait: float = 2.0,
    ):
        self.base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self.model = model or "llama3.2:3b"
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)
        self._post = http_retry(
            max_attempts=max_attempts,
            min_wait=min_wait,
            max_wait=max_wait,
            exceptions=(httpx.TransportError,),
        )(self._post_once)

    def is_available(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/api/tags", timeout=PROBE_TIMEOUT)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("ollama.unavailable", url=self.base_url, error=str(e))
            return False

    def _post_once(self, payload: dict) -> dict:
        response = self.client.post(
            f"{self.base_url}/api/generate", json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float | None = None,
    ) -> str:
        # /api/generate is single-prompt; flatten the conversation
        parts = [m["content"] for m in messages if m.get("role") != "system"]
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        if system:
            system_parts.insert(0, system)

        payload = {
            "model": self.model,
            "prompt": "\n\n".join(parts),
            "stream": False,
            "options": {
                "temperature": 0.1 if temperature is None else temperature,
                "num_predict": max_tokens,
            },
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)

        try:
            data = self._post(payload)
        except httpx.HTTPStatusError as e:
            raise LLMError(f"Ollama error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise LLMError(f"Ollama returned invalid JSON: {e}") from e

        return data.get("response", "")
