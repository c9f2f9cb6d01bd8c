"""OpenAI-compatible chat completions (Groq by default)."""

from __future__ import annotations

import httpx
import structlog

from zyphon.config import LLMConfig
from zyphon.services.providers.base import ChatMessage, GenerationError, HTTPProvider

logger = structlog.get_logger()


class OpenAICompatibleChatProvider(HTTPProvider):
    """Calls ``POST {base_url}/chat/completions``."""

    def __init__(self, config: LLMConfig, *, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(client)
        self._config = config
        self._log = logger.bind(provider="llm", base_url=config.base_url)

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        if not self._config.api_key:
            raise GenerationError("LLM API key not configured")

        payload = {
            "model": model or self._config.chat_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": (
                self._config.temperature if temperature is None else temperature
            ),
            "stream": False,
        }
        url = f"{self._config.base_url.rstrip('/')}/chat/completions"

        try:
            response = await self.http.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self._config.api_key}"},
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException:
            self._log.error("llm.timeout", timeout=self._config.timeout)
            raise GenerationError("LLM request timed out")
        except httpx.RequestError as e:
            self._log.error("llm.request_error", error=str(e))
            raise GenerationError(f"LLM request error: {e}")

        if response.status_code >= 400:
            self._log.error(
                "llm.request_failed",
                status=response.status_code,
                body=response.text[:500],
            )
            raise GenerationError(f"LLM request failed: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise GenerationError("LLM returned an unexpected response shape")

        return content or ""
