"""Generation capability interfaces.

The gateway only talks to these protocols; concrete providers live beside
this module and fakes live in the test suite.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol, TypedDict

import httpx

from zyphon.services.http import http_client_manager


class GenerationError(Exception):
    """An upstream generation capability failed or is not configured."""


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str


class ChatProvider(Protocol):
    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the assistant reply text.

        Raises:
            GenerationError: On any upstream failure
        """
        ...


class ImageProvider(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def generate(self, prompt: str, *, size: str, format: str) -> GeneratedImage:
        """Generate one image.

        Raises:
            GenerationError: On any upstream failure
        """
        ...


class PdfRenderer(Protocol):
    async def render(self, doc_type: str, data: dict[str, Any]) -> bytes:
        """Render a document template to PDF bytes.

        Raises:
            GenerationError: On any upstream failure
        """
        ...


class HTTPProvider:
    """Base for providers that call out over HTTP.

    Uses the injected client when given, otherwise the shared pooled client.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._injected_client = client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._injected_client is not None:
            return self._injected_client
        return http_client_manager.client
