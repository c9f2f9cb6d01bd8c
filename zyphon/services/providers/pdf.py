"""Remote PDF rendering service client."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from zyphon.config import PdfRendererConfig
from zyphon.services.providers.base import GenerationError, HTTPProvider

logger = structlog.get_logger()


class HTTPPdfRenderer(HTTPProvider):
    """POSTs ``{"type": ..., "data": ...}`` and expects ``application/pdf`` bytes."""

    def __init__(
        self, config: PdfRendererConfig, *, client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(client)
        self._config = config
        self._log = logger.bind(provider="pdf_renderer")

    async def render(self, doc_type: str, data: dict[str, Any]) -> bytes:
        if not self._config.url:
            raise GenerationError("PDF renderer not configured")

        try:
            response = await self.http.post(
                self._config.url,
                json={"type": doc_type, "data": data},
                timeout=self._config.timeout,
            )
        except httpx.RequestError as e:
            self._log.error("pdf.request_error", error=str(e))
            raise GenerationError(f"PDF renderer error: {e}")

        if response.status_code >= 400:
            self._log.error("pdf.render_failed", status=response.status_code)
            raise GenerationError(f"PDF render failed: {response.status_code}")
        if not response.content.startswith(b"%PDF"):
            raise GenerationError("PDF renderer returned a non-PDF body")

        return response.content
