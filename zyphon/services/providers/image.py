"""Replicate image generation.

Creates a prediction, polls it until it settles, then downloads the first
output URL.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from zyphon.config import ImageProviderConfig
from zyphon.services.providers.base import GeneratedImage, GenerationError, HTTPProvider

logger = structlog.get_logger()

_TERMINAL_FAILURES = {"failed", "canceled"}


def parse_size(size: str) -> tuple[int, int]:
    width, height = size.split("x")
    return int(width), int(height)


def detect_mime_type(content_type: str | None, url: str, requested_format: str) -> str:
    """Pick the image MIME type from the response header, URL, or request."""
    for source in (content_type or "", url):
        if "png" in source:
            return "image/png"
        if "jpeg" in source or "jpg" in source:
            return "image/jpeg"
        if "webp" in source:
            return "image/webp"
    return {"png": "image/png", "webp": "image/webp"}.get(requested_format, "image/jpeg")


class ReplicateImageProvider(HTTPProvider):
    def __init__(
        self,
        config: ImageProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
        sleep=asyncio.sleep,
        clock=time.monotonic,
    ) -> None:
        super().__init__(client)
        self._config = config
        self._sleep = sleep
        self._clock = clock
        self._log = logger.bind(provider="replicate")

    @property
    def is_configured(self) -> bool:
        return bool(self._config.api_token)

    def _auth(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.api_token}"}

    async def generate(self, prompt: str, *, size: str, format: str) -> GeneratedImage:
        if not self.is_configured:
            raise GenerationError("Image provider not configured")

        width, height = parse_size(size)
        try:
            prediction = await self._create_prediction(
                {
                    "prompt": prompt,
                    "width": width,
                    "height": height,
                    "num_outputs": 1,
                    "output_format": format,
                }
            )
            output = prediction.get("output")
            if not output and prediction.get("status") != "succeeded":
                output = await self._poll(prediction)

            image_url = output[0] if isinstance(output, list) and output else output
            if not image_url or not isinstance(image_url, str):
                raise GenerationError("No image URL in provider response")

            response = await self.http.get(image_url)
        except httpx.RequestError as e:
            self._log.error("replicate.request_error", error=str(e))
            raise GenerationError(f"Image provider error: {e}")
        except ValueError:
            raise GenerationError("Image provider returned invalid JSON")

        if response.status_code >= 400:
            raise GenerationError(f"Failed to fetch generated image ({response.status_code})")

        return GeneratedImage(
            data=response.content,
            mime_type=detect_mime_type(
                response.headers.get("content-type"), image_url, format
            ),
        )

    async def _create_prediction(self, model_input: dict[str, Any]) -> dict[str, Any]:
        response = await self.http.post(
            self._config.api_url,
            json={"version": self._config.model_version, "input": model_input},
            headers={**self._auth(), "Prefer": "wait"},
        )
        if response.status_code >= 400:
            self._log.error(
                "replicate.create_failed",
                status=response.status_code,
                body=response.text[:500],
            )
            raise GenerationError(f"Image provider API error ({response.status_code})")
        return response.json()

    async def _poll(self, prediction: dict[str, Any]) -> Any:
        poll_url = (prediction.get("urls") or {}).get("get") or (
            f"{self._config.api_url.rstrip('/')}/{prediction.get('id')}"
        )
        deadline = self._clock() + self._config.poll_timeout

        while self._clock() < deadline:
            await self._sleep(self._config.poll_interval)

            response = await self.http.get(poll_url, headers=self._auth())
            if response.status_code >= 400:
                raise GenerationError(
                    f"Failed to poll prediction status ({response.status_code})"
                )

            result = response.json()
            status = result.get("status")
            if status == "succeeded":
                return result.get("output")
            if status in _TERMINAL_FAILURES:
                self._log.warning("replicate.prediction_failed", status=status)
                raise GenerationError(
                    f"Image generation {status}: {result.get('error') or 'no details'}"
                )

        raise GenerationError(
            f"Image generation timed out after {self._config.poll_timeout:.0f}s"
        )
