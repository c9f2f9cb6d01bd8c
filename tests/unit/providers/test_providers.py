"""Unit tests for HTTP generation providers, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from tests.fakes import PDF_BYTES, PNG_BYTES, FakeClock
from zyphon.config import ImageProviderConfig, LLMConfig, PdfRendererConfig
from zyphon.services.providers import (
    GenerationError,
    HTTPPdfRenderer,
    OpenAICompatibleChatProvider,
    ReplicateImageProvider,
)
from zyphon.services.providers.image import detect_mime_type, parse_size


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestChatProvider:
    @pytest.fixture
    def config(self) -> LLMConfig:
        return LLMConfig(base_url="https://llm.test/v1/", api_key="secret", chat_model="m1")

    async def test_complete(self, config):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "Hello"}}]}
            )

        async with _client(handler) as client:
            provider = OpenAICompatibleChatProvider(config, client=client)
            reply = await provider.complete(
                [{"role": "user", "content": "hi"}], max_tokens=100
            )

        assert reply == "Hello"
        (request,) = seen
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["model"] == "m1"
        assert body["max_tokens"] == 100
        assert body["stream"] is False

    async def test_model_override(self, config):
        models: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            models.append(json.loads(request.content)["model"])
            return httpx.Response(200, json={"choices": [{"message": {"content": "{}"}}]})

        async with _client(handler) as client:
            provider = OpenAICompatibleChatProvider(config, client=client)
            await provider.complete([], max_tokens=10, model="design")

        assert models == ["design"]

    async def test_not_configured(self):
        provider = OpenAICompatibleChatProvider(LLMConfig(api_key=None))

        with pytest.raises(GenerationError, match="not configured"):
            await provider.complete([], max_tokens=10)

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, json={"choices": []}),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_upstream_errors(self, config, response):
        async with _client(lambda request: response) as client:
            provider = OpenAICompatibleChatProvider(config, client=client)
            with pytest.raises(GenerationError):
                await provider.complete([], max_tokens=10)

    async def test_transport_error(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            provider = OpenAICompatibleChatProvider(config, client=client)
            with pytest.raises(GenerationError, match="request error"):
                await provider.complete([], max_tokens=10)


class TestReplicateProvider:
    POLL_URL = "https://replicate.test/v1/predictions/p1"
    IMAGE_URL = "https://files.test/out.png"

    @pytest.fixture
    def config(self) -> ImageProviderConfig:
        return ImageProviderConfig(
            api_url="https://replicate.test/v1/predictions",
            api_token="r8_token",
            poll_interval=1.0,
            poll_timeout=3.0,
        )

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock(start=0.0)

    def _provider(self, config, client, clock) -> ReplicateImageProvider:
        async def sleep(seconds: float) -> None:
            clock.advance(seconds)

        return ReplicateImageProvider(config, client=client, sleep=sleep, clock=clock)

    async def test_polls_until_succeeded(self, config, clock):
        statuses = iter(["processing", "succeeded"])
        created: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                created.append(json.loads(request.content))
                assert request.headers["Prefer"] == "wait"
                return httpx.Response(
                    201,
                    json={"id": "p1", "status": "starting", "urls": {"get": self.POLL_URL}},
                )
            if str(request.url) == self.POLL_URL:
                status = next(statuses)
                output = [self.IMAGE_URL] if status == "succeeded" else None
                return httpx.Response(200, json={"status": status, "output": output})
            return httpx.Response(
                200, content=PNG_BYTES, headers={"content-type": "image/png"}
            )

        async with _client(handler) as client:
            image = await self._provider(config, client, clock).generate(
                "a cat", size="768x1024", format="png"
            )

        assert image.data == PNG_BYTES
        assert image.mime_type == "image/png"
        assert created[0]["input"]["width"] == 768
        assert created[0]["input"]["height"] == 1024
        assert clock.now == 2.0

    async def test_immediate_output_skips_polling(self, config, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(
                    201, json={"status": "succeeded", "output": [self.IMAGE_URL]}
                )
            return httpx.Response(200, content=PNG_BYTES)

        async with _client(handler) as client:
            image = await self._provider(config, client, clock).generate(
                "a cat", size="512x512", format="webp"
            )

        assert image.mime_type == "image/png"
        assert clock.now == 0.0

    async def test_failed_prediction(self, config, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"id": "p1", "status": "starting"})
            return httpx.Response(200, json={"status": "failed", "error": "NSFW"})

        async with _client(handler) as client:
            with pytest.raises(GenerationError, match="failed: NSFW"):
                await self._provider(config, client, clock).generate(
                    "x", size="512x512", format="png"
                )

    async def test_poll_timeout(self, config, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(
                    201, json={"id": "p1", "status": "starting", "urls": {"get": self.POLL_URL}}
                )
            return httpx.Response(200, json={"status": "processing"})

        async with _client(handler) as client:
            with pytest.raises(GenerationError, match="timed out"):
                await self._provider(config, client, clock).generate(
                    "x", size="512x512", format="png"
                )

        assert clock.now == 3.0

    async def test_create_rejected(self, config, clock):
        async with _client(lambda request: httpx.Response(422, text="bad")) as client:
            with pytest.raises(GenerationError, match="422"):
                await self._provider(config, client, clock).generate(
                    "x", size="512x512", format="png"
                )

    async def test_not_configured(self):
        provider = ReplicateImageProvider(ImageProviderConfig(api_token=None))

        assert provider.is_configured is False
        with pytest.raises(GenerationError, match="not configured"):
            await provider.generate("x", size="512x512", format="png")


class TestImageHelpers:
    def test_parse_size(self):
        assert parse_size("1024x768") == (1024, 768)

    @pytest.mark.parametrize(
        ("content_type", "url", "fmt", "expected"),
        [
            ("image/webp", "https://x/y", "png", "image/webp"),
            (None, "https://x/y.jpg", "png", "image/jpeg"),
            (None, "https://x/y", "webp", "image/webp"),
            (None, "https://x/y", "jpg", "image/jpeg"),
        ],
    )
    def test_detect_mime_type(self, content_type, url, fmt, expected):
        assert detect_mime_type(content_type, url, fmt) == expected


class TestPdfRenderer:
    @pytest.fixture
    def config(self) -> PdfRendererConfig:
        return PdfRendererConfig(url="https://pdf.test/render")

    async def test_render(self, config):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, content=PDF_BYTES)

        async with _client(handler) as client:
            data = await HTTPPdfRenderer(config, client=client).render(
                "certificate", {"student_name": "Fatima"}
            )

        assert data == PDF_BYTES
        assert bodies == [{"type": "certificate", "data": {"student_name": "Fatima"}}]

    async def test_non_pdf_body(self, config):
        async with _client(lambda request: httpx.Response(200, content=b"<html>")) as client:
            with pytest.raises(GenerationError, match="non-PDF"):
                await HTTPPdfRenderer(config, client=client).render("certificate", {})

    async def test_render_failed(self, config):
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(GenerationError, match="503"):
                await HTTPPdfRenderer(config, client=client).render("certificate", {})

    async def test_not_configured(self):
        with pytest.raises(GenerationError, match="not configured"):
            await HTTPPdfRenderer(PdfRendererConfig()).render("certificate", {})
