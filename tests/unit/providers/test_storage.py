"""Unit tests for object storage backends."""

from __future__ import annotations

import httpx
import pytest

from zyphon.config import StorageConfig
from zyphon.services.storage import (
    BlobObjectStorage,
    LocalObjectStorage,
    StorageError,
    build_storage,
)


class TestLocalStorage:
    async def test_upload_writes_file(self, tmp_path):
        storage = LocalObjectStorage(tmp_path, "https://cdn.test/uploads/")

        result = await storage.upload(b"data", "ai-images/a.png", content_type="image/png")

        assert (tmp_path / "ai-images" / "a.png").read_bytes() == b"data"
        assert result.url == "https://cdn.test/uploads/ai-images/a.png"
        assert result.storage == "local"

    @pytest.mark.parametrize("path", ["../escape.png", "/etc/passwd"])
    async def test_rejects_unsafe_paths(self, tmp_path, path):
        storage = LocalObjectStorage(tmp_path, "/uploads")

        with pytest.raises(StorageError):
            await storage.upload(b"x", path, content_type="image/png")


class TestBlobStorage:
    async def test_upload(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"url": "https://blob.test/ai-pdfs/a.pdf"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            storage = BlobObjectStorage("https://blob.test/api/", "tok", client=client)
            result = await storage.upload(
                b"%PDF", "ai-pdfs/a.pdf", content_type="application/pdf"
            )

        assert result.url == "https://blob.test/ai-pdfs/a.pdf"
        assert result.storage == "blob"
        (request,) = seen
        assert request.method == "PUT"
        assert str(request.url) == "https://blob.test/api/ai-pdfs/a.pdf"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Content-Type"] == "application/pdf"

    @pytest.mark.parametrize(
        "response",
        [httpx.Response(500), httpx.Response(200, json={"path": "x"})],
    )
    async def test_failures(self, response):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: response)
        ) as client:
            storage = BlobObjectStorage("https://blob.test", None, client=client)
            with pytest.raises(StorageError):
                await storage.upload(b"x", "a.png", content_type="image/png")


class TestBuildStorage:
    def test_local_default(self, tmp_path):
        storage = build_storage(StorageConfig(local_root=str(tmp_path)))

        assert isinstance(storage, LocalObjectStorage)

    def test_blob_requires_url(self):
        with pytest.raises(ValueError, match="blob_api_url"):
            build_storage(StorageConfig(backend="blob"))

    def test_blob(self):
        storage = build_storage(
            StorageConfig(backend="blob", blob_api_url="https://blob.test", blob_token="t")
        )

        assert isinstance(storage, BlobObjectStorage)
