"""Object storage for generated artifacts (images, PDFs)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from zyphon.config import StorageConfig
from zyphon.services.http import http_client_manager

logger = structlog.get_logger()


class StorageError(Exception):
    """Upload failed."""


@dataclass(frozen=True)
class UploadResult:
    url: str
    storage: str  # backend name, e.g. "local" or "blob"
    path: str


class ObjectStorage(Protocol):
    async def upload(self, data: bytes, path: str, *, content_type: str) -> UploadResult:
        """Store ``data`` under ``path`` and return its public URL.

        Raises:
            StorageError: On any failure
        """
        ...


def _safe_relative(path: str) -> Path:
    relative = Path(path)
    if relative.is_absolute() or ".." in relative.parts:
        raise StorageError(f"Invalid storage path: {path}")
    return relative


class LocalObjectStorage:
    """Writes files below ``root`` and serves them from ``public_base_url``."""

    name = "local"

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self._root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    async def upload(self, data: bytes, path: str, *, content_type: str) -> UploadResult:
        target = self._root / _safe_relative(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            logger.error("storage.write_failed", path=path, error=str(e))
            raise StorageError(f"Failed to write {path}: {e}")

        logger.info("storage.uploaded", backend=self.name, path=path, size=len(data))
        return UploadResult(
            url=f"{self._public_base_url}/{path}",
            storage=self.name,
            path=path,
        )

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


class BlobObjectStorage:
    """HTTP PUT blob API (``PUT {api_url}/{path}`` returning ``{"url": ...}``)."""

    name = "blob"

    def __init__(
        self,
        api_url: str,
        token: str | None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._client = client

    async def upload(self, data: bytes, path: str, *, content_type: str) -> UploadResult:
        _safe_relative(path)
        client = self._client or http_client_manager.client
        headers = {"Content-Type": content_type}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await client.put(f"{self._api_url}/{path}", content=data, headers=headers)
        except httpx.RequestError as e:
            logger.error("storage.request_error", path=path, error=str(e))
            raise StorageError(f"Blob upload error: {e}")

        if response.status_code >= 400:
            logger.error("storage.upload_failed", path=path, status=response.status_code)
            raise StorageError(f"Blob upload failed: {response.status_code}")

        try:
            url = response.json()["url"]
        except (ValueError, KeyError, TypeError):
            raise StorageError("Blob API response has no url")

        logger.info("storage.uploaded", backend=self.name, path=path, size=len(data))
        return UploadResult(url=url, storage=self.name, path=path)


def build_storage(config: StorageConfig) -> ObjectStorage:
    """Create the configured storage backend."""
    if config.backend == "blob":
        if not config.blob_api_url:
            raise ValueError("storage.blob_api_url is required for the blob backend")
        return BlobObjectStorage(config.blob_api_url, config.blob_token)
    return LocalObjectStorage(config.local_root, config.public_base_url)
