"""Fake implementations for testing.

These fakes allow unit tests to run without an LLM, an image provider, a PDF
renderer or object storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from zyphon.services.providers.base import ChatMessage, GeneratedImage, GenerationError
from zyphon.services.storage import StorageError, UploadResult

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"
PDF_BYTES = b"%PDF-1.4\nfake-pdf"


class FakeChatProvider:
    """Returns queued replies in order (the last one repeats)."""

    def __init__(self, *replies: str, error: Exception | None = None) -> None:
        self._replies = list(replies) or ["ok"]
        self._error = error
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        self.calls.append(
            {"messages": messages, "max_tokens": max_tokens, "model": model}
        )
        if self._error is not None:
            raise self._error
        if len(self._replies) > 1:
            return self._replies.pop(0)
        return self._replies[0]


class FakeImageProvider:
    def __init__(
        self,
        *,
        data: bytes = PNG_BYTES,
        mime_type: str = "image/png",
        configured: bool = True,
    ) -> None:
        self._image = GeneratedImage(data=data, mime_type=mime_type)
        self._configured = configured
        self.calls: list[dict[str, str]] = []

    @property
    def is_configured(self) -> bool:
        return self._configured

    async def generate(self, prompt: str, *, size: str, format: str) -> GeneratedImage:
        self.calls.append({"prompt": prompt, "size": size, "format": format})
        if not self._configured:
            raise GenerationError("Image provider not configured")
        return self._image


class FakePdfRenderer:
    def __init__(self, *, data: bytes = PDF_BYTES, error: Exception | None = None) -> None:
        self._data = data
        self._error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def render(self, doc_type: str, data: dict[str, Any]) -> bytes:
        self.calls.append((doc_type, data))
        if self._error is not None:
            raise self._error
        return self._data


@dataclass
class FakeUpload:
    path: str
    data: bytes
    content_type: str


class FakeStorage:
    """In-memory storage. Set ``fail=True`` to simulate an outage."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: list[FakeUpload] = []

    async def upload(self, data: bytes, path: str, *, content_type: str) -> UploadResult:
        if self.fail:
            raise StorageError("storage unavailable")
        self.uploads.append(FakeUpload(path=path, data=data, content_type=content_type))
        return UploadResult(url=f"https://cdn.test/{path}", storage="fake", path=path)


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class RecordedEvent:
    action: str
    key_prefix: str | None
    actor_id: str | None
    ip: str | None
    user_agent: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


class RecordingAuditLogger:
    """Captures audit events synchronously instead of writing them."""

    def __init__(self) -> None:
        self.events: list[RecordedEvent] = []

    def log_event(
        self,
        action: str,
        *,
        key_prefix: str | None = None,
        actor_id: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.events.append(
            RecordedEvent(
                action=action,
                key_prefix=key_prefix,
                actor_id=actor_id,
                ip=ip,
                user_agent=user_agent,
                metadata=dict(metadata or {}),
            )
        )

    def actions(self) -> list[str]:
        return [e.action for e in self.events]
