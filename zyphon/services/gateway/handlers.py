"""Capability handlers: payload schema, extra checks, and the upstream call.

Authentication, scopes, rate limits and auditing are applied around these by
``GatewayPipeline``; a handler only validates and executes.
"""

from __future__ import annotations

import math
import re
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from zyphon.config import GatewayConfig, LLMConfig
from zyphon.errors import ValidationError
from zyphon.schemas.gateway import (
    ACCENT_COLORS,
    BACKGROUND_COLORS,
    ChatHistoryItem,
    ChatRequest,
    DesignRequest,
    ImageRequest,
    fallback_design_spec,
    parse_design_spec,
    pdf_request_adapter,
)
from zyphon.services.gateway.capabilities import CHAT, DESIGN_SPEC, IMAGE, PDF, Capability
from zyphon.services.gateway.context import GatewayContext, Outcome
from zyphon.services.providers.base import (
    ChatMessage,
    ChatProvider,
    ImageProvider,
    PdfRenderer,
)
from zyphon.services.storage import ObjectStorage

logger = structlog.get_logger()

MAX_RESPONSE_TOKENS = 4096
DESIGN_MAX_TOKENS = 1024

_ARABIC = re.compile(r"[\u0600-\u06FF\u0750-\u077F]")
_MIME_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


class CapabilityHandler(ABC):
    """Validation and execution for one gateway capability."""

    capability: Capability

    @property
    def max_body_bytes(self) -> int | None:
        """Raw body ceiling checked before JSON parsing. None = no limit."""
        return None

    @abstractmethod
    def parse(self, body: Any) -> BaseModel:
        """Validate the decoded JSON body.

        Raises:
            pydantic.ValidationError: On schema violations
        """

    def check(self, payload: Any) -> None:
        """Constraints that depend on configuration.

        Raises:
            ValidationError: On violation
        """

    @abstractmethod
    async def execute(self, payload: Any, ctx: GatewayContext) -> Outcome:
        """Invoke the upstream capability.

        Raises:
            GenerationError: Upstream failed
            StorageError: Artifact upload failed
        """


def _artifact_stamp() -> str:
    return f"{int(time.time() * 1000)}"


# -- chat -------------------------------------------------------------------


def estimate_tokens(text: str) -> int:
    """Rough token count (4 chars per token)."""
    return math.ceil(len(text) / 4)


def truncate_history(
    history: list[ChatHistoryItem], budget: int
) -> list[ChatHistoryItem]:
    """Keep the newest messages that fit in ``budget`` estimated tokens.

    Stops at the first message that would overflow, so the kept history is
    always a contiguous suffix.
    """
    kept: list[ChatHistoryItem] = []
    used = 0
    for item in reversed(history):
        cost = estimate_tokens(item.content)
        if used + cost > budget:
            break
        kept.append(item)
        used += cost
    kept.reverse()
    return kept


def resolve_language(locale: str | None, mode: str, message: str) -> str:
    """Explicit locale wins, then a locked mode, then script detection."""
    if locale:
        return locale
    if mode == "locked_ar":
        return "ar"
    if mode == "locked_en":
        return "en"
    return "ar" if _ARABIC.search(message) else "en"


def language_instruction(language: str, *, strict: bool) -> str:
    name = "Arabic" if language == "ar" else "English"
    text = (
        f"Respond ONLY in {name}. Even if the user writes in another language, "
        f"reply in {name}."
    )
    if strict:
        text += " Never respond in any language other than Arabic or English."
    return text


class ChatHandler(CapabilityHandler):
    capability = CHAT

    def __init__(
        self,
        provider: ChatProvider,
        *,
        llm_config: LLMConfig,
        gateway_config: GatewayConfig,
    ) -> None:
        self._provider = provider
        self._llm_config = llm_config
        self._gateway_config = gateway_config

    def parse(self, body: Any) -> ChatRequest:
        return ChatRequest.model_validate(body)

    async def execute(self, payload: ChatRequest, ctx: GatewayContext) -> Outcome:
        settings = ctx.settings
        language = resolve_language(
            payload.locale, settings.default_language_mode, payload.message
        )
        history = truncate_history(
            payload.history, self._gateway_config.chat_history_token_budget
        )

        system_prompt = "\n\n".join(
            [
                self._llm_config.system_prompt,
                language_instruction(language, strict=settings.strict_no_third_language),
            ]
        )
        messages: list[ChatMessage] = [
            {"role": "system", "content": system_prompt},
            *({"role": h.role, "content": h.content} for h in history),
            {"role": "user", "content": payload.message},
        ]
        max_tokens = min(
            payload.max_tokens or settings.default_max_tokens, MAX_RESPONSE_TOKENS
        )

        reply = await self._provider.complete(messages, max_tokens=max_tokens)

        return Outcome(
            data={
                "reply": reply,
                "session_id": payload.session_id or f"ext_{ctx.request_id}",
                "locale": language,
                "processing_time_ms": ctx.elapsed_ms(),
            },
            metadata={
                "message_length": len(payload.message),
                "reply_length": len(reply),
                "history_kept": len(history),
                "locale": language,
            },
        )


# -- image ------------------------------------------------------------------


class ImageHandler(CapabilityHandler):
    capability = IMAGE

    def __init__(
        self,
        provider: ImageProvider,
        storage: ObjectStorage,
        *,
        gateway_config: GatewayConfig,
    ) -> None:
        self._provider = provider
        self._storage = storage
        self._gateway_config = gateway_config

    def parse(self, body: Any) -> ImageRequest:
        return ImageRequest.model_validate(body)

    def check(self, payload: ImageRequest) -> None:
        limit = self._gateway_config.max_image_prompt_length
        if len(payload.prompt) > limit:
            raise ValidationError(f"prompt: exceeds {limit} characters")

    async def execute(self, payload: ImageRequest, ctx: GatewayContext) -> Outcome:
        image = await self._provider.generate(
            payload.prompt, size=payload.size, format=payload.format
        )
        extension = _MIME_EXTENSIONS.get(image.mime_type, payload.format)
        path = f"ai-images/{_artifact_stamp()}_{secrets.token_hex(4)}.{extension}"
        upload = await self._storage.upload(image.data, path, content_type=image.mime_type)

        return Outcome(
            data={
                "url": upload.url,
                "storage": upload.storage,
                "size": payload.size,
                "format": payload.format,
                "processing_time_ms": ctx.elapsed_ms(),
            },
            metadata={
                "prompt_length": len(payload.prompt),
                "size": payload.size,
                "format": payload.format,
                "storage": upload.storage,
                "bytes": len(image.data),
            },
        )


# -- pdf --------------------------------------------------------------------


class PdfHandler(CapabilityHandler):
    capability = PDF

    def __init__(
        self,
        renderer: PdfRenderer,
        storage: ObjectStorage,
        *,
        gateway_config: GatewayConfig,
    ) -> None:
        self._renderer = renderer
        self._storage = storage
        self._gateway_config = gateway_config

    @property
    def max_body_bytes(self) -> int:
        return self._gateway_config.max_pdf_payload_bytes

    def parse(self, body: Any) -> BaseModel:
        return pdf_request_adapter.validate_python(body)

    async def execute(self, payload: Any, ctx: GatewayContext) -> Outcome:
        pdf_bytes = await self._renderer.render(
            payload.type, payload.data.model_dump(exclude_none=True)
        )
        filename = f"{payload.type}-{_artifact_stamp()}-{secrets.token_hex(3)}.pdf"
        upload = await self._storage.upload(
            pdf_bytes, f"ai-pdfs/{filename}", content_type="application/pdf"
        )

        return Outcome(
            data={
                "url": upload.url,
                "storage": upload.storage,
                "filename": filename,
                "type": payload.type,
                "file_size": len(pdf_bytes),
                "processing_time_ms": ctx.elapsed_ms(),
            },
            metadata={
                "type": payload.type,
                "filename": filename,
                "file_size": len(pdf_bytes),
                "storage": upload.storage,
            },
        )


# -- design spec ------------------------------------------------------------

DESIGN_SYSTEM_PROMPT = """\
You are a JSON-only design specification generator. Output ONLY valid JSON: \
no prose, no markdown, no explanations.

Generate a DesignSpec JSON object for a stylized Arabic calligraphy image:
{
  "canvas": {"w": 256-2048, "h": 256-2048, "bg": "#RRGGBB"},
  "text": {"value": "<Arabic text>", "stroke_width": 1-50,
           "geometry_style": "kufic-block" | "kufic-rounded" | "angular" | "geometric",
           "centered": true|false, "color": "#RRGGBB" (optional), "scale": 0.5-3},
  "patterns": {
    "islamic": {"enabled": true|false, "opacity": 0-1,
                "tile": "8-point-star" | "6-point-star" | "hexagonal" | "octagonal",
                "scale": 0.5-3, "color": "#RRGGBB" (optional)},
    "circuit": {"enabled": true|false, "opacity": 0-1, "density": 0.1-1,
                "color": "#RRGGBB" (optional), "node_radius": 1-10}
  },
  "accent": {"color": "#RRGGBB", "line_weight": 1-20, "glow": 0-1},
  "seed": integer 0-999999999
}

Rules: colors are 6-digit hex. "minimal-premium" keeps pattern opacity low \
(0.05-0.1); "vibrant" uses bolder colors; "traditional" favours islamic \
patterns and warm accents; "tech" favours circuit patterns."""


def design_user_prompt(request: DesignRequest) -> str:
    return (
        "Generate a DesignSpec for:\n"
        f'- Arabic text: "{request.brand_text_ar}"\n'
        f"- Style: {request.style}\n"
        f"- Mood: {request.mood}\n"
        f"- Accent color: {ACCENT_COLORS[request.accent]}\n"
        f"- Background: {BACKGROUND_COLORS[request.background]}\n\n"
        "Output JSON only."
    )


class DesignSpecHandler(CapabilityHandler):
    capability = DESIGN_SPEC

    def __init__(
        self,
        provider: ChatProvider,
        *,
        llm_config: LLMConfig,
        gateway_config: GatewayConfig,
    ) -> None:
        self._provider = provider
        self._llm_config = llm_config
        self._gateway_config = gateway_config
        self._log = logger.bind(component="design_spec")

    def parse(self, body: Any) -> DesignRequest:
        return DesignRequest.model_validate(body)

    def check(self, payload: DesignRequest) -> None:
        limit = self._gateway_config.max_design_text_length
        if len(payload.brand_text_ar) > limit:
            raise ValidationError(f"brand_text_ar: exceeds {limit} characters")

    async def execute(self, payload: DesignRequest, ctx: GatewayContext) -> Outcome:
        raw = await self._provider.complete(
            [
                {"role": "system", "content": DESIGN_SYSTEM_PROMPT},
                {"role": "user", "content": design_user_prompt(payload)},
            ],
            max_tokens=DESIGN_MAX_TOKENS,
            model=self._llm_config.design_model,
        )

        fallback = False
        try:
            spec = parse_design_spec(raw)
        except (ValueError, PydanticValidationError) as e:
            self._log.warning(
                "design_spec.parse_failed",
                request_id=ctx.request_id,
                error=str(e)[:200],
            )
            spec = fallback_design_spec(payload, seed=secrets.randbelow(999_999_999))
            fallback = True

        return Outcome(
            data={
                "spec": spec.model_dump(exclude_none=True),
                "processing_time_ms": ctx.elapsed_ms(),
            },
            metadata={
                "style": payload.style,
                "mood": payload.mood,
                "text_length": len(payload.brand_text_ar),
                "fallback": fallback,
            },
        )
