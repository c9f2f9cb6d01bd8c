"""External generation capabilities."""

from zyphon.services.providers.base import (
    ChatMessage,
    ChatProvider,
    GeneratedImage,
    GenerationError,
    ImageProvider,
    PdfRenderer,
)
from zyphon.services.providers.image import ReplicateImageProvider
from zyphon.services.providers.llm import OpenAICompatibleChatProvider
from zyphon.services.providers.pdf import HTTPPdfRenderer

__all__ = [
    "ChatMessage",
    "ChatProvider",
    "GeneratedImage",
    "GenerationError",
    "HTTPPdfRenderer",
    "ImageProvider",
    "OpenAICompatibleChatProvider",
    "PdfRenderer",
    "ReplicateImageProvider",
]
