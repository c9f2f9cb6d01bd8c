"""External API gateway."""

from zyphon.services.gateway.capabilities import (
    ALL_CAPABILITIES,
    CHAT,
    DESIGN_SPEC,
    IMAGE,
    PDF,
    Capability,
)
from zyphon.services.gateway.context import GatewayContext, GatewayStage, Outcome
from zyphon.services.gateway.handlers import (
    CapabilityHandler,
    ChatHandler,
    DesignSpecHandler,
    ImageHandler,
    PdfHandler,
)
from zyphon.services.gateway.pipeline import GatewayPipeline, GatewayResult

__all__ = [
    "ALL_CAPABILITIES",
    "CHAT",
    "Capability",
    "CapabilityHandler",
    "ChatHandler",
    "DESIGN_SPEC",
    "DesignSpecHandler",
    "GatewayContext",
    "GatewayPipeline",
    "GatewayResult",
    "GatewayStage",
    "IMAGE",
    "ImageHandler",
    "Outcome",
    "PDF",
    "PdfHandler",
]
