"""Capabilities exposed through the external gateway."""

from __future__ import annotations

from dataclasses import dataclass

from zyphon.services.keys.scopes import Scope


@dataclass(frozen=True)
class Capability:
    """One gateway function and the policy wrapped around it."""

    name: str
    required_scope: Scope
    endpoint_class: str  # rate-limit rule name in RateLimitConfig
    success_action: str

    @property
    def denied_action(self) -> str:
        return f"{self.name}.denied"

    @property
    def error_action(self) -> str:
        return f"{self.name}.error"


CHAT = Capability(
    name="chat",
    required_scope=Scope.CHAT_WRITE,
    endpoint_class="chat",
    success_action="chat.completed",
)
IMAGE = Capability(
    name="image",
    required_scope=Scope.IMAGE_GENERATE,
    endpoint_class="image",
    success_action="image.generated",
)
PDF = Capability(
    name="pdf",
    required_scope=Scope.PDF_GENERATE,
    endpoint_class="pdf",
    success_action="pdf.generated",
)
DESIGN_SPEC = Capability(
    name="design-spec",
    required_scope=Scope.IMAGE_GENERATE,
    endpoint_class="design_spec",
    success_action="design-spec.generated",
)

ALL_CAPABILITIES = (CHAT, IMAGE, PDF, DESIGN_SPEC)
