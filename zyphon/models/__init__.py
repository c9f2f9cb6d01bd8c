"""SQLModel data models."""

from zyphon.models.api_key import ApiKey
from zyphon.models.audit import AuditEvent
from zyphon.models.settings import GatewaySettings

__all__ = [
    "ApiKey",
    "AuditEvent",
    "GatewaySettings",
]
