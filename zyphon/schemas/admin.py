"""Admin console payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from zyphon.models.api_key import ApiKey
from zyphon.models.audit import AuditEvent
from zyphon.models.settings import GatewaySettings
from zyphon.services.keys.credentials import mask_key


class CreateKeyRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    scopes: list[str] = Field(min_length=1)


class ApiKeyView(BaseModel):
    """Non-secret view of a key. Never carries the hash or plaintext."""

    id: str
    name: str
    key_prefix: str
    masked_key: str
    scopes: list[str]
    is_active: bool
    created_at: datetime
    revoked_at: datetime | None
    last_used_at: datetime | None
    created_by: str | None
    rotated_from_id: str | None

    @classmethod
    def from_model(cls, key: ApiKey) -> "ApiKeyView":
        return cls(
            id=key.id,
            name=key.name,
            key_prefix=key.key_prefix,
            masked_key=mask_key(key.key_prefix),
            scopes=list(key.scopes),
            is_active=key.is_active,
            created_at=key.created_at,
            revoked_at=key.revoked_at,
            last_used_at=key.last_used_at,
            created_by=key.created_by,
            rotated_from_id=key.rotated_from_id,
        )


class IssuedKeyView(BaseModel):
    """Create/rotate response. ``raw_key`` is shown once and never again."""

    key: ApiKeyView
    raw_key: str


class RotatedKeyView(IssuedKeyView):
    old_key_id: str


class KeyListView(BaseModel):
    keys: list[ApiKeyView]
    total: int


class AuditEventView(BaseModel):
    id: int
    action: str
    key_prefix: str | None
    actor_id: str | None
    ip: str | None
    user_agent: str | None
    meta: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_model(cls, event: AuditEvent) -> "AuditEventView":
        return cls.model_validate(event, from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ActionCount(BaseModel):
    action: str
    count: int


class AuditLogView(BaseModel):
    logs: list[AuditEventView]
    pagination: Pagination
    action_breakdown: list[ActionCount]


class SettingsPayload(BaseModel):
    default_language_mode: Literal["auto", "locked_ar", "locked_en"]
    strict_no_third_language: bool
    default_max_tokens: int = Field(ge=256, le=4096)
    external_endpoint_enabled: bool

    @classmethod
    def from_model(cls, row: GatewaySettings) -> "SettingsPayload":
        return cls.model_validate(row, from_attributes=True)
