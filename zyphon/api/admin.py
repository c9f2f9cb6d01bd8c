"""Admin console endpoints for key management, audit logs and settings.

Authenticated with the admin session cookie, not with API keys.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from zyphon.api.dependencies import (
    AdminDep,
    KeyServiceDep,
    SessionDep,
    SettingsServiceDep,
)
from zyphon.schemas.admin import (
    ActionCount,
    ApiKeyView,
    AuditEventView,
    AuditLogView,
    CreateKeyRequest,
    IssuedKeyView,
    KeyListView,
    Pagination,
    RotatedKeyView,
    SettingsPayload,
)
from zyphon.services.audit import AuditReader

router = APIRouter(prefix="/api/admin/zyphon-ai", tags=["admin"])


def _ok(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": data}


# ---- Keys ----


@router.get("/keys")
async def list_keys(admin: AdminDep, service: KeyServiceDep) -> dict[str, Any]:
    keys = await service.list_keys()
    view = KeyListView(keys=[ApiKeyView.from_model(k) for k in keys], total=len(keys))
    return _ok(view.model_dump(mode="json"))


@router.post("/keys", status_code=201)
async def create_key(
    body: CreateKeyRequest,
    admin: AdminDep,
    service: KeyServiceDep,
) -> dict[str, Any]:
    """Create a key. The raw key is in this response only."""
    issued = await service.create_key(
        name=body.name,
        scopes=body.scopes,
        actor_id=admin.id,
    )
    view = IssuedKeyView(key=ApiKeyView.from_model(issued.key), raw_key=issued.plaintext)
    return _ok(view.model_dump(mode="json"))


@router.post("/keys/{key_id}/rotate")
async def rotate_key(key_id: str, admin: AdminDep, service: KeyServiceDep) -> dict[str, Any]:
    """Revoke a key and issue a replacement with the same name and scopes."""
    issued = await service.rotate_key(key_id, actor_id=admin.id)
    view = RotatedKeyView(
        key=ApiKeyView.from_model(issued.key),
        raw_key=issued.plaintext,
        old_key_id=key_id,
    )
    return _ok(view.model_dump(mode="json"))


@router.post("/keys/{key_id}/revoke")
async def revoke_key(key_id: str, admin: AdminDep, service: KeyServiceDep) -> dict[str, Any]:
    key = await service.revoke_key(key_id, actor_id=admin.id)
    return _ok(ApiKeyView.from_model(key).model_dump(mode="json"))


# ---- Audit logs ----


@router.get("/logs")
async def list_logs(
    admin: AdminDep,
    session: SessionDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    action: str | None = None,
    key_prefix: str | None = None,
) -> dict[str, Any]:
    result = await AuditReader(session).list_events(
        page=page,
        limit=limit,
        action=action,
        key_prefix=key_prefix,
    )
    view = AuditLogView(
        logs=[AuditEventView.from_model(e) for e in result.events],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
        action_breakdown=[
            ActionCount(action=action_name, count=count)
            for action_name, count in result.breakdown
        ],
    )
    return _ok(view.model_dump(mode="json"))


# ---- Settings ----


@router.get("/settings")
async def get_gateway_settings(
    admin: AdminDep, service: SettingsServiceDep
) -> dict[str, Any]:
    row = await service.get()
    return _ok(SettingsPayload.from_model(row).model_dump())


@router.put("/settings")
async def update_gateway_settings(
    body: SettingsPayload,
    admin: AdminDep,
    service: SettingsServiceDep,
) -> dict[str, Any]:
    row = await service.update(body.model_dump(), actor_id=admin.id)
    return _ok(SettingsPayload.from_model(row).model_dump())
