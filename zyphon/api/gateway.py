"""External gateway endpoints (API-key authenticated).

All four endpoints share the same envelope; the handler registered for each
capability owns its schema and upstream call. Bodies are read raw so that
authentication, scope and rate-limit failures are reported before payload
validation.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from zyphon.api.dependencies import (
    ClientIPDep,
    GatewayDep,
    RequestIdDep,
    get_capability_handler,
)
from zyphon.services.gateway import CHAT, DESIGN_SPEC, IMAGE, PDF, CapabilityHandler

router = APIRouter(prefix="/api/zyphon/v1", tags=["gateway"])


async def _run(
    request: Request,
    handler: CapabilityHandler,
    gateway: GatewayDep,
    request_id: str,
    ip: str,
) -> JSONResponse:
    result = await gateway.handle(
        handler,
        authorization=request.headers.get("authorization"),
        body=await request.body(),
        request_id=request_id,
        ip=ip,
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    return JSONResponse({"ok": True, "data": result.data}, headers=result.headers)


@router.post("/chat")
async def chat(
    request: Request,
    handler: Annotated[CapabilityHandler, Depends(get_capability_handler(CHAT.name))],
    gateway: GatewayDep,
    request_id: RequestIdDep,
    ip: ClientIPDep,
) -> JSONResponse:
    """Chat completion. Requires ``chat:write``."""
    return await _run(request, handler, gateway, request_id, ip)


@router.post("/image")
async def image(
    request: Request,
    handler: Annotated[CapabilityHandler, Depends(get_capability_handler(IMAGE.name))],
    gateway: GatewayDep,
    request_id: RequestIdDep,
    ip: ClientIPDep,
) -> JSONResponse:
    """Image generation, uploaded to storage. Requires ``image:generate``."""
    return await _run(request, handler, gateway, request_id, ip)


@router.post("/pdf")
async def pdf(
    request: Request,
    handler: Annotated[CapabilityHandler, Depends(get_capability_handler(PDF.name))],
    gateway: GatewayDep,
    request_id: RequestIdDep,
    ip: ClientIPDep,
) -> JSONResponse:
    """Teacher report / certificate PDF. Requires ``pdf:generate``."""
    return await _run(request, handler, gateway, request_id, ip)


@router.post("/design-spec")
async def design_spec(
    request: Request,
    handler: Annotated[
        CapabilityHandler, Depends(get_capability_handler(DESIGN_SPEC.name))
    ],
    gateway: GatewayDep,
    request_id: RequestIdDep,
    ip: ClientIPDep,
) -> JSONResponse:
    """Calligraphy design spec as JSON. Requires ``image:generate``."""
    return await _run(request, handler, gateway, request_id, ip)
