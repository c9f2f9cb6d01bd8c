"""FastAPI dependencies for the Zyphon API.

Provides dependency injection for:
- Database sessions
- Long-lived services created in the lifespan (app.state)
- Admin session authentication
- Client metadata (IP, request id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from zyphon.config import get_settings
from zyphon.db.session import get_session_dependency
from zyphon.errors import ForbiddenError, UnauthorizedError
from zyphon.services.audit import AuditLogger
from zyphon.services.gateway import CapabilityHandler, GatewayPipeline
from zyphon.services.keys import ApiKeyService, ApiKeyStore, KeyVerifier
from zyphon.services.settings import SettingsService

logger = structlog.get_logger()

SessionDep = Annotated[AsyncSession, Depends(get_session_dependency)]


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def get_request_id(request: Request) -> str:
    return request.state.request_id


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit_logger


AuditDep = Annotated[AuditLogger, Depends(get_audit_logger)]


# ---- Admin authentication ----


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated admin console user."""

    id: str
    role: str


def require_admin(request: Request) -> AdminPrincipal:
    """Authenticate the admin console session cookie.

    The cookie carries a signed JWT issued by the portal login flow with the
    user id in ``sub`` (or ``id``) and the user's ``role``.

    Raises:
        UnauthorizedError: Missing, expired or badly signed token
        ForbiddenError: Authenticated user is not an admin
    """
    security = get_settings().security
    token = request.cookies.get(security.admin_cookie_name)
    if not token:
        raise UnauthorizedError()

    try:
        claims = jwt.decode(
            token,
            security.admin_jwt_secret,
            algorithms=[security.admin_jwt_algorithm],
        )
    except jwt.PyJWTError as e:
        logger.info("admin.auth_failed", error=str(e))
        raise UnauthorizedError()

    user_id = claims.get("sub") or claims.get("id")
    if not user_id:
        raise UnauthorizedError()

    role = str(claims.get("role", ""))
    if role != security.admin_role:
        logger.info("admin.forbidden", user_id=user_id, role=role)
        raise ForbiddenError()

    return AdminPrincipal(id=str(user_id), role=role)


AdminDep = Annotated[AdminPrincipal, Depends(require_admin)]


# ---- Services ----


async def get_key_service(session: SessionDep, audit: AuditDep) -> ApiKeyService:
    """Get ApiKeyService with injected dependencies."""
    return ApiKeyService(
        session,
        pepper=get_settings().security.key_pepper,
        audit=audit,
    )


async def get_settings_service(session: SessionDep, audit: AuditDep) -> SettingsService:
    return SettingsService(session, audit=audit)


async def get_gateway_pipeline(
    request: Request,
    session: SessionDep,
    audit: AuditDep,
) -> GatewayPipeline:
    """Get GatewayPipeline bound to this request's session."""
    state = request.app.state
    settings = get_settings()
    verifier = KeyVerifier(
        ApiKeyStore(session),
        pepper=settings.security.key_pepper,
        dispatcher=state.dispatcher,
        session_factory=state.session_factory,
    )
    return GatewayPipeline(
        verifier=verifier,
        limiter=state.rate_limiter,
        rate_limits=settings.rate_limits,
        audit=audit,
        settings=SettingsService(session),
    )


def get_capability_handler(name: str):
    """Factory for a dependency returning the handler registered for ``name``."""

    def dependency(request: Request) -> CapabilityHandler:
        return request.app.state.capability_handlers[name]

    return dependency


KeyServiceDep = Annotated[ApiKeyService, Depends(get_key_service)]
SettingsServiceDep = Annotated[SettingsService, Depends(get_settings_service)]
GatewayDep = Annotated[GatewayPipeline, Depends(get_gateway_pipeline)]
ClientIPDep = Annotated[str, Depends(get_client_ip)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
