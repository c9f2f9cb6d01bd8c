"""The gateway envelope around a capability call.

Every request runs the same fixed sequence:

    enabled? -> authenticate -> authorize -> rate limit -> validate
             -> execute -> audit -> respond

Any failure before execution rejects the request with the matching error
and a ``<capability>.denied`` audit event. Upstream failures are audited as
``<capability>.error`` and surfaced as 502.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from zyphon.config import RateLimitConfig
from zyphon.errors import (
    ForbiddenError,
    RateLimitedError,
    ServiceUnavailableError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
    ZyphonError,
    first_validation_message,
)
from zyphon.services.audit import AuditLogger
from zyphon.services.gateway.context import GatewayContext, GatewayStage
from zyphon.services.gateway.handlers import CapabilityHandler
from zyphon.services.keys.credentials import extract_bearer_token
from zyphon.services.keys.scopes import has_scope
from zyphon.services.keys.verifier import KeyVerifier
from zyphon.services.providers.base import GenerationError
from zyphon.services.ratelimit.limiter import RateLimiter
from zyphon.services.settings import SettingsService
from zyphon.services.storage import StorageError

logger = structlog.get_logger()


@dataclass
class GatewayResult:
    data: dict[str, Any]
    headers: dict[str, str]


class GatewayPipeline:
    """Composes verification, scopes, rate limiting and audit around handlers."""

    def __init__(
        self,
        *,
        verifier: KeyVerifier,
        limiter: RateLimiter,
        rate_limits: RateLimitConfig,
        audit: AuditLogger,
        settings: SettingsService,
    ) -> None:
        self._verifier = verifier
        self._limiter = limiter
        self._rate_limits = rate_limits
        self._audit = audit
        self._settings = settings
        self._log = logger.bind(component="gateway")

    async def handle(
        self,
        handler: CapabilityHandler,
        *,
        authorization: str | None,
        body: bytes,
        request_id: str,
        ip: str,
        user_agent: str,
    ) -> GatewayResult:
        capability = handler.capability
        ctx = GatewayContext(
            capability=capability,
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
            settings=await self._settings.get(),
        )

        if not ctx.settings.external_endpoint_enabled:
            raise self._reject(
                ctx,
                ServiceUnavailableError("External API is disabled"),
                reason="endpoint_disabled",
            )

        # authenticate
        verification = await self._verifier.verify(extract_bearer_token(authorization))
        ctx.key = verification.key
        if not verification.valid:
            raise self._reject(ctx, UnauthorizedError(), reason=str(verification.reason))
        ctx.stage = GatewayStage.AUTHENTICATED

        # authorize
        if not has_scope(ctx.key, capability.required_scope):
            raise self._reject(
                ctx,
                ForbiddenError(f"Missing required scope: {capability.required_scope}"),
                reason="insufficient_scope",
                required=str(capability.required_scope),
            )
        ctx.stage = GatewayStage.AUTHORIZED

        # rate limit
        rule = self._rate_limits.rule_for(capability.endpoint_class)
        rate = self._limiter.check(
            ctx.key.id, ip, rule, endpoint_class=capability.endpoint_class
        )
        if rate.limited:
            raise self._reject(
                ctx,
                RateLimitedError(
                    limit=rate.limit,
                    reset_at=rate.reset_at,
                    retry_after=rate.retry_after(self._limiter.now()),
                ),
                reason="rate_limited",
                reset_at=rate.reset_at,
            )
        ctx.stage = GatewayStage.RATE_CHECKED

        # validate
        try:
            payload = self._validate(handler, body)
        except ValidationError as e:
            raise self._reject(ctx, e, reason="invalid_request", detail=e.message)
        ctx.stage = GatewayStage.VALIDATED

        # execute
        try:
            outcome = await handler.execute(payload, ctx)
        except (GenerationError, StorageError) as e:
            ctx.stage = GatewayStage.FAILED
            self._record(ctx, capability.error_action, {"error": str(e)})
            self._log.warning(
                "gateway.upstream_failed",
                capability=capability.name,
                request_id=request_id,
                key_prefix=ctx.key_prefix,
                error=str(e),
            )
            raise UpstreamError(f"Failed to generate {capability.name}")
        except Exception as e:
            ctx.stage = GatewayStage.FAILED
            self._record(ctx, capability.error_action, {"error": type(e).__name__})
            raise
        ctx.stage = GatewayStage.EXECUTED

        self._record(
            ctx,
            capability.success_action,
            {"duration_ms": ctx.elapsed_ms(), **outcome.metadata},
        )
        ctx.stage = GatewayStage.RESPONDED
        self._log.info(
            "gateway.completed",
            capability=capability.name,
            request_id=request_id,
            key_prefix=ctx.key_prefix,
            duration_ms=ctx.elapsed_ms(),
        )
        return GatewayResult(data=outcome.data, headers=rate.headers())

    def _validate(self, handler: CapabilityHandler, body: bytes) -> Any:
        limit = handler.max_body_bytes
        if limit is not None and len(body) > limit:
            raise ValidationError(f"Payload too large: maximum is {limit} bytes")

        try:
            decoded = json.loads(body)
        except ValueError:
            raise ValidationError("Invalid JSON body")

        try:
            payload = handler.parse(decoded)
        except PydanticValidationError as e:
            raise ValidationError(first_validation_message(e.errors()))

        handler.check(payload)
        return payload

    def _reject(
        self,
        ctx: GatewayContext,
        error: ZyphonError,
        *,
        reason: str,
        **extra: Any,
    ) -> ZyphonError:
        self._log.info(
            "gateway.rejected",
            capability=ctx.capability.name,
            stage=str(ctx.stage),
            reason=reason,
            request_id=ctx.request_id,
            key_prefix=ctx.key_prefix,
            ip=ctx.ip,
        )
        ctx.stage = GatewayStage.REJECTED
        self._record(ctx, ctx.capability.denied_action, {"reason": reason, **extra})
        return error

    def _record(self, ctx: GatewayContext, action: str, metadata: dict[str, Any]) -> None:
        self._audit.log_event(
            action,
            key_prefix=ctx.key_prefix,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            metadata={"request_id": ctx.request_id, **metadata},
        )
