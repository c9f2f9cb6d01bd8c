"""Fixed-window rate limiter keyed by (endpoint class, credential, client IP)."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from zyphon.config import RateLimitRule
from zyphon.services.ratelimit.store import RateLimitStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    """Admission decision for one request."""

    limited: bool
    remaining: int
    reset_at: float  # epoch seconds
    limit: int

    def retry_after(self, now: float) -> float:
        """Seconds until the current window resets."""
        return max(0.0, self.reset_at - now)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


def window_key(endpoint_class: str, identity: str, ip_address: str) -> str:
    return f"{endpoint_class}:{identity}:{ip_address}"


class RateLimiter:
    """Admits or rejects requests against per-endpoint-class rules.

    Windows at a boundary may admit up to 2x ``max_requests`` in a short span;
    that is inherent to fixed windows.
    """

    def __init__(
        self,
        store: RateLimitStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._log = logger.bind(component="rate_limiter")

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def now(self) -> float:
        return self._clock()

    def check(
        self,
        identity: str,
        ip_address: str,
        rule: RateLimitRule,
        *,
        endpoint_class: str,
    ) -> RateLimitResult:
        """Count one request and decide whether it is admitted."""
        state = self._store.increment(
            window_key(endpoint_class, identity, ip_address),
            window_seconds=rule.window_seconds,
            cap=rule.max_requests,
            now=self._clock(),
        )
        limited = state.count > rule.max_requests
        if limited:
            self._log.info(
                "ratelimit.exceeded",
                endpoint_class=endpoint_class,
                ip=ip_address,
                limit=rule.max_requests,
            )
        return RateLimitResult(
            limited=limited,
            remaining=max(0, rule.max_requests - state.count),
            reset_at=state.reset_at,
            limit=rule.max_requests,
        )
