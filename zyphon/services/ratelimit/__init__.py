"""Fixed-window rate limiting."""

from zyphon.services.ratelimit.limiter import RateLimiter, RateLimitResult
from zyphon.services.ratelimit.store import (
    InMemoryRateLimitStore,
    RateLimitStore,
    WindowState,
)
from zyphon.services.ratelimit.sweeper import RateLimitSweeper

__all__ = [
    "InMemoryRateLimitStore",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimitSweeper",
    "RateLimiter",
    "WindowState",
]
