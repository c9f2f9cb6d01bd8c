"""Counter storage for fixed-window rate limiting.

The limiter only depends on the ``RateLimitStore`` protocol, so the
in-process store can be replaced by a shared one (e.g. Redis) without
touching handler code.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol


@dataclass
class WindowState:
    """Counter for one (endpoint class, identity, IP) key."""

    count: int
    reset_at: float  # epoch seconds


class RateLimitStore(Protocol):
    """Atomic per-key window counter."""

    def increment(
        self,
        key: str,
        *,
        window_seconds: float,
        cap: int,
        now: float,
    ) -> WindowState:
        """Count one request against ``key`` and return the resulting state.

        Starts a fresh window (count=1) if none exists or ``now`` has reached
        its reset time. Otherwise increments, but never past ``cap + 1`` so
        repeated rejections within a window leave the state unchanged.
        """
        ...

    def purge_expired(self, now: float) -> int:
        """Drop windows whose reset time has passed. Returns the number removed."""
        ...


class InMemoryRateLimitStore:
    """Process-local store. Counters reset on restart and are not shared
    between workers.
    """

    def __init__(self) -> None:
        self._windows: dict[str, WindowState] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def increment(
        self,
        key: str,
        *,
        window_seconds: float,
        cap: int,
        now: float,
    ) -> WindowState:
        with self._lock:
            state = self._windows.get(key)
            if state is None or now >= state.reset_at:
                state = WindowState(count=1, reset_at=now + window_seconds)
                self._windows[key] = state
            elif state.count <= cap:
                state.count += 1
            return WindowState(count=state.count, reset_at=state.reset_at)

    def purge_expired(self, now: float) -> int:
        with self._lock:
            expired = [k for k, s in self._windows.items() if now >= s.reset_at]
            for key in expired:
                del self._windows[key]
            return len(expired)
