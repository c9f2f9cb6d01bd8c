"""Datetime helpers.

Timestamps are stored as naive UTC datetimes. ``utcnow()`` produces them
without the deprecated ``datetime.utcnow()``.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)
