"""Append-only audit trail.

Writes are fire-and-forget: ``AuditLogger.log_event`` schedules the insert on
the background dispatcher and returns immediately. A failed write is logged
for operators and never propagates to the request that triggered it.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from zyphon.db.session import SessionFactory
from zyphon.models.audit import AuditEvent
from zyphon.services.background import BackgroundDispatcher

logger = structlog.get_logger()

# Metadata keys that must never reach the audit table
_SECRET_FIELDS = frozenset(
    {
        "api_key",
        "authorization",
        "key",
        "key_hash",
        "password",
        "plaintext",
        "raw_key",
        "secret",
        "token",
    }
)

BREAKDOWN_SIZE = 10


def scrub_metadata(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop secret-bearing entries from an audit payload."""
    if not metadata:
        return {}
    return {k: v for k, v in metadata.items() if k.lower() not in _SECRET_FIELDS}


class AuditLogger:
    """Records privileged actions without blocking the caller."""

    def __init__(
        self,
        dispatcher: BackgroundDispatcher,
        session_factory: SessionFactory,
    ) -> None:
        self._dispatcher = dispatcher
        self._session_factory = session_factory
        self._log = logger.bind(component="audit")

    def log_event(
        self,
        action: str,
        *,
        key_prefix: str | None = None,
        actor_id: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Schedule one audit insert. Never raises."""
        event = AuditEvent(
            action=action,
            key_prefix=key_prefix,
            actor_id=actor_id,
            ip=ip,
            user_agent=user_agent,
            meta=scrub_metadata(metadata),
        )
        try:
            self._dispatcher.dispatch(self._write(event), name=f"audit.write:{action}")
        except RuntimeError as e:
            # No running loop
            self._log.error("audit.dispatch_failed", action=action, error=str(e))

    async def _write(self, event: AuditEvent) -> None:
        try:
            async with self._session_factory() as session:
                session.add(event)
        except Exception as e:
            self._log.error(
                "audit.write_failed",
                action=event.action,
                key_prefix=event.key_prefix,
                error=str(e),
            )


@dataclass
class AuditPage:
    """One page of audit events plus the action breakdown."""

    events: Sequence[AuditEvent]
    total: int
    page: int
    limit: int
    breakdown: list[tuple[str, int]]

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class AuditReader:
    """Read-only queries over the audit table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_events(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        action: str | None = None,
        key_prefix: str | None = None,
    ) -> AuditPage:
        """Newest-first page, filtered by action substring and key prefix."""
        conditions = []
        if action:
            conditions.append(AuditEvent.action.contains(action))
        if key_prefix:
            conditions.append(AuditEvent.key_prefix.startswith(key_prefix))

        query = (
            select(AuditEvent)
            .where(*conditions)
            .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        events = (await self._session.execute(query)).scalars().all()

        count_query = select(func.count()).select_from(AuditEvent).where(*conditions)
        total = (await self._session.execute(count_query)).scalar_one()

        return AuditPage(
            events=events,
            total=total,
            page=page,
            limit=limit,
            breakdown=await self.action_breakdown(),
        )

    async def action_breakdown(self) -> list[tuple[str, int]]:
        """Most frequent actions across the whole trail."""
        count = func.count(AuditEvent.id).label("count")
        query = (
            select(AuditEvent.action, count)
            .group_by(AuditEvent.action)
            .order_by(count.desc(), AuditEvent.action)
            .limit(BREAKDOWN_SIZE)
        )
        rows = (await self._session.execute(query)).all()
        return [(row[0], row[1]) for row in rows]
