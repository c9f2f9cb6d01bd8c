"""Admin-editable gateway settings (singleton row)."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from zyphon.models.settings import DEFAULT_SETTINGS_ID, GatewaySettings
from zyphon.services.audit import AuditLogger
from zyphon.utils.datetime import utcnow

logger = structlog.get_logger()

EDITABLE_FIELDS = (
    "default_language_mode",
    "strict_no_third_language",
    "default_max_tokens",
    "external_endpoint_enabled",
)


class SettingsService:
    """Reads and updates the gateway settings row."""

    def __init__(self, session: AsyncSession, *, audit: AuditLogger | None = None) -> None:
        self._session = session
        self._audit = audit

    async def get(self) -> GatewaySettings:
        """Current settings; defaults if the row was never written."""
        row = await self._session.get(GatewaySettings, DEFAULT_SETTINGS_ID)
        return row or GatewaySettings()

    async def update(self, values: dict[str, Any], *, actor_id: str | None) -> GatewaySettings:
        """Upsert the settings row and audit the change."""
        row = await self._session.get(GatewaySettings, DEFAULT_SETTINGS_ID)
        if row is None:
            row = GatewaySettings(id=DEFAULT_SETTINGS_ID)

        for field in EDITABLE_FIELDS:
            if field in values:
                setattr(row, field, values[field])
        row.updated_by = actor_id
        row.updated_at = utcnow()

        self._session.add(row)
        await self._session.commit()

        logger.info("settings.updated", actor_id=actor_id)
        if self._audit is not None:
            self._audit.log_event(
                "settings.updated",
                actor_id=actor_id,
                metadata={f: values[f] for f in EDITABLE_FIELDS if f in values},
            )
        return row
