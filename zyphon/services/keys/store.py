"""Persistence for API keys."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from zyphon.models.api_key import ApiKey
from zyphon.utils.datetime import utcnow


class ApiKeyStore:
    """Thin query layer over the ``zyphon_api_keys`` table.

    Never commits: callers own the transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, key: ApiKey) -> ApiKey:
        self._session.add(key)
        await self._session.flush()
        return key

    async def get(self, key_id: str) -> ApiKey | None:
        return await self._session.get(ApiKey, key_id)

    async def find_by_hash(self, key_hash: str) -> ApiKey | None:
        """Exact lookup on the stored HMAC digest."""
        result = await self._session.execute(
            select(ApiKey).where(ApiKey.key_hash == key_hash)
        )
        return result.scalars().first()

    async def list_all(self) -> Sequence[ApiKey]:
        """All keys, newest first."""
        result = await self._session.execute(
            select(ApiKey).order_by(ApiKey.created_at.desc())
        )
        return result.scalars().all()

    async def touch_last_used(self, key_id: str) -> None:
        key = await self._session.get(ApiKey, key_id)
        if key is None:
            return
        key.last_used_at = utcnow()
        self._session.add(key)
        await self._session.flush()
