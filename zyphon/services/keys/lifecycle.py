"""API key lifecycle: create, rotate, revoke, list.

Every mutation commits before its audit event is dispatched, so the audit
trail never records a change that was rolled back.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from zyphon.errors import ConflictError, NotFoundError, ValidationError
from zyphon.models.api_key import ApiKey
from zyphon.services.audit import AuditLogger
from zyphon.services.keys.credentials import generate_key
from zyphon.services.keys.scopes import VALID_SCOPES, invalid_scopes
from zyphon.services.keys.store import ApiKeyStore
from zyphon.utils.datetime import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class IssuedKey:
    """A persisted key plus its plaintext, which is returned exactly once."""

    key: ApiKey
    plaintext: str


class ApiKeyService:
    """Administrator-driven key management."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        pepper: str,
        audit: AuditLogger,
    ) -> None:
        self._session = session
        self._store = ApiKeyStore(session)
        self._pepper = pepper
        self._audit = audit
        self._log = logger.bind(component="api_key_service")

    async def list_keys(self) -> Sequence[ApiKey]:
        return await self._store.list_all()

    async def get_key(self, key_id: str) -> ApiKey:
        key = await self._store.get(key_id)
        if key is None:
            raise NotFoundError("API key not found")
        return key

    async def create_key(
        self,
        *,
        name: str,
        scopes: list[str],
        actor_id: str | None,
    ) -> IssuedKey:
        """Create a new active key.

        Raises:
            ValidationError: If any scope is not in the catalogue
        """
        unknown = invalid_scopes(scopes)
        if unknown:
            raise ValidationError(
                f"Invalid scopes: {', '.join(unknown)}. "
                f"Valid scopes: {', '.join(sorted(VALID_SCOPES))}"
            )

        issued = await self._issue(name=name, scopes=scopes, actor_id=actor_id)
        await self._session.commit()

        self._log.info(
            "api_key.created",
            key_id=issued.key.id,
            key_prefix=issued.key.key_prefix,
            actor_id=actor_id,
        )
        self._audit.log_event(
            "key.created",
            key_prefix=issued.key.key_prefix,
            actor_id=actor_id,
            metadata={
                "key_id": issued.key.id,
                "name": issued.key.name,
                "scopes": list(issued.key.scopes),
            },
        )
        return issued

    async def rotate_key(self, key_id: str, *, actor_id: str | None) -> IssuedKey:
        """Revoke ``key_id`` and issue a replacement with the same name and scopes.

        Both writes happen in one transaction: either the old key is revoked
        and the new key exists, or neither change is visible. Of two
        concurrent rotations of the same key, exactly one succeeds.

        Raises:
            NotFoundError: Unknown key
            ConflictError: Key already revoked or inactive
        """
        old = await self.get_key(key_id)
        if old.is_revoked:
            raise ConflictError("Cannot rotate a revoked key")

        try:
            await self._revoke(old, conflict="Cannot rotate a revoked key")
            issued = await self._issue(
                name=old.name,
                scopes=list(old.scopes),
                actor_id=actor_id,
                rotated_from_id=old.id,
            )
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        self._log.info(
            "api_key.rotated",
            old_key_id=old.id,
            old_key_prefix=old.key_prefix,
            new_key_id=issued.key.id,
            new_key_prefix=issued.key.key_prefix,
            actor_id=actor_id,
        )
        self._audit.log_event(
            "key.rotated",
            key_prefix=issued.key.key_prefix,
            actor_id=actor_id,
            metadata={
                "old_key_id": old.id,
                "old_key_prefix": old.key_prefix,
                "new_key_id": issued.key.id,
                "new_key_prefix": issued.key.key_prefix,
                "name": old.name,
            },
        )
        return issued

    async def revoke_key(self, key_id: str, *, actor_id: str | None) -> ApiKey:
        """Deactivate a key in place.

        Raises:
            NotFoundError: Unknown key
            ConflictError: Key already revoked
        """
        key = await self.get_key(key_id)
        if key.is_revoked:
            raise ConflictError("Key already revoked")

        try:
            await self._revoke(key, conflict="Key already revoked")
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        self._log.info(
            "api_key.revoked",
            key_id=key.id,
            key_prefix=key.key_prefix,
            actor_id=actor_id,
        )
        self._audit.log_event(
            "key.revoked",
            key_prefix=key.key_prefix,
            actor_id=actor_id,
            metadata={"key_id": key.id, "name": key.name},
        )
        return key

    async def _issue(
        self,
        *,
        name: str,
        scopes: list[str],
        actor_id: str | None,
        rotated_from_id: str | None = None,
    ) -> IssuedKey:
        generated = generate_key(self._pepper)
        key = ApiKey(
            id=str(uuid.uuid4()),
            name=name,
            key_hash=generated.key_hash,
            key_prefix=generated.key_prefix,
            scopes=list(scopes),
            is_active=True,
            created_by=actor_id,
            rotated_from_id=rotated_from_id,
        )
        await self._store.add(key)
        return IssuedKey(key=key, plaintext=generated.plaintext)

    async def _revoke(self, key: ApiKey, *, conflict: str) -> None:
        """Flip ``key`` from active to revoked in the current transaction.

        The row is only updated while it is still active, so a concurrent
        writer that revoked it first makes this raise instead of revoking
        twice.

        Raises:
            ConflictError: The key was revoked by someone else
        """
        result = await self._session.execute(
            update(ApiKey)
            .where(
                ApiKey.id == key.id,
                ApiKey.is_active == True,  # noqa: E712
                ApiKey.revoked_at.is_(None),
            )
            .values(is_active=False, revoked_at=utcnow())
        )
        if result.rowcount != 1:
            raise ConflictError(conflict)
