"""Bearer credential verification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

import structlog

from zyphon.db.session import SessionFactory
from zyphon.models.api_key import ApiKey
from zyphon.services.background import BackgroundDispatcher
from zyphon.services.keys.credentials import has_key_format, hash_key, hashes_match
from zyphon.services.keys.store import ApiKeyStore

logger = structlog.get_logger()


class VerifyReason(StrEnum):
    """Why a presented credential was rejected."""

    MISSING_TOKEN = "missing_token"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of verifying one presented credential."""

    valid: bool
    key: ApiKey | None = None
    reason: VerifyReason | None = None

    @classmethod
    def ok(cls, key: ApiKey) -> "VerifyResult":
        return cls(valid=True, key=key)

    @classmethod
    def rejected(cls, reason: VerifyReason, key: ApiKey | None = None) -> "VerifyResult":
        return cls(valid=False, key=key, reason=reason)


class KeyVerifier:
    """Resolves a presented plaintext key to its stored record.

    The last-used timestamp is updated in the background so a slow or
    failing write never delays or fails the request.
    """

    def __init__(
        self,
        store: ApiKeyStore,
        *,
        pepper: str,
        dispatcher: BackgroundDispatcher,
        session_factory: SessionFactory,
    ) -> None:
        self._store = store
        self._pepper = pepper
        self._dispatcher = dispatcher
        self._session_factory = session_factory
        self._log = logger.bind(component="key_verifier")

    async def verify(self, token: str | None) -> VerifyResult:
        """Verify ``token`` and return the key on success.

        A token without the ``zy_`` format is reported as not_found without
        touching storage.
        """
        if not token:
            return VerifyResult.rejected(VerifyReason.MISSING_TOKEN)
        if not has_key_format(token):
            return VerifyResult.rejected(VerifyReason.NOT_FOUND)

        presented_hash = hash_key(token, self._pepper)
        key = await self._store.find_by_hash(presented_hash)
        if key is None or not hashes_match(presented_hash, key.key_hash):
            return VerifyResult.rejected(VerifyReason.NOT_FOUND)

        if key.is_revoked:
            return VerifyResult.rejected(VerifyReason.REVOKED, key=key)

        self._dispatcher.dispatch(
            self._touch_last_used(key.id),
            name=f"keys.touch_last_used:{key.key_prefix}",
        )
        return VerifyResult.ok(key)

    async def _touch_last_used(self, key_id: str) -> None:
        async with self._session_factory() as session:
            await ApiKeyStore(session).touch_last_used(key_id)
        self._log.debug("keys.last_used_updated", key_id=key_id)
