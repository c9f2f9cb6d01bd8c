"""API Key data model.

Stores hashed API keys for gateway authentication.
Plaintext keys are never stored, only peppered HMAC-SHA256 hashes.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from zyphon.utils.datetime import utcnow


class ApiKey(SQLModel, table=True):
    """API key for the Zyphon external gateway.

    The key_prefix (first 12 chars of the plaintext) identifies the key in
    logs, audit events and admin listings. Keys are never hard-deleted:
    revocation sets is_active=False and revoked_at together.
    """

    __tablename__ = "zyphon_api_keys"

    id: str = Field(primary_key=True)
    name: str = Field(max_length=100)
    key_hash: str = Field(index=True, unique=True)  # HMAC-SHA256 hex digest
    key_prefix: str = Field(index=True)  # e.g. "zy_AbCdEfGhI"
    scopes: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    revoked_at: Optional[datetime] = Field(default=None)
    last_used_at: Optional[datetime] = Field(default=None)
    created_by: Optional[str] = Field(default=None)
    rotated_from_id: Optional[str] = Field(default=None)

    @property
    def is_revoked(self) -> bool:
        """Whether the key can no longer authenticate."""
        return not self.is_active or self.revoked_at is not None
