"""Audit event data model.

Append-only: rows are inserted by AuditLogger and never updated or deleted.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from zyphon.utils.datetime import utcnow


class AuditEvent(SQLModel, table=True):
    """One privileged action: a key lifecycle change or a gateway call."""

    __tablename__ = "zyphon_audit_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    action: str = Field(index=True)  # e.g. "key.rotated", "image.generated"
    key_prefix: Optional[str] = Field(default=None, index=True)
    actor_id: Optional[str] = Field(default=None)
    ip: Optional[str] = Field(default=None)
    user_agent: Optional[str] = Field(default=None)
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=utcnow, index=True)
