"""Gateway runtime settings, editable from the admin console."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from zyphon.utils.datetime import utcnow

DEFAULT_SETTINGS_ID = 1


class GatewaySettings(SQLModel, table=True):
    """Singleton row (id=1) holding admin-editable gateway behaviour."""

    __tablename__ = "zyphon_settings"

    id: int = Field(default=DEFAULT_SETTINGS_ID, primary_key=True)
    default_language_mode: str = Field(default="auto")  # auto | locked_ar | locked_en
    strict_no_third_language: bool = Field(default=True)
    default_max_tokens: int = Field(default=2048)
    external_endpoint_enabled: bool = Field(default=True)
    updated_by: Optional[str] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)
