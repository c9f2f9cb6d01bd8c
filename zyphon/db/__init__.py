"""Database layer."""

from zyphon.db.session import (
    SessionFactory,
    close_db,
    get_async_session,
    get_session_dependency,
    init_db,
)

__all__ = [
    "SessionFactory",
    "close_db",
    "get_async_session",
    "get_session_dependency",
    "init_db",
]
