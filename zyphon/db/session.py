"""Async database engine and sessions.

Request handlers get a session through ``get_session_dependency``. Background
work (audit writes, last-used updates) opens its own short session with
``get_async_session`` because the request session may already be closed by
the time the task runs.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import zyphon.models  # noqa: F401  (registers tables on SQLModel.metadata)
from zyphon.config import DatabaseConfig, get_settings

logger = structlog.get_logger()

SQLITE_BUSY_TIMEOUT_SECONDS = 15

_engine: AsyncEngine | None = None
_session_maker: sessionmaker | None = None

# Opens a short-lived session outside the request scope
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _enable_sqlite_wal(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an engine for ``config.url``.

    SQLite gets WAL mode and a busy timeout so background writers and
    request sessions can interleave.
    """
    options: dict[str, Any] = {"echo": config.echo}
    is_sqlite = make_url(config.url).get_backend_name() == "sqlite"
    if is_sqlite:
        options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}

    engine = create_async_engine(config.url, **options)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_wal)
    return engine


def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings().database)
    return _engine


def _get_session_maker() -> sessionmaker:
    global _session_maker
    if _session_maker is None:
        _session_maker = sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def init_db() -> None:
    """Create missing tables. There are no migrations; tables are additive."""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("db.initialized", url=engine.url.render_as_string(hide_password=True))


async def close_db() -> None:
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        logger.info("db.closed")
    _engine = None
    _session_maker = None


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on clean exit and rolls back on error."""
    async with _get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping ``get_async_session``."""
    async with get_async_session() as session:
        yield session
