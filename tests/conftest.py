"""Shared fixtures: temp-file SQLite database, background dispatcher and a
test application wired to fakes.

A file database (rather than :memory:) is used because background tasks open
their own sessions on separate connections.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import zyphon.models  # noqa: F401
from tests.fakes import (
    FakeChatProvider,
    FakeClock,
    FakeImageProvider,
    FakePdfRenderer,
    FakeStorage,
)
from zyphon.config import DatabaseConfig, get_settings
from zyphon.db.session import build_engine, get_session_dependency
from zyphon.services.background import BackgroundDispatcher
from zyphon.services.ratelimit import InMemoryRateLimitStore, RateLimiter

TEST_PEPPER = "test-pepper"


@pytest.fixture
async def db_engine(tmp_path: Path):
    engine = build_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'zyphon.db'}"))
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def session_factory(session_maker):
    """Same contract as ``zyphon.db.get_async_session``, bound to the test DB."""

    @asynccontextmanager
    async def factory():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def dispatcher():
    dispatcher = BackgroundDispatcher()
    yield dispatcher
    await dispatcher.drain()


@pytest.fixture
def pepper() -> str:
    return TEST_PEPPER


# ---- Application ----


@dataclass
class Fakes:
    """Fake capabilities installed into the test app."""

    chat: FakeChatProvider = field(
        default_factory=lambda: FakeChatProvider("Hello from Zyphon")
    )
    image: FakeImageProvider = field(default_factory=FakeImageProvider)
    pdf: FakePdfRenderer = field(default_factory=FakePdfRenderer)
    storage: FakeStorage = field(default_factory=FakeStorage)
    clock: FakeClock = field(default_factory=FakeClock)


@pytest.fixture
def fakes() -> Fakes:
    return Fakes()


@pytest.fixture
async def app(session_factory, fakes):
    """App with fake capabilities and the test database. Lifespan is not run."""
    from zyphon.main import create_app, install_services

    application = create_app()
    install_services(
        application,
        get_settings(),
        chat_provider=fakes.chat,
        image_provider=fakes.image,
        pdf_renderer=fakes.pdf,
        storage=fakes.storage,
        session_factory=session_factory,
        rate_limiter=RateLimiter(InMemoryRateLimitStore(), clock=fakes.clock),
    )

    async def session_override():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session_dependency] = session_override
    yield application
    await application.state.dispatcher.drain()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


def _admin_token(*, sub: str = "admin-1", role: str = "ADMIN") -> str:
    security = get_settings().security
    return jwt.encode(
        {"sub": sub, "role": role},
        security.admin_jwt_secret,
        algorithm=security.admin_jwt_algorithm,
    )


@pytest.fixture
async def admin_client(app):
    """Client carrying a valid admin console session cookie."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        c.cookies.set(get_settings().security.admin_cookie_name, _admin_token())
        yield c
