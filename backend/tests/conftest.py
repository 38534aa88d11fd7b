"""
Notedly Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test gets a fresh in-memory SQLite database (aiosqlite, one
       shared connection via StaticPool) with the full schema created from
       Base.metadata, plus services built from a test Settings value.

Fixture Hierarchy:
    engine ─┬─ session_factory ─┬─ db          (one session, never committed)
            │                   └─ test_client (HTTP, session per request)
            └─ test_settings ── identity/board/permission/note services
                                └─ alice, bob, carol (registered users)

SQLite ignores SELECT ... FOR UPDATE and isolation levels, so concurrency
behaviour is tested at the error-mapping level (test_database.py).
"""

import os

# Must be set before notedly.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["IDENTIFIER_SECRET"] = "test-secret"
os.environ["OAUTH_PROVIDERS"] = "github,google"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from notedly.config import Settings  # noqa: E402
from notedly.database import Base  # noqa: E402
from notedly.models.board import Board  # noqa: E402,F401
from notedly.models.note import Note  # noqa: E402,F401
from notedly.models.permission import Permission  # noqa: E402,F401
from notedly.models.user import User  # noqa: E402
from notedly.services.board_service import BoardService  # noqa: E402
from notedly.services.identity_service import IdentityService  # noqa: E402
from notedly.services.note_service import NoteService  # noqa: E402
from notedly.services.permission_service import PermissionService  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    One session for the whole test. Services only flush, so every write is
    visible to later calls in the same test; nothing is committed.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        identifier_secret="test-secret",
        oauth_providers="github,google",
    )


@pytest.fixture
def identity_service(test_settings) -> IdentityService:
    return IdentityService(test_settings)


@pytest.fixture
def board_service(test_settings) -> BoardService:
    return BoardService(test_settings)


@pytest.fixture
def permission_service() -> PermissionService:
    return PermissionService()


@pytest.fixture
def note_service(test_settings) -> NoteService:
    return NoteService(test_settings)


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def alice(db, identity_service) -> User:
    return await identity_service.resolve(db, "github", "1001", "alice@example.com", access_token="tok-alice")


@pytest_asyncio.fixture
async def bob(db, identity_service) -> User:
    return await identity_service.resolve(db, "github", "1002", "bob@example.com", access_token="tok-bob")


@pytest_asyncio.fixture
async def carol(db, identity_service) -> User:
    return await identity_service.resolve(db, "google", "g-2003", "carol@example.com", access_token="tok-carol")


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient routed straight into the FastAPI app.

    get_db_session is overridden with one that uses the test engine and
    commits per request, like the real dependency.
    """
    from notedly.database import get_db_session
    from notedly.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
