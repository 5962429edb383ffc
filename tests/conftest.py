"""
Shared test fixtures for the Knowmark test suite.

Async throughout (aiosqlite + AsyncSession); every test gets a fresh
in-memory database. Key material is generated once per session.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RSA_KEY_SIZE"] = "2048"
os.environ["ADMIN_USERNAMES"] = "admin,root_admin"
os.environ["CORS_ORIGINS"] = '["*"]'

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from knowmark.api.v1.deps import get_db
from knowmark.core.keys import KeyMaterial, load_key_material
from knowmark.db.base import Base
from knowmark.db.user_store import SqlUserStore
from knowmark.main import app
from knowmark.services.users import UserService

TEST_ROUNDS = 4
TEST_ADMINS = ("admin", "root_admin")


@pytest.fixture(scope="session")
def key_material(tmp_path_factory) -> KeyMaterial:
    """Salt + a 2048-bit signing pair; 4096 bits would slow the suite down."""
    return load_key_material(tmp_path_factory.mktemp("security"), key_size=2048)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_service(db_session, key_material) -> UserService:
    return UserService(
        SqlUserStore(db_session),
        key_material,
        rounds=TEST_ROUNDS,
        admin_usernames=TEST_ADMINS,
    )


@pytest.fixture
async def async_client(session_factory, key_material) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app.

    The base URL is plain http, so the client never echoes the Secure auth
    cookie on its own; tests attach it explicitly.
    """

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.key_material = key_material

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
