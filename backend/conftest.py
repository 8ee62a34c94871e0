"""Pytest configuration: set test env before any filedock imports so DB and JWT use test values."""

import asyncio
import os
import tempfile

import pytest
import pytest_asyncio

# Set before filedock.db.session or filedock.config are used so engine and settings use test paths
_tmp = tempfile.mkdtemp(prefix="filedock_test_")
_db_path = os.path.join(_tmp, "test.db")
os.environ.setdefault("FILEDOCK_DB_PATH", _db_path)
os.environ.setdefault("FILEDOCK_STORAGE_BASE_PATH", os.path.join(_tmp, "files"))
os.environ.setdefault("FILEDOCK_JWT_SECRET", "test-jwt-secret-at-least-32-characters-long")
# Bootstrap admin for API tests (login as admin / adminpass123)
os.environ.setdefault("FILEDOCK_ADMIN_USERNAME", "admin")
os.environ.setdefault("FILEDOCK_ADMIN_INITIAL_PASSWORD", "adminpass123")


@pytest.fixture(scope="session")
def init_test_db():
    """Create tables once per test session in the shared test DB file."""
    from filedock.db.session import init_db

    asyncio.run(init_db())


@pytest.fixture
def session_factory(init_test_db):
    """Yield get_session so tests can use async with session_factory() as session."""
    from filedock.db.session import get_session
    return get_session


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory SQLite session per test (catalog and service tests)."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from filedock.db.session import Base
    from filedock.files import models as _files_models  # noqa: F401 - register with Base
    from filedock.users import models as _users_models  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def store(db_session):
    """FileStore over the in-memory session."""
    from filedock.files.store import FileStore
    return FileStore(db_session)
