"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from models.base import Base
import models  # noqa: F401
from tests.fakes import make_listing


@pytest.fixture
def listing_factory():
    return make_listing


@pytest.fixture
def database_path(tmp_path):
    return tmp_path / "test.db"


@pytest_asyncio.fixture(scope="function")
async def test_engine(database_path):
    """Create test database engine"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()
