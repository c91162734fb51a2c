"""
Pytest configuration and fixtures for ViewGuard tests
"""

import os
import sys
from collections.abc import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Import Base first, before importing the app
from viewguard.database import Base

# SQLite file database by default; set TEST_DATABASE_URL to run against PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_viewguard.db")

# A fresh connection per session keeps the async driver off foreign event loops
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"timeout": 30} if TEST_DATABASE_URL.startswith("sqlite") else {},
)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

# Now import and patch the app's database components
import viewguard.database as database_module  # noqa: E402
from main import app  # noqa: E402
from viewguard.middleware.rate_limit import limiter  # noqa: E402

database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal


@pytest.fixture(scope="function")
async def setup_test_database():
    """Create every table before the test and drop them afterwards."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    try:
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    except Exception as e:
        import logging

        logging.warning(f"Error during test cleanup: {e}")


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session on a freshly created schema."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def client(setup_test_database):
    """Test client for the FastAPI application with the test database."""
    limiter.reset()
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
