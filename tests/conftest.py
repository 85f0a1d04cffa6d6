"""Pytest configuration and fixtures."""
import os

# Settings require these; tests never talk to a real identity provider.
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from pymongo.errors import PyMongoError

from app.config import settings
from app.database import Database
from app.main import app
from app.utils.auth import create_access_token


@pytest_asyncio.fixture
async def test_database():
    """
    Connect to a throwaway test database.

    Skips the test when no MongoDB server is reachable.
    """
    database = Database(
        settings.mongodb_url,
        f"{settings.mongodb_db_name}_test",
        timeout_ms=1000,
    )
    try:
        await database.connect()
    except PyMongoError:
        await database.disconnect()
        pytest.skip("MongoDB is not reachable")

    yield database

    # Cleanup: drop test database
    await database.client.drop_database(database.db_name)
    await database.disconnect()


@pytest_asyncio.fixture
async def app_client(test_database):
    """
    Create a test client with a clean test database.

    This fixture:
    - Attaches the test database to the application
    - Yields an async HTTP client for testing
    - Detaches the database after each test
    """
    app.state.database = test_database

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    del app.state.database


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user ID."""

    def make_headers(user_id: str) -> dict:
        token = create_access_token(user_id=user_id)
        return {"Authorization": f"Bearer {token}"}

    return make_headers


@pytest_asyncio.fixture
async def seed(test_database):
    """
    Insert users, departments, projects and tasks.

    Returns a coroutine function taking keyword lists of documents, e.g.
    ``await seed(users=[...], projects=[...])``.
    """

    async def insert(**collections):
        for name, docs in collections.items():
            if docs:
                await test_database.get_collection(name).insert_many(docs)

    return insert
