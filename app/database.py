"""MongoDB database connection using Motor (async driver)."""
import logging
from typing import Optional

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from app.errors import StorageError


log = logging.getLogger(__name__)


TIME_ENTRY_INDEXES = [
    # At most one running timer per user, enforced by the database so it
    # holds across processes and restarts.
    IndexModel(
        [("user_id", ASCENDING)],
        name="one_running_timer_per_user",
        unique=True,
        partialFilterExpression={"status": "running"},
    ),
    IndexModel(
        [("user_id", ASCENDING), ("date", DESCENDING), ("created_at", DESCENDING)],
        name="user_date_created",
    ),
    IndexModel([("project_id", ASCENDING), ("date", DESCENDING)], name="project_date"),
]


class Database:
    """MongoDB connection manager.

    One instance is created per application at startup and closed at
    shutdown; request handlers receive it through ``get_database``.
    """

    def __init__(self, url: str, db_name: str, timeout_ms: int = 5000):
        self.url = url
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure required indexes exist."""
        self.client = AsyncIOMotorClient(
            self.url,
            serverSelectionTimeoutMS=self.timeout_ms,
            tz_aware=True,
        )
        self.db = self.client[self.db_name]
        await self.ensure_indexes()
        log.info("Connected to MongoDB: %s", self.db_name)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            log.info("Disconnected from MongoDB")

    async def ensure_indexes(self) -> None:
        await self.get_collection("time_entries").create_indexes(TIME_ENTRY_INDEXES)

    async def ping(self) -> bool:
        """Return True when the server answers a ping."""
        if self.client is None:
            return False
        try:
            await self.client.admin.command("ping")
        except Exception:
            log.warning("MongoDB ping failed", exc_info=True)
            return False
        return True

    def get_collection(self, name: str):
        """Get a MongoDB collection."""
        if self.db is None:
            raise StorageError("Database not connected")
        return self.db[name]


async def get_database(request: Request) -> AsyncIOMotorDatabase:
    """Dependency to get the database attached to the running application."""
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None or database.db is None:
        raise StorageError("Database not connected")
    return database.db
