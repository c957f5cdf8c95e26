"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from chronos.config import settings

logger = logging.getLogger(__name__)

TIME_ENTRIES = "time_entries"

# Unique sparse index: only running entries carry ``active_owner``, so at most
# one running entry per owner can exist.
RUNNING_GUARD_INDEX = "one_running_entry_per_owner"


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure the time entry indexes exist."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)
        await ensure_indexes(self.db)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client is not None:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_collection(self, name: str):
        """Get a MongoDB collection."""
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db[name]


async def ensure_indexes(db) -> None:
    """
    Create the indexes the time entry core relies on.

    The running-entry guard is what makes starting a timer atomic with
    respect to other writers, so it has to exist before any writes.
    """
    entries = db[TIME_ENTRIES]
    await entries.create_index(
        [("active_owner", ASCENDING)],
        name=RUNNING_GUARD_INDEX,
        unique=True,
        sparse=True,
    )
    await entries.create_index(
        [("user_id", ASCENDING), ("start_time", DESCENDING)],
        name="owner_start_time",
    )
    logger.debug("Time entry indexes ensured")


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise RuntimeError("Database not connected")
    return database.db
