"""
MongoDB Connection Management
Process-wide Motor client shared by every repository and the subject lock.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import IndexModel
from pymongo.errors import PyMongoError
from typing import Dict, List, Optional
from ..config import settings
from ..utils.observability import logger


# collection -> indexes created at startup
INDEXES: Dict[str, List[IndexModel]] = {
    "lead_intelligence": [
        # One live profile per subject; the upsert relies on it
        IndexModel([("org_id", 1), ("subject_key", 1)], unique=True, name="idx_org_subject_unique"),
        IndexModel([("org_id", 1), ("lead_id", 1)], name="idx_org_lead"),
        IndexModel([("org_id", 1), ("contact_id", 1)], name="idx_org_contact"),
        IndexModel([("org_id", 1), ("overall_score", -1)], name="idx_org_overall_score"),
    ],
    "lead_insights": [
        IndexModel([("lead_intelligence_id", 1), ("created_at", -1)], name="idx_profile_insights"),
        IndexModel([("org_id", 1), ("is_read", 1), ("action_required", -1)], name="idx_org_insight_state"),
    ],
    "lead_predictions": [
        IndexModel([("lead_intelligence_id", 1), ("created_at", -1)], name="idx_profile_predictions"),
    ],
    "communication_optimizations": [
        IndexModel([("lead_intelligence_id", 1)], unique=True, name="idx_optimization_profile_unique"),
    ],
    "intelligence_locks": [
        IndexModel([("expires_at", 1)], expireAfterSeconds=0, name="idx_lease_ttl"),
    ],
    # CRM-owned signal sources, read only here
    "email_threads": [
        IndexModel([("org_id", 1), ("updated_at", -1)], name="idx_org_threads_recent"),
    ],
    "tasks": [
        IndexModel([("org_id", 1), ("linked_contact_id", 1), ("linked_lead_id", 1)], name="idx_org_task_links"),
    ],
    "calendar_events": [
        IndexModel([("org_id", 1), ("start", -1)], name="idx_org_event_start"),
    ],
}


class DatabaseManager:
    """
    Singleton owner of the Motor client.

    `connect()` is idempotent and rebuilds the client when the previous one
    belongs to a closed event loop (common across test cases).
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self) -> None:
        if self._client is not None:
            try:
                await self._client.admin.command("ping")
                return
            except (RuntimeError, PyMongoError):
                logger.warning("Stale MongoDB client, reconnecting")
                self._client = None
                self._database = None

        logger.bind(
            database=settings.mongodb_database,
            max_pool_size=settings.mongodb_max_pool_size,
            environment=settings.environment
        ).info("Connecting to MongoDB")
        # tz_aware so stored timestamps compare against aware UTC "now" values
        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            minPoolSize=settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
            tz_aware=True,
        )
        self._database = self._client[settings.mongodb_database]

    async def disconnect(self) -> None:
        """Close the client. Safe to call when already closed."""
        if self._client is None:
            return

        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed")

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise RuntimeError("Database not connected. Call await db_manager.connect() first.")
        return self._database

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("Database client not connected. Call await db_manager.connect() first.")
        return self._client

    async def ping(self) -> bool:
        """True when the server answers; used by the readiness probe."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def create_indexes(self) -> None:
        """Create every index in INDEXES. Existing identical indexes are left as is."""
        db = self.database
        for collection, indexes in INDEXES.items():
            names = await db[collection].create_indexes(indexes)
            logger.debug(f"Indexes ready on {collection}: {names}")

        logger.info(f"MongoDB indexes ensured on {len(INDEXES)} collections")


db_manager = DatabaseManager()


async def get_database() -> AsyncIOMotorDatabase:
    """The connected database, for callers that do not hold the manager."""
    return db_manager.database
