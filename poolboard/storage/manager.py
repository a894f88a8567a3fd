import logging
from typing import Optional

from ._database import Database
from ._migrate import apply_schema, seed_sample_data
from .alert_history import AlertHistoryRepo
from .blocks import BlockRepo
from .network import NetworkStatsRepo
from .pools import PoolRepo
from .statistics import StatisticsRepo
from .subscriptions import SubscriptionRepo

logger = logging.getLogger("storage")


def create_database(database_type: str, database_url: str) -> Database:
    """Build the backend named by DATABASE_TYPE; drivers are imported lazily."""
    kind = (database_type or "sqlite").lower()
    if kind == "sqlite":
        from .sqlite_backend import SQLiteDatabase
        path = database_url
        for prefix in ("sqlite://", "sqlite:"):
            if path.startswith(prefix):
                path = path[len(prefix):]
                break
        return SQLiteDatabase(path or "dev.db")
    if kind in ("postgresql", "postgres"):
        from .postgres_backend import PostgresDatabase
        return PostgresDatabase(database_url)
    raise ValueError(f"Unsupported DATABASE_TYPE: {database_type}")


class StorageManager:
    """Top-level manager: opens the database, applies the schema, exposes repos."""

    def __init__(self, db: Database, seed: bool = False):
        self.db = db
        self.seed = seed
        self.pools: Optional[PoolRepo] = None
        self.statistics: Optional[StatisticsRepo] = None
        self.blocks: Optional[BlockRepo] = None
        self.subscriptions: Optional[SubscriptionRepo] = None
        self.alert_history: Optional[AlertHistoryRepo] = None
        self.network: Optional[NetworkStatsRepo] = None
        self.initialized = False

    @classmethod
    def from_settings(cls, settings) -> "StorageManager":
        db = create_database(settings.DATABASE_TYPE, settings.DATABASE_URL)
        return cls(db, seed=settings.SEED_DATA)

    async def initialize(self):
        await self.db.connect()
        await apply_schema(self.db, logger)
        if self.seed:
            await seed_sample_data(self.db, logger)

        self.pools = PoolRepo(self.db)
        self.statistics = StatisticsRepo(self.db)
        self.blocks = BlockRepo(self.db)
        self.subscriptions = SubscriptionRepo(self.db)
        self.alert_history = AlertHistoryRepo(self.db)
        self.network = NetworkStatsRepo(self.db)
        self.initialized = True

        logger.info("Storage initialized (%s)", self.db.dialect)

    async def health_check(self) -> dict:
        if not self.initialized:
            return {"status": "unhealthy", "type": self.db.dialect, "error": "not initialized"}
        return await self.db.health_check()

    async def close(self):
        if self.initialized:
            await self.db.close()
            self.initialized = False
            logger.info("Storage closed")
