from ._schema import SCHEMA_VERSION, SQLITE_SCHEMA_SQL, POSTGRES_SCHEMA_SQL
from ._database import Database, ExecuteResult, IntegrityError
from .pools import PoolRepo
from .statistics import StatisticsRepo
from .blocks import BlockRepo
from .subscriptions import SubscriptionRepo
from .alert_history import AlertHistoryRepo
from .network import NetworkStatsRepo
from .manager import StorageManager, create_database

__all__ = [
    "SCHEMA_VERSION",
    "SQLITE_SCHEMA_SQL",
    "POSTGRES_SCHEMA_SQL",
    "Database",
    "ExecuteResult",
    "IntegrityError",
    "PoolRepo",
    "StatisticsRepo",
    "BlockRepo",
    "SubscriptionRepo",
    "AlertHistoryRepo",
    "NetworkStatsRepo",
    "StorageManager",
    "create_database",
]
