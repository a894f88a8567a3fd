import time
from typing import List, Optional

from ..models import PoolStatistic, parse_row, parse_rows
from ._database import Database

PERIOD_SECONDS = {
    "24h": 86400,
    "7d": 7 * 86400,
    "30d": 30 * 86400,
}


def period_cutoff(period: str, default: str, now: Optional[float] = None) -> float:
    """Epoch cutoff for a 24h/7d/30d window; unknown periods use `default`."""
    now = time.time() if now is None else now
    return now - PERIOD_SECONDS.get(period, PERIOD_SECONDS[default])


class StatisticsRepo:
    """Time-series rows in pool_statistics."""

    def __init__(self, db: Database):
        self._db = db

    async def insert(self, pool_id: str, hashrate: float, miners_count: int,
                     blocks_found_24h: int, luck_7d: float, difficulty: float,
                     block_time: float, last_block_time: Optional[float] = None,
                     timestamp: Optional[float] = None) -> str:
        stat_id = self._db.new_id()
        ts = time.time() if timestamp is None else timestamp
        await self._db.execute(
            "INSERT INTO pool_statistics (id, pool_id, timestamp, hashrate, miners_count, "
            "blocks_found_24h, luck_7d, difficulty, block_time, last_block_time) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (stat_id, pool_id, ts, hashrate, miners_count, blocks_found_24h,
             luck_7d, difficulty, block_time, last_block_time),
        )
        return stat_id

    async def latest(self, pool_id: str, count: int = 1) -> List[PoolStatistic]:
        """Most recent rows for a pool, newest first."""
        rows = await self._db.query(
            "SELECT * FROM pool_statistics WHERE pool_id = ? ORDER BY timestamp DESC LIMIT ?",
            (pool_id, count),
        )
        return parse_rows(PoolStatistic, rows)

    async def latest_one(self, pool_id: str) -> Optional[PoolStatistic]:
        row = await self._db.query_one(
            "SELECT * FROM pool_statistics WHERE pool_id = ? ORDER BY timestamp DESC LIMIT 1",
            (pool_id,),
        )
        return parse_row(PoolStatistic, row)

    async def history(self, pool_id: str, period: str = "7d", limit: int = 100) -> List[PoolStatistic]:
        """Up to `limit` most recent rows inside the window, returned oldest first."""
        rows = await self._db.query(
            "SELECT * FROM pool_statistics WHERE pool_id = ? AND timestamp >= ? "
            "ORDER BY timestamp DESC LIMIT ?",
            (pool_id, period_cutoff(period, "7d"), limit),
        )
        rows.reverse()
        return parse_rows(PoolStatistic, rows)

    async def latest_total_hashrate(self) -> float:
        value = await self._db.scalar(
            "SELECT SUM(hashrate) AS total_hashrate FROM latest_pool_stats"
        )
        return float(value)

    async def last_timestamp(self) -> Optional[float]:
        value = await self._db.scalar(
            "SELECT MAX(timestamp) AS last_update FROM pool_statistics", default=None
        )
        return value
