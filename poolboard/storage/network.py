import time
from typing import List, Optional

from ..models import NetworkStats, parse_row, parse_rows
from ._database import Database
from .statistics import period_cutoff


class NetworkStatsRepo:

    def __init__(self, db: Database):
        self._db = db

    async def insert(self, total_hashrate: float, difficulty: float, block_time: float,
                     pending_transactions: int = 0, gas_price: float = 0.0,
                     timestamp: Optional[float] = None) -> str:
        row_id = self._db.new_id()
        ts = time.time() if timestamp is None else timestamp
        await self._db.execute(
            "INSERT INTO network_stats (id, timestamp, total_hashrate, difficulty, block_time, "
            "pending_transactions, gas_price) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (row_id, ts, total_hashrate, difficulty, block_time, pending_transactions, gas_price),
        )
        return row_id

    async def latest(self) -> Optional[NetworkStats]:
        row = await self._db.query_one(
            "SELECT * FROM network_stats ORDER BY timestamp DESC LIMIT 1"
        )
        return parse_row(NetworkStats, row)

    async def history(self, period: str = "24h", limit: int = 100) -> List[NetworkStats]:
        rows = await self._db.query(
            "SELECT * FROM network_stats WHERE timestamp >= ? ORDER BY timestamp DESC LIMIT ?",
            (period_cutoff(period, "24h"), limit),
        )
        rows.reverse()
        return parse_rows(NetworkStats, rows)
