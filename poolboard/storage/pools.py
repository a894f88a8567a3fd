import time
from typing import List, Optional, Sequence

from ..models import Pool, PoolWithStats, parse_row, parse_rows
from ._database import Database

_WITH_STATS = (
    "SELECT p.*, lps.hashrate, lps.miners_count, lps.blocks_found_24h, lps.luck_7d, "
    "lps.timestamp AS last_updated "
    "FROM pools p LEFT JOIN latest_pool_stats lps ON p.id = lps.pool_id"
)
# portable "NULLS LAST"
_ORDER_BY_HASHRATE = " ORDER BY (lps.hashrate IS NULL), lps.hashrate DESC"


class PoolRepo:
    """Reads and status updates for the pools table."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, name: str, api_url: str, fee_percentage: float,
                     payout_method: str = "PPLNS", minimum_payout: float = 0.01,
                     status: str = "active") -> Pool:
        now = time.time()
        pool_id = self._db.new_id()
        await self._db.execute(
            "INSERT INTO pools (id, name, api_url, fee_percentage, payout_method, status, "
            "minimum_payout, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (pool_id, name, api_url, fee_percentage, payout_method, status,
             minimum_payout, now, now),
        )
        return await self.get(pool_id)

    async def get(self, pool_id: str) -> Optional[Pool]:
        row = await self._db.query_one("SELECT * FROM pools WHERE id = ?", (pool_id,))
        return parse_row(Pool, row)

    async def exists(self, pool_id: str) -> bool:
        row = await self._db.query_one("SELECT id FROM pools WHERE id = ?", (pool_id,))
        return row is not None

    async def list_active(self) -> List[Pool]:
        rows = await self._db.query(
            "SELECT * FROM pools WHERE status = ? ORDER BY name", ("active",)
        )
        return parse_rows(Pool, rows)

    async def list_active_with_stats(self) -> List[PoolWithStats]:
        rows = await self._db.query(
            _WITH_STATS + " WHERE p.status = 'active'" + _ORDER_BY_HASHRATE
        )
        return parse_rows(PoolWithStats, rows)

    async def get_with_stats(self, pool_id: str) -> Optional[PoolWithStats]:
        row = await self._db.query_one(_WITH_STATS + " WHERE p.id = ?", (pool_id,))
        return parse_row(PoolWithStats, row)

    async def compare_rows(self, pool_ids: Sequence[str], now: Optional[float] = None) -> List[dict]:
        """Pools joined with latest stats, 24h block count and 7d/30d average luck."""
        now = time.time() if now is None else now
        placeholders = ",".join("?" for _ in pool_ids)
        sql = (
            "SELECT p.*, lps.hashrate, lps.miners_count, lps.blocks_found_24h, lps.luck_7d, "
            "lps.timestamp AS last_updated, "
            "COALESCE(rb.block_count, 0) AS recent_blocks, "
            "COALESCE(al.avg_luck_7d, 0) AS avg_luck_7d, "
            "COALESCE(al.avg_luck_30d, 0) AS avg_luck_30d "
            "FROM pools p "
            "LEFT JOIN latest_pool_stats lps ON p.id = lps.pool_id "
            "LEFT JOIN ("
            "SELECT pool_id, COUNT(*) AS block_count FROM blocks "
            "WHERE timestamp > ? GROUP BY pool_id"
            ") rb ON p.id = rb.pool_id "
            "LEFT JOIN ("
            "SELECT pool_id, "
            "AVG(CASE WHEN timestamp > ? THEN luck_7d END) AS avg_luck_7d, "
            "AVG(CASE WHEN timestamp > ? THEN luck_7d END) AS avg_luck_30d "
            "FROM pool_statistics GROUP BY pool_id"
            ") al ON p.id = al.pool_id "
            f"WHERE p.id IN ({placeholders})" + _ORDER_BY_HASHRATE
        )
        params = (now - 86400, now - 7 * 86400, now - 30 * 86400, *pool_ids)
        return await self._db.query(sql, params)

    async def set_status(self, pool_id: str, status: str) -> bool:
        result = await self._db.execute(
            "UPDATE pools SET status = ?, updated_at = ? WHERE id = ?",
            (status, time.time(), pool_id),
        )
        return result.rows_affected > 0

    async def count(self, active_only: bool = False) -> int:
        if active_only:
            value = await self._db.scalar(
                "SELECT COUNT(*) AS count FROM pools WHERE status = ?", ("active",)
            )
        else:
            value = await self._db.scalar("SELECT COUNT(*) AS count FROM pools")
        return int(value)

    async def totals(self) -> dict:
        """Aggregate over all pools and their latest statistics."""
        row = await self._db.query_one(
            "SELECT COUNT(*) AS total_pools, "
            "COUNT(CASE WHEN p.status = 'active' THEN 1 END) AS active_pools, "
            "SUM(COALESCE(lps.hashrate, 0)) AS total_hashrate, "
            "SUM(COALESCE(lps.miners_count, 0)) AS total_miners, "
            "AVG(COALESCE(lps.luck_7d, 0)) AS avg_luck_7d "
            "FROM pools p LEFT JOIN latest_pool_stats lps ON p.id = lps.pool_id"
        )
        row = row or {}
        return {
            "total_pools": int(row.get("total_pools") or 0),
            "active_pools": int(row.get("active_pools") or 0),
            "total_hashrate": float(row.get("total_hashrate") or 0),
            "total_miners": int(row.get("total_miners") or 0),
            "avg_luck_7d": float(row.get("avg_luck_7d") or 0),
        }

    async def top_active(self, limit: int = 5) -> List[dict]:
        rows = await self._db.query(
            "SELECT p.id, p.name, p.fee_percentage, lps.hashrate, lps.miners_count, lps.luck_7d "
            "FROM pools p INNER JOIN latest_pool_stats lps ON p.id = lps.pool_id "
            "WHERE p.status = 'active' ORDER BY lps.hashrate DESC LIMIT ?",
            (limit,),
        )
        return rows
