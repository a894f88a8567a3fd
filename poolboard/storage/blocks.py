import time
from typing import List, Optional

from ..models import Block, parse_rows
from ._database import Database, IntegrityError


class BlockRepo:
    """Blocks found by pools, unique per (pool_id, block_number)."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, pool_id: str, block_number: int, reward: float,
                     miner_count: int, difficulty: float, block_hash: str,
                     uncle: bool = False, timestamp: Optional[float] = None) -> Optional[str]:
        """Insert a block; returns its id, or None if the pool already has that number."""
        block_id = self._db.new_id()
        ts = time.time() if timestamp is None else timestamp
        try:
            await self._db.execute(
                "INSERT INTO blocks (id, pool_id, block_number, timestamp, reward, miner_count, "
                "difficulty, hash, uncle) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (block_id, pool_id, block_number, ts, reward, miner_count,
                 difficulty, block_hash, int(uncle)),
            )
        except IntegrityError:
            existing = await self._db.query_one(
                "SELECT id FROM blocks WHERE pool_id = ? AND block_number = ?",
                (pool_id, block_number),
            )
            if existing is None:
                raise
            return None
        return block_id

    async def for_pool(self, pool_id: str, limit: int = 50, offset: int = 0) -> List[Block]:
        rows = await self._db.query(
            "SELECT * FROM blocks WHERE pool_id = ? ORDER BY timestamp DESC LIMIT ? OFFSET ?",
            (pool_id, limit, offset),
        )
        return parse_rows(Block, rows)

    async def count_for_pool(self, pool_id: str) -> int:
        value = await self._db.scalar(
            "SELECT COUNT(*) AS count FROM blocks WHERE pool_id = ?", (pool_id,)
        )
        return int(value)

    async def recent_with_pool(self, limit: int = 10) -> List[Block]:
        rows = await self._db.query(
            "SELECT b.*, p.name AS pool_name FROM blocks b "
            "INNER JOIN pools p ON b.pool_id = p.id "
            "ORDER BY b.timestamp DESC LIMIT ?",
            (limit,),
        )
        return parse_rows(Block, rows)

    async def since(self, since_ts: float, pool_id: Optional[str] = None) -> List[Block]:
        """Blocks newer than since_ts (optionally for one pool), newest first."""
        sql = ("SELECT b.*, p.name AS pool_name FROM blocks b "
               "LEFT JOIN pools p ON b.pool_id = p.id WHERE b.timestamp > ?")
        params: tuple = (since_ts,)
        if pool_id:
            sql += " AND b.pool_id = ?"
            params = params + (pool_id,)
        sql += " ORDER BY b.timestamp DESC"
        return parse_rows(Block, await self._db.query(sql, params))

    async def count_since(self, since_ts: float) -> int:
        value = await self._db.scalar(
            "SELECT COUNT(*) AS count FROM blocks WHERE timestamp > ?", (since_ts,)
        )
        return int(value)
