"""
collector.py - Periodic pool statistics collection.

Every UPDATE_INTERVAL seconds a pass is spawned that records one
PoolStatistic per active pool (plus any block the source reports), one
NetworkStats row, and pushes the results to WebSocket clients. Passes run as
independent tasks, so a slow pass may overlap the next one.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional, Set

from .sources import PoolSnapshot

if TYPE_CHECKING:
    from .models import Pool
    from .storage import StorageManager
    from .ws import BroadcastManager

logger = logging.getLogger("collector")

DEFAULT_INTERVAL = 30.0


class PoolCollector:

    def __init__(self, storage: "StorageManager", source, broadcaster: Optional["BroadcastManager"] = None,
                 interval: float = DEFAULT_INTERVAL):
        self._storage = storage
        self.source = source
        self._broadcaster = broadcaster
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._passes: Set[asyncio.Task] = set()
        self.last_pass_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self):
        if self._task is not None:
            logger.warning("Mining pool data collection already running")
            return
        logger.info("Starting mining pool data collection (interval: %.0fs, source: %s)",
                    self.interval, self.source.name)
        self._task = asyncio.create_task(self._loop())

    def stop(self):
        """Stop scheduling passes; a pass already in flight runs to completion."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Mining pool data collection stopped")

    async def wait_idle(self):
        """Await any in-flight passes (used on shutdown and in tests)."""
        if self._passes:
            await asyncio.gather(*list(self._passes), return_exceptions=True)

    async def _loop(self):
        while True:
            task = asyncio.create_task(self.run_once())
            self._passes.add(task)
            task.add_done_callback(self._passes.discard)
            await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """Run a single collection pass; returns the number of pools recorded."""
        self.last_pass_at = time.time()
        try:
            pools = await self._storage.pools.list_active()
            await self.source.prepare()
        except Exception:
            logger.exception("Failed to fetch mining pool data")
            return 0

        results = await asyncio.gather(*(self._collect_pool(p) for p in pools))
        recorded = [(p, snap) for p, snap in zip(pools, results) if snap is not None]

        network = await self._record_network(sum(s.hashrate for _, s in recorded))
        await self._publish(recorded, network)
        logger.info("Successfully updated data for %d/%d pools", len(recorded), len(pools))
        return len(recorded)

    async def _collect_pool(self, pool: "Pool") -> Optional[PoolSnapshot]:
        try:
            snap = await self.source.sample(pool)
            await self._storage.statistics.insert(
                pool_id=pool.id,
                hashrate=snap.hashrate,
                miners_count=snap.miners_count,
                blocks_found_24h=snap.blocks_found_24h,
                luck_7d=snap.luck_7d,
                difficulty=snap.difficulty,
                block_time=snap.block_time,
            )
            if snap.found_block is not None:
                b = snap.found_block
                block_id = await self._storage.blocks.create(
                    pool_id=pool.id, block_number=b.block_number, reward=b.reward,
                    miner_count=b.miner_count, difficulty=b.difficulty,
                    block_hash=b.hash, uncle=b.uncle,
                )
                if block_id is None:
                    snap.found_block = None
            return snap
        except Exception:
            logger.exception("Failed to update data for %s", pool.name)
            return None

    async def _record_network(self, total_hashrate: float) -> Optional[dict]:
        try:
            row = await self.source.network(total_hashrate)
            await self._storage.network.insert(
                total_hashrate=row.total_hashrate,
                difficulty=row.difficulty,
                block_time=row.block_time,
                pending_transactions=row.pending_transactions,
                gas_price=row.gas_price,
            )
        except Exception:
            logger.exception("Failed to record network statistics")
            return None
        return {
            "total_hashrate": row.total_hashrate,
            "difficulty": row.difficulty,
            "block_time": row.block_time,
            "pending_transactions": row.pending_transactions,
            "gas_price": row.gas_price,
        }

    async def _publish(self, recorded: List[tuple], network: Optional[dict]):
        if self._broadcaster is None:
            return
        try:
            if recorded:
                await self._broadcaster.broadcast_pool_update([
                    {
                        "pool_id": pool.id,
                        "name": pool.name,
                        "hashrate": snap.hashrate,
                        "miners_count": snap.miners_count,
                        "blocks_found_24h": snap.blocks_found_24h,
                        "luck_7d": snap.luck_7d,
                    }
                    for pool, snap in recorded
                ])
            if network is not None:
                await self._broadcaster.broadcast_network_update(network)
            for pool, snap in recorded:
                if snap.found_block is not None:
                    await self._broadcaster.broadcast_new_block({
                        "pool_id": pool.id,
                        "pool_name": pool.name,
                        "block_number": snap.found_block.block_number,
                        "reward": snap.found_block.reward,
                        "hash": snap.found_block.hash,
                    })
        except Exception:
            logger.exception("Failed to broadcast collection results")

    async def status(self) -> dict:
        try:
            pool_count = await self._storage.pools.count(active_only=True)
            last = await self._storage.statistics.last_timestamp()
        except Exception as e:
            logger.error("Collector health check failed: %s", e)
            return {"status": "error", "last_update": "unknown", "pool_count": 0}
        last_update = (
            datetime.fromtimestamp(last, tz=timezone.utc).isoformat().replace("+00:00", "Z")
            if last is not None else "never"
        )
        return {
            "status": "running" if self.running else "stopped",
            "last_update": last_update,
            "pool_count": pool_count,
            "source": self.source.name,
        }
