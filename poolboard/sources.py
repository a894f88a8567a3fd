"""
sources.py - Where the collector gets each pool's next statistics row.

SimulatedSource random-walks every pool around its own base hashrate;
UpstreamSource maps the fetcher's normalized pool list onto persisted pools
by name and falls back to simulation for pools the upstream does not cover.
"""

import logging
import random
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .fetcher import NETWORK_DIFFICULTY, ExternalDataFetcher, UpstreamPool
from .models import Pool

logger = logging.getLogger("collector")

BLOCK_TIME = 13.0
BLOCK_REWARD = 2.0
GWEI = 1_000_000_000


@dataclass
class FoundBlock:
    block_number: int
    reward: float
    miner_count: int
    difficulty: float
    hash: str
    uncle: bool = False


@dataclass
class PoolSnapshot:
    hashrate: float
    miners_count: int
    blocks_found_24h: int
    luck_7d: float
    difficulty: float = NETWORK_DIFFICULTY
    block_time: float = BLOCK_TIME
    found_block: Optional[FoundBlock] = None


@dataclass
class NetworkSnapshotRow:
    total_hashrate: float
    difficulty: float
    block_time: float
    pending_transactions: int
    gas_price: float


@dataclass
class _Variation:
    base_hashrate: float
    base_miners: int
    hashrate: float
    blocks_24h: int = 0


@dataclass
class SimulatedSource:
    """Random-walk statistics; all variation state lives on the instance."""

    rng: random.Random = field(default_factory=random.Random)
    block_chance: float = 0.1
    step: float = 0.05
    next_block_number: int = 18_500_200
    _state: Dict[str, _Variation] = field(default_factory=dict)

    name = "simulated"

    async def prepare(self):
        pass

    def _variation(self, pool_id: str) -> _Variation:
        state = self._state.get(pool_id)
        if state is None:
            base = self.rng.uniform(100e12, 1100e12)
            miners = self.rng.randint(10000, 110000)
            state = _Variation(base_hashrate=base, base_miners=miners, hashrate=base,
                               blocks_24h=self.rng.randint(0, 19))
            self._state[pool_id] = state
        return state

    def _walk(self, state: _Variation) -> float:
        # bounded to +/-25% of the base so a long run cannot drift to zero
        moved = state.hashrate * (1 + self.rng.uniform(-self.step, self.step))
        low, high = state.base_hashrate * 0.75, state.base_hashrate * 1.25
        state.hashrate = min(max(moved, low), high)
        return state.hashrate

    def _maybe_block(self, state: _Variation, miners: int) -> Optional[FoundBlock]:
        if self.rng.random() >= self.block_chance:
            return None
        number = self.next_block_number
        self.next_block_number += self.rng.randint(1, 40)
        state.blocks_24h += 1
        return FoundBlock(
            block_number=number,
            reward=round(BLOCK_REWARD + self.rng.uniform(0, 0.5), 4),
            miner_count=miners,
            difficulty=NETWORK_DIFFICULTY,
            hash="0x" + secrets.token_hex(32),
        )

    async def sample(self, pool: Pool) -> PoolSnapshot:
        state = self._variation(pool.id)
        hashrate = self._walk(state)
        ratio = hashrate / state.base_hashrate
        miners = max(1, int(state.base_miners * ratio))
        block = self._maybe_block(state, miners)
        return PoolSnapshot(
            hashrate=hashrate,
            miners_count=miners,
            blocks_found_24h=state.blocks_24h,
            luck_7d=self.rng.uniform(90, 110),
            block_time=BLOCK_TIME,
            found_block=block,
        )

    async def network(self, total_hashrate: float) -> NetworkSnapshotRow:
        return NetworkSnapshotRow(
            total_hashrate=total_hashrate,
            difficulty=NETWORK_DIFFICULTY * self.rng.uniform(0.998, 1.002),
            block_time=BLOCK_TIME,
            pending_transactions=self.rng.randint(100000, 150000),
            gas_price=self.rng.uniform(20, 30) * GWEI,
        )


class UpstreamSource:
    """Statistics taken from the live pool APIs via the fetcher."""

    name = "upstream"

    def __init__(self, fetcher: ExternalDataFetcher, fallback: Optional[SimulatedSource] = None):
        self.fetcher = fetcher
        self.fallback = fallback or SimulatedSource()
        self._by_name: Dict[str, UpstreamPool] = {}

    async def prepare(self):
        """Fetch the pool list once per pass; failures leave every pool on simulation."""
        try:
            pools: List[UpstreamPool] = await self.fetcher.get_all_pools_data()
        except Exception as e:
            logger.warning("Upstream pool data unavailable, simulating this pass: %s", e)
            pools = []
        self._by_name = {p.name.lower(): p for p in pools}

    async def sample(self, pool: Pool) -> PoolSnapshot:
        upstream = self._by_name.get(pool.name.lower())
        simulated = await self.fallback.sample(pool)
        if upstream is None:
            return simulated
        simulated.hashrate = upstream.hashrate
        simulated.miners_count = upstream.miners_count
        if upstream.luck_7d is not None:
            simulated.luck_7d = upstream.luck_7d
        return simulated

    async def network(self, total_hashrate: float) -> NetworkSnapshotRow:
        stats = await self.fetcher.get_network_stats()
        row = await self.fallback.network(total_hashrate)
        row.difficulty = stats.difficulty
        row.gas_price = stats.gas_price * GWEI
        return row


def build_source(kind: str, fetcher: Optional[ExternalDataFetcher] = None):
    if kind == "upstream":
        if fetcher is None:
            raise ValueError("upstream collector source needs a fetcher")
        return UpstreamSource(fetcher)
    if kind == "simulated":
        return SimulatedSource()
    raise ValueError(f"Unknown collector source: {kind}")
