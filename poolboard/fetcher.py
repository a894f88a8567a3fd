"""
fetcher.py - Upstream price, network and pool data with caching and fallback.

Every public getter follows the same shape: fresh cache hit, else HTTP
request(s), else the last cached value, else a fixed fallback constant.
Under the "strict" fetch policy the pool getters and the aggregates built on
them skip the constants and raise UpstreamUnavailableError instead.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel

from .cache import TTLCache
from .errors import UpstreamUnavailableError, utc_now_iso

logger = logging.getLogger("fetcher")

COINGECKO_URL = "https://api.coingecko.com/api/v3"
ETHERSCAN_URL = "https://api.etherscan.io/api"
ETHERMINE_URL = "https://api.ethermine.org"
FLEXPOOL_URL = "https://flexpool.io/api/v2"
TWOMINERS_URL = "https://eth.2miners.com/api"

FALLBACK_ETH_PRICE = 2500.0
FALLBACK_GAS_PRICE = 20.0
NETWORK_DIFFICULTY = 15_500_000_000_000_000.0

POLICY_FALLBACK = "fallback"
POLICY_STRICT = "strict"

# pool id -> (hashrate, miners, fee)
FALLBACK_POOLS = {
    "ethermine-001": (750e12, 85000, 1.0),
    "f2pool-002": (320e12, 35000, 2.5),
    "flexpool-003": (180e12, 22000, 1.0),
    "2miners-004": (95e12, 12000, 1.0),
}


class UpstreamPool(BaseModel):
    """Normalized pool record as reported by the upstream pool APIs."""

    id: str
    name: str
    fee_percentage: float = 1.0
    payout_method: str = "PPLNS"
    status: str = "active"
    hashrate: float = 100e12
    miners_count: int = 10000
    luck_7d: Optional[float] = None
    minimum_payout: float = 0.01


class NetworkSnapshot(BaseModel):
    difficulty: float
    gas_price: float


class DashboardStats(BaseModel):
    total_hashrate: float
    total_miners: int
    active_pools: int
    blocks_found_24h: int
    recent_blocks: List[Dict[str, Any]]
    network_difficulty: float
    eth_price: float
    gas_price: float
    last_updated: str


def fallback_pool(pool_id: str, name: str) -> UpstreamPool:
    hashrate, miners, fee = FALLBACK_POOLS.get(pool_id, (100e12, 10000, 1.0))
    return UpstreamPool(id=pool_id, name=name, hashrate=hashrate, miners_count=miners,
                        fee_percentage=fee, luck_7d=98.5)


def fallback_all_pools() -> List[UpstreamPool]:
    return [
        fallback_pool("ethermine-001", "Ethermine"),
        fallback_pool("f2pool-002", "F2Pool"),
        fallback_pool("flexpool-003", "Flexpool"),
        fallback_pool("2miners-004", "2miners"),
    ]


class ExternalDataFetcher:
    """Polls third-party APIs; one instance (and one HTTP client) per process."""

    def __init__(self, cache: Optional[TTLCache] = None, timeout: float = 10.0,
                 policy: str = POLICY_FALLBACK, coingecko_api_key: str = "",
                 etherscan_api_key: str = "",
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 rng: Optional[random.Random] = None):
        if policy not in (POLICY_FALLBACK, POLICY_STRICT):
            raise ValueError(f"Unknown fetch policy: {policy}")
        self.cache = cache if cache is not None else TTLCache()
        self.policy = policy
        self.coingecko_api_key = coingecko_api_key
        self.etherscan_api_key = etherscan_api_key
        self._rng = rng or random.Random()
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings, transport=None) -> "ExternalDataFetcher":
        return cls(
            cache=TTLCache(default_ttl=settings.CACHE_TTL),
            timeout=settings.HTTP_TIMEOUT,
            policy=settings.FETCH_POLICY,
            coingecko_api_key=settings.COINGECKO_API_KEY,
            etherscan_api_key=settings.ETHERSCAN_API_KEY,
            transport=transport,
        )

    @property
    def strict(self) -> bool:
        return self.policy == POLICY_STRICT

    async def close(self):
        await self._client.aclose()

    async def _get_json(self, url: str, params: Optional[dict] = None,
                        headers: Optional[dict] = None) -> Any:
        response = await self._client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    def _etherscan_params(self, **params) -> dict:
        if self.etherscan_api_key:
            params["apikey"] = self.etherscan_api_key
        return params

    async def _cached(self, key: str, produce: Callable[[], Awaitable[Any]],
                      fallback: Callable[[], Any]) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            value = await produce()
        except Exception as e:
            logger.error("Fetching %s failed: %s", key, e)
            stale = self.cache.get_stale(key)
            if stale is not None:
                return stale
            return fallback()
        self.cache.set(key, value)
        return value

    # ------------------------------------------------------------------
    # Price / network
    # ------------------------------------------------------------------

    async def get_eth_price(self) -> float:
        async def produce():
            headers = {"X-CG-Pro-API-Key": self.coingecko_api_key} if self.coingecko_api_key else {}
            data = await self._get_json(
                f"{COINGECKO_URL}/simple/price",
                params={"ids": "ethereum", "vs_currencies": "usd"},
                headers=headers,
            )
            return float(data["ethereum"]["usd"])

        return await self._cached("eth_price", produce, lambda: FALLBACK_ETH_PRICE)

    async def get_network_stats(self) -> NetworkSnapshot:
        async def produce():
            data = await self._get_json(
                ETHERSCAN_URL,
                params=self._etherscan_params(module="gastracker", action="gasoracle"),
            )
            try:
                gas = float(data["result"]["ProposeGasPrice"])
            except (KeyError, TypeError, ValueError):
                gas = 0.0
            # proof-of-stake chain: difficulty no longer moves
            return NetworkSnapshot(difficulty=NETWORK_DIFFICULTY,
                                   gas_price=int(gas) or FALLBACK_GAS_PRICE)

        return await self._cached(
            "network_stats", produce,
            lambda: NetworkSnapshot(difficulty=NETWORK_DIFFICULTY, gas_price=FALLBACK_GAS_PRICE),
        )

    async def get_recent_blocks(self) -> List[Dict[str, Any]]:
        async def produce():
            data = await self._get_json(
                ETHERSCAN_URL,
                params=self._etherscan_params(module="proxy", action="eth_getBlockByNumber",
                                              tag="latest", boolean="true"),
            )
            block = data["result"]
            ts = datetime.fromtimestamp(int(block["timestamp"], 16), tz=timezone.utc)
            return [{
                "pool_id": "ethermine-001",
                "pool_name": "Ethermine",
                "block_number": int(block["number"], 16),
                "timestamp": ts.isoformat().replace("+00:00", "Z"),
                "reward": 2.08,
            }]

        return await self._cached("recent_blocks", produce, list)

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    async def _pool(self, key: str, pool_id: str, name: str,
                    produce: Callable[[], Awaitable[UpstreamPool]]) -> UpstreamPool:
        def fallback():
            if self.strict:
                raise UpstreamUnavailableError(f"{name} data unavailable")
            return fallback_pool(pool_id, name)

        return await self._cached(key, produce, fallback)

    async def get_ethermine_data(self) -> UpstreamPool:
        async def produce():
            data = (await self._get_json(f"{ETHERMINE_URL}/poolStats"))["data"]
            return UpstreamPool(
                id="ethermine-001", name="Ethermine",
                hashrate=data.get("poolHashRate") or 750e12,
                miners_count=data.get("minersTotal") or 85000,
                fee_percentage=1.0, payout_method="PPLNS", minimum_payout=0.01,
            )

        return await self._pool("ethermine_data", "ethermine-001", "Ethermine", produce)

    async def get_f2pool_data(self) -> UpstreamPool:
        # F2Pool publishes no public ETH stats endpoint
        async def produce():
            return UpstreamPool(
                id="f2pool-002", name="F2Pool", hashrate=320e12, miners_count=35000,
                fee_percentage=2.5, payout_method="PPS", minimum_payout=0.005,
            )

        return await self._pool("f2pool_data", "f2pool-002", "F2Pool", produce)

    async def get_flexpool_data(self) -> UpstreamPool:
        async def produce():
            data = await self._get_json(f"{FLEXPOOL_URL}/pool/hashrate")
            return UpstreamPool(
                id="flexpool-003", name="Flexpool",
                hashrate=(data.get("result") or {}).get("total") or 180e12,
                miners_count=22000, fee_percentage=1.0, payout_method="PPLNS",
                minimum_payout=0.01,
            )

        return await self._pool("flexpool_data", "flexpool-003", "Flexpool", produce)

    async def get_2miners_data(self) -> UpstreamPool:
        async def produce():
            data = await self._get_json(f"{TWOMINERS_URL}/stats")
            return UpstreamPool(
                id="2miners-004", name="2miners",
                hashrate=data.get("hashrate") or 95e12,
                miners_count=data.get("minersTotal") or 12000,
                fee_percentage=1.0, payout_method="PPLNS", minimum_payout=0.01,
            )

        return await self._pool("2miners_data", "2miners-004", "2miners", produce)

    async def get_all_pools_data(self) -> List[UpstreamPool]:
        cached = self.cache.get("all_pools_data")
        if cached is not None:
            return cached
        try:
            pools = list(await asyncio.gather(
                self.get_ethermine_data(),
                self.get_f2pool_data(),
                self.get_flexpool_data(),
                self.get_2miners_data(),
            ))
        except Exception as e:
            logger.error("Fetching all pools failed: %s", e)
            stale = self.cache.get_stale("all_pools_data")
            if stale is not None:
                return stale
            if self.strict:
                raise UpstreamUnavailableError("Pool data unavailable") from e
            return fallback_all_pools()

        pools = [
            p if p.luck_7d is not None
            else p.model_copy(update={"luck_7d": self._rng.uniform(95, 105)})
            for p in pools
        ]
        self.cache.set("all_pools_data", pools)
        return pools

    async def get_dashboard_stats(self) -> DashboardStats:
        cached = self.cache.get("dashboard_stats")
        if cached is not None:
            return cached
        try:
            pools, eth_price, network, recent_blocks = await asyncio.gather(
                self.get_all_pools_data(),
                self.get_eth_price(),
                self.get_network_stats(),
                self.get_recent_blocks(),
            )
        except Exception as e:
            logger.error("Building dashboard stats failed: %s", e)
            stale = self.cache.get_stale("dashboard_stats")
            if stale is not None:
                return stale
            if self.strict:
                raise UpstreamUnavailableError("Dashboard data unavailable") from e
            return self._fallback_dashboard()

        stats = DashboardStats(
            total_hashrate=sum(p.hashrate for p in pools),
            total_miners=sum(p.miners_count for p in pools),
            active_pools=len(pools),
            blocks_found_24h=len(recent_blocks),
            recent_blocks=recent_blocks,
            network_difficulty=network.difficulty,
            eth_price=eth_price,
            gas_price=network.gas_price,
            last_updated=utc_now_iso(),
        )
        self.cache.set("dashboard_stats", stats)
        return stats

    @staticmethod
    def _fallback_dashboard() -> DashboardStats:
        pools = fallback_all_pools()
        return DashboardStats(
            total_hashrate=sum(p.hashrate for p in pools),
            total_miners=sum(p.miners_count for p in pools),
            active_pools=len(pools),
            blocks_found_24h=3,
            recent_blocks=[],
            network_difficulty=NETWORK_DIFFICULTY,
            eth_price=FALLBACK_ETH_PRICE,
            gas_price=FALLBACK_GAS_PRICE,
            last_updated=utc_now_iso(),
        )
