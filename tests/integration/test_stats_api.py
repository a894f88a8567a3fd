"""
test_stats_api.py - Integration tests for /api/stats/* endpoints.
"""

import time

import pytest
from fastapi.testclient import TestClient

from poolboard.fetcher import FALLBACK_ETH_PRICE, NETWORK_DIFFICULTY
from poolboard.storage._migrate import SAMPLE_BLOCKS, SAMPLE_POOLS

from helpers import add_block, add_pool, add_stat, failed, ok, upstream_up

pytestmark = pytest.mark.asyncio


# ── Database-backed views ─────────────────────────────────────────────────

class TestDashboard:

    async def test_aggregates(self, client, storage):
        a = await add_pool(storage, "Alpha")
        b = await add_pool(storage, "Beta")
        await add_stat(storage, a.id, hashrate=300e12, miners=3000)
        await add_stat(storage, b.id, hashrate=200e12, miners=2000)
        await add_block(storage, a.id, 18500001, age_sec=600)
        await add_block(storage, b.id, 18500000, age_sec=2 * 86400)

        data = ok(client.get("/api/stats/dashboard"))
        assert data["total_hashrate"] == pytest.approx(500e12)
        assert data["total_miners"] == 5000
        assert data["active_pools"] == 2
        assert data["blocks_found_24h"] == 1
        assert [b["pool_name"] for b in data["recent_blocks"]] == ["Alpha", "Beta"]
        assert data["network_difficulty"] == NETWORK_DIFFICULTY

    async def test_seeded_server(self, make_server):
        srv = await make_server(SEED_DATA=True)
        data = ok(TestClient(srv.app).get("/api/stats/dashboard"))
        assert data["active_pools"] == len(SAMPLE_POOLS)
        assert len(data["recent_blocks"]) == len(SAMPLE_BLOCKS)
        assert data["total_hashrate"] > 0


class TestNetwork:

    async def test_calculated_default(self, client, storage):
        pool = await add_pool(storage)
        await add_stat(storage, pool.id, hashrate=123e12)
        resp = client.get("/api/stats/network")
        data = ok(resp)
        assert resp.json()["message"] == "Using calculated network statistics"
        assert data["total_hashrate"] == pytest.approx(123e12)
        assert data["difficulty"] == NETWORK_DIFFICULTY
        assert data["block_time"] == 13
        assert data["pending_transactions"] == 125000

    async def test_latest_row(self, client, storage):
        await storage.network.insert(total_hashrate=1e15, difficulty=1.5e16, block_time=12,
                                     pending_transactions=99, gas_price=30e9)
        resp = client.get("/api/stats/network")
        data = ok(resp)
        assert "message" not in resp.json()
        assert data["pending_transactions"] == 99
        assert data["gas_price"] == 30e9

    async def test_history(self, client, storage):
        now = time.time()
        for age, tx in ((2 * 86400, 1), (3600, 2), (60, 3)):
            await storage.network.insert(total_hashrate=1e15, difficulty=1.5e16, block_time=13,
                                         pending_transactions=tx, gas_price=25e9,
                                         timestamp=now - age)
        data = ok(client.get("/api/stats/network/history"))
        assert [row["pending_transactions"] for row in data] == [2, 3]


class TestPoolStats:

    async def test_totals_and_top(self, client, storage):
        pools = []
        for i, rate in enumerate((100e12, 600e12, 300e12)):
            pool = await add_pool(storage, f"Pool{i}")
            await add_stat(storage, pool.id, hashrate=rate, luck=100.0)
            pools.append(pool)
        await add_pool(storage, "Quiet")
        await add_block(storage, pools[0].id, 1, age_sec=100)

        data = ok(client.get("/api/stats/pools"))
        assert data["total_pools"] == 4
        assert data["active_pools"] == 4
        assert data["blocks_24h"] == 1
        assert [p["name"] for p in data["top_pools"]] == ["Pool1", "Pool2", "Pool0"]


# ── Live upstream views ───────────────────────────────────────────────────

class TestLive:

    async def test_fallback_when_upstream_down(self, client):
        data = ok(client.get("/api/stats/live"))
        assert data["eth_price"] == FALLBACK_ETH_PRICE
        assert data["active_pools"] == 4

    async def test_live_values(self, make_server):
        srv = await make_server(handler=upstream_up)
        client = TestClient(srv.app)
        data = ok(client.get("/api/stats/live"))
        assert data["eth_price"] == 3200.5
        assert data["gas_price"] == 18
        pools = ok(client.get("/api/stats/live/pools"))
        by_id = {p["id"]: p for p in pools}
        assert by_id["ethermine-001"]["hashrate"] == 700e12

    async def test_strict_policy_is_503(self, make_server):
        srv = await make_server(FETCH_POLICY="strict")
        client = TestClient(srv.app)
        assert failed(client.get("/api/stats/live/pools"), 503) == "Pool data unavailable"
        assert failed(client.get("/api/stats/live"), 503) == "Dashboard data unavailable"
