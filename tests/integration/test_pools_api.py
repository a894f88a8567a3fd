"""
test_pools_api.py - Integration tests for /api/pools/* endpoints.

Runs the real app (routers, error handlers, envelopes) through FastAPI
TestClient against in-memory SQLite.
"""

import pytest

from helpers import add_block, add_pool, add_stat, failed, ok

pytestmark = pytest.mark.asyncio


# ── Listing ───────────────────────────────────────────────────────────────

class TestListPools:

    async def test_empty(self, client):
        assert ok(client.get("/api/pools")) == []

    async def test_active_pools_with_latest_stats(self, client, storage):
        eth = await add_pool(storage, "Ethermine")
        f2 = await add_pool(storage, "F2Pool", fee=2.5, payout="PPS")
        await add_pool(storage, "Retired", status="inactive")
        await add_stat(storage, eth.id, age_sec=300, hashrate=700e12)
        await add_stat(storage, eth.id, hashrate=750e12, miners=85000, luck=98.0)
        await add_stat(storage, f2.id, hashrate=320e12)

        data = ok(client.get("/api/pools"))
        assert [p["name"] for p in data] == ["Ethermine", "F2Pool"]
        first = data[0]
        assert first["hashrate"] == 750e12
        assert first["miners_count"] == 85000
        assert first["payout_method"] == "PPLNS"
        assert first["last_updated"] is not None


class TestGetPool:

    async def test_found(self, client, storage):
        pool = await add_pool(storage, "Flexpool")
        data = ok(client.get(f"/api/pools/{pool.id}"))
        assert data["id"] == pool.id
        assert data["hashrate"] is None

    async def test_not_found(self, client):
        assert failed(client.get("/api/pools/does-not-exist"), 404) == "Pool not found"


# ── Compare ───────────────────────────────────────────────────────────────

class TestCompare:

    async def test_requires_ids(self, client):
        assert failed(client.get("/api/pools/compare"), 400) == "Pool IDs are required"
        assert failed(client.get("/api/pools/compare?pools=,"), 400) == "Pool IDs are required"

    async def test_scores_pools(self, client, storage):
        big = await add_pool(storage, "Big", fee=1.0)
        small = await add_pool(storage, "Small", fee=3.5, payout="PPS")
        await add_stat(storage, big.id, hashrate=800e12, luck=101.0)
        await add_stat(storage, small.id, hashrate=10e12, luck=70.0)
        for n in range(6):
            await add_block(storage, big.id, 100 + n, age_sec=3600)

        data = ok(client.get(f"/api/pools/compare?pools={small.id},{big.id}"))
        by_name = {p["name"]: p for p in data}
        assert by_name["Big"]["recent_blocks"] == 6
        assert by_name["Big"]["recommendation_score"] == 100
        assert by_name["Small"]["recommendation_score"] == 50
        assert by_name["Big"]["avg_luck_7d"] == pytest.approx(101.0)
        assert [p["name"] for p in data] == ["Big", "Small"]

    async def test_at_most_five(self, client, storage):
        ids = [(await add_pool(storage, f"P{i}")).id for i in range(7)]
        data = ok(client.get("/api/pools/compare?pools=" + ",".join(ids)))
        assert len(data) == 5
        assert {p["id"] for p in data} == set(ids[:5])


# ── History & blocks ──────────────────────────────────────────────────────

class TestHistory:

    async def test_default_window_oldest_first(self, client, storage):
        pool = await add_pool(storage)
        await add_stat(storage, pool.id, age_sec=10 * 86400, hashrate=1.0)
        await add_stat(storage, pool.id, age_sec=2 * 86400, hashrate=2.0)
        await add_stat(storage, pool.id, age_sec=60, hashrate=3.0)

        data = ok(client.get(f"/api/pools/{pool.id}/history"))
        assert [row["hashrate"] for row in data] == [2.0, 3.0]
        data = ok(client.get(f"/api/pools/{pool.id}/history?period=30d&limit=2"))
        assert [row["hashrate"] for row in data] == [2.0, 3.0]

    async def test_bad_limit_is_400(self, client, storage):
        pool = await add_pool(storage)
        message = failed(client.get(f"/api/pools/{pool.id}/history?limit=0"), 400)
        assert "limit" in message


class TestBlocks:

    async def test_pagination(self, client, storage):
        pool = await add_pool(storage)
        for n in range(5):
            await add_block(storage, pool.id, 2000 + n, age_sec=500 - n)

        resp = client.get(f"/api/pools/{pool.id}/blocks?limit=2&offset=2")
        data = ok(resp)
        assert [b["block_number"] for b in data] == [2002, 2001]
        assert resp.json()["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}

    async def test_unknown_pool_is_empty_page(self, client):
        resp = client.get("/api/pools/nope/blocks")
        assert ok(resp) == []
        assert resp.json()["pagination"]["total"] == 0


# ── Status ────────────────────────────────────────────────────────────────

class TestStatus:

    async def test_update(self, client, storage):
        pool = await add_pool(storage)
        resp = client.put(f"/api/pools/{pool.id}/status", json={"status": "maintenance"})
        assert ok(resp)["status"] == "maintenance"
        assert resp.json()["message"] == "Pool status updated successfully"
        assert ok(client.get("/api/pools")) == []

    async def test_invalid_status(self, client, storage):
        pool = await add_pool(storage)
        message = failed(client.put(f"/api/pools/{pool.id}/status", json={"status": "on_fire"}), 400)
        assert message.startswith("Invalid status")

    async def test_unknown_pool(self, client):
        resp = client.put("/api/pools/nope/status", json={"status": "active"})
        assert failed(resp, 404) == "Pool not found"
