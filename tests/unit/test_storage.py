"""
test_storage.py - Schema, seeding and repository behavior on in-memory SQLite.
"""

import time

import pytest
import pytest_asyncio

from poolboard.storage import IntegrityError, StorageManager, create_database
from poolboard.storage._migrate import SAMPLE_POOLS, apply_schema, seed_sample_data
from poolboard.storage.postgres_backend import to_numbered_params
from poolboard.storage.sqlite_backend import SQLiteDatabase
from poolboard.storage.statistics import period_cutoff

from helpers import add_block, add_pool, add_stat


# ── Schema & seeding ──────────────────────────────────────────────────────

class TestSchema:

    @pytest.mark.asyncio
    async def test_apply_schema_twice_is_harmless(self, storage):
        await apply_schema(storage.db)
        version = await storage.db.scalar("SELECT MAX(version) FROM schema_version")
        rows = await storage.db.scalar("SELECT COUNT(*) FROM schema_version")
        assert version == 1
        assert rows == 1

    @pytest.mark.asyncio
    async def test_seed_only_into_empty_database(self, storage):
        assert await seed_sample_data(storage.db) is True
        assert await storage.pools.count() == len(SAMPLE_POOLS)
        assert await seed_sample_data(storage.db) is False
        assert await storage.pools.count() == len(SAMPLE_POOLS)

    @pytest.mark.asyncio
    async def test_seeded_manager(self):
        sm = StorageManager(SQLiteDatabase(":memory:"), seed=True)
        await sm.initialize()
        try:
            pools = await sm.pools.list_active_with_stats()
            assert {p.name for p in pools} == {row[1] for row in SAMPLE_POOLS}
            assert await sm.network.latest() is not None
            assert len(await sm.blocks.recent_with_pool(limit=10)) == 5
        finally:
            await sm.close()

    @pytest.mark.asyncio
    async def test_health_check(self, storage):
        health = await storage.health_check()
        assert health["status"] == "healthy"
        assert health["type"] == "sqlite"

    def test_create_database_strips_sqlite_prefix(self):
        assert create_database("sqlite", "sqlite:./dev.db").path == "./dev.db"
        assert create_database("sqlite", "sqlite://tmp.db").path == "tmp.db"
        assert create_database("sqlite", "other.db").path == "other.db"

    def test_create_database_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            create_database("mysql", "mysql://localhost")


# ── Postgres placeholders ─────────────────────────────────────────────────

class TestPlaceholders:

    def test_numbered(self):
        assert to_numbered_params("SELECT * FROM t WHERE a = ? AND b = ?") == \
            "SELECT * FROM t WHERE a = $1 AND b = $2"

    def test_quoted_question_mark_untouched(self):
        assert to_numbered_params("SELECT '?' AS q WHERE x = ?") == \
            "SELECT '?' AS q WHERE x = $1"


# ── Pools ─────────────────────────────────────────────────────────────────

class TestPools:

    @pytest.mark.asyncio
    async def test_list_active_orders_by_latest_hashrate(self, storage):
        small = await add_pool(storage, "Small")
        big = await add_pool(storage, "Big")
        bare = await add_pool(storage, "Bare")
        await add_stat(storage, small.id, age_sec=60, hashrate=900e12)
        await add_stat(storage, small.id, age_sec=0, hashrate=100e12)
        await add_stat(storage, big.id, hashrate=700e12)

        pools = await storage.pools.list_active_with_stats()
        assert [p.name for p in pools] == ["Big", "Small", "Bare"]
        assert pools[1].hashrate == pytest.approx(100e12)
        assert pools[2].hashrate is None
        assert bare.id in {p.id for p in pools}

    @pytest.mark.asyncio
    async def test_inactive_pools_hidden(self, storage):
        pool = await add_pool(storage, "Gone")
        assert await storage.pools.set_status(pool.id, "inactive") is True
        assert await storage.pools.list_active_with_stats() == []
        assert await storage.pools.count() == 1
        assert await storage.pools.count(active_only=True) == 0

    @pytest.mark.asyncio
    async def test_set_status_unknown_pool(self, storage):
        assert await storage.pools.set_status("nope", "active") is False

    @pytest.mark.asyncio
    async def test_compare_rows_aggregates(self, storage):
        pool = await add_pool(storage, "Cmp")
        await add_stat(storage, pool.id, age_sec=3600, luck=90.0)
        await add_stat(storage, pool.id, age_sec=60, luck=110.0)
        await add_block(storage, pool.id, 100, age_sec=3600)
        await add_block(storage, pool.id, 101, age_sec=2 * 86400)

        rows = await storage.pools.compare_rows([pool.id, "missing"])
        assert len(rows) == 1
        row = rows[0]
        assert row["recent_blocks"] == 1
        assert row["avg_luck_7d"] == pytest.approx(100.0)
        assert row["avg_luck_30d"] == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_totals(self, storage):
        a = await add_pool(storage, "A")
        b = await add_pool(storage, "B")
        await add_stat(storage, a.id, hashrate=100e12, miners=10)
        await add_stat(storage, b.id, hashrate=300e12, miners=30)
        totals = await storage.pools.totals()
        assert totals["total_pools"] == 2
        assert totals["active_pools"] == 2
        assert totals["total_hashrate"] == pytest.approx(400e12)
        assert totals["total_miners"] == 40


# ── Statistics ────────────────────────────────────────────────────────────

class TestStatistics:

    @pytest.mark.asyncio
    async def test_history_window_and_order(self, storage):
        pool = await add_pool(storage)
        await add_stat(storage, pool.id, age_sec=2 * 86400, hashrate=1.0)
        await add_stat(storage, pool.id, age_sec=3600, hashrate=2.0)
        await add_stat(storage, pool.id, age_sec=60, hashrate=3.0)

        day = await storage.statistics.history(pool.id, period="24h")
        assert [s.hashrate for s in day] == [2.0, 3.0]
        week = await storage.statistics.history(pool.id, period="7d")
        assert [s.hashrate for s in week] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_latest_newest_first(self, storage):
        pool = await add_pool(storage)
        await add_stat(storage, pool.id, age_sec=120, hashrate=1.0)
        await add_stat(storage, pool.id, age_sec=0, hashrate=2.0)
        latest = await storage.statistics.latest(pool.id, count=2)
        assert [s.hashrate for s in latest] == [2.0, 1.0]

    def test_unknown_period_uses_default(self):
        now = 1_000_000.0
        assert period_cutoff("bogus", "7d", now=now) == now - 7 * 86400
        assert period_cutoff("24h", "7d", now=now) == now - 86400


# ── Blocks ────────────────────────────────────────────────────────────────

class TestBlocks:

    @pytest.mark.asyncio
    async def test_duplicate_block_number_per_pool(self, storage):
        pool = await add_pool(storage)
        other = await add_pool(storage, "Other")
        assert await add_block(storage, pool.id, 500) is not None
        assert await add_block(storage, pool.id, 500) is None
        assert await add_block(storage, other.id, 500) is not None

    @pytest.mark.asyncio
    async def test_pagination(self, storage):
        pool = await add_pool(storage)
        for n in range(5):
            await add_block(storage, pool.id, 1000 + n, age_sec=100 - n)
        page = await storage.blocks.for_pool(pool.id, limit=2, offset=2)
        assert [b.block_number for b in page] == [1002, 1001]
        assert await storage.blocks.count_for_pool(pool.id) == 5

    @pytest.mark.asyncio
    async def test_since_carries_pool_name(self, storage):
        pool = await add_pool(storage, "Namer")
        await add_block(storage, pool.id, 7, age_sec=30)
        await add_block(storage, pool.id, 6, age_sec=600)
        blocks = await storage.blocks.since(time.time() - 120)
        assert [(b.block_number, b.pool_name) for b in blocks] == [(7, "Namer")]


# ── Subscriptions & history ───────────────────────────────────────────────

class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_global_subscription_unique(self, storage):
        await storage.subscriptions.create("a@b.co", "new_block")
        with pytest.raises(IntegrityError):
            await storage.subscriptions.create("a@b.co", "new_block")

    @pytest.mark.asyncio
    async def test_find_matches_null_pool(self, storage):
        pool = await add_pool(storage)
        scoped = await storage.subscriptions.create("a@b.co", "new_block", pool_id=pool.id)
        glob = await storage.subscriptions.create("a@b.co", "new_block")
        assert (await storage.subscriptions.find("a@b.co", "new_block")).id == glob.id
        assert (await storage.subscriptions.find("a@b.co", "new_block", pool.id)).id == scoped.id

    @pytest.mark.asyncio
    async def test_pool_delete_cascades(self, storage):
        pool = await add_pool(storage)
        sub = await storage.subscriptions.create("a@b.co", "pool_offline", pool_id=pool.id)
        await storage.db.execute("DELETE FROM pools WHERE id = ?", (pool.id,))
        assert await storage.subscriptions.get(sub.id) is None

    @pytest.mark.asyncio
    async def test_update_fields(self, storage):
        sub = await storage.subscriptions.create("a@b.co", "luck_streak", threshold=90)
        updated = await storage.subscriptions.update(sub.id, {"threshold": 80, "is_active": False})
        assert updated.threshold == 80
        assert updated.is_active is False
        assert await storage.subscriptions.list_active() == []

    @pytest.mark.asyncio
    async def test_history_outcome(self, storage):
        sub = await storage.subscriptions.create("a@b.co", "new_block")
        ok = await storage.alert_history.create(sub.id, "sent one")
        bad = await storage.alert_history.create(sub.id, "failed one")
        await storage.alert_history.mark_sent(ok)
        await storage.alert_history.mark_failed(bad, "smtp down")

        items = await storage.alert_history.for_email("a@b.co")
        by_msg = {h.message: h for h in items}
        assert by_msg["sent one"].email_sent is True
        assert by_msg["sent one"].email_sent_at is not None
        assert by_msg["failed one"].email_sent is False
        assert by_msg["failed one"].error_message == "smtp down"
        assert by_msg["failed one"].alert_type.value == "new_block"
        assert await storage.alert_history.count_for_email("a@b.co") == 2
