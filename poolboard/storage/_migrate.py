import logging
import time

from ._database import Database
from ._schema import SCHEMA_VERSION, SCHEMAS, split_statements

logger = logging.getLogger("storage")

HOUR = 3600.0

# (key, name, api_url, fee, payout_method, minimum_payout)
SAMPLE_POOLS = [
    ("ethermine", "Ethermine", "https://api.ethermine.org", 1.0, "PPLNS", 0.01),
    ("f2pool", "F2Pool", "https://api.f2pool.com", 2.5, "PPS", 0.005),
    ("flexpool", "Flexpool", "https://flexpool.io/api/v2", 1.0, "PPLNS", 0.01),
    ("2miners", "2miners", "https://eth.2miners.com/api", 1.0, "PPLNS", 0.01),
    ("nanopool", "Nanopool", "https://api.nanopool.org", 1.0, "PPLNS", 0.2),
]

# key -> [(hours_ago, hashrate, miners, blocks_24h, luck_7d, block_time)]
SAMPLE_STATS = {
    "ethermine": [
        (1, 750e12, 85000, 12, 98.5, 13),
        (2, 748e12, 84800, 11, 97.8, 13),
        (3, 752e12, 85200, 13, 99.2, 12),
    ],
    "f2pool": [
        (1, 320e12, 35000, 5, 101.2, 13),
        (2, 318e12, 34900, 4, 100.8, 13),
        (3, 322e12, 35100, 6, 102.1, 12),
    ],
    "flexpool": [
        (1, 180e12, 22000, 3, 95.5, 13),
        (2, 179e12, 21900, 2, 94.8, 13),
        (3, 181e12, 22100, 4, 96.2, 12),
    ],
    "2miners": [
        (1, 95e12, 12000, 2, 103.5, 13),
        (2, 94e12, 11900, 1, 102.8, 13),
        (3, 96e12, 12100, 3, 104.2, 12),
    ],
}

# (key, block_number, hours_ago, reward, miner_count, hash)
SAMPLE_BLOCKS = [
    ("ethermine", 18500123, 2, 2.08, 85000,
     "0x1a2b3c4d5e6f7890abcdef1234567890abcdef1234567890abcdef1234567890"),
    ("ethermine", 18500089, 4, 2.12, 84800,
     "0x2b3c4d5e6f7890ab1234567890abcdef1234567890abcdef1234567890abcdef"),
    ("f2pool", 18500067, 6, 2.15, 35000,
     "0x3c4d5e6f7890abcd567890abcdef1234567890abcdef1234567890abcdef1234"),
    ("flexpool", 18500045, 8, 2.09, 22000,
     "0x4d5e6f7890abcdef90abcdef1234567890abcdef1234567890abcdef12345678"),
    ("2miners", 18500021, 10, 2.11, 12000,
     "0x5e6f7890abcdef12cdef1234567890abcdef1234567890abcdef1234567890ab"),
]

# (hours_ago, total_hashrate, difficulty, block_time, pending, gas_price)
SAMPLE_NETWORK = [
    (1, 1200e12, 15500e12, 13, 125000, 25e9),
    (2, 1198e12, 15480e12, 13, 128000, 26e9),
    (3, 1205e12, 15520e12, 12, 122000, 24.5e9),
    (4, 1203e12, 15510e12, 13, 126000, 25.5e9),
    (5, 1201e12, 15490e12, 13, 130000, 27e9),
]

NETWORK_DIFFICULTY = 1.55e16


async def apply_schema(db: Database, log=None):
    """Create every schema object, tolerating ones that already exist."""
    log = log or logger
    created = skipped = 0
    for stmt in split_statements(SCHEMAS[db.dialect]):
        try:
            await db.execute(stmt)
            created += 1
        except Exception as e:
            if not db.is_already_exists_error(e):
                log.error("Schema statement failed: %s", e)
                raise
            skipped += 1

    current = await db.scalar("SELECT MAX(version) FROM schema_version", default=0)
    if current < SCHEMA_VERSION:
        await db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (SCHEMA_VERSION, time.time()),
        )
        log.info("Schema v%d applied (%s)", SCHEMA_VERSION, db.dialect)
    else:
        log.info("Schema up to date at v%d (%d objects already present)", current, skipped)
    return created


async def seed_sample_data(db: Database, log=None) -> bool:
    """Insert sample pools, statistics, blocks and network rows into an empty database.

    The emptiness check and the inserts share one transaction. Returns True
    when rows were written.
    """
    log = log or logger
    async with db.transaction():
        count = await db.scalar("SELECT COUNT(*) AS count FROM pools")
        if int(count) > 0:
            log.info("Seed skipped: %d pools already present", int(count))
            return False

        now = time.time()
        ids = {}
        for key, name, api_url, fee, method, min_payout in SAMPLE_POOLS:
            ids[key] = db.new_id()
            await db.execute(
                "INSERT INTO pools (id, name, api_url, fee_percentage, payout_method, status, "
                "minimum_payout, created_at, updated_at) VALUES (?, ?, ?, ?, ?, 'active', ?, ?, ?)",
                (ids[key], name, api_url, fee, method, min_payout, now, now),
            )

        for key, rows in SAMPLE_STATS.items():
            for hours_ago, hashrate, miners, blocks, luck, block_time in rows:
                await db.execute(
                    "INSERT INTO pool_statistics (id, pool_id, timestamp, hashrate, miners_count, "
                    "blocks_found_24h, luck_7d, difficulty, block_time) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (db.new_id(), ids[key], now - hours_ago * HOUR, hashrate, miners,
                     blocks, luck, NETWORK_DIFFICULTY, block_time),
                )

        for key, number, hours_ago, reward, miner_count, block_hash in SAMPLE_BLOCKS:
            await db.execute(
                "INSERT INTO blocks (id, pool_id, block_number, timestamp, reward, miner_count, "
                "difficulty, hash, uncle) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0)",
                (db.new_id(), ids[key], number, now - hours_ago * HOUR, reward,
                 miner_count, NETWORK_DIFFICULTY, block_hash),
            )

        for hours_ago, hashrate, difficulty, block_time, pending, gas in SAMPLE_NETWORK:
            await db.execute(
                "INSERT INTO network_stats (id, timestamp, total_hashrate, difficulty, block_time, "
                "pending_transactions, gas_price) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (db.new_id(), now - hours_ago * HOUR, hashrate, difficulty, block_time, pending, gas),
            )

    log.info("Seeded %d sample pools", len(SAMPLE_POOLS))
    return True
