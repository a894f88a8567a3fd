SCHEMA_VERSION = 1

# Timestamps are epoch seconds in both dialects so repositories never need
# dialect-specific date functions. Objects are created without IF NOT EXISTS;
# the migrator swallows "already exists" errors statement by statement.

SQLITE_SCHEMA_SQL = """
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

CREATE TABLE pools (
    id             TEXT PRIMARY KEY,
    name           TEXT NOT NULL UNIQUE,
    api_url        TEXT NOT NULL,
    fee_percentage REAL NOT NULL,
    payout_method  TEXT NOT NULL CHECK (payout_method IN ('PPS', 'PPLNS', 'PPS+')),
    status         TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'inactive', 'maintenance')),
    minimum_payout REAL NOT NULL DEFAULT 0.01,
    created_at     REAL NOT NULL,
    updated_at     REAL NOT NULL
);

CREATE TABLE pool_statistics (
    id               TEXT PRIMARY KEY,
    pool_id          TEXT NOT NULL REFERENCES pools(id) ON DELETE CASCADE,
    timestamp        REAL NOT NULL,
    hashrate         REAL NOT NULL,
    miners_count     INTEGER NOT NULL DEFAULT 0,
    blocks_found_24h INTEGER NOT NULL DEFAULT 0,
    luck_7d          REAL NOT NULL DEFAULT 0,
    difficulty       REAL NOT NULL DEFAULT 0,
    block_time       REAL NOT NULL DEFAULT 0,
    last_block_time  REAL
);

CREATE TABLE blocks (
    id           TEXT PRIMARY KEY,
    pool_id      TEXT NOT NULL REFERENCES pools(id) ON DELETE CASCADE,
    block_number INTEGER NOT NULL,
    timestamp    REAL NOT NULL,
    reward       REAL NOT NULL,
    miner_count  INTEGER NOT NULL DEFAULT 0,
    difficulty   REAL NOT NULL,
    hash         TEXT NOT NULL,
    uncle        INTEGER NOT NULL DEFAULT 0,
    UNIQUE (pool_id, block_number)
);

CREATE TABLE alert_subscriptions (
    id         TEXT PRIMARY KEY,
    email      TEXT NOT NULL,
    pool_id    TEXT REFERENCES pools(id) ON DELETE CASCADE,
    alert_type TEXT NOT NULL CHECK (alert_type IN (
        'hashrate_drop', 'pool_offline', 'luck_streak', 'new_block', 'profitability_change'
    )),
    threshold  REAL,
    is_active  INTEGER NOT NULL DEFAULT 1,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL,
    UNIQUE (email, pool_id, alert_type)
);

CREATE TABLE alert_history (
    id              TEXT PRIMARY KEY,
    subscription_id TEXT NOT NULL REFERENCES alert_subscriptions(id) ON DELETE CASCADE,
    triggered_at    REAL NOT NULL,
    message         TEXT NOT NULL,
    email_sent      INTEGER NOT NULL DEFAULT 0,
    pool_id         TEXT REFERENCES pools(id) ON DELETE SET NULL,
    trigger_value   REAL,
    email_sent_at   REAL,
    error_message   TEXT
);

CREATE TABLE network_stats (
    id                   TEXT PRIMARY KEY,
    timestamp            REAL NOT NULL,
    total_hashrate       REAL NOT NULL,
    difficulty           REAL NOT NULL,
    block_time           REAL NOT NULL,
    pending_transactions INTEGER NOT NULL DEFAULT 0,
    gas_price            REAL NOT NULL DEFAULT 0
);

CREATE INDEX idx_pool_stats_pool_ts ON pool_statistics(pool_id, timestamp);
CREATE INDEX idx_pool_stats_ts ON pool_statistics(timestamp);
CREATE INDEX idx_blocks_pool_ts ON blocks(pool_id, timestamp);
CREATE INDEX idx_blocks_ts ON blocks(timestamp);
CREATE INDEX idx_alert_subs_email ON alert_subscriptions(email);
CREATE INDEX idx_alert_subs_active ON alert_subscriptions(is_active);
CREATE UNIQUE INDEX idx_alert_subs_global ON alert_subscriptions(email, alert_type) WHERE pool_id IS NULL;
CREATE INDEX idx_alert_history_sub_ts ON alert_history(subscription_id, triggered_at);
CREATE INDEX idx_alert_history_ts ON alert_history(triggered_at);
CREATE INDEX idx_network_stats_ts ON network_stats(timestamp);

CREATE VIEW latest_pool_stats AS
SELECT ps.pool_id, ps.timestamp, ps.hashrate, ps.miners_count, ps.blocks_found_24h,
       ps.luck_7d, ps.difficulty, ps.block_time, ps.last_block_time
FROM pool_statistics ps
WHERE ps.timestamp = (
    SELECT MAX(ps2.timestamp) FROM pool_statistics ps2 WHERE ps2.pool_id = ps.pool_id
);
"""

POSTGRES_SCHEMA_SQL = """
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at DOUBLE PRECISION NOT NULL
);

CREATE TABLE pools (
    id             TEXT PRIMARY KEY,
    name           TEXT NOT NULL UNIQUE,
    api_url        TEXT NOT NULL,
    fee_percentage DOUBLE PRECISION NOT NULL,
    payout_method  TEXT NOT NULL CHECK (payout_method IN ('PPS', 'PPLNS', 'PPS+')),
    status         TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'inactive', 'maintenance')),
    minimum_payout DOUBLE PRECISION NOT NULL DEFAULT 0.01,
    created_at     DOUBLE PRECISION NOT NULL,
    updated_at     DOUBLE PRECISION NOT NULL
);

CREATE TABLE pool_statistics (
    id               TEXT PRIMARY KEY,
    pool_id          TEXT NOT NULL REFERENCES pools(id) ON DELETE CASCADE,
    timestamp        DOUBLE PRECISION NOT NULL,
    hashrate         DOUBLE PRECISION NOT NULL,
    miners_count     INTEGER NOT NULL DEFAULT 0,
    blocks_found_24h INTEGER NOT NULL DEFAULT 0,
    luck_7d          DOUBLE PRECISION NOT NULL DEFAULT 0,
    difficulty       DOUBLE PRECISION NOT NULL DEFAULT 0,
    block_time       DOUBLE PRECISION NOT NULL DEFAULT 0,
    last_block_time  DOUBLE PRECISION
);

CREATE TABLE blocks (
    id           TEXT PRIMARY KEY,
    pool_id      TEXT NOT NULL REFERENCES pools(id) ON DELETE CASCADE,
    block_number BIGINT NOT NULL,
    timestamp    DOUBLE PRECISION NOT NULL,
    reward       DOUBLE PRECISION NOT NULL,
    miner_count  INTEGER NOT NULL DEFAULT 0,
    difficulty   DOUBLE PRECISION NOT NULL,
    hash         TEXT NOT NULL,
    uncle        INTEGER NOT NULL DEFAULT 0,
    UNIQUE (pool_id, block_number)
);

CREATE TABLE alert_subscriptions (
    id         TEXT PRIMARY KEY,
    email      TEXT NOT NULL,
    pool_id    TEXT REFERENCES pools(id) ON DELETE CASCADE,
    alert_type TEXT NOT NULL CHECK (alert_type IN (
        'hashrate_drop', 'pool_offline', 'luck_streak', 'new_block', 'profitability_change'
    )),
    threshold  DOUBLE PRECISION,
    is_active  INTEGER NOT NULL DEFAULT 1,
    created_at DOUBLE PRECISION NOT NULL,
    updated_at DOUBLE PRECISION NOT NULL,
    UNIQUE (email, pool_id, alert_type)
);

CREATE TABLE alert_history (
    id              TEXT PRIMARY KEY,
    subscription_id TEXT NOT NULL REFERENCES alert_subscriptions(id) ON DELETE CASCADE,
    triggered_at    DOUBLE PRECISION NOT NULL,
    message         TEXT NOT NULL,
    email_sent      INTEGER NOT NULL DEFAULT 0,
    pool_id         TEXT REFERENCES pools(id) ON DELETE SET NULL,
    trigger_value   DOUBLE PRECISION,
    email_sent_at   DOUBLE PRECISION,
    error_message   TEXT
);

CREATE TABLE network_stats (
    id                   TEXT PRIMARY KEY,
    timestamp            DOUBLE PRECISION NOT NULL,
    total_hashrate       DOUBLE PRECISION NOT NULL,
    difficulty           DOUBLE PRECISION NOT NULL,
    block_time           DOUBLE PRECISION NOT NULL,
    pending_transactions BIGINT NOT NULL DEFAULT 0,
    gas_price            DOUBLE PRECISION NOT NULL DEFAULT 0
);

CREATE INDEX idx_pool_stats_pool_ts ON pool_statistics(pool_id, timestamp DESC);
CREATE INDEX idx_pool_stats_ts ON pool_statistics(timestamp DESC);
CREATE INDEX idx_blocks_pool_ts ON blocks(pool_id, timestamp DESC);
CREATE INDEX idx_blocks_ts ON blocks(timestamp DESC);
CREATE INDEX idx_alert_subs_email ON alert_subscriptions(email);
CREATE INDEX idx_alert_subs_active ON alert_subscriptions(is_active) WHERE is_active = 1;
CREATE UNIQUE INDEX idx_alert_subs_global ON alert_subscriptions(email, alert_type) WHERE pool_id IS NULL;
CREATE INDEX idx_alert_history_sub_ts ON alert_history(subscription_id, triggered_at DESC);
CREATE INDEX idx_alert_history_ts ON alert_history(triggered_at DESC);
CREATE INDEX idx_network_stats_ts ON network_stats(timestamp DESC);

CREATE VIEW latest_pool_stats AS
SELECT DISTINCT ON (pool_id)
       pool_id, timestamp, hashrate, miners_count, blocks_found_24h,
       luck_7d, difficulty, block_time, last_block_time
FROM pool_statistics
ORDER BY pool_id, timestamp DESC;
"""

SCHEMAS = {
    "sqlite": SQLITE_SCHEMA_SQL,
    "postgresql": POSTGRES_SCHEMA_SQL,
}


def split_statements(script: str):
    """Split a schema script on `;` into individual statements."""
    for chunk in script.split(";"):
        stmt = chunk.strip()
        if stmt:
            yield stmt
