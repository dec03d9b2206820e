import asyncpg
import asyncio
from loguru import logger
from tradejournal.config import DATABASE_URL


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    hashed_password TEXT NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    is_premium BOOLEAN NOT NULL DEFAULT FALSE,
    subscription_plan TEXT NOT NULL DEFAULT 'trial'
        CHECK (subscription_plan IN ('trial', 'pro', 'elite')),
    subscription_status TEXT,
    theme TEXT NOT NULL DEFAULT 'dark' CHECK (theme IN ('dark', 'light')),
    tradovate_username TEXT,
    tradovate_password TEXT,
    tradovate_cid TEXT,
    tradovate_secret TEXT,
    tradovate_environment TEXT NOT NULL DEFAULT 'demo'
        CHECK (tradovate_environment IN ('demo', 'live')),
    tradovate_last_sync TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS trades (
    id SERIAL PRIMARY KEY,
    owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    ticker TEXT NOT NULL,
    enter_time TIMESTAMPTZ NOT NULL,
    exit_time TIMESTAMPTZ NOT NULL,
    enter_price DOUBLE PRECISION NOT NULL CHECK (enter_price >= 0),
    exit_price DOUBLE PRECISION NOT NULL CHECK (exit_price >= 0),
    quantity DOUBLE PRECISION NOT NULL,
    manual_pl DOUBLE PRECISION,
    comments TEXT NOT NULL DEFAULT '',
    screenshot TEXT,
    tradovate_order_id TEXT,
    tradovate_source TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (owner_id, tradovate_order_id)
);

CREATE INDEX IF NOT EXISTS trades_owner_exit_idx ON trades (owner_id, exit_time);

CREATE TABLE IF NOT EXISTS tags (
    id SERIAL PRIMARY KEY,
    owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    UNIQUE (owner_id, name)
);

CREATE TABLE IF NOT EXISTS trade_tags (
    trade_id INTEGER NOT NULL REFERENCES trades(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (trade_id, tag_id)
);
"""


async def init_db():
    logger.info("📦 Ensuring database schema...")
    conn = None

    try:
        conn = await asyncpg.connect(DATABASE_URL)
        async with conn.transaction():
            await conn.execute(SCHEMA_SQL)
        logger.info("✅ Database schema ready")

    finally:
        if conn:
            await conn.close()


if __name__ == "__main__":
    asyncio.run(init_db())
