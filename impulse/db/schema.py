"""PostgreSQL schema for the habit store"""
import logging

from impulse.db.connection import Database

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username VARCHAR(30) NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT,
    refresh_token TEXT,
    xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
    level INTEGER NOT NULL DEFAULT 1,
    total_habits_completed INTEGER NOT NULL DEFAULT 0,
    streak_protection_tokens INTEGER NOT NULL DEFAULT 0,
    current_theme TEXT NOT NULL DEFAULT 'default',
    current_badge TEXT,
    last_login TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_users_xp ON users (xp DESC);

CREATE TABLE IF NOT EXISTS habits (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users (id),
    name VARCHAR(100) NOT NULL,
    icon TEXT NOT NULL DEFAULT '⭐',
    description VARCHAR(500) NOT NULL DEFAULT '',
    streak INTEGER NOT NULL DEFAULT 0,
    best_streak INTEGER NOT NULL DEFAULT 0,
    last_completed TIMESTAMPTZ,
    total_completions INTEGER NOT NULL DEFAULT 0,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CHECK (best_streak >= streak)
);

CREATE INDEX IF NOT EXISTS idx_habits_user_active ON habits (user_id, is_active);

CREATE TABLE IF NOT EXISTS habit_completions (
    habit_id TEXT NOT NULL REFERENCES habits (id),
    position INTEGER NOT NULL,
    date TIMESTAMPTZ NOT NULL,
    reward_kind TEXT NOT NULL CHECK (reward_kind IN ('nothing', 'xp', 'token', 'loot')),
    reward_amount INTEGER NOT NULL DEFAULT 0,
    reward_item_name TEXT,
    PRIMARY KEY (habit_id, position)
);

CREATE TABLE IF NOT EXISTS loot_items (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users (id),
    type TEXT NOT NULL CHECK (type IN ('theme', 'badge', 'avatar', 'effect')),
    name TEXT NOT NULL,
    rarity TEXT NOT NULL CHECK (rarity IN ('common', 'rare', 'epic', 'legendary')),
    description VARCHAR(200) NOT NULL DEFAULT '',
    icon TEXT NOT NULL DEFAULT '🎁',
    is_equipped BOOLEAN NOT NULL DEFAULT FALSE,
    acquired_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    from_habit TEXT REFERENCES habits (id)
);

CREATE INDEX IF NOT EXISTS idx_loot_items_user ON loot_items (user_id, acquired_at DESC);

-- At most one equipped item per (user, type)
CREATE UNIQUE INDEX IF NOT EXISTS uq_loot_items_equipped
    ON loot_items (user_id, type) WHERE is_equipped;
"""


async def init_schema(database: Database) -> None:
    """Create tables and indexes if they do not exist"""
    async with database.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(SCHEMA_SQL)
        await conn.commit()
    logger.info("Database schema ensured")
