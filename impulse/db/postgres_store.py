"""
PostgreSQL store

HabitStore implementation on psycopg 3 (async) with a shared connection pool.
A session wraps one pooled connection inside a single database transaction:
`conn.transaction()` commits when the block exits cleanly and rolls back when
it raises. Completions load the habit row FOR UPDATE, which serializes
concurrent completions of the same habit across processes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg

from impulse.db.connection import Database, db as default_db
from impulse.db.schema import init_schema
from impulse.models.habit import CompletionRecord, Habit
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.models.user import User

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "id, username, email, password_hash, refresh_token, xp, level, total_habits_completed, "
    "streak_protection_tokens, current_theme, current_badge, last_login, created_at, updated_at"
)
HABIT_COLUMNS = (
    "id, user_id, name, icon, description, streak, best_streak, last_completed, "
    "total_completions, is_active, created_at, updated_at"
)
LOOT_COLUMNS = (
    "id, user_id, type, name, rarity, description, icon, is_equipped, acquired_at, from_habit"
)


# ==========================================
# Row helpers (shared by store reads and sessions)
# ==========================================

async def _fetch_history(cur: psycopg.AsyncCursor, habit_id: str) -> list[CompletionRecord]:
    await cur.execute(
        """
        SELECT date, reward_kind, reward_amount, reward_item_name
        FROM habit_completions
        WHERE habit_id = %s
        ORDER BY position
        """,
        (habit_id,)
    )
    rows = await cur.fetchall()
    return [CompletionRecord(**row) for row in rows]


async def _fetch_habit(
    cur: psycopg.AsyncCursor,
    habit_id: str,
    owner_id: str,
    active_only: bool = False,
    for_update: bool = False
) -> Optional[Habit]:
    query = f"SELECT {HABIT_COLUMNS} FROM habits WHERE id = %s AND user_id = %s"
    if active_only:
        query += " AND is_active"
    if for_update:
        query += " FOR UPDATE"

    await cur.execute(query, (habit_id, owner_id))
    row = await cur.fetchone()
    if not row:
        return None

    history = await _fetch_history(cur, habit_id)
    return Habit(**row, completion_history=history)


async def _fetch_user(cur: psycopg.AsyncCursor, user_id: str, for_update: bool = False) -> Optional[User]:
    query = f"SELECT {USER_COLUMNS} FROM users WHERE id = %s"
    if for_update:
        query += " FOR UPDATE"
    await cur.execute(query, (user_id,))
    row = await cur.fetchone()
    return User(**row) if row else None


async def _fetch_loot_item(
    cur: psycopg.AsyncCursor, item_id: str, user_id: str, for_update: bool = False
) -> Optional[LootItem]:
    query = f"SELECT {LOOT_COLUMNS} FROM loot_items WHERE id = %s AND user_id = %s"
    if for_update:
        query += " FOR UPDATE"
    await cur.execute(query, (item_id, user_id))
    row = await cur.fetchone()
    return LootItem(**row) if row else None


def _user_params(user: User) -> tuple:
    return (
        user.username,
        user.email,
        user.password_hash,
        user.refresh_token,
        user.xp,
        user.level,
        user.total_habits_completed,
        user.streak_protection_tokens,
        user.current_theme,
        user.current_badge,
        user.last_login,
        user.updated_at,
        user.id,
    )


def _habit_params(habit: Habit) -> tuple:
    return (
        habit.user_id,
        habit.name,
        habit.icon,
        habit.description,
        habit.streak,
        habit.best_streak,
        habit.last_completed,
        habit.total_completions,
        habit.is_active,
        habit.updated_at,
        habit.id,
    )


def _loot_params(item: LootItem) -> tuple:
    return (
        item.user_id,
        item.type.value,
        item.name,
        item.rarity.value,
        item.description,
        item.icon,
        item.is_equipped,
        item.acquired_at,
        item.from_habit,
        item.id,
    )


class PostgresSession:
    """Unit of work bound to one connection and one transaction"""

    def __init__(self, conn: psycopg.AsyncConnection):
        self.conn = conn

    async def load_habit(
        self, habit_id: str, owner_id: str, for_update: bool = False
    ) -> Optional[Habit]:
        async with self.conn.cursor() as cur:
            return await _fetch_habit(cur, habit_id, owner_id, for_update=for_update)

    async def load_user(self, user_id: str, for_update: bool = False) -> Optional[User]:
        async with self.conn.cursor() as cur:
            return await _fetch_user(cur, user_id, for_update=for_update)

    async def load_loot_item(
        self, item_id: str, user_id: str, for_update: bool = False
    ) -> Optional[LootItem]:
        async with self.conn.cursor() as cur:
            return await _fetch_loot_item(cur, item_id, user_id, for_update=for_update)

    async def create_user(self, user: User) -> None:
        user.enforce_invariants()
        async with self.conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO users (
                    username, email, password_hash, refresh_token, xp, level,
                    total_habits_completed, streak_protection_tokens, current_theme,
                    current_badge, last_login, updated_at, id, created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                _user_params(user) + (user.created_at,)
            )

    async def save_user(self, user: User) -> None:
        user.enforce_invariants()
        async with self.conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE users
                SET username = %s,
                    email = %s,
                    password_hash = %s,
                    refresh_token = %s,
                    xp = %s,
                    level = %s,
                    total_habits_completed = %s,
                    streak_protection_tokens = %s,
                    current_theme = %s,
                    current_badge = %s,
                    last_login = %s,
                    updated_at = %s
                WHERE id = %s
                """,
                _user_params(user)
            )

    async def create_habit(self, habit: Habit) -> None:
        habit.enforce_invariants()
        async with self.conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO habits (
                    user_id, name, icon, description, streak, best_streak, last_completed,
                    total_completions, is_active, updated_at, id, created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                _habit_params(habit) + (habit.created_at,)
            )
            await self._append_history(cur, habit)

    async def save_habit(self, habit: Habit) -> None:
        habit.enforce_invariants()
        async with self.conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE habits
                SET user_id = %s,
                    name = %s,
                    icon = %s,
                    description = %s,
                    streak = %s,
                    best_streak = %s,
                    last_completed = %s,
                    total_completions = %s,
                    is_active = %s,
                    updated_at = %s
                WHERE id = %s
                """,
                _habit_params(habit)
            )
            await self._append_history(cur, habit)

    async def _append_history(self, cur: psycopg.AsyncCursor, habit: Habit) -> None:
        """History is append-only: insert only entries past what is stored"""
        await cur.execute(
            "SELECT COUNT(*) AS stored FROM habit_completions WHERE habit_id = %s",
            (habit.id,)
        )
        row = await cur.fetchone()
        stored = row["stored"] if row else 0

        new_records = habit.completion_history[stored:]
        if not new_records:
            return

        await cur.executemany(
            """
            INSERT INTO habit_completions (
                habit_id, position, date, reward_kind, reward_amount, reward_item_name
            )
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            [
                (
                    habit.id,
                    position,
                    record.date,
                    record.reward_kind.value,
                    record.reward_amount,
                    record.reward_item_name,
                )
                for position, record in enumerate(new_records, start=stored)
            ]
        )

    async def _unequip_siblings(self, cur: psycopg.AsyncCursor, item: LootItem) -> None:
        await cur.execute(
            """
            UPDATE loot_items
            SET is_equipped = FALSE
            WHERE user_id = %s AND type = %s AND id <> %s AND is_equipped
            """,
            (item.user_id, item.type.value, item.id)
        )

    async def create_loot_item(self, item: LootItem) -> None:
        async with self.conn.cursor() as cur:
            if item.is_equipped:
                await self._unequip_siblings(cur, item)
            await cur.execute(
                """
                INSERT INTO loot_items (
                    user_id, type, name, rarity, description, icon, is_equipped,
                    acquired_at, from_habit, id
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                _loot_params(item)
            )

    async def save_loot_item(self, item: LootItem) -> None:
        async with self.conn.cursor() as cur:
            if item.is_equipped:
                await self._unequip_siblings(cur, item)
            await cur.execute(
                """
                UPDATE loot_items
                SET user_id = %s,
                    type = %s,
                    name = %s,
                    rarity = %s,
                    description = %s,
                    icon = %s,
                    is_equipped = %s,
                    acquired_at = %s,
                    from_habit = %s
                WHERE id = %s
                """,
                _loot_params(item)
            )


class PostgresStore:
    """HabitStore backed by PostgreSQL"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or default_db

    async def open(self) -> None:
        """Open the connection pool and make sure the schema exists"""
        await self.db.init_pool()
        await init_schema(self.db)

    async def close(self) -> None:
        await self.db.close_pool()

    async def load_habit(
        self, habit_id: str, owner_id: str, active_only: bool = False
    ) -> Optional[Habit]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                return await _fetch_habit(cur, habit_id, owner_id, active_only=active_only)

    async def load_user(self, user_id: str) -> Optional[User]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                return await _fetch_user(cur, user_id)

    async def find_user(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[User]:
        if username is None and email is None:
            return None
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE username = %s OR email = %s
                    LIMIT 1
                    """,
                    (username, email.strip().lower() if email else None)
                )
                row = await cur.fetchone()
                return User(**row) if row else None

    async def list_users(self) -> list[User]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"SELECT {USER_COLUMNS} FROM users ORDER BY xp DESC")
                rows = await cur.fetchall()
                return [User(**row) for row in rows]

    async def list_habits(self, user_id: str, active_only: bool = True) -> list[Habit]:
        query = f"SELECT {HABIT_COLUMNS} FROM habits WHERE user_id = %s"
        if active_only:
            query += " AND is_active"
        query += " ORDER BY created_at DESC"

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, (user_id,))
                rows = await cur.fetchall()
                habits = []
                for row in rows:
                    history = await _fetch_history(cur, row["id"])
                    habits.append(Habit(**row, completion_history=history))
                return habits

    async def load_loot_item(self, item_id: str, user_id: str) -> Optional[LootItem]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                return await _fetch_loot_item(cur, item_id, user_id)

    async def list_loot_items(
        self,
        user_id: str,
        item_type: Optional[LootType] = None,
        rarity: Optional[LootRarity] = None,
        equipped: Optional[bool] = None,
    ) -> list[LootItem]:
        query = f"SELECT {LOOT_COLUMNS} FROM loot_items WHERE user_id = %s"
        params: list = [user_id]
        if item_type is not None:
            query += " AND type = %s"
            params.append(item_type.value)
        if rarity is not None:
            query += " AND rarity = %s"
            params.append(rarity.value)
        if equipped is not None:
            query += " AND is_equipped = %s"
            params.append(equipped)
        query += " ORDER BY acquired_at DESC"

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, tuple(params))
                rows = await cur.fetchall()
                return [LootItem(**row) for row in rows]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresSession]:
        async with self.db.connection() as conn:
            async with conn.transaction():
                logger.debug("Opened store transaction")
                yield PostgresSession(conn)

    async def ping(self) -> bool:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    await cur.fetchone()
            return True
        except (psycopg.Error, RuntimeError) as e:
            logger.error(f"Database health check failed: {e}")
            return False
