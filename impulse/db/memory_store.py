"""
In-memory store

Keeps users, habits and loot items in process memory. Every read hands out a
deep copy, and sessions stage their writes until commit, so callers can never
mutate committed state behind the store's back. State is lost on restart; use
the PostgreSQL store for anything durable.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.models.user import User

logger = logging.getLogger(__name__)


def _copy(model):
    return model.model_copy(deep=True) if model is not None else None


class MemorySession:
    """Unit of work over a MemoryStore (writes staged until commit)"""

    def __init__(self, store: "MemoryStore"):
        self._store = store
        self._users: dict[str, User] = {}
        self._habits: dict[str, Habit] = {}
        self._loot: dict[str, LootItem] = {}

    # Reads see this session's staged writes on top of committed state

    def _habit(self, habit_id: str) -> Optional[Habit]:
        if habit_id in self._habits:
            return self._habits[habit_id]
        return self._store._habits.get(habit_id)

    def _user(self, user_id: str) -> Optional[User]:
        if user_id in self._users:
            return self._users[user_id]
        return self._store._users.get(user_id)

    def _item(self, item_id: str) -> Optional[LootItem]:
        if item_id in self._loot:
            return self._loot[item_id]
        return self._store._loot.get(item_id)

    async def load_habit(
        self, habit_id: str, owner_id: str, for_update: bool = False
    ) -> Optional[Habit]:
        habit = self._habit(habit_id)
        if habit is None or habit.user_id != owner_id:
            return None
        return _copy(habit)

    async def load_user(self, user_id: str, for_update: bool = False) -> Optional[User]:
        return _copy(self._user(user_id))

    async def load_loot_item(
        self, item_id: str, user_id: str, for_update: bool = False
    ) -> Optional[LootItem]:
        item = self._item(item_id)
        if item is None or item.user_id != user_id:
            return None
        return _copy(item)

    async def create_user(self, user: User) -> None:
        await self.save_user(user)

    async def save_user(self, user: User) -> None:
        user.enforce_invariants()
        self._users[user.id] = _copy(user)

    async def create_habit(self, habit: Habit) -> None:
        await self.save_habit(habit)

    async def save_habit(self, habit: Habit) -> None:
        habit.enforce_invariants()
        self._habits[habit.id] = _copy(habit)

    async def create_loot_item(self, item: LootItem) -> None:
        await self.save_loot_item(item)

    async def save_loot_item(self, item: LootItem) -> None:
        if item.is_equipped:
            siblings = [
                self._item(other_id)
                for other_id in set(self._store._loot) | set(self._loot)
                if other_id != item.id
            ]
            for other in siblings:
                if other.user_id == item.user_id and other.type == item.type and other.is_equipped:
                    unequipped = _copy(other)
                    unequipped.is_equipped = False
                    self._loot[other.id] = unequipped
        self._loot[item.id] = _copy(item)

    def commit(self) -> None:
        self._store._users.update(self._users)
        self._store._habits.update(self._habits)
        self._store._loot.update(self._loot)
        logger.debug(
            f"Committed {len(self._users)} users, {len(self._habits)} habits, "
            f"{len(self._loot)} loot items"
        )


class MemoryStore:
    """In-process HabitStore implementation"""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._habits: dict[str, Habit] = {}
        self._loot: dict[str, LootItem] = {}
        logger.info("MemoryStore initialized - data is NOT persisted across restarts")

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def load_habit(
        self, habit_id: str, owner_id: str, active_only: bool = False
    ) -> Optional[Habit]:
        habit = self._habits.get(habit_id)
        if habit is None or habit.user_id != owner_id:
            return None
        if active_only and not habit.is_active:
            return None
        return _copy(habit)

    async def load_user(self, user_id: str) -> Optional[User]:
        return _copy(self._users.get(user_id))

    async def find_user(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[User]:
        for user in self._users.values():
            if username is not None and user.username == username:
                return _copy(user)
            if email is not None and user.email == email.strip().lower():
                return _copy(user)
        return None

    async def list_users(self) -> list[User]:
        return [_copy(user) for user in self._users.values()]

    async def list_habits(self, user_id: str, active_only: bool = True) -> list[Habit]:
        habits = [
            habit for habit in self._habits.values()
            if habit.user_id == user_id and (habit.is_active or not active_only)
        ]
        habits.sort(key=lambda h: h.created_at, reverse=True)
        return [_copy(habit) for habit in habits]

    async def load_loot_item(self, item_id: str, user_id: str) -> Optional[LootItem]:
        item = self._loot.get(item_id)
        if item is None or item.user_id != user_id:
            return None
        return _copy(item)

    async def list_loot_items(
        self,
        user_id: str,
        item_type: Optional[LootType] = None,
        rarity: Optional[LootRarity] = None,
        equipped: Optional[bool] = None,
    ) -> list[LootItem]:
        items = [
            item for item in self._loot.values()
            if item.user_id == user_id
            and (item_type is None or item.type == item_type)
            and (rarity is None or item.rarity == rarity)
            and (equipped is None or item.is_equipped == equipped)
        ]
        items.sort(key=lambda i: i.acquired_at, reverse=True)
        return [_copy(item) for item in items]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemorySession]:
        session = MemorySession(self)
        yield session
        # Only reached when the block did not raise; otherwise staged writes are dropped
        session.commit()

    async def ping(self) -> bool:
        return True
