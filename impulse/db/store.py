"""
Persistence contract for the reward engine

Read queries run directly on the store. All writes go through a session
obtained from `store.transaction()`: the session is a unit of work that is
committed when the block exits cleanly and discarded when it raises, so a
completion either lands as a whole (habit, user and loot item) or not at all.
"""

from typing import AsyncContextManager, Optional, Protocol

from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.models.user import User


class StoreSession(Protocol):
    """Transactional view of the store"""

    async def load_habit(
        self, habit_id: str, owner_id: str, for_update: bool = False
    ) -> Optional[Habit]:
        """Load a habit owned by owner_id (optionally locking it until commit)"""
        ...

    async def load_user(self, user_id: str, for_update: bool = False) -> Optional[User]:
        ...

    async def load_loot_item(
        self, item_id: str, user_id: str, for_update: bool = False
    ) -> Optional[LootItem]:
        ...

    async def create_user(self, user: User) -> None:
        ...

    async def save_user(self, user: User) -> None:
        """Persist user fields; level is re-derived from XP first"""
        ...

    async def create_habit(self, habit: Habit) -> None:
        ...

    async def save_habit(self, habit: Habit) -> None:
        """Persist habit fields and any new history entries; best_streak re-checked first"""
        ...

    async def create_loot_item(self, item: LootItem) -> None:
        ...

    async def save_loot_item(self, item: LootItem) -> None:
        """Persist an item; equipping it unequips the owner's other items of the same type"""
        ...


class HabitStore(Protocol):
    """Persistence collaborator used by the services"""

    async def load_habit(
        self, habit_id: str, owner_id: str, active_only: bool = False
    ) -> Optional[Habit]:
        ...

    async def load_user(self, user_id: str) -> Optional[User]:
        ...

    async def find_user(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[User]:
        """Find a user by exact username or (case-insensitive) email"""
        ...

    async def list_users(self) -> list[User]:
        ...

    async def list_habits(self, user_id: str, active_only: bool = True) -> list[Habit]:
        """Habits of a user, newest first"""
        ...

    async def load_loot_item(self, item_id: str, user_id: str) -> Optional[LootItem]:
        ...

    async def list_loot_items(
        self,
        user_id: str,
        item_type: Optional[LootType] = None,
        rarity: Optional[LootRarity] = None,
        equipped: Optional[bool] = None,
    ) -> list[LootItem]:
        """Inventory of a user, most recently acquired first"""
        ...

    def transaction(self) -> AsyncContextManager[StoreSession]:
        ...

    async def ping(self) -> bool:
        """Check the backend is reachable"""
        ...

    async def open(self) -> None:
        """Acquire backend resources (called once at startup)"""
        ...

    async def close(self) -> None:
        ...
