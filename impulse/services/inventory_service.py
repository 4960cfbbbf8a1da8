"""
InventoryService - Loot inventory and equipped cosmetics
"""

import logging
from typing import Any, Dict, List, Optional

from impulse.db.store import HabitStore
from impulse.exceptions import RecordNotFoundError
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.models.user import DEFAULT_THEME, User
from impulse.observability.metrics import items_equipped_total
from impulse.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Service for a user's loot.

    Equipping is exclusive per item type: the store unequips the previous
    item of that type in the same transaction. Themes and badges are also
    mirrored onto the user profile (current_theme / current_badge).
    """

    def __init__(self, store: HabitStore):
        self.store = store
        logger.debug("InventoryService initialized")

    async def _require_user(self, user_id: str, operation: str) -> User:
        user = await self.store.load_user(user_id)
        if user is None:
            raise RecordNotFoundError(
                f"User {user_id} not found",
                record_type="User",
                record_id=user_id,
                operation=operation
            )
        return user

    async def get_inventory(
        self,
        user_id: str,
        item_type: Optional[LootType] = None,
        rarity: Optional[LootRarity] = None
    ) -> Dict[str, Any]:
        """
        Inventory with optional filters

        Returns:
            {
                'items': [LootItem, ...] (most recent first),
                'grouped_items': {type: [LootItem, ...]},
                'stats': {
                    'total_items': int,
                    'by_rarity': {rarity: count},
                    'by_type': {type: count},
                    'equipped': int
                }
            }
        """
        await self._require_user(user_id, "get_inventory")
        items = await self.store.list_loot_items(user_id, item_type=item_type, rarity=rarity)

        grouped: Dict[str, List[LootItem]] = {}
        for item in items:
            grouped.setdefault(item.type.value, []).append(item)

        by_rarity = {r.value: 0 for r in LootRarity}
        by_type = {t.value: 0 for t in LootType}
        for item in items:
            by_rarity[item.rarity.value] += 1
            by_type[item.type.value] += 1

        return {
            "items": items,
            "grouped_items": grouped,
            "stats": {
                "total_items": len(items),
                "by_rarity": by_rarity,
                "by_type": by_type,
                "equipped": sum(1 for item in items if item.is_equipped),
            },
        }

    async def set_equipped(
        self,
        item_id: str,
        user_id: str,
        equip: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Equip or unequip an item

        Args:
            equip: True to equip, False to unequip, None to toggle

        Returns:
            {'item': LootItem, 'user': public user dict, 'message': str}
        """
        async with unit_of_work(
            self.store, "set_equipped", user_id=user_id, context={"item_id": item_id}
        ) as session:
            item = await session.load_loot_item(item_id, user_id, for_update=True)
            if item is None:
                raise RecordNotFoundError(
                    f"Item {item_id} not found for user {user_id}",
                    record_type="LootItem",
                    record_id=item_id,
                    user_id=user_id,
                    operation="set_equipped"
                )
            user = await session.load_user(user_id, for_update=True)
            if user is None:
                raise RecordNotFoundError(
                    f"User {user_id} not found",
                    record_type="User",
                    record_id=user_id,
                    operation="set_equipped"
                )

            item.is_equipped = (not item.is_equipped) if equip is None else equip
            await session.save_loot_item(item)

            _sync_profile(user, item)
            await session.save_user(user)

        action = "equip" if item.is_equipped else "unequip"
        items_equipped_total.labels(item_type=item.type.value, action=action).inc()
        logger.info(f"User {user_id} {action}ped {item.type.value} '{item.name}'")

        return {
            "item": item,
            "user": user.public_dict(),
            "message": f"{item.name} {'equipped' if item.is_equipped else 'unequipped'}!",
        }

    async def get_equipped(self, user_id: str) -> Dict[str, Optional[LootItem]]:
        """Equipped item per type ({'theme': item or None, 'badge': ..., ...})"""
        await self._require_user(user_id, "get_equipped")
        items = await self.store.list_loot_items(user_id, equipped=True)

        equipped: Dict[str, Optional[LootItem]] = {t.value: None for t in LootType}
        for item in items:
            equipped[item.type.value] = item
        return equipped


def _sync_profile(user: User, item: LootItem) -> None:
    """Mirror theme/badge equip state onto the user profile"""
    if item.is_equipped:
        if item.type == LootType.THEME:
            user.current_theme = item.name
        elif item.type == LootType.BADGE:
            user.current_badge = item.name
        return

    if item.type == LootType.THEME and user.current_theme == item.name:
        user.current_theme = DEFAULT_THEME
    elif item.type == LootType.BADGE and user.current_badge == item.name:
        user.current_badge = None
