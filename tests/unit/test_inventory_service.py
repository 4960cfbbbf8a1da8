"""Unit tests for InventoryService"""
import pytest

from impulse.exceptions import RecordNotFoundError
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.services.inventory_service import InventoryService


async def grant(store, user, item_type, name, rarity=LootRarity.COMMON, **fields):
    item = LootItem(user_id=user.id, type=item_type, name=name, rarity=rarity, **fields)
    async with store.transaction() as session:
        await session.create_loot_item(item)
    return item


@pytest.mark.asyncio
async def test_get_inventory_groups_and_counts(store, user):
    await grant(store, user, LootType.THEME, "Ocean Blue")
    await grant(store, user, LootType.BADGE, "Streak Master", LootRarity.RARE, is_equipped=True)
    await grant(store, user, LootType.BADGE, "Consistent")

    inventory = await InventoryService(store).get_inventory(user.id)

    assert len(inventory["items"]) == 3
    assert {k: len(v) for k, v in inventory["grouped_items"].items()} == {"theme": 1, "badge": 2}
    assert inventory["stats"] == {
        "total_items": 3,
        "by_rarity": {"common": 2, "rare": 1, "epic": 0, "legendary": 0},
        "by_type": {"theme": 1, "badge": 2, "avatar": 0, "effect": 0},
        "equipped": 1,
    }


@pytest.mark.asyncio
async def test_get_inventory_filters(store, user):
    await grant(store, user, LootType.THEME, "Ocean Blue")
    await grant(store, user, LootType.BADGE, "Streak Master", LootRarity.RARE)

    inventory = await InventoryService(store).get_inventory(user.id, rarity=LootRarity.RARE)

    assert [i.name for i in inventory["items"]] == ["Streak Master"]


@pytest.mark.asyncio
async def test_get_inventory_unknown_user(store):
    with pytest.raises(RecordNotFoundError):
        await InventoryService(store).get_inventory("ghost")


@pytest.mark.asyncio
async def test_equip_theme_sets_current_theme_and_unequips_previous(store, user):
    old = await grant(store, user, LootType.THEME, "Ocean Blue")
    new = await grant(store, user, LootType.THEME, "Golden Hour", LootRarity.RARE)
    service = InventoryService(store)

    await service.set_equipped(old.id, user.id, equip=True)
    result = await service.set_equipped(new.id, user.id, equip=True)

    assert result["item"].is_equipped is True
    assert result["user"]["current_theme"] == "Golden Hour"
    assert result["message"] == "Golden Hour equipped!"
    assert (await store.load_loot_item(old.id, user.id)).is_equipped is False

    equipped = await service.get_equipped(user.id)
    assert equipped["theme"].id == new.id
    assert equipped["badge"] is None


@pytest.mark.asyncio
async def test_unequip_theme_resets_to_default(store, user):
    theme = await grant(store, user, LootType.THEME, "Cosmic", LootRarity.EPIC)
    service = InventoryService(store)
    await service.set_equipped(theme.id, user.id, equip=True)

    result = await service.set_equipped(theme.id, user.id, equip=False)

    assert result["user"]["current_theme"] == "default"
    assert result["message"] == "Cosmic unequipped!"


@pytest.mark.asyncio
async def test_badge_toggle(store, user):
    badge = await grant(store, user, LootType.BADGE, "Dedicated", LootRarity.RARE)
    service = InventoryService(store)

    first = await service.set_equipped(badge.id, user.id)
    second = await service.set_equipped(badge.id, user.id)

    assert first["user"]["current_badge"] == "Dedicated"
    assert second["item"].is_equipped is False
    assert second["user"]["current_badge"] is None


@pytest.mark.asyncio
async def test_unequip_badge_keeps_other_current_badge(store, user):
    shown = await grant(store, user, LootType.BADGE, "Consistent")
    service = InventoryService(store)
    await service.set_equipped(shown.id, user.id, equip=True)
    stale = await grant(store, user, LootType.BADGE, "First Steps")

    result = await service.set_equipped(stale.id, user.id, equip=False)

    assert result["user"]["current_badge"] == "Consistent"


@pytest.mark.asyncio
async def test_equip_avatar_does_not_touch_profile(store, user):
    avatar = await grant(store, user, LootType.AVATAR, "Warrior", LootRarity.RARE)

    result = await InventoryService(store).set_equipped(avatar.id, user.id, equip=True)

    assert result["user"]["current_theme"] == "default"
    assert result["user"]["current_badge"] is None


@pytest.mark.asyncio
async def test_equip_someone_elses_item(store, user):
    with pytest.raises(RecordNotFoundError):
        await InventoryService(store).set_equipped("missing", user.id, equip=True)
