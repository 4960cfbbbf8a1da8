"""Unit tests for the in-memory store (impulse/db/memory_store.py)"""
from datetime import datetime, timedelta, timezone

import pytest

from impulse.db.memory_store import MemoryStore
from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType
from impulse.models.user import User


def make_item(user_id: str, item_type=LootType.THEME, name="Ocean Blue", **fields) -> LootItem:
    return LootItem(user_id=user_id, type=item_type, name=name, rarity=LootRarity.COMMON, **fields)


@pytest.mark.asyncio
async def test_transaction_commits_on_clean_exit(store, user):
    loaded = await store.load_user(user.id)

    assert loaded == user
    assert loaded is not user


@pytest.mark.asyncio
async def test_transaction_discards_writes_on_error(store, user, habit):
    with pytest.raises(RuntimeError):
        async with store.transaction() as session:
            changed = await session.load_user(user.id, for_update=True)
            changed.add_xp(50)
            await session.save_user(changed)
            await session.create_loot_item(make_item(user.id))
            raise RuntimeError("loot insert failed")

    assert (await store.load_user(user.id)).xp == 0
    assert await store.list_loot_items(user.id) == []


@pytest.mark.asyncio
async def test_session_reads_its_own_staged_writes(store, user):
    async with store.transaction() as session:
        staged = await session.load_user(user.id)
        staged.xp = 30
        await session.save_user(staged)

        assert (await session.load_user(user.id)).xp == 30
        assert (await store.load_user(user.id)).xp == 0

    assert (await store.load_user(user.id)).xp == 30


@pytest.mark.asyncio
async def test_reads_return_copies(store, user, habit):
    loaded = await store.load_habit(habit.id, user.id)
    loaded.streak = 99

    assert (await store.load_habit(habit.id, user.id)).streak == 0


@pytest.mark.asyncio
async def test_save_enforces_derived_fields(store, user, habit):
    async with store.transaction() as session:
        u = await session.load_user(user.id)
        u.xp = 230
        u.level = 1
        await session.save_user(u)

        h = await session.load_habit(habit.id, user.id)
        h.streak = 8
        await session.save_habit(h)

    assert (await store.load_user(user.id)).level == 3
    assert (await store.load_habit(habit.id, user.id)).best_streak == 8


@pytest.mark.asyncio
async def test_load_habit_checks_owner_and_active(store, user, habit):
    assert await store.load_habit(habit.id, "someone-else") is None

    async with store.transaction() as session:
        h = await session.load_habit(habit.id, user.id)
        h.is_active = False
        await session.save_habit(h)

    assert await store.load_habit(habit.id, user.id) is not None
    assert await store.load_habit(habit.id, user.id, active_only=True) is None
    assert await store.list_habits(user.id) == []
    assert len(await store.list_habits(user.id, active_only=False)) == 1


@pytest.mark.asyncio
async def test_list_habits_newest_first(store, user):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    async with store.transaction() as session:
        for offset, name in enumerate(["First", "Second", "Third"]):
            await session.create_habit(
                Habit(user_id=user.id, name=name, created_at=base + timedelta(days=offset))
            )

    assert [h.name for h in await store.list_habits(user.id)] == ["Third", "Second", "First"]


@pytest.mark.asyncio
async def test_find_user_by_username_or_email(store, user):
    assert (await store.find_user(username="alice")).id == user.id
    assert (await store.find_user(email="ALICE@example.com")).id == user.id
    assert await store.find_user(username="nobody") is None


@pytest.mark.asyncio
async def test_equipping_unequips_same_type_only(store, user):
    theme_a = make_item(user.id, name="Ocean Blue", is_equipped=True)
    theme_b = make_item(user.id, name="Forest Green")
    badge = make_item(user.id, item_type=LootType.BADGE, name="Consistent", is_equipped=True)
    other_user = User(username="mallory", email="m@example.com")
    foreign = make_item(other_user.id, name="Cosmic", is_equipped=True)

    async with store.transaction() as session:
        for item in (theme_a, theme_b, badge, foreign):
            await session.create_loot_item(item)

    async with store.transaction() as session:
        item = await session.load_loot_item(theme_b.id, user.id, for_update=True)
        item.is_equipped = True
        await session.save_loot_item(item)

    equipped = await store.list_loot_items(user.id, equipped=True)
    assert {i.name for i in equipped} == {"Forest Green", "Consistent"}
    assert (await store.load_loot_item(foreign.id, other_user.id)).is_equipped is True


@pytest.mark.asyncio
async def test_list_loot_items_filters(store, user):
    async with store.transaction() as session:
        await session.create_loot_item(make_item(user.id, name="Ocean Blue"))
        await session.create_loot_item(make_item(user.id, item_type=LootType.BADGE, name="Consistent"))

    themes = await store.list_loot_items(user.id, item_type=LootType.THEME)
    rare = await store.list_loot_items(user.id, rarity=LootRarity.RARE)

    assert [i.name for i in themes] == ["Ocean Blue"]
    assert rare == []


@pytest.mark.asyncio
async def test_ping():
    assert await MemoryStore().ping() is True
