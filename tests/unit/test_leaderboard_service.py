"""Unit tests for LeaderboardService"""
from datetime import datetime, timedelta, timezone

import pytest

from impulse.exceptions import RecordNotFoundError, ValidationError
from impulse.models.habit import CompletionRecord, Habit
from impulse.models.reward import RewardType
from impulse.models.user import User
from impulse.services.leaderboard_service import LeaderboardService

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


async def add_user(store, username, xp=0, completed=0):
    record = User(username=username, email=f"{username}@example.com", xp=xp, total_habits_completed=completed)
    async with store.transaction() as session:
        await session.create_user(record)
    return record


async def add_habit(store, user, days_ago, is_active=True):
    history = [
        CompletionRecord(date=NOW - timedelta(days=d), reward_kind=RewardType.NOTHING)
        for d in days_ago
    ]
    habit = Habit(user_id=user.id, name="Habit", completion_history=history, is_active=is_active)
    async with store.transaction() as session:
        await session.create_habit(habit)
    return habit


@pytest.mark.asyncio
async def test_all_time_ranks_by_xp(store):
    await add_user(store, "lowxp", xp=10)
    await add_user(store, "topxp", xp=500)
    mid = await add_user(store, "midxp", xp=120)

    board = await LeaderboardService(store).get_leaderboard(mid.id)

    assert [(e["username"], e["rank"]) for e in board["leaderboard"]] == [
        ("topxp", 1), ("midxp", 2), ("lowxp", 3)
    ]
    assert board["current_user"]["id"] == mid.id
    assert board["current_user"]["is_current_user"] is True
    assert board["timeframe"] == "all-time"
    assert [e["is_current_user"] for e in board["leaderboard"]] == [False, True, False]


@pytest.mark.asyncio
async def test_all_time_current_user_outside_limit(store):
    for i in range(3):
        await add_user(store, f"player{i}", xp=100 * (i + 1))
    me = await add_user(store, "mememe", xp=50)

    board = await LeaderboardService(store).get_leaderboard(me.id, limit=2)

    assert len(board["leaderboard"]) == 2
    assert board["current_user"]["rank"] == 4
    assert board["current_user"]["username"] == "mememe"


@pytest.mark.asyncio
async def test_weekly_counts_recent_completions_on_active_habits(store):
    busy = await add_user(store, "busyone")
    lazy = await add_user(store, "lazyone", xp=900)
    await add_habit(store, busy, days_ago=[0, 1, 2, 10])
    await add_habit(store, busy, days_ago=[0, 1], is_active=False)
    await add_habit(store, lazy, days_ago=[3, 8])

    board = await LeaderboardService(store).get_leaderboard(lazy.id, timeframe="weekly", now=NOW)

    assert [(e["username"], e["weekly_completions"]) for e in board["leaderboard"]] == [
        ("busyone", 3), ("lazyone", 1)
    ]
    assert board["current_user"]["rank"] == 2


@pytest.mark.asyncio
async def test_weekly_current_user_outside_limit_is_none(store):
    busy = await add_user(store, "busyone")
    me = await add_user(store, "mememe")
    await add_habit(store, busy, days_ago=[0])

    board = await LeaderboardService(store).get_leaderboard(me.id, timeframe="weekly", limit=1, now=NOW)

    assert board["current_user"] is None


@pytest.mark.asyncio
async def test_unknown_timeframe(store):
    me = await add_user(store, "mememe")
    with pytest.raises(ValidationError):
        await LeaderboardService(store).get_leaderboard(me.id, timeframe="monthly")


@pytest.mark.asyncio
async def test_unknown_current_user(store):
    with pytest.raises(RecordNotFoundError):
        await LeaderboardService(store).get_leaderboard("ghost")


@pytest.mark.asyncio
async def test_stats(store):
    await add_user(store, "player1", xp=100, completed=4)
    await add_user(store, "player2", xp=301, completed=9)
    me = await add_user(store, "mememe", xp=50, completed=1)

    stats = await LeaderboardService(store).get_stats(me.id)

    assert stats == {
        "total_users": 3,
        "total_habits_completed": 14,
        "top_user": {"username": "player2", "xp": 301, "level": 4},
        "average_xp": 150,
        "current_user_rank": 3,
    }
