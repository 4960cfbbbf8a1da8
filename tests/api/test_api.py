"""Tests for the HTTP API (httpx against the ASGI app, in-memory store)"""
import random
from unittest.mock import AsyncMock, patch

import httpx
import psycopg
import pytest

from impulse.api.server import create_api_application
from impulse.db.memory_store import MemorySession, MemoryStore
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, LootType


@pytest.fixture
def api_store():
    return MemoryStore()


@pytest.fixture
async def client(api_store):
    app = create_api_application(store=api_store, rng=random.Random(2024))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_user(client, headers, username="player", email="player@example.com"):
    response = await client.post("/api/v1/users", json={"username": username, "email": email}, headers=headers)
    assert response.status_code == 201
    return response.json()["user"]


async def create_habit(client, headers, user_id, name="Drink water"):
    response = await client.post(
        f"/api/v1/users/{user_id}/habits", json={"name": name, "icon": "💧"}, headers=headers
    )
    assert response.status_code == 201
    return response.json()["habit"]


# ============================================================================
# Auth & health
# ============================================================================

@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["message"] == "Impulse: The Habit Casino API is running! 🎰"


@pytest.mark.asyncio
async def test_requires_api_key(client):
    response = await client.post("/api/v1/users", json={"username": "player", "email": "p@example.com"})
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_rejects_invalid_api_key(client):
    response = await client.get(
        "/api/v1/users/anyone", headers={"Authorization": "Bearer wrong_key"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "habit_completions_total" in response.text


# ============================================================================
# Users
# ============================================================================

@pytest.mark.asyncio
async def test_user_lifecycle(client, api_headers):
    user = await create_user(client, api_headers)
    assert "password_hash" not in user

    profile = await client.get(f"/api/v1/users/{user['id']}", headers=api_headers)
    assert profile.status_code == 200
    assert profile.json()["user"]["progress"]["current_level"] == 1

    updated = await client.patch(
        f"/api/v1/users/{user['id']}", json={"username": "renamed"}, headers=api_headers
    )
    assert updated.status_code == 200
    assert updated.json()["user"]["username"] == "renamed"


@pytest.mark.asyncio
async def test_duplicate_user_is_400(client, api_headers):
    await create_user(client, api_headers)
    response = await client.post(
        "/api/v1/users", json={"username": "player", "email": "else@example.com"}, headers=api_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Username already taken"


@pytest.mark.asyncio
async def test_unknown_user_is_404(client, api_headers):
    response = await client.get("/api/v1/users/ghost", headers=api_headers)
    assert response.status_code == 404


# ============================================================================
# Habits
# ============================================================================

@pytest.mark.asyncio
async def test_habit_crud(client, api_headers):
    user = await create_user(client, api_headers)
    habit = await create_habit(client, api_headers, user["id"])

    listed = await client.get(f"/api/v1/users/{user['id']}/habits", headers=api_headers)
    assert [h["id"] for h in listed.json()["habits"]] == [habit["id"]]

    patched = await client.patch(
        f"/api/v1/users/{user['id']}/habits/{habit['id']}",
        json={"description": "8 glasses"},
        headers=api_headers
    )
    assert patched.json()["habit"]["description"] == "8 glasses"

    deleted = await client.delete(f"/api/v1/users/{user['id']}/habits/{habit['id']}", headers=api_headers)
    assert deleted.status_code == 200

    listed = await client.get(f"/api/v1/users/{user['id']}/habits", headers=api_headers)
    assert listed.json()["habits"] == []


@pytest.mark.asyncio
async def test_create_habit_without_name_is_400(client, api_headers):
    user = await create_user(client, api_headers)
    response = await client.post(
        f"/api/v1/users/{user['id']}/habits", json={"name": "  "}, headers=api_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "name"


@pytest.mark.asyncio
async def test_complete_habit_then_already_completed(client, api_headers):
    user = await create_user(client, api_headers)
    habit = await create_habit(client, api_headers, user["id"])
    url = f"/api/v1/users/{user['id']}/habits/{habit['id']}/complete"

    first = await client.post(url, headers=api_headers)
    assert first.status_code == 200
    data = first.json()
    assert data["streak"] == 1
    assert data["habit"]["total_completions"] == 1
    assert data["reward"]["type"] in ("nothing", "xp", "token", "loot")
    assert data["user"]["xp"] == data["reward"]["xp"]
    assert "password_hash" not in data["user"]

    second = await client.post(url, headers=api_headers)
    assert second.status_code == 400
    assert second.json()["detail"] == {
        "error": "already_completed",
        "message": "Habit already completed today",
        "already_completed": True,
    }


@pytest.mark.asyncio
async def test_complete_unknown_habit_is_404(client, api_headers):
    user = await create_user(client, api_headers)
    response = await client.post(f"/api/v1/users/{user['id']}/habits/nope/complete", headers=api_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == {"error": "not_found", "message": "Habit not found."}


@pytest.mark.asyncio
async def test_complete_store_failure_is_503(client, api_headers):
    user = await create_user(client, api_headers)
    habit = await create_habit(client, api_headers, user["id"])

    with patch.object(MemorySession, "save_habit", AsyncMock(side_effect=psycopg.errors.DiskFull("disk full"))):
        response = await client.post(
            f"/api/v1/users/{user['id']}/habits/{habit['id']}/complete", headers=api_headers
        )

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "persistence_error"


@pytest.mark.asyncio
async def test_complete_engine_bug_is_500_not_503(client, api_headers):
    user = await create_user(client, api_headers)
    habit = await create_habit(client, api_headers, user["id"])

    with patch("impulse.services.habit_service.generate_reward", side_effect=KeyError("bug")):
        response = await client.post(
            f"/api/v1/users/{user['id']}/habits/{habit['id']}/complete", headers=api_headers
        )

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["error"] == "internal_error"
    assert "request_id" in detail


@pytest.mark.asyncio
async def test_history_and_stats(client, api_headers):
    user = await create_user(client, api_headers)
    habit = await create_habit(client, api_headers, user["id"])
    await client.post(f"/api/v1/users/{user['id']}/habits/{habit['id']}/complete", headers=api_headers)

    history = await client.get(
        f"/api/v1/users/{user['id']}/habits/{habit['id']}/history?page=1&limit=10", headers=api_headers
    )
    assert history.status_code == 200
    assert history.json()["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert len(history.json()["history"]) == 1

    stats = await client.get(f"/api/v1/users/{user['id']}/habits/stats", headers=api_headers)
    assert stats.json()["stats"]["habits_completed_today"] == 1
    assert stats.json()["stats"]["active_streaks"] == 1


# ============================================================================
# Inventory
# ============================================================================

@pytest.mark.asyncio
async def test_inventory_equip_flow(client, api_headers, api_store):
    user = await create_user(client, api_headers)
    item = LootItem(user_id=user["id"], type=LootType.THEME, name="Ocean Blue", rarity=LootRarity.COMMON)
    async with api_store.transaction() as session:
        await session.create_loot_item(item)

    inventory = await client.get(f"/api/v1/users/{user['id']}/inventory?type=theme", headers=api_headers)
    assert inventory.status_code == 200
    assert inventory.json()["stats"]["total_items"] == 1
    assert list(inventory.json()["grouped_items"]) == ["theme"]

    equipped = await client.patch(
        f"/api/v1/users/{user['id']}/inventory/{item.id}/equip", json={"equip": True}, headers=api_headers
    )
    assert equipped.status_code == 200
    assert equipped.json()["user"]["current_theme"] == "Ocean Blue"

    slots = await client.get(f"/api/v1/users/{user['id']}/inventory/equipped", headers=api_headers)
    assert slots.json()["equipped"]["theme"]["id"] == item.id
    assert slots.json()["equipped"]["badge"] is None

    toggled = await client.patch(
        f"/api/v1/users/{user['id']}/inventory/{item.id}/equip", json={}, headers=api_headers
    )
    assert toggled.json()["item"]["is_equipped"] is False
    assert toggled.json()["user"]["current_theme"] == "default"


@pytest.mark.asyncio
async def test_inventory_invalid_filter_is_422(client, api_headers):
    user = await create_user(client, api_headers)
    response = await client.get(f"/api/v1/users/{user['id']}/inventory?type=weapon", headers=api_headers)

    assert response.status_code == 422


# ============================================================================
# Leaderboard
# ============================================================================

@pytest.mark.asyncio
async def test_leaderboard(client, api_headers):
    me = await create_user(client, api_headers)
    await create_user(client, api_headers, username="rival", email="rival@example.com")

    board = await client.get(f"/api/v1/leaderboard?user_id={me['id']}&timeframe=all-time", headers=api_headers)
    assert board.status_code == 200
    assert len(board.json()["leaderboard"]) == 2
    assert board.json()["current_user"]["id"] == me["id"]

    weekly = await client.get(f"/api/v1/leaderboard?user_id={me['id']}&timeframe=weekly", headers=api_headers)
    assert weekly.status_code == 200

    bad = await client.get(f"/api/v1/leaderboard?user_id={me['id']}&timeframe=monthly", headers=api_headers)
    assert bad.status_code == 400

    stats = await client.get(f"/api/v1/leaderboard/stats?user_id={me['id']}", headers=api_headers)
    assert stats.json()["stats"]["total_users"] == 2
