"""Global test fixtures and utilities for impulse tests"""
import os

# Must be set before impulse.config / impulse.api are imported
os.environ["API_KEYS"] = "test_key_123"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORE_BACKEND"] = "memory"

import random
from datetime import datetime, timezone

import pytest

from impulse.db.memory_store import MemoryStore
from impulse.models.habit import Habit
from impulse.models.user import User


class ScriptedRandom:
    """
    Deterministic stand-in for random.Random

    random() returns the scripted floats in order, randint() the scripted ints
    and choice() picks the scripted index (0 when none are left).
    """

    def __init__(self, floats=(), ints=(), choices=()):
        self.floats = list(floats)
        self.ints = list(ints)
        self.choices = list(choices)

    def random(self) -> float:
        return self.floats.pop(0)

    def randint(self, a: int, b: int) -> int:
        value = self.ints.pop(0) if self.ints else a
        assert a <= value <= b
        return value

    def choice(self, seq):
        return seq[self.choices.pop(0) if self.choices else 0]


# ============================================================================
# Random sources
# ============================================================================

@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRandom instances"""
    return ScriptedRandom


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


# ============================================================================
# Store & records
# ============================================================================

@pytest.fixture
def store():
    """Fresh in-memory store"""
    return MemoryStore()


@pytest.fixture
def jan_10():
    """Fixed 'now' used across completion scenarios"""
    return datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def user(store):
    """Persisted user with no progress"""
    record = User(username="alice", email="Alice@Example.com")
    async with store.transaction() as session:
        await session.create_user(record)
    return record


@pytest.fixture
async def habit(store, user):
    """Persisted, never completed habit owned by `user`"""
    record = Habit(user_id=user.id, name="Drink water", icon="💧")
    async with store.transaction() as session:
        await session.create_habit(record)
    return record


@pytest.fixture
def api_headers():
    return {"Authorization": "Bearer test_key_123"}
