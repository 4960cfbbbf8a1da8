"""Inventory (loot item) model"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from impulse.models.reward import LootRarity, LootType
from impulse.utils.datetime_helpers import now_utc

DEFAULT_LOOT_ICON = "🎁"


class LootItem(BaseModel):
    """A collectible owned by one user, optionally traced to the habit that dropped it"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    type: LootType
    name: str
    rarity: LootRarity
    description: str = Field("", max_length=200)
    icon: str = DEFAULT_LOOT_ICON
    is_equipped: bool = False
    acquired_at: datetime = Field(default_factory=now_utc)
    from_habit: Optional[str] = None
