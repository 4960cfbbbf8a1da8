"""Reward and loot models for the reward engine"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RewardType(str, Enum):
    """Outcome kinds of a completion draw"""
    NOTHING = "nothing"
    XP = "xp"
    TOKEN = "token"
    LOOT = "loot"


class LootType(str, Enum):
    """Cosmetic slots a loot item can occupy"""
    THEME = "theme"
    BADGE = "badge"
    AVATAR = "avatar"
    EFFECT = "effect"


class LootRarity(str, Enum):
    """Loot rarity tiers (legendary is never rolled, only granted manually)"""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class LootTemplate(BaseModel):
    """Catalog entry a loot item is minted from"""
    type: LootType
    name: str
    icon: str
    description: str


class RewardOutcome(BaseModel):
    """Result of a single reward draw"""
    type: RewardType
    xp: int = Field(0, ge=0)
    amount: Optional[int] = None
    rarity: Optional[LootRarity] = None
    item: Optional[LootTemplate] = None
    message: str = ""
