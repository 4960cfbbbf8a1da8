"""Completion result model"""
from typing import Any, Optional

from pydantic import BaseModel

from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import RewardOutcome


class CompletionResult(BaseModel):
    """Everything a caller gets back from a successful habit completion"""
    habit: Habit
    reward: RewardOutcome
    user: dict[str, Any]  # public user fields, no credentials
    streak: int
    leveled_up: bool = False
    loot_item: Optional[LootItem] = None
