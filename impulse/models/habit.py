"""Habit models"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from impulse.models.reward import RewardOutcome, RewardType
from impulse.utils.datetime_helpers import now_utc

DEFAULT_HABIT_ICON = "⭐"


class CompletionRecord(BaseModel):
    """One entry of a habit's append-only completion history"""
    date: datetime
    reward_kind: RewardType
    reward_amount: int = 0
    reward_item_name: Optional[str] = None


class Habit(BaseModel):
    """A daily habit owned by exactly one user"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = DEFAULT_HABIT_ICON
    description: str = Field("", max_length=500)
    streak: int = Field(0, ge=0)
    best_streak: int = Field(0, ge=0)
    last_completed: Optional[datetime] = None
    total_completions: int = Field(0, ge=0)
    completion_history: list[CompletionRecord] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _best_streak_floor(self) -> "Habit":
        if self.streak > self.best_streak:
            self.best_streak = self.streak
        return self

    def set_streak(self, value: int) -> None:
        """Set the current streak, raising best_streak when exceeded"""
        if value < 0:
            raise ValueError("Streak cannot be negative")
        self.streak = value
        if self.streak > self.best_streak:
            self.best_streak = self.streak

    def enforce_invariants(self) -> None:
        """Re-check best_streak >= streak (run before every persist)"""
        if self.streak > self.best_streak:
            self.best_streak = self.streak

    def record_completion(self, when: datetime, reward: RewardOutcome) -> CompletionRecord:
        """Append a completion history entry for a granted reward"""
        record = CompletionRecord(
            date=when,
            reward_kind=reward.type,
            reward_amount=reward.amount or 0,
            reward_item_name=reward.item.name if reward.item else None,
        )
        self.completion_history.append(record)
        return record
