"""User-related Pydantic models"""
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from impulse.utils.datetime_helpers import now_utc

XP_PER_LEVEL = 100
DEFAULT_THEME = "default"

# Owned by the external auth collaborator, never returned to callers
CREDENTIAL_FIELDS = {"password_hash", "refresh_token"}


def level_for_xp(xp: int) -> int:
    """Level derived from total XP: one level per 100 XP, starting at 1"""
    return xp // XP_PER_LEVEL + 1


class User(BaseModel):
    """Root aggregate: progression counters and equipped cosmetics"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    username: str = Field(..., min_length=3, max_length=30)
    email: str
    password_hash: Optional[str] = None
    refresh_token: Optional[str] = None
    xp: int = Field(0, ge=0)
    level: int = Field(1, ge=1)
    total_habits_completed: int = Field(0, ge=0)
    streak_protection_tokens: int = Field(0, ge=0)
    current_theme: str = DEFAULT_THEME
    current_badge: Optional[str] = None
    last_login: datetime = Field(default_factory=now_utc)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _derive_level(self) -> "User":
        self.level = level_for_xp(self.xp)
        return self

    def add_xp(self, amount: int) -> bool:
        """
        Add XP and recompute level

        Returns:
            True if the user gained at least one level
        """
        if amount < 0:
            raise ValueError("XP can only increase")
        old_level = self.level
        self.xp += amount
        self.level = level_for_xp(self.xp)
        return self.level > old_level

    def enforce_invariants(self) -> None:
        """Re-derive fields that must never drift (run before every persist)"""
        self.level = level_for_xp(self.xp)

    def public_dict(self) -> dict[str, Any]:
        """Serializable user without credential fields"""
        return self.model_dump(mode="json", exclude=CREDENTIAL_FIELDS)
