"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime

from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import RewardOutcome


class UserCreateRequest(BaseModel):
    """Request to register a user profile"""
    username: str = Field(..., description="Display name (3-30 characters)")
    email: str = Field(..., description="Email address")


class UserUpdateRequest(BaseModel):
    """Request to update profile display fields"""
    username: Optional[str] = None
    current_theme: Optional[str] = None
    current_badge: Optional[str] = None


class HabitCreateRequest(BaseModel):
    """Request to create a habit"""
    name: str = Field(..., description="Habit name")
    icon: Optional[str] = Field(default=None, description="Emoji icon (defaults to ⭐)")
    description: Optional[str] = None


class HabitUpdateRequest(BaseModel):
    """Request to update a habit; omitted fields are left unchanged"""
    name: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class EquipRequest(BaseModel):
    """Equip (true), unequip (false) or toggle (omitted)"""
    equip: Optional[bool] = None


class CompletionResponse(BaseModel):
    """Response of the completion endpoint"""
    message: str
    habit: Habit
    reward: RewardOutcome
    user: Dict[str, Any]
    streak: int
    leveled_up: bool = False
    loot_item: Optional[LootItem] = None


class HabitListResponse(BaseModel):
    habits: List[Habit]


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    message: str
    database: str = Field(..., description="Store connection status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx `detail`; unset optional fields are omitted"""
    error: str
    message: str
    field: Optional[str] = None
    already_completed: Optional[bool] = None
    request_id: Optional[str] = None
