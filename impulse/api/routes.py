"""API routes for Impulse"""
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from impulse.api.auth import verify_api_key
from impulse.api.middleware import limiter
from impulse.api.models import (
    CompletionResponse,
    EquipRequest,
    ErrorResponse,
    HabitCreateRequest,
    HabitListResponse,
    HabitUpdateRequest,
    HealthCheckResponse,
    UserCreateRequest,
    UserUpdateRequest,
)
from impulse.exceptions import (
    DatabaseError,
    HabitAlreadyCompletedError,
    ImpulseError,
    RecordNotFoundError,
    ValidationError,
)
from impulse.models.reward import LootRarity, LootType
from impulse.services.container import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()

HEALTH_MESSAGE = "Impulse: The Habit Casino API is running! 🎰"


def get_services() -> ServiceContainer:
    return get_container()


def _error_detail(**fields) -> dict:
    return ErrorResponse(**fields).model_dump(exclude_none=True)


def _http_error(error: ImpulseError) -> HTTPException:
    """Map our exception hierarchy onto HTTP statuses"""
    if isinstance(error, HabitAlreadyCompletedError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_detail(error="already_completed", message=error.message, already_completed=True)
        )
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_detail(error="validation_error", message=error.user_message, field=error.field)
        )
    if isinstance(error, RecordNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error_detail(error="not_found", message=error.user_message)
        )
    if isinstance(error, DatabaseError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error_detail(
                error="persistence_error", message=error.user_message, request_id=error.request_id
            )
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_error_detail(error="internal_error", message=error.user_message, request_id=error.request_id)
    )


# ==========================================
# Users
# ==========================================

@router.post("/api/v1/users", status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_user(
    request: Request,
    body: UserCreateRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Register a user profile (Rate limit: 20/minute)"""
    try:
        user = await services.user_service.create_user(body.username, body.email)
        return {"user": user.public_dict()}
    except ImpulseError as e:
        raise _http_error(e)


@router.get("/api/v1/users/{user_id}")
@limiter.limit("60/minute")
async def get_user(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Public profile with level progress"""
    try:
        return {"user": await services.user_service.get_profile(user_id)}
    except ImpulseError as e:
        raise _http_error(e)


@router.patch("/api/v1/users/{user_id}")
@limiter.limit("20/minute")
async def update_user(
    request: Request,
    user_id: str,
    body: UserUpdateRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Update username, theme or badge"""
    try:
        user = await services.user_service.update_profile(
            user_id,
            username=body.username,
            current_theme=body.current_theme,
            current_badge=body.current_badge
        )
        return {"user": user}
    except ImpulseError as e:
        raise _http_error(e)


# ==========================================
# Habits
# ==========================================

@router.get("/api/v1/users/{user_id}/habits", response_model=HabitListResponse)
@limiter.limit("60/minute")
async def list_habits(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Active habits, newest first"""
    try:
        return HabitListResponse(habits=await services.habit_service.list_habits(user_id))
    except ImpulseError as e:
        raise _http_error(e)


@router.post("/api/v1/users/{user_id}/habits", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_habit(
    request: Request,
    user_id: str,
    body: HabitCreateRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Create a habit (Rate limit: 30/minute)"""
    try:
        habit = await services.habit_service.create_habit(
            user_id, body.name, icon=body.icon, description=body.description
        )
        return {"habit": habit.model_dump(mode="json")}
    except ImpulseError as e:
        raise _http_error(e)


@router.get("/api/v1/users/{user_id}/habits/stats")
@limiter.limit("60/minute")
async def get_habit_stats(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Aggregate statistics over active habits"""
    try:
        return {"stats": await services.habit_service.get_stats(user_id)}
    except ImpulseError as e:
        raise _http_error(e)


@router.patch("/api/v1/users/{user_id}/habits/{habit_id}")
@limiter.limit("30/minute")
async def update_habit(
    request: Request,
    user_id: str,
    habit_id: str,
    body: HabitUpdateRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    try:
        habit = await services.habit_service.update_habit(
            habit_id, user_id, name=body.name, icon=body.icon, description=body.description
        )
        return {"habit": habit.model_dump(mode="json")}
    except ImpulseError as e:
        raise _http_error(e)


@router.delete("/api/v1/users/{user_id}/habits/{habit_id}")
@limiter.limit("30/minute")
async def delete_habit(
    request: Request,
    user_id: str,
    habit_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Soft delete a habit (history is kept)"""
    try:
        await services.habit_service.delete_habit(habit_id, user_id)
        return {"message": "Habit deleted successfully"}
    except ImpulseError as e:
        raise _http_error(e)


@router.post("/api/v1/users/{user_id}/habits/{habit_id}/complete", response_model=CompletionResponse)
@limiter.limit("30/minute")
async def complete_habit(
    request: Request,
    user_id: str,
    habit_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """
    Complete a habit for today and spin for a reward

    Returns 400 with error 'already_completed' when the habit was already
    completed today, 404 if the habit is missing or inactive, and 503 if the
    completion could not be saved (in which case nothing was changed).
    """
    try:
        result = await services.habit_service.complete_habit(habit_id, user_id)
    except ImpulseError as e:
        raise _http_error(e)

    return CompletionResponse(
        message="Habit completed!",
        habit=result.habit,
        reward=result.reward,
        user=result.user,
        streak=result.streak,
        leveled_up=result.leveled_up,
        loot_item=result.loot_item,
    )


@router.get("/api/v1/users/{user_id}/habits/{habit_id}/history")
@limiter.limit("60/minute")
async def get_habit_history(
    request: Request,
    user_id: str,
    habit_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=30, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Completion history, newest first"""
    try:
        history = await services.habit_service.get_history(habit_id, user_id, page=page, limit=limit)
    except ImpulseError as e:
        raise _http_error(e)

    return {
        **history,
        "history": [record.model_dump(mode="json") for record in history["history"]],
    }


# ==========================================
# Inventory
# ==========================================

@router.get("/api/v1/users/{user_id}/inventory")
@limiter.limit("60/minute")
async def get_inventory(
    request: Request,
    user_id: str,
    item_type: Optional[LootType] = Query(default=None, alias="type"),
    rarity: Optional[LootRarity] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Loot inventory with optional type/rarity filters"""
    try:
        inventory = await services.inventory_service.get_inventory(
            user_id, item_type=item_type, rarity=rarity
        )
    except ImpulseError as e:
        raise _http_error(e)

    return {
        "items": [item.model_dump(mode="json") for item in inventory["items"]],
        "grouped_items": {
            kind: [item.model_dump(mode="json") for item in items]
            for kind, items in inventory["grouped_items"].items()
        },
        "stats": inventory["stats"],
    }


@router.get("/api/v1/users/{user_id}/inventory/equipped")
@limiter.limit("60/minute")
async def get_equipped(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Equipped item per type (null when the slot is empty)"""
    try:
        equipped = await services.inventory_service.get_equipped(user_id)
    except ImpulseError as e:
        raise _http_error(e)

    return {
        "equipped": {
            kind: item.model_dump(mode="json") if item else None
            for kind, item in equipped.items()
        }
    }


@router.patch("/api/v1/users/{user_id}/inventory/{item_id}/equip")
@limiter.limit("30/minute")
async def equip_item(
    request: Request,
    user_id: str,
    item_id: str,
    body: EquipRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Equip, unequip or toggle an item"""
    try:
        result = await services.inventory_service.set_equipped(item_id, user_id, equip=body.equip)
    except ImpulseError as e:
        raise _http_error(e)

    return {
        "message": result["message"],
        "item": result["item"].model_dump(mode="json"),
        "user": result["user"],
    }


# ==========================================
# Leaderboard
# ==========================================

@router.get("/api/v1/leaderboard")
@limiter.limit("30/minute")
async def get_leaderboard(
    request: Request,
    user_id: str = Query(..., description="Requesting user"),
    timeframe: str = Query(default="all-time"),
    limit: int = Query(default=10, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Leaderboard ranked by total XP (all-time) or completions in the last 7 days (weekly)"""
    try:
        return await services.leaderboard_service.get_leaderboard(
            user_id, timeframe=timeframe, limit=limit
        )
    except ImpulseError as e:
        raise _http_error(e)


@router.get("/api/v1/leaderboard/stats")
@limiter.limit("30/minute")
async def get_leaderboard_stats(
    request: Request,
    user_id: str = Query(..., description="Requesting user"),
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    try:
        return {"stats": await services.leaderboard_service.get_stats(user_id)}
    except ImpulseError as e:
        raise _http_error(e)


# ==========================================
# Health
# ==========================================

@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    services: ServiceContainer = Depends(get_services)
):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    store_ok = await services.store.ping()

    return HealthCheckResponse(
        status="healthy" if store_ok else "degraded",
        message=HEALTH_MESSAGE,
        database="connected" if store_ok else "disconnected",
        timestamp=datetime.now(timezone.utc)
    )
