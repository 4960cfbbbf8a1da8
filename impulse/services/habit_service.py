"""
HabitService - Habit Business Logic

Handles the habit lifecycle (create, update, soft delete), completion history
and statistics, and orchestrates the reward engine when a habit is completed.
"""

import asyncio
import logging
import math
import time
import weakref
from datetime import datetime
from typing import Any, Dict, List, Optional

import pydantic

from impulse.db.store import HabitStore
from impulse.exceptions import (
    HabitAlreadyCompletedError,
    ImpulseError,
    RecordNotFoundError,
    ValidationError,
)
from impulse.gamification import advance_streak, apply_reward, can_complete, generate_reward
from impulse.gamification.reward_system import RandomSource
from impulse.gamification.streak_system import completed_on
from impulse.models.completion import CompletionResult
from impulse.models.habit import DEFAULT_HABIT_ICON, Habit
from impulse.observability.metrics import (
    habit_completion_duration_seconds,
    habit_completions_total,
    level_ups_total,
    rewards_granted_total,
    streak_resets_total,
    xp_awarded_total,
)
from impulse.services.unit_of_work import to_validation_error, unit_of_work
from impulse.utils.datetime_helpers import now_utc, to_utc

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 30


class HabitService:
    """
    Service for habits and their completion.

    Responsibilities:
    - Habit CRUD with soft delete
    - Completion orchestration (streak, reward draw, reward application, history)
    - At most one in-flight completion per habit
    - Completion history and per-user statistics
    """

    def __init__(self, store: HabitStore, rng: Optional[RandomSource] = None):
        """
        Initialize HabitService.

        Args:
            store: Persistence collaborator
            rng: Random source for reward draws (module default when None)
        """
        self.store = store
        self.rng = rng
        self._completion_locks = weakref.WeakValueDictionary()
        logger.debug("HabitService initialized")

    # ==========================================
    # Completion
    # ==========================================

    async def complete_habit(
        self,
        habit_id: str,
        user_id: str,
        now: Optional[datetime] = None
    ) -> CompletionResult:
        """
        Complete a habit for today and grant a reward.

        Completions of the same habit are serialized: the day gate is checked
        only after the habit's lock is held and its row is loaded for update.

        Raises:
            RecordNotFoundError: habit (active, owned by user) or user missing
            HabitAlreadyCompletedError: habit already completed on this calendar day
            PersistenceError: a write failed; nothing was committed
        """
        now = to_utc(now) if now else now_utc()
        started = time.perf_counter()

        try:
            async with self._get_lock(habit_id):
                result = await self._complete_habit_locked(habit_id, user_id, now)
        except HabitAlreadyCompletedError:
            habit_completions_total.labels(outcome="rejected").inc()
            raise
        except RecordNotFoundError:
            habit_completions_total.labels(outcome="not_found").inc()
            raise
        except ImpulseError:
            habit_completions_total.labels(outcome="failed").inc()
            raise
        finally:
            habit_completion_duration_seconds.observe(time.perf_counter() - started)

        habit_completions_total.labels(outcome="success").inc()
        return result

    async def _complete_habit_locked(
        self,
        habit_id: str,
        user_id: str,
        now: datetime
    ) -> CompletionResult:
        """Completion flow executed under the habit's lock"""
        async with unit_of_work(
            self.store, "complete_habit", user_id=user_id, context={"habit_id": habit_id}
        ) as session:
            habit = await session.load_habit(habit_id, user_id, for_update=True)
            if habit is None or not habit.is_active:
                raise RecordNotFoundError(
                    f"Habit {habit_id} not found for user {user_id}",
                    record_type="Habit",
                    record_id=habit_id,
                    user_id=user_id,
                    operation="complete_habit"
                )

            if not can_complete(habit, now):
                raise HabitAlreadyCompletedError(habit_id, user_id=user_id, operation="complete_habit")

            user = await session.load_user(user_id, for_update=True)
            if user is None:
                raise RecordNotFoundError(
                    f"User {user_id} not found",
                    record_type="User",
                    record_id=user_id,
                    operation="complete_habit"
                )

            had_history = habit.last_completed is not None
            streak = advance_streak(habit, now)
            reward = generate_reward(streak, self.rng)
            applied = await apply_reward(user, habit, reward, session)
            habit.record_completion(now, reward)

            habit.updated_at = now
            user.updated_at = now
            await session.save_habit(habit)
            await session.save_user(user)

        rewards_granted_total.labels(
            reward_type=reward.type.value,
            rarity=reward.rarity.value if reward.rarity else "none"
        ).inc()
        xp_awarded_total.inc(reward.xp)
        if applied.leveled_up:
            level_ups_total.inc()
        if had_history and streak == 1:
            streak_resets_total.inc()

        logger.info(
            f"Habit {habit_id} completed by user {user_id}: streak={streak}, "
            f"reward={reward.type.value}, xp=+{reward.xp}"
        )

        return CompletionResult(
            habit=habit,
            reward=reward,
            user=user.public_dict(),
            streak=streak,
            leveled_up=applied.leveled_up,
            loot_item=applied.loot_item,
        )

    def _get_lock(self, habit_id: str) -> asyncio.Lock:
        """Get or create the completion lock for a habit

        Entries vanish once no completion holds or awaits the lock.
        """
        lock = self._completion_locks.get(habit_id)
        if lock is None:
            lock = asyncio.Lock()
            self._completion_locks[habit_id] = lock
        return lock

    # ==========================================
    # Habit CRUD
    # ==========================================

    async def list_habits(self, user_id: str) -> List[Habit]:
        """Active habits of a user, newest first"""
        return await self.store.list_habits(user_id, active_only=True)

    async def get_habit(self, habit_id: str, user_id: str) -> Habit:
        habit = await self.store.load_habit(habit_id, user_id)
        if habit is None:
            raise RecordNotFoundError(
                f"Habit {habit_id} not found for user {user_id}",
                record_type="Habit",
                record_id=habit_id,
                user_id=user_id,
                operation="get_habit"
            )
        return habit

    async def create_habit(
        self,
        user_id: str,
        name: str,
        icon: Optional[str] = None,
        description: Optional[str] = None
    ) -> Habit:
        """Create a habit for an existing user"""
        if not name or not name.strip():
            raise ValidationError("Habit name is required", field="name", value=name, user_id=user_id)

        try:
            habit = Habit(
                user_id=user_id,
                name=name,
                icon=icon or DEFAULT_HABIT_ICON,
                description=description or "",
            )
        except pydantic.ValidationError as e:
            raise to_validation_error(e, user_id) from e

        async with unit_of_work(self.store, "create_habit", user_id=user_id) as session:
            if await session.load_user(user_id) is None:
                raise RecordNotFoundError(
                    f"User {user_id} not found",
                    record_type="User",
                    record_id=user_id,
                    operation="create_habit"
                )
            await session.create_habit(habit)

        logger.info(f"Created habit {habit.id} '{habit.name}' for user {user_id}")
        return habit

    async def update_habit(
        self,
        habit_id: str,
        user_id: str,
        name: Optional[str] = None,
        icon: Optional[str] = None,
        description: Optional[str] = None
    ) -> Habit:
        """Update display fields of a habit; omitted fields are left unchanged"""
        async with unit_of_work(
            self.store, "update_habit", user_id=user_id, context={"habit_id": habit_id}
        ) as session:
            habit = await session.load_habit(habit_id, user_id, for_update=True)
            if habit is None:
                raise RecordNotFoundError(
                    f"Habit {habit_id} not found for user {user_id}",
                    record_type="Habit",
                    record_id=habit_id,
                    user_id=user_id,
                    operation="update_habit"
                )

            updates: Dict[str, Any] = {}
            if name is not None:
                updates["name"] = name
            if icon is not None:
                updates["icon"] = icon
            if description is not None:
                updates["description"] = description

            try:
                habit = Habit.model_validate({**habit.model_dump(), **updates, "updated_at": now_utc()})
            except pydantic.ValidationError as e:
                raise to_validation_error(e, user_id) from e

            await session.save_habit(habit)

        logger.info(f"Updated habit {habit_id} for user {user_id}: {sorted(updates)}")
        return habit

    async def delete_habit(self, habit_id: str, user_id: str) -> None:
        """Soft delete: the habit stops showing up but keeps its history"""
        async with unit_of_work(
            self.store, "delete_habit", user_id=user_id, context={"habit_id": habit_id}
        ) as session:
            habit = await session.load_habit(habit_id, user_id, for_update=True)
            if habit is None:
                raise RecordNotFoundError(
                    f"Habit {habit_id} not found for user {user_id}",
                    record_type="Habit",
                    record_id=habit_id,
                    user_id=user_id,
                    operation="delete_habit"
                )
            habit.is_active = False
            habit.updated_at = now_utc()
            await session.save_habit(habit)

        logger.info(f"Soft-deleted habit {habit_id} for user {user_id}")

    # ==========================================
    # History & statistics
    # ==========================================

    async def get_history(
        self,
        habit_id: str,
        user_id: str,
        page: int = 1,
        limit: int = DEFAULT_HISTORY_LIMIT
    ) -> Dict[str, Any]:
        """
        Completion history of a habit, newest first, paginated.

        Returns:
            {
                'habit': {'id', 'name', 'icon'},
                'history': list of completion records,
                'pagination': {'page', 'limit', 'total', 'pages'}
            }
        """
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else DEFAULT_HISTORY_LIMIT

        habit = await self.get_habit(habit_id, user_id)

        ordered = sorted(habit.completion_history, key=lambda r: to_utc(r.date), reverse=True)
        skip = (page - 1) * limit
        total = len(ordered)

        return {
            "habit": {"id": habit.id, "name": habit.name, "icon": habit.icon},
            "history": ordered[skip:skip + limit],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    async def get_stats(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate statistics over a user's active habits

        Returns:
            {
                'total_habits': int,
                'total_completions': int,
                'average_streak': float,
                'best_streak': int,
                'active_streaks': int,
                'habits_completed_today': int
            }
        """
        now = to_utc(now) if now else now_utc()
        habits = await self.list_habits(user_id)

        return {
            "total_habits": len(habits),
            "total_completions": sum(h.total_completions for h in habits),
            "average_streak": (sum(h.streak for h in habits) / len(habits)) if habits else 0,
            "best_streak": max((h.best_streak for h in habits), default=0),
            "active_streaks": sum(1 for h in habits if h.streak > 0),
            "habits_completed_today": sum(1 for h in habits if completed_on(h, now)),
        }

